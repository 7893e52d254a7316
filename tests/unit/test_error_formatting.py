"""Unit tests for error serialization and log redaction."""

from src.logging import _redact_tokens, redact
from src.services.errors import (
    AlreadyPaidError,
    ConflictError,
    GatewayError,
    InvalidPhoneFormatError,
    LicensingError,
    ValidationError,
)


def test_validation_error_carries_field():
    error = InvalidPhoneFormatError("12345")

    assert isinstance(error, ValidationError)
    assert error.to_dict() == {
        "code": "invalid_phone_format",
        "message": "Invalid phone number format: '12345'",
        "field": "phone_number",
    }


def test_already_paid_names_the_period():
    error = AlreadyPaidError("rent", period="2024-03")

    assert isinstance(error, ConflictError)
    assert error.message == "Rent already paid for 2024-03"
    assert error.to_dict()["period"] == "2024-03"


def test_gateway_error_is_retryable():
    error = GatewayError("Payment provider unavailable", status_code=502)

    assert isinstance(error, LicensingError)
    assert error.to_dict()["retryable"] is True


def test_redact_masks_bot_token_and_gateway_credentials():
    text = (
        "POST https://api.telegram.org/bot123456789:AAHdqTcvCH1vGWJxfSeofSAs0K5PALDsaw0/send "
        "body token=secret-token&registration=REG42&amount=50.00"
    )

    redacted = redact(text)

    assert "AAHdqTcvCH1vGWJxfSeofSAs0K5PALDsaw0" not in redacted
    assert "secret-token" not in redacted
    assert "REG42" not in redacted
    assert "amount=50.00" in redacted


def test_structlog_processor_masks_sensitive_keys():
    event = _redact_tokens(None, "info", {"event": "gateway_request", "api_key": "re_live"})

    assert event["api_key"] == "<REDACTED>"
    assert event["event"] == "gateway_request"
