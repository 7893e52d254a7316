"""Ctech payment gateway adapter.

Wraps the provider's card redirect rail and Airtel mobile push rail. Every
provider response is normalized to a GatewayResult (or CardOrder /
MobilePayment at initiation) here, so callers never see provider field names.
"""

import re
from decimal import Decimal
from typing import Any, Optional

import httpx

from src.logging import get_logger
from src.models.payment import (
    CardOrder,
    GatewayResult,
    MobilePayment,
    PaymentOutcome,
)
from src.services.errors import GatewayError, InvalidPhoneFormatError

logger = get_logger(__name__)

COUNTRY_PREFIX = "+265"
_WHITESPACE = re.compile(r"\s+")

CARD_PAID_STATUS = "PURCHASED"
CARD_FAILED_STATUSES = frozenset({"FAILED", "DECLINED", "CANCELLED", "CANCELED", "EXPIRED"})

MOBILE_SUCCESS = "TS"
MOBILE_FAILURE = "TF"
MOBILE_IN_PROGRESS = "TIP"
MOBILE_PAID_STATUSES = frozenset({MOBILE_SUCCESS, "COMPLETED"})


def normalize_phone_number(phone_number: str) -> str:
    """Normalize a Malawian phone number to +265 followed by the subscriber digits.

    Accepts a leading trunk "0", a bare "265" country code or a full "+265"
    prefix. Whitespace anywhere is ignored.

    Raises:
        InvalidPhoneFormatError: Any other form
    """
    phone = _WHITESPACE.sub("", phone_number or "")

    if phone.startswith(COUNTRY_PREFIX):
        subscriber = phone[len(COUNTRY_PREFIX):]
    elif phone.startswith("265"):
        subscriber = phone[3:]
    elif phone.startswith("0"):
        subscriber = phone[1:]
    else:
        raise InvalidPhoneFormatError(phone_number)

    if not subscriber.isdigit():
        raise InvalidPhoneFormatError(phone_number)

    return f"{COUNTRY_PREFIX}{subscriber}"


def _format_amount(amount: Decimal) -> str:
    # Provider expects a plain number, no exponent notation
    return format(Decimal(amount).normalize(), "f")


class CtechPaymentGateway:
    """HTTP adapter for the Ctech payment API."""

    def __init__(
        self,
        api_token: str,
        registration: str,
        base_url: str = "https://api-sandbox.ctechpay.com/student",
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 15.0,
    ):
        """
        Initialize gateway adapter.

        Args:
            api_token: Merchant API token
            registration: Merchant registration number
            base_url: Provider base URL (sandbox or production)
            client: Shared HTTP client; one is created when omitted
            timeout_seconds: Per-request timeout for an owned client
        """
        self.api_token = api_token
        self.registration = registration
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def close(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_client:
            await self.client.aclose()

    def _credentials(self) -> dict[str, str]:
        return {"token": self.api_token, "registration": self.registration}

    async def _request(
        self,
        method: str,
        url: str,
        operation: str,
        data: Optional[dict[str, str]] = None,
        params: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        """Send a request and return the decoded JSON body.

        Raises:
            GatewayError: Network failure, HTTP error status or a non-JSON body
        """
        try:
            response = await self.client.request(method, url, data=data, params=params)
        except httpx.RequestError as e:
            logger.error("gateway_network_error", operation=operation, error=str(e))
            raise GatewayError("Network error while processing payment") from e

        if response.is_error:
            message = "Payment gateway error"
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("message"):
                    message = str(body["message"])
            except ValueError:
                pass
            logger.warning(
                "gateway_http_error",
                operation=operation,
                status_code=response.status_code,
                message=message,
            )
            raise GatewayError(message, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            logger.error("gateway_invalid_response", operation=operation)
            raise GatewayError(
                "Payment gateway returned an invalid response",
                status_code=response.status_code,
            ) from e

        if not isinstance(body, dict):
            raise GatewayError(
                "Payment gateway returned an invalid response",
                status_code=response.status_code,
            )
        return body

    async def create_card_order(
        self,
        amount: Decimal,
        redirect_url: str,
        cancel_url: str,
        cancel_text: str = "Cancel payment",
    ) -> CardOrder:
        """
        Create a card order; the payer completes it on the provider's page.

        Args:
            amount: Amount to charge
            redirect_url: Where the provider sends the payer on success
            cancel_url: Where the provider sends the payer on cancel
            cancel_text: Label of the provider's cancel button

        Returns:
            CardOrder with the order reference and hosted payment page URL

        Raises:
            GatewayError: Provider or network failure
        """
        data = {
            **self._credentials(),
            "amount": _format_amount(amount),
            "merchantAttributes": "true",
            "redirectUrl": redirect_url,
            "cancelUrl": cancel_url,
            "cancelText": cancel_text,
        }
        body = await self._request(
            "POST", f"{self.base_url}/", "create_card_order", data=data, params={"endpoint": "order"}
        )

        order_reference = body.get("order_reference")
        payment_page_url = body.get("payment_page_URL")
        if not order_reference or not payment_page_url:
            raise GatewayError(body.get("message") or "Payment gateway did not return an order")

        logger.info("gateway_card_order_created", order_reference=order_reference)

        return CardOrder(
            order_reference=str(order_reference),
            payment_page_url=str(payment_page_url),
            raw=body,
        )

    async def create_mobile_payment(self, amount: Decimal, phone_number: str) -> MobilePayment:
        """
        Request an Airtel push payment to the payer's phone.

        Raises:
            InvalidPhoneFormatError: Phone number cannot be normalized
            GatewayError: Provider rejected the request or network failure
        """
        phone = normalize_phone_number(phone_number)
        data = {
            "airtel": "1",
            **self._credentials(),
            "amount": _format_amount(amount),
            "phone": phone,
        }
        body = await self._request(
            "POST", f"{self.base_url}/mobile/", "create_mobile_payment", data=data
        )

        status = body.get("status") or {}
        message = status.get("message") if isinstance(status, dict) else None
        transaction = ((body.get("data") or {}).get("transaction") or {})
        transaction_id = transaction.get("id")

        if not (isinstance(status, dict) and status.get("success")) or not transaction_id:
            logger.warning("gateway_mobile_payment_rejected", message=message)
            raise GatewayError(message or "Mobile payment initiation failed")

        logger.info("gateway_mobile_payment_created", transaction_id=str(transaction_id))

        return MobilePayment(transaction_id=str(transaction_id), message=message, raw=body)

    async def check_order_status(self, order_reference: str) -> GatewayResult:
        """Check a card order; PURCHASED is the only paid status."""
        data = {**self._credentials(), "orderRef": order_reference}
        body = await self._request(
            "POST", f"{self.base_url}/status/", "check_order_status", data=data
        )
        return self.normalize_card_status(order_reference, body)

    async def check_mobile_payment_status(self, transaction_id: str) -> GatewayResult:
        """Check a mobile payment by transaction id."""
        body = await self._request(
            "GET",
            f"{self.base_url}/mobile/status",
            "check_mobile_payment_status",
            params={"trans_id": transaction_id},
        )
        return self.normalize_mobile_status(transaction_id, body)

    @staticmethod
    def normalize_card_status(reference: str, body: dict[str, Any]) -> GatewayResult:
        """Map a card status body to a GatewayResult."""
        status = body.get("status")
        code = status.upper() if isinstance(status, str) else None

        if code == CARD_PAID_STATUS:
            outcome = PaymentOutcome.PAID
        elif code in CARD_FAILED_STATUSES:
            outcome = PaymentOutcome.FAILED
        elif code:
            outcome = PaymentOutcome.PENDING
        else:
            outcome = PaymentOutcome.UNKNOWN

        return GatewayResult(
            outcome=outcome,
            reference=reference,
            message=body.get("message") or code,
            raw=body,
        )

    @staticmethod
    def normalize_mobile_status(reference: str, body: dict[str, Any]) -> GatewayResult:
        """Map a mobile status body (TS / TF / TIP) to a GatewayResult."""
        status = body.get("transaction_status")
        code = status.upper() if isinstance(status, str) else None

        if code in MOBILE_PAID_STATUSES:
            outcome = PaymentOutcome.PAID
        elif code == MOBILE_FAILURE:
            outcome = PaymentOutcome.FAILED
        elif code == MOBILE_IN_PROGRESS:
            outcome = PaymentOutcome.PENDING
        else:
            outcome = PaymentOutcome.UNKNOWN

        return GatewayResult(
            outcome=outcome,
            reference=reference,
            message=body.get("message"),
            raw=body,
        )
