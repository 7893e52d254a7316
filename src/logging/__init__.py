"""Structured logging configuration using structlog."""

import logging
import re
import sys

import structlog

# Telegram bot tokens: <bot_id>:<35 char secret>
_BOT_TOKEN_PATTERN = re.compile(r"(\d{8,12}:[A-Za-z0-9_-]{35})")
# Gateway credentials travel as form fields or query parameters
_GATEWAY_TOKEN_PATTERN = re.compile(r"((?:token|api_key|registration)=)[^&\s\"']+")

_SENSITIVE_KEYS = frozenset({"token", "api_token", "api_key", "registration", "authorization"})


def redact(value: str) -> str:
    """Mask bot tokens and gateway credentials inside a string."""
    value = _BOT_TOKEN_PATTERN.sub("<BOT_TOKEN_REDACTED>", value)
    return _GATEWAY_TOKEN_PATTERN.sub(r"\1<REDACTED>", value)


class TokenRedactingFilter(logging.Filter):
    """Filter that redacts sensitive tokens from log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact tokens from log message."""
        if record.msg and isinstance(record.msg, str):
            record.msg = redact(record.msg)
        if record.args:
            record.args = tuple(
                redact(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True


def _redact_tokens(
    logger: logging.Logger, method_name: str, event_dict: dict
) -> dict:
    """Structlog processor to redact credentials from event dictionaries."""
    for key, value in list(event_dict.items()):
        if key.lower() in _SENSITIVE_KEYS:
            event_dict[key] = "<REDACTED>"
        elif isinstance(value, str):
            event_dict[key] = redact(value)
    return event_dict


def setup_logging(log_level: str = "INFO") -> None:
    """Configure structured logging for the application."""
    token_filter = TokenRedactingFilter()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    root_logger.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, log_level.upper()))
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(token_filter)
    root_logger.addHandler(handler)

    # httpx logs full request URLs, including the gateway status query strings
    for logger_name in ("httpx", "httpcore", "telegram", "sqlalchemy.engine"):
        lib_logger = logging.getLogger(logger_name)
        lib_logger.addFilter(token_filter)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _redact_tokens,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
