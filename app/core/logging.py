import logging
import re
import sys
from typing import Any

import structlog

# Anything that looks like a token: 32+ alphanumeric characters
SECRET_PATTERN = re.compile(r"\b[A-Za-z0-9]{32,}\b")

SECRET_FIELDS = ("password", "token", "key", "secret", "pat", "api_key", "apikey")

SECRET_ASSIGNMENT_PATTERN = re.compile(
    r"\b(" + "|".join(SECRET_FIELDS) + r")(\s*[:=]\s*)([^\s,}]+)",
    re.IGNORECASE,
)

MASK = "****"

# Correlation ids are random but never secret
UNREDACTED_FIELDS = ("request_id",)


def redact_text(text: str) -> str:
    """Mask token-like substrings and `name=value` secrets in free text"""
    redacted = SECRET_PATTERN.sub(MASK, text)
    return SECRET_ASSIGNMENT_PATTERN.sub(lambda m: f"{m.group(1)}{m.group(2)}{MASK}", redacted)


def _is_secret_field(name: Any) -> bool:
    return isinstance(name, str) and name.lower() in SECRET_FIELDS


def _redact_value(value: Any) -> Any:
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, dict):
        return {
            k: MASK if _is_secret_field(k) and v is not None else _redact_value(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_redact_value(v) for v in value)
    return value


def redact_secrets(logger: Any, method_name: str, event_dict: dict) -> dict:
    """structlog processor that masks secrets before rendering"""
    for key, value in list(event_dict.items()):
        if key in UNREDACTED_FIELDS:
            continue
        if _is_secret_field(key) and value is not None:
            event_dict[key] = MASK
        else:
            event_dict[key] = _redact_value(value)
    return event_dict


def configure_logging(log_level: str = "INFO") -> None:
    """Configure stdlib logging and structlog with JSON output and redaction"""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            redact_secrets,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
