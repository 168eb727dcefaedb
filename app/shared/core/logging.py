import re
import sys
import structlog
import logging
from typing import Any, cast
from app.shared.core.config import get_settings

_EMAIL_REGEX = re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+")
_AWS_ACCESS_KEY_REGEX = re.compile(r"\b(?:AKIA|ASIA)[A-Z0-9]{16}\b")

_PII_FIELDS = {
    "password",
    "token",
    "secret",
    "authorization",
    "api_key",
    "apikey",
    "access_token",
    "session_token",
    "aws_secret_access_key",
    "aws_access_key_id",
    "private_key",
}
_PII_SUFFIXES = ("_token", "_secret", "_password", "_key")
_PII_CONTAINS = ("authorization", "secret", "token", "apikey", "api_key")


def _is_sensitive_key(key: Any) -> bool:
    key_norm = str(key).lower().strip().replace("-", "_")
    if key_norm in _PII_FIELDS:
        return True
    if key_norm.endswith(_PII_SUFFIXES):
        return True
    return any(fragment in key_norm for fragment in _PII_CONTAINS)


def _redact_text(text: str) -> str:
    text = _EMAIL_REGEX.sub("[EMAIL_REDACTED]", text)
    return _AWS_ACCESS_KEY_REGEX.sub("[AWS_KEY_REDACTED]", text)


def _redact_recursive(data: Any) -> Any:
    if isinstance(data, dict):
        return {
            k: ("[REDACTED]" if _is_sensitive_key(k) else _redact_recursive(v))
            for k, v in data.items()
        }
    elif isinstance(data, list):
        return [_redact_recursive(item) for item in data]
    elif isinstance(data, str):
        return _redact_text(data)
    return data


def pii_redactor(
    _logger: Any, _method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """
    Recursively redact emails, credentials and secret-looking fields from logs.
    AWS access key ids are masked even when they show up inside error strings.
    """
    redacted = _redact_recursive(event_dict)
    if isinstance(redacted, dict):
        return cast(dict[str, Any], redacted)
    return {}


def setup_logging() -> None:
    settings = get_settings()

    # 1. Configure the common processors
    base_processors = [
        structlog.contextvars.merge_contextvars,  # Support async context
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        pii_redactor,  # Security: Redact PII before rendering
    ]

    # 2. Choose the renderer based on environment
    if settings.DEBUG:
        renderer: Any = structlog.dev.ConsoleRenderer()
        processors = base_processors + [renderer]
        min_level = logging.DEBUG
    else:
        renderer = structlog.processors.JSONRenderer()
        processors = base_processors + [structlog.processors.dict_tracebacks, renderer]
        min_level = logging.INFO

    # 3. Apply the configuration
    structlog.configure(
        processors=cast(Any, processors),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # 4. Route stdlib logging (botocore, httpx, ...) to stderr at the same level.
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=min_level,
    )


def audit_log(
    event: str,
    client_id: str,
    details: dict[str, Any] | None = None,
) -> None:
    """
    Standardized helper for query audit events.
    Enforces a consistent schema for log ingestion.
    """
    logger = structlog.get_logger("audit")
    logger.info(
        event,
        client_id=str(client_id),
        metadata=details or {},
    )
