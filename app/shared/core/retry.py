"""
Retry Logic with Exponential Backoff

Wraps AWS calls so transient connection failures are retried before they
surface as scan or cost failures.
"""

import inspect
from functools import wraps
from typing import Any, Dict

import structlog
import tenacity
from botocore.exceptions import (
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from app.shared.core.config import get_settings

logger = structlog.get_logger()

TRANSIENT_AWS_ERRORS = (ConnectTimeoutError, ReadTimeoutError, EndpointConnectionError)


def _before_sleep(retry_state: tenacity.RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    wait = retry_state.next_action.sleep if retry_state.next_action else None
    logger.debug(
        "aws_retrying",
        attempt=retry_state.attempt_number,
        wait_seconds=wait,
        error=str(exc) if exc else None,
        function=getattr(retry_state.fn, "__name__", "unknown"),
    )


def build_retry_config() -> Dict[str, Any]:
    settings = get_settings()
    config: Dict[str, Any] = {
        "retry": tenacity.retry_if_exception_type(TRANSIENT_AWS_ERRORS),
        "wait": tenacity.wait_exponential(multiplier=1, min=2, max=10),
        "stop": tenacity.stop_after_attempt(settings.AWS_RETRY_ATTEMPTS),
        "before_sleep": _before_sleep,
        "reraise": True,
    }
    if settings.TESTING:
        # Avoid real sleeps during tests while preserving retry semantics.
        async def _no_sleep(_seconds: float) -> None:
            return None

        config["sleep"] = _no_sleep
        config["wait"] = tenacity.wait_none()
    return config


def with_aws_retry(func: Any) -> Any:
    """
    Exponential backoff retry decorator for AWS API calls.
    Targets transient network failures (ConnectTimeout, EndpointConnectionError).
    Coroutines only; a coroutine is re-run from the start on each attempt.
    """
    if not inspect.iscoroutinefunction(func):
        raise TypeError("with_aws_retry only decorates coroutine functions")

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        retrying = tenacity.AsyncRetrying(**build_retry_config())
        async for attempt in retrying:
            with attempt:
                return await func(*args, **kwargs)

    return wrapper
