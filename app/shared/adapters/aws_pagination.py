from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import structlog

logger = structlog.get_logger()


async def iter_token_pages(
    operation: Callable[..., Awaitable[dict[str, Any]]],
    *,
    operation_name: str,
    request_token_key: str,
    response_token_key: str,
    request_kwargs: dict[str, Any] | None = None,
    max_pages: int | None = None,
) -> AsyncGenerator[dict[str, Any], None]:
    """
    Stream pages of a token-paginated AWS operation, strictly in order.

    The loop only ends when the response carries no continuation token at
    all. A token that is present but empty is still sent back, because some
    listing APIs return "" for a page that is not the last one.

    `max_pages` is a hard stop for protection against a misbehaving API
    that keeps returning tokens forever.
    """
    if max_pages is not None and max_pages <= 0:
        raise ValueError("max_pages must be > 0 when provided")

    params = dict(request_kwargs or {})
    pages_seen = 0
    while True:
        response = await operation(**params)
        pages_seen += 1
        yield response

        if response.get(response_token_key) is None:
            break
        if max_pages is not None and pages_seen >= max_pages:
            logger.warning(
                "aws_pagination_page_cap_reached",
                operation=operation_name,
                max_pages=max_pages,
            )
            break
        params[request_token_key] = response[response_token_key]
