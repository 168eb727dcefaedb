"""
Global pytest fixtures for the Stratus test suite.

Provides:
- Test settings (TESTING=true, in-memory SQLite)
- An AWSClientProvider whose aioboto3 session hands out mocked clients
"""

import os
from collections import defaultdict
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment BEFORE any app imports
os.environ["TESTING"] = "true"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "development"
for _key in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "CLAUDE_API_KEY", "AWS_ENDPOINT_URL"):
    os.environ.pop(_key, None)

from app.shared.adapters.aws_utils import AWSClientProvider  # noqa: E402
from app.shared.core.config import get_settings  # noqa: E402


def client_context(client: Any) -> MagicMock:
    """Wraps a mocked client the way `session.client(...)` returns it."""
    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=client)
    cm.__aexit__ = AsyncMock(return_value=False)
    return cm


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def aws_clients() -> Dict[str, AsyncMock]:
    """Mocked aioboto3 clients keyed by service name, created on first use."""
    return defaultdict(AsyncMock)


@pytest.fixture
def aws_provider(settings, aws_clients):
    session = MagicMock()

    def _client(service_name: str, **kwargs: Any) -> MagicMock:
        return client_context(aws_clients[service_name])

    session.client.side_effect = _client
    return AWSClientProvider(region="us-east-1", session=session, settings=settings)
