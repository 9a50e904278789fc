from unittest.mock import AsyncMock

import pytest

from keyhub.auth.client.services.storage import InMemoryTokenStore
from keyhub.config import OAuthSettings


class FakeClock:
    """Manually advanced stand-in for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return OAuthSettings(
        client_id="test-client",
        redirect_uri="app://oauth/callback",
        scopes="openid tokens:read",
    )


@pytest.fixture
def token_store():
    return InMemoryTokenStore()


@pytest.fixture
def http_client():
    """AsyncMock standing in for httpx.AsyncClient."""
    return AsyncMock()
