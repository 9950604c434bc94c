from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from genmedia.gateway.rate_limiter import SlidingWindowRateLimiter
from genmedia.gateway.types import ProviderConfig


class FakeClock:
    """Manually advanced replacement for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter() -> SlidingWindowRateLimiter:
    """Fresh, isolated limiter per test."""
    return SlidingWindowRateLimiter()


@pytest.fixture
def config() -> ProviderConfig:
    return ProviderConfig(api_key="test-key-1234567890")


@pytest.fixture
def make_response():
    """Build a real httpx.Response with request set (needed for status helpers)."""

    def _make(
        status_code: int,
        json_data=None,
        text: str = "",
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        request = httpx.Request("POST", "https://example.com")
        if json_data is not None:
            return httpx.Response(status_code, json=json_data, headers=headers, request=request)
        return httpx.Response(status_code, text=text, headers=headers, request=request)

    return _make


@pytest.fixture
def mock_http():
    """Patch httpx.AsyncClient; yields the client mock whose post/request calls are counted."""
    with patch("genmedia.gateway.providers.base.httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=None)
        mock_client_cls.return_value = mock_client
        yield mock_client


@pytest.fixture
def no_sleep():
    """Skip real backoff/poll delays; the mock records the requested durations."""
    with patch("genmedia.gateway.providers.base.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


@pytest.fixture
async def client(provider_router) -> AsyncGenerator[AsyncClient, None]:
    from genmedia.api.v1.generation import get_provider_router
    from genmedia.main import app

    app.dependency_overrides[get_provider_router] = lambda: provider_router
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
