"""Tests for the HTTP surface: generation endpoints, error mapping, health, metrics."""

import pytest

from genmedia.gateway.errors import (
    AuthenticationError,
    ExhaustedRetriesError,
    ModelNotSupportedError,
    ProviderError,
    RateLimitError,
)
from genmedia.gateway.rate_limiter import SlidingWindowRateLimiter
from genmedia.gateway.router import ProviderRouter
from genmedia.gateway.types import ProviderConfig, ProviderId, ResponseMetadata, UnifiedResponse

pytestmark = pytest.mark.asyncio


class FakeFal:
    provider = ProviderId.FAL

    def __init__(self):
        self.config = ProviderConfig(api_key="fal-key-123456", rate_limit_per_minute=30)
        self.error = None
        self.last_request = None

    async def call_model(self, request):
        self.last_request = request
        if self.error is not None:
            raise self.error
        return UnifiedResponse(
            images=["https://fal.media/files/out.png"],
            metadata=ResponseMetadata(
                model=request.model,
                provider=self.provider,
                execution_time_ms=42,
                extra={"seed": request.options.seed},
            ),
        )

    async def is_healthy(self):
        return True

    def get_supported_models(self):
        return ["flux/dev", "flux/schnell"]

    def model_kind(self, model):
        return "image"


@pytest.fixture
def fake_fal():
    return FakeFal()


@pytest.fixture
def provider_router(fake_fal):
    router = ProviderRouter(SlidingWindowRateLimiter())
    router.register(fake_fal)
    return router


def _generate_body(**overrides):
    body = {"provider": "fal", "model": "flux/dev", "prompt": "a lighthouse at dusk"}
    body.update(overrides)
    return body


async def test_generate_success(client, fake_fal):
    resp = await client.post(
        "/api/v1/generate",
        json=_generate_body(options={"seed": 7, "image_size": "512x512"}),
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["images"] == ["https://fal.media/files/out.png"]
    assert data["text"] is None
    assert data["metadata"]["provider"] == "fal"
    assert data["metadata"]["seed"] == 7
    assert fake_fal.last_request.options.image_size == "512x512"


async def test_generate_rejects_bad_payload(client):
    resp = await client.post("/api/v1/generate", json=_generate_body(prompt=""))
    assert resp.status_code == 422

    resp = await client.post("/api/v1/generate", json=_generate_body(options={"image_size": "big"}))
    assert resp.status_code == 422


async def test_generate_unconfigured_provider(client):
    resp = await client.post("/api/v1/generate", json=_generate_body(provider="modelslab", model="openjourney"))
    assert resp.status_code == 404
    assert resp.json()["error"] == "provider_not_configured"


async def test_models_by_kind(client):
    resp = await client.get("/api/v1/providers/models", params={"kind": "image"})
    assert resp.status_code == 200
    assert resp.json() == {"kind": "image", "providers": {"fal": ["flux/dev", "flux/schnell"]}}

    resp = await client.get("/api/v1/providers/models", params={"kind": "video"})
    assert resp.json() == {"kind": "video", "providers": {}}


async def test_models_by_kind_rejects_unknown_kind(client):
    resp = await client.get("/api/v1/providers/models", params={"kind": "audio"})
    assert resp.status_code == 422


async def test_cost_estimate(client):
    resp = await client.get("/api/v1/providers/fal/cost", params={"model": "flux-pro", "prompt_length": 10})
    assert resp.status_code == 200
    data = resp.json()
    assert data["provider"] == "fal"
    assert data["estimated"] is True
    assert data["cost"] == pytest.approx(0.05)
    assert data["currency"] == "USD"


async def test_cost_estimate_unknown_model(client):
    resp = await client.get("/api/v1/providers/openrouter/cost", params={"model": "nobody/nothing"})
    assert resp.status_code == 200
    assert resp.json()["estimated"] is False
    assert resp.json()["cost"] == 0.0


@pytest.mark.parametrize(
    "error, status",
    [
        (ModelNotSupportedError(ProviderId.FAL, "flux/dev"), 400),
        (AuthenticationError(ProviderId.FAL), 502),
        (ProviderError("bad gateway", ProviderId.FAL, http_status=500), 502),
        (ExhaustedRetriesError(ProviderId.FAL, 3, ProviderError("bad gateway", ProviderId.FAL)), 503),
        (RateLimitError(ProviderId.FAL), 429),
    ],
)
async def test_gateway_error_status(client, fake_fal, error, status):
    fake_fal.error = error
    resp = await client.post("/api/v1/generate", json=_generate_body())
    assert resp.status_code == status
    assert resp.json()["error"] == error.kind
    assert resp.json()["provider"] == "fal"


async def test_rate_limit_sets_retry_after(client, fake_fal):
    fake_fal.error = RateLimitError(ProviderId.FAL, retry_after_seconds=17)
    resp = await client.post("/api/v1/generate", json=_generate_body())
    assert resp.status_code == 429
    assert resp.headers["retry-after"] == "17"
    assert resp.json()["retry_after_seconds"] == 17


async def test_list_providers(client):
    resp = await client.get("/api/v1/providers")
    assert resp.status_code == 200
    [info] = resp.json()
    assert info["provider"] == "fal"
    assert info["available"] is True
    assert info["rate_limit"]["rpm_limit"] == 30


async def test_list_models(client):
    resp = await client.get("/api/v1/providers/fal/models")
    assert resp.status_code == 200
    assert resp.json() == {"provider": "fal", "models": ["flux/dev", "flux/schnell"]}

    resp = await client.get("/api/v1/providers/openrouter/models")
    assert resp.status_code == 404


async def test_provider_health(client):
    resp = await client.get("/api/v1/providers/fal/health")
    assert resp.json() == {"provider": "fal", "healthy": True}

    resp = await client.get("/api/v1/providers/modelslab/health")
    assert resp.json() == {"provider": "modelslab", "healthy": False}


async def test_app_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "providers": ["fal"]}


async def test_metrics(client):
    await client.post("/api/v1/generate", json=_generate_body())
    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert "gateway_provider_calls_total" in resp.text
