"""Provider Router: one call surface over every configured backend adapter.

Holds one adapter instance per provider, dispatches requests to it and
exposes model listing and health pass-throughs. The router itself has no
backend-specific logic; adapters plug in through the ``ProviderAdapter``
protocol.

Usage:
    limiter = SlidingWindowRateLimiter()
    router = build_router(settings, limiter)

    response = await router.call_model(ProviderId.FAL, "flux/dev", "a lighthouse at dusk")
    print(response.images)
"""

from __future__ import annotations

import asyncio
import logging
import time

from genmedia.core.config import Settings
from genmedia.core.metrics import PROVIDER_CALL_DURATION, PROVIDER_CALLS
from genmedia.gateway.errors import GatewayError, ProviderError, ProviderNotConfiguredError
from genmedia.gateway.keys import validate_api_key
from genmedia.gateway.providers.base import ProviderAdapter
from genmedia.gateway.providers.fal import FalAdapter
from genmedia.gateway.providers.modelslab import ModelsLabAdapter
from genmedia.gateway.providers.openrouter import OpenRouterAdapter
from genmedia.gateway.rate_limiter import SlidingWindowRateLimiter
from genmedia.gateway.types import (
    GenerationOptions,
    ModelKind,
    ModelRequest,
    ProviderConfig,
    ProviderId,
    UnifiedResponse,
)

logger = logging.getLogger(__name__)


class ProviderRouter:
    """Registry of configured adapters, keyed by provider."""

    def __init__(self, rate_limiter: SlidingWindowRateLimiter):
        self.rate_limiter = rate_limiter
        self._adapters: dict[ProviderId, ProviderAdapter] = {}

    # -- registry ----------------------------------------------------------

    def register(self, adapter: ProviderAdapter) -> None:
        """Add or replace the adapter for ``adapter.provider``."""
        if not isinstance(adapter, ProviderAdapter):
            raise TypeError(f"{type(adapter).__name__} does not implement ProviderAdapter")
        self.rate_limiter.set_limit(adapter.provider, adapter.config.rate_limit_per_minute)
        self._adapters[adapter.provider] = adapter
        logger.info("Registered %s adapter (%d models)", adapter.provider.value, len(adapter.get_supported_models()))

    def unregister(self, provider: ProviderId) -> bool:
        return self._adapters.pop(provider, None) is not None

    def has_provider(self, provider: ProviderId) -> bool:
        return provider in self._adapters

    def available_providers(self) -> list[ProviderId]:
        return list(self._adapters)

    def _get_adapter(self, provider: ProviderId) -> ProviderAdapter:
        adapter = self._adapters.get(provider)
        if adapter is None:
            raise ProviderNotConfiguredError(provider)
        return adapter

    # -- calls -------------------------------------------------------------

    async def call(self, provider: ProviderId, request: ModelRequest) -> UnifiedResponse:
        """Dispatch ``request`` to the provider's adapter.

        Typed gateway errors propagate unchanged; anything else is wrapped in
        a ProviderError so callers only ever see the gateway taxonomy.
        """
        adapter = self._get_adapter(provider)
        start = time.monotonic()
        outcome = "success"

        try:
            return await adapter.call_model(request)
        except GatewayError as e:
            outcome = e.kind
            raise
        except Exception as e:
            outcome = "unexpected_error"
            logger.exception(
                "Unexpected error calling %s model %s",
                provider.value,
                request.model,
                extra={"provider": provider.value, "model": request.model},
            )
            raise ProviderError(f"Unexpected error calling {provider.value}: {e}", provider) from e
        finally:
            PROVIDER_CALLS.labels(provider=provider.value, outcome=outcome).inc()
            PROVIDER_CALL_DURATION.labels(provider=provider.value).observe(time.monotonic() - start)

    async def call_model(
        self,
        provider: ProviderId,
        model: str,
        prompt: str,
        options: GenerationOptions | None = None,
    ) -> UnifiedResponse:
        request = ModelRequest(model=model, prompt=prompt, options=options or GenerationOptions())
        return await self.call(provider, request)

    # -- models ------------------------------------------------------------

    def list_supported_models(self, provider: ProviderId) -> list[str]:
        return self._get_adapter(provider).get_supported_models()

    def all_supported_models(self) -> dict[ProviderId, list[str]]:
        return {provider: adapter.get_supported_models() for provider, adapter in self._adapters.items()}

    def is_model_supported(self, provider: ProviderId, model: str) -> bool:
        adapter = self._adapters.get(provider)
        return adapter is not None and model in adapter.get_supported_models()

    def find_providers_for_model(self, model: str) -> list[ProviderId]:
        return [p for p, adapter in self._adapters.items() if model in adapter.get_supported_models()]

    def models_by_kind(self, kind: ModelKind) -> dict[ProviderId, list[str]]:
        """Models producing ``kind`` output, per provider; providers with none are omitted."""
        result = {}
        for provider, adapter in self._adapters.items():
            models = [m for m in adapter.get_supported_models() if adapter.model_kind(m) == kind]
            if models:
                result[provider] = models
        return result

    def provider_info(self, provider: ProviderId) -> dict:
        """Public description of a provider (never includes credentials)."""
        adapter = self._adapters.get(provider)
        if adapter is None:
            return {"provider": provider.value, "available": False, "models": []}
        return {
            "provider": provider.value,
            "available": True,
            "models": adapter.get_supported_models(),
            "rate_limit": self.rate_limiter.get_stats(provider),
        }

    # -- health ------------------------------------------------------------

    async def is_healthy(self, provider: ProviderId) -> bool:
        adapter = self._adapters.get(provider)
        if adapter is None:
            return False
        try:
            return await adapter.is_healthy()
        except Exception:
            logger.exception("Health check for %s raised", provider.value)
            return False

    async def check_all_health(self) -> dict[ProviderId, bool]:
        providers = list(self._adapters)
        results = await asyncio.gather(*(self.is_healthy(p) for p in providers))
        return dict(zip(providers, results))


# ---------------------------------------------------------------------------
# Adapter factory
# ---------------------------------------------------------------------------

ADAPTER_REGISTRY: dict[ProviderId, type] = {
    ProviderId.OPENROUTER: OpenRouterAdapter,
    ProviderId.FAL: FalAdapter,
    ProviderId.MODELSLAB: ModelsLabAdapter,
}


def create_adapter(
    provider: ProviderId,
    config: ProviderConfig,
    rate_limiter: SlidingWindowRateLimiter,
    **kwargs,
) -> ProviderAdapter:
    """Factory: build the adapter for a provider."""
    cls = ADAPTER_REGISTRY.get(provider)
    if cls is None:
        raise ValueError(f"No adapter registered for provider: {provider}")
    return cls(config, rate_limiter, **kwargs)


def _config_from_settings(provider: ProviderId, settings: Settings) -> ProviderConfig:
    name = provider.value
    return ProviderConfig(
        api_key=getattr(settings, f"{name}_api_key"),
        timeout_seconds=getattr(settings, f"{name}_timeout_seconds"),
        max_retries=getattr(settings, f"{name}_max_retries"),
        rate_limit_per_minute=getattr(settings, f"{name}_rpm_limit"),
    )


def build_router(settings: Settings, rate_limiter: SlidingWindowRateLimiter | None = None) -> ProviderRouter:
    """Create a router with an adapter for every provider that has an API key."""
    router = ProviderRouter(rate_limiter or SlidingWindowRateLimiter())

    for provider in ProviderId:
        config = _config_from_settings(provider, settings)
        if not config.api_key:
            logger.warning("%s_API_KEY not set, %s models unavailable", provider.value.upper(), provider.value)
            continue

        check = validate_api_key(provider, config.api_key)
        if not check.valid:
            logger.warning("%s API key looks malformed: %s", provider.value, check.error)

        kwargs = {}
        if provider == ProviderId.OPENROUTER:
            kwargs = {"referer": settings.openrouter_referer, "app_title": settings.openrouter_app_title}

        try:
            router.register(create_adapter(provider, config, router.rate_limiter, **kwargs))
        except GatewayError as e:
            logger.warning("Failed to initialize %s provider: %s", provider.value, e)

    return router
