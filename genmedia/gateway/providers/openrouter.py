"""OpenRouter adapter: text generation through an OpenAI-compatible chat API."""

from __future__ import annotations

import logging
import time
from typing import Any

from genmedia.gateway.errors import ModelNotSupportedError, ProviderError
from genmedia.gateway.providers.base import ensure_admitted, or_default, post_with_retries, probe, resolve_config
from genmedia.gateway.rate_limiter import SlidingWindowRateLimiter
from genmedia.gateway.types import (
    ModelKind,
    ModelRequest,
    ProviderConfig,
    ProviderId,
    ResponseMetadata,
    TokenUsage,
    UnifiedResponse,
)

logger = logging.getLogger(__name__)

BASE_URL = "https://openrouter.ai/api/v1"

DEFAULT_CONFIG = ProviderConfig(
    api_key="",
    timeout_seconds=30.0,
    max_retries=3,
    rate_limit_per_minute=60,
    base_url=BASE_URL,
)

SUPPORTED_MODELS: tuple[str, ...] = (
    "openai/gpt-4o",
    "openai/gpt-4o-mini",
    "openai/gpt-4-turbo",
    "openai/gpt-3.5-turbo",
    "anthropic/claude-3.5-sonnet",
    "anthropic/claude-3-haiku",
    "meta-llama/llama-3.1-405b-instruct",
    "meta-llama/llama-3.1-70b-instruct",
    "google/gemini-pro-1.5",
    "mistralai/mixtral-8x7b-instruct",
    "perplexity/llama-3.1-sonar-large-128k-online",
)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000


class OpenRouterAdapter:
    """OpenRouter chat completions adapter."""

    provider = ProviderId.OPENROUTER

    def __init__(
        self,
        config: ProviderConfig,
        rate_limiter: SlidingWindowRateLimiter,
        referer: str = "http://localhost:3000",
        app_title: str = "Generative Media Gateway",
    ):
        self.config = resolve_config(config, DEFAULT_CONFIG, self.provider)
        self.rate_limiter = rate_limiter
        self.referer = referer
        self.app_title = app_title

    def build_request_body(self, request: ModelRequest) -> dict[str, Any]:
        """Chat completion body. ``options.extra`` is passed through; built fields take precedence."""
        options = request.options
        messages = []
        if options.system_message:
            messages.append({"role": "system", "content": options.system_message})
        messages.append({"role": "user", "content": request.prompt})

        return {
            **options.extra,
            "model": request.model,
            "messages": messages,
            "temperature": or_default(options.temperature, DEFAULT_TEMPERATURE),
            "max_tokens": or_default(options.max_tokens, DEFAULT_MAX_TOKENS),
            "stream": False,
        }

    async def _require_choices(self, data: Any) -> dict[str, Any]:
        """Reject replies without a usable first choice; raised inside the attempt so it is retried."""
        choices = data.get("choices") if isinstance(data, dict) else None
        first = choices[0] if isinstance(choices, list) and choices else None
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            raise ProviderError("Invalid response format", self.provider, http_status=200, raw_body=data)
        return data

    async def call_model(self, request: ModelRequest) -> UnifiedResponse:
        start = time.monotonic()

        await ensure_admitted(self.rate_limiter, self.provider)

        if request.model not in SUPPORTED_MODELS:
            raise ModelNotSupportedError(self.provider, request.model)

        data = await post_with_retries(
            provider=self.provider,
            config=self.config,
            rate_limiter=self.rate_limiter,
            url=f"{self.config.base_url}/chat/completions",
            payload=self.build_request_body(request),
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
                "HTTP-Referer": self.referer,
                "X-Title": self.app_title,
            },
            message_keys=("error",),
            on_success=self._require_choices,
        )

        usage = data.get("usage")
        if not isinstance(usage, dict):
            usage = None
        return UnifiedResponse(
            text=data["choices"][0]["message"].get("content"),
            metadata=ResponseMetadata(
                model=request.model,
                provider=self.provider,
                execution_time_ms=int((time.monotonic() - start) * 1000),
                request_id=data.get("id"),
                usage=(
                    TokenUsage(
                        input_tokens=usage.get("prompt_tokens", 0),
                        output_tokens=usage.get("completion_tokens", 0),
                        total_tokens=usage.get("total_tokens", 0),
                    )
                    if usage
                    else None
                ),
                original_response=data,
            ),
        )

    async def is_healthy(self) -> bool:
        return await probe(
            "GET",
            f"{self.config.base_url}/models",
            headers={"Authorization": f"Bearer {self.config.api_key}"},
            require_success=True,
        )

    def get_supported_models(self) -> list[str]:
        return list(SUPPORTED_MODELS)

    def model_kind(self, model: str) -> ModelKind:
        return "text"
