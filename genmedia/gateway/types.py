"""Core types and DTOs for the generative media gateway."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Literal

from genmedia.gateway.errors import ValidationError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ProviderId(str, Enum):
    """Supported generative-model backends."""

    OPENROUTER = "openrouter"
    FAL = "fal"
    MODELSLAB = "modelslab"


# Output modality of a model; "3d" covers mesh and splat generators
ModelKind = Literal["text", "image", "video", "3d"]


# ---------------------------------------------------------------------------
# Provider config
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderConfig:
    """Connection, retry and rate limit settings for one adapter.

    Fields left as None are filled from the adapter's backend-specific
    defaults when the adapter is constructed (see ``with_defaults``).
    """

    api_key: str
    timeout_seconds: float | None = None  # Per-attempt HTTP timeout
    max_retries: int | None = None  # Total attempts per call
    rate_limit_per_minute: int | None = None
    base_url: str | None = None

    def with_defaults(self, defaults: ProviderConfig) -> ProviderConfig:
        """Return a copy with every unset field taken from ``defaults``."""
        overrides = {
            f.name: getattr(defaults, f.name)
            for f in fields(self)
            if getattr(self, f.name) is None
        }
        return replace(self, **overrides)

    def validate(self, provider: ProviderId) -> None:
        if not self.api_key or not self.api_key.strip():
            raise ValidationError(f"{provider.value} API key is required", provider)
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValidationError("timeout_seconds must be positive", provider)
        if self.max_retries is not None and self.max_retries < 0:
            raise ValidationError("max_retries must not be negative", provider)
        if self.rate_limit_per_minute is not None and self.rate_limit_per_minute <= 0:
            raise ValidationError("rate_limit_per_minute must be positive", provider)


# ---------------------------------------------------------------------------
# Model request: input to an adapter
# ---------------------------------------------------------------------------


@dataclass
class GenerationOptions:
    """Optional generation parameters. Each adapter reads the subset it understands."""

    seed: int | None = None
    steps: int | None = None
    guidance_scale: float | None = None
    negative_prompt: str | None = None
    image_size: str | None = None  # "WxH", e.g. "1024x768"
    video_length: int | None = None  # Seconds (FAL) or frames (ModelsLab)

    # Text generation
    temperature: float | None = None
    max_tokens: int | None = None
    system_message: str | None = None

    quality: str | None = None
    style: str | None = None

    # Backend passthrough
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class ModelRequest:
    """A single generation request. Built per call, never persisted."""

    model: str
    prompt: str
    options: GenerationOptions = field(default_factory=GenerationOptions)


# ---------------------------------------------------------------------------
# Unified response: identical shape for every backend
# ---------------------------------------------------------------------------


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ResponseMetadata:
    model: str
    provider: ProviderId
    execution_time_ms: int = 0
    request_id: str | None = None
    usage: TokenUsage | None = None
    extra: dict[str, Any] = field(default_factory=dict)  # Adapter-specific (seed, steps, status...)
    original_response: Any = None  # Untouched backend reply, for diagnostics


@dataclass
class UnifiedResponse:
    """Normalized success value returned to every caller regardless of backend.

    Video and 3D asset URLs are reported in ``images`` as well.
    """

    metadata: ResponseMetadata
    text: str | None = None
    images: list[str] | None = None

    def __post_init__(self) -> None:
        if self.images is not None and len(self.images) == 0:
            self.images = None

    def to_dict(self) -> dict:
        """Serialize to JSON-compatible dict for the API."""
        meta = self.metadata
        return {
            "text": self.text,
            "images": self.images,
            "metadata": {
                "model": meta.model,
                "provider": meta.provider.value,
                "execution_time_ms": meta.execution_time_ms,
                "request_id": meta.request_id,
                "usage": (
                    {
                        "input_tokens": meta.usage.input_tokens,
                        "output_tokens": meta.usage.output_tokens,
                        "total_tokens": meta.usage.total_tokens,
                    }
                    if meta.usage
                    else None
                ),
                **meta.extra,
                "original_response": meta.original_response,
            },
        }
