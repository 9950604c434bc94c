"""FAL adapter: image, video and 3D generation via https://fal.run.

Reply shapes vary per model family; all of them are folded into
``UnifiedResponse.images`` (video and mesh URLs included).
"""

from __future__ import annotations

import logging
import time
from typing import Any

from genmedia.gateway.errors import ModelNotSupportedError
from genmedia.gateway.providers.base import (
    ensure_admitted,
    or_default,
    parse_image_size,
    post_with_retries,
    probe,
    resolve_config,
)
from genmedia.gateway.rate_limiter import SlidingWindowRateLimiter
from genmedia.gateway.types import (
    GenerationOptions,
    ModelKind,
    ModelRequest,
    ProviderConfig,
    ProviderId,
    ResponseMetadata,
    UnifiedResponse,
)

logger = logging.getLogger(__name__)

BASE_URL = "https://fal.run/fal-ai"

DEFAULT_CONFIG = ProviderConfig(
    api_key="",
    timeout_seconds=60.0,  # Media generation is slow
    max_retries=3,
    rate_limit_per_minute=30,
    base_url=BASE_URL,
)

SUPPORTED_MODELS: tuple[str, ...] = (
    # Image
    "stable-diffusion-v1-5",
    "stable-diffusion-v2-1",
    "stable-diffusion-xl-base-1.0",
    "flux/dev",
    "flux/schnell",
    "flux-pro",
    "aura-flow",
    "kandinsky-v2-2",
    "dreamshaper-v7",
    "anything-v4",
    # Video
    "luma-dream-machine",
    "kling-video",
    "runway-gen3",
    "stable-video-diffusion",
    "zeroscope-v2-xl",
    # 3D
    "triplane-gaussian-splatting",
    "instant-mesh",
)

MESH_MODELS = frozenset({"triplane-gaussian-splatting", "instant-mesh"})

VIDEO_MODELS = frozenset(
    {
        "luma-dream-machine",
        "kling-video",
        "runway-gen3",
        "stable-video-diffusion",
        "zeroscope-v2-xl",
    }
)

# Model name → fal.run endpoint path (unlisted models use their own name)
MODEL_ENDPOINTS: dict[str, str] = {
    "stable-diffusion-v1-5": "stable-diffusion-v1-5",
    "stable-diffusion-v2-1": "stable-diffusion-v2-1",
    "stable-diffusion-xl-base-1.0": "stable-diffusion-xl",
    "flux/dev": "flux/dev",
    "flux/schnell": "flux/schnell",
    "flux-pro": "flux-pro",
    "aura-flow": "aura-flow",
    "kandinsky-v2-2": "kandinsky-v2/text2img",
    "dreamshaper-v7": "dreamshaper-v7",
    "anything-v4": "anything-v4",
    "luma-dream-machine": "luma-dream-machine",
    "kling-video": "kling-video/v1/standard/text-to-video",
    "runway-gen3": "runway-gen3/turbo/text-to-video",
    "stable-video-diffusion": "stable-video-diffusion",
    "zeroscope-v2-xl": "zeroscope-v2-xl",
    "triplane-gaussian-splatting": "triplane-gaussian-splatting",
    "instant-mesh": "instant-mesh",
}

HEALTH_CHECK_MODEL = "stable-diffusion-v1-5"

DEFAULT_STEPS = 20
DEFAULT_GUIDANCE_SCALE = 7.5
DEFAULT_IMAGE_SIZE = "1024x1024"
DEFAULT_DIMENSION = 1024
DEFAULT_VIDEO_DURATION = 5  # seconds
VIDEO_FPS = 24
VIDEO_ASPECT_RATIO = "16:9"


def is_video_model(model: str) -> bool:
    return model in VIDEO_MODELS


def model_kind(model: str) -> ModelKind:
    if model in VIDEO_MODELS:
        return "video"
    if model in MESH_MODELS:
        return "3d"
    return "image"


def resolve_endpoint(model: str) -> str:
    return MODEL_ENDPOINTS.get(model, model)


def build_request_body(model: str, prompt: str, options: GenerationOptions) -> dict[str, Any]:
    """Build the fal.run JSON body. Pure function of its arguments.

    ``options.extra`` is passed through; fields built here take precedence.
    """
    body: dict[str, Any] = {
        "prompt": prompt,
        "num_inference_steps": or_default(options.steps, DEFAULT_STEPS),
        "guidance_scale": or_default(options.guidance_scale, DEFAULT_GUIDANCE_SCALE),
    }
    # Unset seed is left out so the backend picks a random one
    if options.seed is not None:
        body["seed"] = options.seed
    if options.negative_prompt:
        body["negative_prompt"] = options.negative_prompt

    if is_video_model(model):
        body.update(
            {
                "duration": or_default(options.video_length, DEFAULT_VIDEO_DURATION),
                "fps": VIDEO_FPS,
                "aspect_ratio": VIDEO_ASPECT_RATIO,
            }
        )
        return {**options.extra, **body}

    image_size = options.image_size or DEFAULT_IMAGE_SIZE
    width, height = parse_image_size(image_size, DEFAULT_DIMENSION)
    body.update(
        {
            "image_size": image_size,
            "width": width,
            "height": height,
            "num_images": 1,
        }
    )
    return {**options.extra, **body}


def _asset_url(item: Any) -> Any:
    """An asset is either {"url": ...} or the bare URL string."""
    if isinstance(item, dict):
        return item.get("url") or item
    return item


def extract_assets(data: dict[str, Any]) -> list[str]:
    """Collect output URLs from any of the supported reply shapes."""
    if isinstance(data.get("images"), list):
        urls = [_asset_url(img) for img in data["images"]]
    elif data.get("image"):
        urls = [_asset_url(data["image"])]
    elif data.get("video"):
        urls = [_asset_url(data["video"])]
    elif data.get("url"):
        urls = [data["url"]]
    else:
        urls = []
    return [u for u in urls if isinstance(u, str) and u]


def parse_response(data: dict[str, Any], model: str, execution_time_ms: int) -> UnifiedResponse:
    request_id = data.get("request_id") or data.get("id")
    return UnifiedResponse(
        text=data.get("description") or data.get("caption") or None,
        images=extract_assets(data),
        metadata=ResponseMetadata(
            model=model,
            provider=ProviderId.FAL,
            execution_time_ms=execution_time_ms,
            request_id=str(request_id) if request_id is not None else None,
            extra={
                "seed": data.get("seed"),
                "steps": data.get("num_inference_steps"),
                "guidance_scale": data.get("guidance_scale"),
            },
            original_response=data,
        ),
    )


class FalAdapter:
    """fal.run adapter."""

    provider = ProviderId.FAL

    def __init__(self, config: ProviderConfig, rate_limiter: SlidingWindowRateLimiter):
        self.config = resolve_config(config, DEFAULT_CONFIG, self.provider)
        self.rate_limiter = rate_limiter

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Key {self.config.api_key}",
            "Content-Type": "application/json",
        }

    async def call_model(self, request: ModelRequest) -> UnifiedResponse:
        start = time.monotonic()

        await ensure_admitted(self.rate_limiter, self.provider)

        if request.model not in SUPPORTED_MODELS:
            raise ModelNotSupportedError(self.provider, request.model)

        body = build_request_body(request.model, request.prompt, request.options)
        url = f"{self.config.base_url}/{resolve_endpoint(request.model)}"

        data = await post_with_retries(
            provider=self.provider,
            config=self.config,
            rate_limiter=self.rate_limiter,
            url=url,
            payload=body,
            headers=self._headers,
        )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if not isinstance(data, dict):
            data = {"images": data} if isinstance(data, list) else {"url": data}
        return parse_response(data, request.model, elapsed_ms)

    async def is_healthy(self) -> bool:
        # No dedicated health endpoint: a minimal generation request that
        # reaches the backend (even if rejected) proves connectivity.
        return await probe(
            "POST",
            f"{self.config.base_url}/{HEALTH_CHECK_MODEL}",
            headers=self._headers,
            payload={
                "prompt": "test",
                "num_inference_steps": 1,
                "width": 512,
                "height": 512,
            },
        )

    def get_supported_models(self) -> list[str]:
        return list(SUPPORTED_MODELS)

    def model_kind(self, model: str) -> ModelKind:
        return model_kind(model)
