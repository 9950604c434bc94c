"""ModelsLab adapter: text, image and video generation.

Vendor-specific behaviors:
  - API key travels in the JSON body, not in a header
  - 401 and 403 both mean rejected credentials
  - Long generations reply {"status": "processing", "id": ...} first;
    the result is then polled from fetch/{id} until ready or timed out
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from genmedia.gateway.errors import ModelNotSupportedError, ProviderError
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
    ModelKind,
    ModelRequest,
    ProviderConfig,
    ProviderId,
    ResponseMetadata,
    UnifiedResponse,
)

logger = logging.getLogger(__name__)

BASE_URL = "https://modelslab.com/api/v6"

DEFAULT_CONFIG = ProviderConfig(
    api_key="",
    timeout_seconds=90.0,  # Complex generations take a while
    max_retries=3,
    rate_limit_per_minute=20,
    base_url=BASE_URL,
)

TEXT_MODELS: tuple[str, ...] = (
    "llama-2-7b-chat",
    "llama-2-13b-chat",
    "mistral-7b-instruct",
    "codellama-7b-instruct",
    "vicuna-7b-v1.5",
    "wizardlm-7b",
)

IMAGE_MODELS: tuple[str, ...] = (
    "midjourney",
    "stable-diffusion-v1-5",
    "stable-diffusion-v2-1",
    "stable-diffusion-xl",
    "dreamshaper-v7",
    "anything-v4",
    "realistic-vision-v3",
    "deliberate-v2",
    "openjourney",
    "analog-diffusion",
)

VIDEO_MODELS: tuple[str, ...] = (
    "zeroscope-v2-xl",
    "text-to-video-ms-1.7b",
    "animatediff",
    "stable-video-diffusion",
)

# Image-pipeline models with their own endpoint
SPECIALIZED_MODELS: tuple[str, ...] = (
    "controlnet-canny",
    "controlnet-depth",
    "controlnet-pose",
    "img2img",
    "inpainting",
    "upscaler",
)

SUPPORTED_MODELS: tuple[str, ...] = TEXT_MODELS + IMAGE_MODELS + VIDEO_MODELS + SPECIALIZED_MODELS

_IMAGE_ENDPOINTS = {
    "midjourney": "midjourney",
    "img2img": "img2img",
    "inpainting": "inpainting",
    "upscaler": "super_resolution",
}

POLL_INTERVAL_SECONDS = 3.0
MAX_VIDEO_FRAMES = 24


def model_kind(model: str) -> ModelKind:
    if model in TEXT_MODELS:
        return "text"
    if model in VIDEO_MODELS:
        return "video"
    return "image"


def image_endpoint(model: str) -> str:
    if model.startswith("controlnet"):
        return "controlnet"
    return _IMAGE_ENDPOINTS.get(model, "text2img")


def build_request(request: ModelRequest) -> tuple[str, dict[str, Any]]:
    """Return (endpoint, body) for a request. The API key is added by the caller.

    ``options.extra`` is passed through; fields built here take precedence.
    """
    options = request.options
    kind = model_kind(request.model)

    if kind == "text":
        return "text_completion", {
            **options.extra,
            "model_id": request.model,
            "prompt": request.prompt,
            "max_tokens": or_default(options.max_tokens, 1000),
            "temperature": or_default(options.temperature, 0.7),
            "top_p": 0.9,
            "repetition_penalty": 1.1,
            "system_prompt": options.system_message or "",
        }

    if kind == "video":
        body = {
            "model_id": request.model,
            "prompt": request.prompt,
            "negative_prompt": options.negative_prompt or "",
            "height": 576,
            "width": 1024,
            "num_frames": min(or_default(options.video_length, 16), MAX_VIDEO_FRAMES),
            "num_inference_steps": or_default(options.steps, 25),
            "guidance_scale": or_default(options.guidance_scale, 7.5),
            "fps": 8,
        }
        if options.seed is not None:
            body["seed"] = options.seed
        return "text2video", {**options.extra, **body}

    width, height = parse_image_size(options.image_size or "512x512", 512)
    body = {
        "model_id": request.model,
        "prompt": request.prompt,
        "negative_prompt": options.negative_prompt or "",
        "width": width,
        "height": height,
        "samples": 1,
        "num_inference_steps": or_default(options.steps, 20),
        "guidance_scale": or_default(options.guidance_scale, 7.5),
        "scheduler": "UniPCMultistepScheduler",
        "use_karras_sigmas": "yes",
        "algorithm_type": "dpm-solver++",
        "safety_checker": "no",
        "enhance_prompt": "yes",
    }
    if options.seed is not None:
        body["seed"] = options.seed
    return image_endpoint(request.model), {**options.extra, **body}


def _choice_text(choice: Any) -> str | None:
    if not isinstance(choice, dict):
        return None
    message = choice.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    return choice.get("text") or content


def parse_response(data: dict[str, Any] | str, model: str, execution_time_ms: int) -> UnifiedResponse:
    """Fold a finished reply into a UnifiedResponse. ``data`` is an object or a bare text string."""
    text: str | None = None
    images: list[str] = []

    if isinstance(data, str):
        text = data
        data = {"output": data}

    if data.get("status") == "success":
        output = data.get("output")
        if isinstance(output, list):
            images = [url for url in output if isinstance(url, str)]
        elif isinstance(output, str):
            if output.startswith("http"):
                images = [output]
            else:
                text = output
        if data.get("generated_text"):
            text = data["generated_text"]

    choices = data.get("choices")
    if isinstance(choices, list) and choices:
        text = _choice_text(choices[0])

    request_id = data.get("id") or data.get("task_id")
    return UnifiedResponse(
        text=text,
        images=images,
        metadata=ResponseMetadata(
            model=model,
            provider=ProviderId.MODELSLAB,
            execution_time_ms=execution_time_ms,
            request_id=str(request_id) if request_id is not None else None,
            extra={
                "seed": data.get("seed"),
                "steps": data.get("num_inference_steps"),
                "guidance_scale": data.get("guidance_scale"),
                "status": data.get("status"),
            },
            original_response=data,
        ),
    )


class ModelsLabAdapter:
    """ModelsLab v6 API adapter."""

    provider = ProviderId.MODELSLAB

    def __init__(self, config: ProviderConfig, rate_limiter: SlidingWindowRateLimiter):
        self.config = resolve_config(config, DEFAULT_CONFIG, self.provider)
        self.rate_limiter = rate_limiter

    async def call_model(self, request: ModelRequest) -> UnifiedResponse:
        start = time.monotonic()

        await ensure_admitted(self.rate_limiter, self.provider)

        if request.model not in SUPPORTED_MODELS:
            raise ModelNotSupportedError(self.provider, request.model)

        endpoint, body = build_request(request)

        async def _await_result(data: Any) -> dict[str, Any] | str:
            if isinstance(data, str):
                return data
            if not isinstance(data, dict):
                raise ProviderError("Invalid response format", self.provider, http_status=200, raw_body=data)
            if data.get("status") == "processing" and data.get("id"):
                return await self._poll_for_result(str(data["id"]), start)
            return data

        data = await post_with_retries(
            provider=self.provider,
            config=self.config,
            rate_limiter=self.rate_limiter,
            url=f"{self.config.base_url}/{endpoint}",
            payload={**body, "key": self.config.api_key},
            headers={"Content-Type": "application/json"},
            auth_statuses=(401, 403),
            message_keys=("message", "error"),
            on_success=_await_result,
        )

        return parse_response(data, request.model, int((time.monotonic() - start) * 1000))

    async def _poll_for_result(self, task_id: str, start: float) -> dict[str, Any]:
        """Poll fetch/{task_id} until the generation finishes or the timeout elapses."""
        url = f"{self.config.base_url}/fetch/{task_id}"
        deadline = start + self.config.timeout_seconds

        while time.monotonic() < deadline:
            try:
                async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
                    resp = await client.post(url, json={"key": self.config.api_key})
            except httpx.RequestError as e:
                # Transient: keep polling until the deadline
                logger.warning("ModelsLab poll for %s failed: %s", task_id, e)
            else:
                if resp.is_success:
                    try:
                        data = resp.json()
                    except ValueError:
                        logger.warning("ModelsLab poll for %s returned a non-JSON body", task_id)
                        data = {}
                    status = data.get("status") if isinstance(data, dict) else None
                    if status == "success":
                        return data
                    if status == "error":
                        raise ProviderError(
                            data.get("message") or "Generation failed",
                            self.provider,
                            http_status=resp.status_code,
                            raw_body=data,
                        )
                    logger.debug("ModelsLab task %s still %s", task_id, status)

            await asyncio.sleep(POLL_INTERVAL_SECONDS)

        raise ProviderError("Request timeout while waiting for result", self.provider, http_status=408)

    async def is_healthy(self) -> bool:
        return await probe(
            "POST",
            f"{self.config.base_url}/text2img",
            headers={"Content-Type": "application/json"},
            payload={
                "key": self.config.api_key,
                "model_id": "stable-diffusion-v1-5",
                "prompt": "test",
                "samples": 1,
                "num_inference_steps": 1,
                "width": 512,
                "height": 512,
            },
        )

    def get_supported_models(self) -> list[str]:
        return list(SUPPORTED_MODELS)

    def model_kind(self, model: str) -> ModelKind:
        return model_kind(model)
