"""Pydantic request/response models for the generation API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from genmedia.gateway.types import GenerationOptions, ModelRequest, ProviderId


class GenerationOptionsIn(BaseModel):
    seed: int | None = None
    steps: int | None = Field(None, ge=1, le=500)
    guidance_scale: float | None = Field(None, gt=0)
    negative_prompt: str | None = Field(None, max_length=2000)
    image_size: str | None = Field(None, pattern=r"^\d+x\d+$")
    video_length: int | None = Field(None, ge=1)
    temperature: float | None = Field(None, ge=0, le=2)
    max_tokens: int | None = Field(None, ge=1)
    system_message: str | None = None
    quality: str | None = None
    style: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class GenerateRequest(BaseModel):
    provider: ProviderId
    model: str = Field(min_length=1, max_length=255)
    prompt: str = Field(min_length=1, max_length=10_000)
    options: GenerationOptionsIn = Field(default_factory=GenerationOptionsIn)

    def to_model_request(self) -> ModelRequest:
        return ModelRequest(
            model=self.model,
            prompt=self.prompt,
            options=GenerationOptions(**self.options.model_dump()),
        )


class ProviderModelsResponse(BaseModel):
    provider: ProviderId
    models: list[str]


class ProviderHealthResponse(BaseModel):
    provider: ProviderId
    healthy: bool


class ModelsByKindResponse(BaseModel):
    kind: str
    providers: dict[ProviderId, list[str]]


class CostEstimateResponse(BaseModel):
    provider: ProviderId
    model: str
    estimated: bool
    cost: float
    currency: str
    notes: str
