"""Generation API: route model calls through the provider gateway."""

from typing import get_args

from fastapi import APIRouter, Depends, Query, Request

from genmedia.gateway.costs import estimate_request_cost
from genmedia.gateway.router import ProviderRouter
from genmedia.gateway.types import ModelKind, ProviderId
from genmedia.schemas.generation import (
    CostEstimateResponse,
    GenerateRequest,
    ModelsByKindResponse,
    ProviderHealthResponse,
    ProviderModelsResponse,
)

router = APIRouter(tags=["generation"])

_KIND_PATTERN = "^(" + "|".join(get_args(ModelKind)) + ")$"


def get_provider_router(request: Request) -> ProviderRouter:
    return request.app.state.provider_router


@router.post("/generate")
async def generate(body: GenerateRequest, gateway: ProviderRouter = Depends(get_provider_router)):
    response = await gateway.call(body.provider, body.to_model_request())
    return response.to_dict()


@router.get("/providers")
async def list_providers(gateway: ProviderRouter = Depends(get_provider_router)):
    return [gateway.provider_info(p) for p in gateway.available_providers()]


@router.get("/providers/models", response_model=ModelsByKindResponse)
async def list_models_by_kind(
    kind: str = Query(..., pattern=_KIND_PATTERN),
    gateway: ProviderRouter = Depends(get_provider_router),
):
    return ModelsByKindResponse(kind=kind, providers=gateway.models_by_kind(kind))


@router.get("/providers/{provider}/models", response_model=ProviderModelsResponse)
async def list_models(provider: ProviderId, gateway: ProviderRouter = Depends(get_provider_router)):
    return ProviderModelsResponse(provider=provider, models=gateway.list_supported_models(provider))


@router.get("/providers/{provider}/cost", response_model=CostEstimateResponse)
async def estimate_cost(
    provider: ProviderId,
    model: str = Query(..., min_length=1, max_length=255),
    prompt_length: int = Query(0, ge=0),
):
    estimate = estimate_request_cost(provider, model, prompt_length)
    return CostEstimateResponse(provider=provider, model=model, **estimate.to_dict())


@router.get("/providers/{provider}/health", response_model=ProviderHealthResponse)
async def provider_health(provider: ProviderId, gateway: ProviderRouter = Depends(get_provider_router)):
    return ProviderHealthResponse(provider=provider, healthy=await gateway.is_healthy(provider))
