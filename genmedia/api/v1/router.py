from fastapi import APIRouter

from genmedia.api.v1.generation import router as generation_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(generation_router)
