import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from genmedia.api.v1.generation import get_provider_router
from genmedia.api.v1.router import api_v1_router
from genmedia.core.config import settings, validate_settings_for_production
from genmedia.core.logging import setup_logging
from genmedia.core.metrics import metrics_response
from genmedia.core.sentry import init_sentry
from genmedia.gateway.errors import (
    AuthenticationError,
    ExhaustedRetriesError,
    GatewayError,
    ProviderError,
    ProviderNotConfiguredError,
    RateLimitError,
    ValidationError,
)
from genmedia.gateway.rate_limiter import SlidingWindowRateLimiter
from genmedia.gateway.router import ProviderRouter, build_router

# Configure logging before anything else
setup_logging()
init_sentry()

logger = logging.getLogger(__name__)

# Most specific first
_ERROR_STATUS: list[tuple[type[GatewayError], int]] = [
    (ProviderNotConfiguredError, 404),
    (ValidationError, 400),
    (RateLimitError, 429),
    (AuthenticationError, 502),  # Our upstream credential was rejected, not the caller's
    (ExhaustedRetriesError, 503),
    (ProviderError, 502),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    validate_settings_for_production()
    logger.info("Starting generative media gateway...")

    # One limiter for the whole process, shared by every adapter
    app.state.provider_router = build_router(settings, SlidingWindowRateLimiter())
    logger.info(
        "Providers ready: %s",
        ", ".join(p.value for p in app.state.provider_router.available_providers()) or "none",
    )

    yield

    logger.info("Generative media gateway shut down")


app = FastAPI(
    title="Generative Media Gateway",
    description="Unified interface over image, video and text generation providers",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


@app.exception_handler(GatewayError)
async def _gateway_error_handler(request: Request, exc: GatewayError):
    status = next((code for cls, code in _ERROR_STATUS if isinstance(exc, cls)), 500)
    headers = {}
    if isinstance(exc, RateLimitError) and exc.retry_after_seconds is not None:
        headers["Retry-After"] = str(exc.retry_after_seconds)
    logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status, content=exc.to_dict(), headers=headers)


# Log unhandled exceptions with full traceback
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": f"{type(exc).__name__}: {exc}"})


# CORS: parse allowed_origins from settings (comma-separated)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(api_v1_router)


@app.get("/api/v1/health")
async def health(gateway: ProviderRouter = Depends(get_provider_router)):
    return {
        "status": "ok",
        "providers": [p.value for p in gateway.available_providers()],
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()
