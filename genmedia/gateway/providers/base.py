"""Adapter contract and the HTTP plumbing every adapter shares.

Adapters do not inherit from a common base class. Each one satisfies the
``ProviderAdapter`` protocol and composes the helpers below:

  - resolve_config:     merge caller config over backend defaults, validate
  - ensure_admitted:    rate limiter gate, fails fast with RateLimitError
  - post_with_retries:  bounded retry loop with 2^attempt second backoff
  - probe:              health check that only fails on transport errors
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar, runtime_checkable

import httpx

from genmedia.core.metrics import PROVIDER_ATTEMPTS, RATE_LIMIT_DENIALS
from genmedia.gateway.errors import (
    AuthenticationError,
    ExhaustedRetriesError,
    ProviderError,
    RateLimitError,
)
from genmedia.gateway.rate_limiter import SlidingWindowRateLimiter
from genmedia.gateway.types import ModelKind, ModelRequest, ProviderConfig, ProviderId, UnifiedResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")

HEALTH_TIMEOUT_SECONDS = 5.0


@runtime_checkable
class ProviderAdapter(Protocol):
    """Capability set every backend integration implements."""

    provider: ProviderId
    config: ProviderConfig

    async def call_model(self, request: ModelRequest) -> UnifiedResponse: ...

    async def is_healthy(self) -> bool: ...

    def get_supported_models(self) -> list[str]: ...

    def model_kind(self, model: str) -> ModelKind: ...


# ---------------------------------------------------------------------------
# Construction & admission
# ---------------------------------------------------------------------------


def resolve_config(config: ProviderConfig, defaults: ProviderConfig, provider: ProviderId) -> ProviderConfig:
    """Merge caller-supplied fields over backend defaults.

    Raises ValidationError when the API key is missing or a limit is out of range.
    """
    config.validate(provider)
    merged = config.with_defaults(defaults)
    merged.validate(provider)
    return merged


async def ensure_admitted(rate_limiter: SlidingWindowRateLimiter, provider: ProviderId) -> None:
    """Deny the call before it touches the network if the provider's window is full."""
    if not await rate_limiter.check_limit(provider):
        RATE_LIMIT_DENIALS.labels(provider=provider.value).inc()
        raise RateLimitError(provider)


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------


def or_default(value: T | None, default: T) -> T:
    """Return ``value`` unless it is None. Falsy caller values such as 0 are kept."""
    return default if value is None else value


def parse_image_size(size: str, default: int) -> tuple[int, int]:
    """Parse a "WxH" size string; unparseable dimensions fall back to ``default``."""
    parts = size.lower().split("x")

    def _dim(index: int) -> int:
        try:
            value = int(parts[index])
        except (IndexError, ValueError):
            return default
        return value if value > 0 else default

    return _dim(0), _dim(1)


def parse_retry_after(resp: httpx.Response) -> int | None:
    value = resp.headers.get("retry-after")
    if value and value.strip().isdigit():
        return int(value.strip())
    return None


def error_message(resp: httpx.Response, keys: tuple[str, ...]) -> tuple[str, Any]:
    """Best-effort error message and body from a failed backend reply.

    Nested ``{"error": {"message": ...}}`` objects are unwrapped.
    """
    fallback = f"HTTP {resp.status_code}"
    try:
        body = resp.json()
    except ValueError:
        return fallback, resp.text or None

    if isinstance(body, dict):
        for key in keys:
            value = body.get(key)
            if isinstance(value, dict):
                value = value.get("message")
            if value:
                return str(value), body
    return fallback, body


def _classify(
    resp: httpx.Response,
    provider: ProviderId,
    auth_statuses: tuple[int, ...],
    message_keys: tuple[str, ...],
) -> Exception:
    """Map a non-2xx reply to the matching typed error."""
    if resp.status_code in auth_statuses:
        return AuthenticationError(provider)
    if resp.status_code == 429:
        return RateLimitError(provider, retry_after_seconds=parse_retry_after(resp))
    message, body = error_message(resp, message_keys)
    return ProviderError(message, provider, http_status=resp.status_code, raw_body=body)


# ---------------------------------------------------------------------------
# Retry loop
# ---------------------------------------------------------------------------


async def post_with_retries(
    *,
    provider: ProviderId,
    config: ProviderConfig,
    rate_limiter: SlidingWindowRateLimiter,
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str] | None = None,
    auth_statuses: tuple[int, ...] = (401,),
    message_keys: tuple[str, ...] = ("detail", "error"),
    on_success: Callable[[Any], Awaitable[T]] | None = None,
) -> T | Any:
    """POST ``payload`` to ``url``, retrying failed attempts with exponential backoff.

    Attempt ``i`` (0-based) that fails with a ProviderError is followed by a
    ``2**i`` second sleep, except after the last attempt. Authentication and
    rate limit errors abort immediately. ``on_success`` post-processes the
    decoded JSON inside the attempt, so a ProviderError it raises counts as a
    failed attempt too.

    Returns the decoded JSON (or the result of ``on_success``); raises
    ExhaustedRetriesError wrapping the last ProviderError when the budget runs out.
    """
    attempts = max(config.max_retries or 0, 1)
    last_error: ProviderError | None = None

    for attempt in range(attempts):
        await rate_limiter.record_request(provider)

        try:
            async with httpx.AsyncClient(timeout=config.timeout_seconds) as client:
                resp = await client.post(url, json=payload, headers=headers)

            PROVIDER_ATTEMPTS.labels(provider=provider.value, status=str(resp.status_code)).inc()

            if not resp.is_success:
                raise _classify(resp, provider, auth_statuses, message_keys)

            try:
                data = resp.json()
            except ValueError:
                raise ProviderError(
                    "Backend returned a non-JSON body",
                    provider,
                    http_status=resp.status_code,
                    raw_body=resp.text,
                )

            if on_success is not None:
                return await on_success(data)
            return data

        except httpx.TimeoutException:
            PROVIDER_ATTEMPTS.labels(provider=provider.value, status="timeout").inc()
            last_error = ProviderError(f"Timeout after {config.timeout_seconds}s", provider)
        except httpx.RequestError as e:
            PROVIDER_ATTEMPTS.labels(provider=provider.value, status="request_error").inc()
            last_error = ProviderError(f"Request failed: {type(e).__name__}: {e}", provider)
        except ProviderError as e:
            last_error = e

        if attempt == attempts - 1:
            break

        delay = 2**attempt
        logger.info(
            "Retrying %s request (attempt %d/%d) in %ds: %s",
            provider.value,
            attempt + 1,
            attempts,
            delay,
            last_error.message,
            extra={"provider": provider.value, "attempt": attempt + 1, "http_status": last_error.http_status},
        )
        await asyncio.sleep(delay)

    logger.warning(
        "%s request failed after %d attempts: %s",
        provider.value,
        attempts,
        last_error,
        extra={"provider": provider.value, "attempt": attempts},
    )
    raise ExhaustedRetriesError(provider, attempts, last_error)


# ---------------------------------------------------------------------------
# Health probe
# ---------------------------------------------------------------------------


async def probe(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    payload: dict[str, Any] | None = None,
    require_success: bool = False,
) -> bool:
    """Reachability check.

    With ``require_success=False`` any HTTP reply, including a rejection,
    counts as healthy; only a transport failure (no reply at all) does not.
    """
    try:
        async with httpx.AsyncClient(timeout=HEALTH_TIMEOUT_SECONDS) as client:
            resp = await client.request(method, url, headers=headers, json=payload)
    except httpx.RequestError as e:
        logger.warning("Health probe to %s failed: %s", url, e)
        return False

    return resp.is_success if require_success else True
