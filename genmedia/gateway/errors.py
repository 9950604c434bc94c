"""Typed error kinds shared by every adapter and by callers of the router.

Each error carries the originating provider and a ``retryable`` flag so the
retry loop (and callers rescheduling work) can decide what to do next.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from genmedia.gateway.types import ProviderId


class GatewayError(Exception):
    """Base class for all gateway failures."""

    kind = "gateway_error"
    retryable = False

    def __init__(self, message: str, provider: ProviderId):
        super().__init__(message)
        self.message = message
        self.provider = provider

    def to_dict(self) -> dict[str, Any]:
        return {
            "detail": self.message,
            "error": self.kind,
            "provider": self.provider.value,
        }


class ValidationError(GatewayError):
    """Malformed request or configuration. Never retried."""

    kind = "validation_error"


class ModelNotSupportedError(ValidationError):
    kind = "model_not_supported"

    def __init__(self, provider: ProviderId, model: str):
        super().__init__(f"Model {model} not supported by {provider.value}", provider)
        self.model = model


class ProviderNotConfiguredError(ValidationError):
    kind = "provider_not_configured"

    def __init__(self, provider: ProviderId):
        super().__init__(f"Provider {provider.value} is not configured. Check your API keys.", provider)


class AuthenticationError(GatewayError):
    """The backend rejected our credentials (HTTP 401)."""

    kind = "authentication_error"

    def __init__(self, provider: ProviderId):
        super().__init__(f"Authentication failed for {provider.value}", provider)


class RateLimitError(GatewayError):
    """Local admission control denied the call, or the backend throttled us (HTTP 429).

    Not retried by the adapter; the caller may reschedule after ``retry_after_seconds``.
    """

    kind = "rate_limited"

    def __init__(self, provider: ProviderId, retry_after_seconds: int | None = None):
        super().__init__(f"Rate limit exceeded for {provider.value}", provider)
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retry_after_seconds"] = self.retry_after_seconds
        return data


class ProviderError(GatewayError):
    """Any other non-success outcome of a backend call.

    ``http_status`` is 0 when no HTTP response was received (timeout, connection failure).
    """

    kind = "provider_error"
    retryable = True

    def __init__(self, message: str, provider: ProviderId, http_status: int = 0, raw_body: Any = None):
        super().__init__(message, provider)
        self.http_status = http_status
        self.raw_body = raw_body

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["http_status"] = self.http_status
        return data


class ExhaustedRetriesError(GatewayError):
    """The retry budget was consumed without a success."""

    kind = "exhausted_retries"

    def __init__(self, provider: ProviderId, attempts: int, last_error: GatewayError | None):
        reason = last_error.message if last_error else "no attempt completed"
        super().__init__(f"Failed after {attempts} attempts: {reason}", provider)
        self.attempts = attempts
        self.last_error = last_error

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["attempts"] = self.attempts
        if self.last_error is not None:
            data["last_error"] = self.last_error.to_dict()
        return data
