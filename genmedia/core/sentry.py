"""Sentry error tracking integration.

Initializes Sentry SDK if SENTRY_DSN env variable is set.
Events are tagged with the gateway error kind and provider, and provider
API keys are masked out of every event before it leaves the process.
"""

import logging
from typing import Any

from genmedia.core.config import settings
from genmedia.gateway.errors import GatewayError

logger = logging.getLogger(__name__)

MASK = "[Filtered]"


def _provider_keys() -> list[str]:
    keys = (settings.fal_api_key, settings.openrouter_api_key, settings.modelslab_api_key)
    return [k for k in keys if k]


def _mask(value: Any, secrets: list[str]) -> Any:
    if isinstance(value, str):
        for secret in secrets:
            value = value.replace(secret, MASK)
        return value
    if isinstance(value, dict):
        return {k: _mask(v, secrets) for k, v in value.items()}
    if isinstance(value, list):
        return [_mask(v, secrets) for v in value]
    return value


def before_send(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any]:
    """Tag gateway errors and strip provider credentials from the event."""
    exc_info = hint.get("exc_info")
    if exc_info and isinstance(exc_info[1], GatewayError):
        exc = exc_info[1]
        tags = event.setdefault("tags", {})
        tags["gateway.error"] = exc.kind
        tags["gateway.provider"] = exc.provider.value

    secrets = _provider_keys()
    return _mask(event, secrets) if secrets else event


def init_sentry() -> None:
    """Initialize Sentry if SENTRY_DSN is configured."""
    if not settings.sentry_dsn:
        logger.debug("Sentry DSN not configured, skipping")
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        traces_sample_rate=0.1 if settings.app_env == "production" else 1.0,
        send_default_pii=False,
        before_send=before_send,
        integrations=[FastApiIntegration(transaction_style="endpoint")],
    )
    logger.info("Sentry initialized (env=%s)", settings.app_env)
