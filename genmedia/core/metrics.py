"""Prometheus metrics for the gateway."""

from prometheus_client import Counter, Histogram, Info, generate_latest
from starlette.responses import Response

# --- Metrics ---

APP_INFO = Info("app", "Generative media gateway info")
APP_INFO.info({"version": "1.0.0", "name": "genmedia_gateway"})

PROVIDER_CALLS = Counter(
    "gateway_provider_calls_total",
    "Total model calls routed to a provider",
    ["provider", "outcome"],
)

PROVIDER_CALL_DURATION = Histogram(
    "gateway_provider_call_duration_seconds",
    "Duration of a routed model call including retries",
    ["provider"],
    buckets=[0.1, 0.5, 1, 2.5, 5, 10, 30, 60, 120, 300],
)

PROVIDER_ATTEMPTS = Counter(
    "gateway_provider_attempts_total",
    "Physical HTTP attempts against a provider backend",
    ["provider", "status"],
)

RATE_LIMIT_DENIALS = Counter(
    "gateway_rate_limit_denials_total",
    "Calls rejected by local admission control",
    ["provider"],
)


def metrics_response() -> Response:
    """Generate Prometheus /metrics response."""
    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
