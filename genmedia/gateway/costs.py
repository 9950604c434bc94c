"""Rough per-request cost estimates.

Prices are indicative list prices in USD and drift over time; callers use
the estimate for budgeting hints, never for billing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from genmedia.gateway.types import ProviderId

CURRENCY = "USD"
CHARS_PER_TOKEN = 4
# Completion length assumed relative to the prompt when pricing text models
OUTPUT_TOKEN_RATIO = 0.5


@dataclass(frozen=True)
class TokenPrice:
    input: float  # per token
    output: float  # per token


@dataclass(frozen=True)
class FlatPrice:
    base: float  # per generation


MODEL_PRICES: dict[ProviderId, dict[str, TokenPrice | FlatPrice]] = {
    ProviderId.OPENROUTER: {
        "openai/gpt-4o": TokenPrice(input=0.00001, output=0.00003),
        "openai/gpt-3.5-turbo": TokenPrice(input=0.000001, output=0.000002),
        "anthropic/claude-3.5-sonnet": TokenPrice(input=0.000003, output=0.000015),
    },
    ProviderId.FAL: {
        "flux-pro": FlatPrice(base=0.05),
        "stable-diffusion-xl-base-1.0": FlatPrice(base=0.02),
        "luma-dream-machine": FlatPrice(base=0.50),
    },
    ProviderId.MODELSLAB: {
        "midjourney": FlatPrice(base=0.03),
        "stable-diffusion-v1-5": FlatPrice(base=0.01),
        "llama-2-7b-chat": TokenPrice(input=0.0000005, output=0.0000005),
    },
}


@dataclass(frozen=True)
class CostEstimate:
    estimated: bool
    cost: float
    currency: str
    notes: str

    def to_dict(self) -> dict:
        return {
            "estimated": self.estimated,
            "cost": self.cost,
            "currency": self.currency,
            "notes": self.notes,
        }


def estimate_request_cost(provider: ProviderId, model: str, input_length: int) -> CostEstimate:
    """Estimate the cost of one call with a prompt of ``input_length`` characters.

    Token-priced models assume ~4 characters per token and a completion half
    the prompt's length. Flat-priced models cost the same per generation.
    Unknown models return ``estimated=False`` with zero cost.
    """
    price = MODEL_PRICES.get(provider, {}).get(model)
    if price is None:
        return CostEstimate(False, 0.0, CURRENCY, "Cost data not available for this model")

    if isinstance(price, TokenPrice):
        tokens = math.ceil(max(input_length, 0) / CHARS_PER_TOKEN)
        cost = tokens * price.input + tokens * OUTPUT_TOKEN_RATIO * price.output
        notes = f"Estimated based on ~{tokens} input tokens"
    else:
        cost = price.base
        notes = "Fixed cost per generation"

    return CostEstimate(True, cost, CURRENCY, f"{notes}. Actual costs may vary.")
