"""API key format checks per provider.

Advisory only: a key that fails the check is logged at startup but the
backend remains the authority on whether it is accepted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from genmedia.gateway.types import ProviderId

_FAL_KEY = re.compile(r"^[A-Za-z0-9\-_:]+$")
_MODELSLAB_KEY = re.compile(r"^[A-Za-z0-9]+$")


@dataclass(frozen=True)
class KeyCheck:
    valid: bool
    error: str | None = None


def validate_api_key(provider: ProviderId, api_key: str) -> KeyCheck:
    key = (api_key or "").strip()
    if not key:
        return KeyCheck(False, "API key is required")

    if provider == ProviderId.OPENROUTER:
        if len(key) < 20:
            return KeyCheck(False, "OpenRouter API key appears to be too short")
        # sk-or- keys, plus generic OpenAI-format keys
        if key.startswith("sk-"):
            return KeyCheck(True)
        return KeyCheck(False, 'OpenRouter API key should start with "sk-or-" or "sk-"')

    if provider == ProviderId.FAL:
        if len(key) < 10:
            return KeyCheck(False, "FAL API key appears to be too short")
        if _FAL_KEY.match(key):
            return KeyCheck(True)
        return KeyCheck(False, "FAL API key contains invalid characters")

    if provider == ProviderId.MODELSLAB:
        if len(key) < 15:
            return KeyCheck(False, "ModelsLab API key appears to be too short")
        if _MODELSLAB_KEY.match(key):
            return KeyCheck(True)
        return KeyCheck(False, "ModelsLab API key should contain only alphanumeric characters")

    return KeyCheck(False, f"Unknown provider: {provider}")
