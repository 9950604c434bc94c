"""Backend integrations. Each module exposes one adapter satisfying ``ProviderAdapter``."""

from genmedia.gateway.providers.base import ProviderAdapter
from genmedia.gateway.providers.fal import FalAdapter
from genmedia.gateway.providers.modelslab import ModelsLabAdapter
from genmedia.gateway.providers.openrouter import OpenRouterAdapter

__all__ = ["FalAdapter", "ModelsLabAdapter", "OpenRouterAdapter", "ProviderAdapter"]
