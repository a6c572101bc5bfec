"""Model provider adapters for multi-model support.

This module provides thin wrappers around the OpenAI and Anthropic APIs,
a registry that caches their model catalogs, and the classification that
routes a model id to its provider.
"""

from .anthropic_provider import AnthropicProvider
from .base import (
    AIModel,
    ModelProvider,
    ProviderKind,
    classify_model,
    service_matches_provider,
)
from .openai_provider import OpenAIProvider
from .registry import CatalogEntry, ProviderRegistry

__all__ = [
    # Base classes
    "AIModel",
    "CatalogEntry",
    "ModelProvider",
    "ProviderKind",
    "ProviderRegistry",
    "classify_model",
    "service_matches_provider",
    # Providers
    "AnthropicProvider",
    "OpenAIProvider",
    "build_default_registry",
]


def build_default_registry() -> ProviderRegistry:
    """Create a registry with all default providers.

    Call this once at application startup and pass the result to the chat router.
    """
    registry = ProviderRegistry()
    registry.register_provider(OpenAIProvider())
    registry.register_provider(AnthropicProvider())
    return registry
