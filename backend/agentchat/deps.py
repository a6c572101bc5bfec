"""Shared FastAPI dependencies for the completion pipeline."""

from __future__ import annotations

from functools import lru_cache

from .services.providers import ProviderRegistry, build_default_registry
from .services.vault import CredentialVault, get_vault


@lru_cache
def get_registry() -> ProviderRegistry:
    """The process-wide provider registry, built on first use."""
    return build_default_registry()


def get_credential_vault() -> CredentialVault:
    return get_vault()
