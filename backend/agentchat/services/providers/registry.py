"""Provider registry with time-based catalog caching."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Mapping

from ...constants import CATALOG_TTL_SECONDS
from ...errors import UnsupportedProviderError
from .base import AIModel, ModelProvider, ProviderKind, classify_model, service_matches_provider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogEntry:
    """A provider catalog and the moment it stops being servable."""

    models: tuple[AIModel, ...]
    fetched_at: float
    expires_at: float

    @classmethod
    def create(cls, models: list[AIModel], fetched_at: float, ttl: float) -> "CatalogEntry":
        return cls(models=tuple(models), fetched_at=fetched_at, expires_at=fetched_at + ttl)

    def is_stale(self, now: float) -> bool:
        return now >= self.expires_at


class ProviderRegistry:
    """Maps provider ids to provider instances and caches their catalogs.

    Built once at startup and passed to the chat router. The catalog cache
    is read and replaced without locking: concurrent refreshes may both hit
    the upstream, and whichever finishes last wins.
    """

    def __init__(
        self,
        ttl: float = CATALOG_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._providers: dict[str, ModelProvider] = {}
        self._catalogs: dict[str, CatalogEntry] = {}
        self._ttl = ttl
        self._clock = clock

    def register_provider(self, provider: ModelProvider) -> None:
        """Register a provider; a later registration for the same id replaces it."""
        self._providers[provider.provider_id.lower()] = provider

    def get_provider(self, provider_id: str) -> ModelProvider:
        """Get provider by id.

        Raises:
            UnsupportedProviderError: If provider_id is not registered
        """
        provider = self._providers.get((provider_id or "").lower())
        if provider is None:
            available = ", ".join(self._providers) or "none"
            raise UnsupportedProviderError(
                f"Unknown provider: {provider_id}. Available: {available}", provider=provider_id
            )
        return provider

    @property
    def provider_ids(self) -> list[str]:
        return list(self._providers)

    def get_provider_options(self) -> dict[str, str]:
        """Provider ids mapped to their display names."""
        return {pid: provider.display_name for pid, provider in self._providers.items()}

    def resolve_provider(self, model_id: str) -> ModelProvider:
        """Pick the provider that serves ``model_id``.

        Raises:
            UnsupportedProviderError: If no registered provider serves the model
        """
        kind = classify_model(model_id)
        provider = self._providers.get(kind.value) if kind is not ProviderKind.UNKNOWN else None
        if provider is None:
            raise UnsupportedProviderError(f"Unsupported model: {model_id}", model=model_id)
        return provider

    def provider_for_service(self, service_label: str) -> ModelProvider | None:
        """Find the provider a stored credential's free-text service label refers to."""
        for pid, provider in self._providers.items():
            if service_matches_provider(service_label, pid):
                return provider
        return None

    def resolve_friendly_model_id(self, model_id: str, provider_id: str) -> str:
        provider = self._providers.get((provider_id or "").lower())
        if provider is None:
            return model_id
        return provider.resolve_friendly_id(model_id)

    async def get_models(self, provider_id: str, credential: str | None = None) -> list[AIModel]:
        """
        Get the catalog for a provider.

        A cached catalog is served until it expires. Without a credential the
        provider's static catalog is returned; with one, the live catalog is
        fetched and cached, falling back to the static catalog on any failure.
        """
        provider = self.get_provider(provider_id)
        key = provider.provider_id.lower()

        entry = self._catalogs.get(key)
        if entry is not None and not entry.is_stale(self._clock()):
            return list(entry.models)

        if not credential:
            return provider.default_models()

        try:
            models = await provider.list_models(credential)
        except Exception as e:
            # Degrade to the static catalog; a bad key surfaces at completion time.
            logger.warning(f"Failed to fetch {key} models, using defaults: {e}")
            return provider.default_models()

        self._catalogs[key] = CatalogEntry.create(models, self._clock(), self._ttl)
        logger.info(f"Cached {len(models)} {key} models")
        return list(models)

    async def get_model_by_id(
        self,
        provider_id: str,
        model_id: str,
        credential: str | None = None,
    ) -> AIModel | None:
        models = await self.get_models(provider_id, credential)
        qualified = self.resolve_friendly_model_id(model_id, provider_id)
        return next((model for model in models if model.id == qualified), None)

    async def get_all_models(
        self,
        credentials: Mapping[str, str] | None = None,
    ) -> dict[str, list[AIModel]]:
        """Catalogs for every registered provider, keyed by provider id."""
        credentials = credentials or {}
        return {
            pid: await self.get_models(pid, credentials.get(pid))
            for pid in self._providers
        }

    def clear_cache(self, provider_id: str | None = None) -> None:
        if provider_id is None:
            self._catalogs.clear()
        else:
            self._catalogs.pop(provider_id.lower(), None)
