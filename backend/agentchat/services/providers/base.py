"""Base classes for model providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ...constants import (
    ANTHROPIC_MODEL_MARKER,
    ANTHROPIC_PROVIDER_ID,
    OPENAI_MODEL_PREFIXES,
    OPENAI_PROVIDER_ID,
)
from ...errors import (
    ProviderError,
    RateLimitError,
    UpstreamAuthError,
    UpstreamError,
    UpstreamModelNotFoundError,
)


class ProviderKind(str, Enum):
    """The closed set of provider shapes the pipeline can dispatch to."""

    OPENAI = OPENAI_PROVIDER_ID
    ANTHROPIC = ANTHROPIC_PROVIDER_ID
    UNKNOWN = "unknown"


def classify_model(model_id: str) -> ProviderKind:
    """Return the provider shape that serves ``model_id``.

    GPT-style prefixes (``gpt-4o``, ``chatgpt-4o-latest``, ``o1-mini``) belong
    to OpenAI; any id mentioning ``claude`` belongs to Anthropic.
    """
    model = (model_id or "").strip().lower()
    if not model:
        return ProviderKind.UNKNOWN
    if model.startswith(OPENAI_MODEL_PREFIXES):
        return ProviderKind.OPENAI
    if ANTHROPIC_MODEL_MARKER in model:
        return ProviderKind.ANTHROPIC
    return ProviderKind.UNKNOWN


def service_matches_provider(service_label: str | None, provider_id: str) -> bool:
    """Match a stored credential's service label against a canonical provider id.

    Labels are free text entered by users, so ``Anthropic``, ``ANTHROPIC`` and
    ``anthropic-ai`` all match ``anthropic``.
    """
    if not service_label or not provider_id:
        return False
    return provider_id.strip().lower() in service_label.strip().lower()


@dataclass(frozen=True)
class AIModel:
    """A model as advertised by a provider catalog."""

    id: str
    display_name: str
    provider_id: str
    capabilities: frozenset[str] = field(default_factory=frozenset)
    max_tokens: int | None = None
    default_temperature: float | None = None

    def supports(self, capability: str) -> bool:
        return capability in self.capabilities

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.display_name,
            "provider": self.provider_id,
            "capabilities": {name: True for name in sorted(self.capabilities)},
            "max_tokens": self.max_tokens,
            "default_temperature": self.default_temperature,
        }


def translate_status_error(
    status_code: int | None,
    message: str,
    *,
    provider: str,
    model: str | None = None,
) -> ProviderError:
    """Map an upstream HTTP status onto the shared error taxonomy."""
    if status_code in (401, 403):
        return UpstreamAuthError(f"Authentication error: {message}", provider=provider, model=model)
    if status_code == 429:
        return RateLimitError(f"Rate limit exceeded: {message}", provider=provider, model=model)
    if status_code == 404:
        return UpstreamModelNotFoundError(
            f"Model not found: {model} is not available", provider=provider, model=model
        )
    return UpstreamError(
        f"Upstream error ({status_code or 'no status'}): {message}", provider=provider, model=model
    )


class ModelProvider(ABC):
    """Base class for all model providers.

    Each provider owns a static catalog used when no live credential is
    available, a friendly-id map, and a thin wrapper around its SDK's
    streaming completion call.
    """

    provider_id: str
    display_name: str
    DEFAULT_MODELS: tuple[AIModel, ...] = ()
    FRIENDLY_MODEL_MAP: dict[str, str] = {}

    def default_models(self) -> list[AIModel]:
        return list(self.DEFAULT_MODELS)

    def resolve_friendly_id(self, model_id: str) -> str:
        """Map a short model id to the versioned id the API accepts.

        Unknown ids, including already-qualified ones, are returned unchanged.
        """
        return self.FRIENDLY_MODEL_MAP.get(model_id, model_id)

    @abstractmethod
    async def list_models(self, api_key: str) -> list[AIModel]:
        """Fetch the live catalog. Raises on invalid keys or transport errors."""

    @abstractmethod
    async def validate_credential(self, api_key: str) -> bool:
        """Return True if the upstream accepts ``api_key``."""

    @abstractmethod
    async def create_completion(
        self,
        api_key: str,
        model_id: str,
        messages: list[dict],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> Any:
        """Start a streaming completion and return the SDK's native stream.

        Raises:
            UpstreamAuthError, RateLimitError, UpstreamModelNotFoundError,
            UpstreamError: translated upstream failures
        """
