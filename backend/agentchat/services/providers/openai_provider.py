"""OpenAI provider for GPT models."""

from __future__ import annotations

import logging
from typing import Any, Callable

import openai
from openai import AsyncOpenAI

from ...constants import DEFAULT_TEMPERATURE, NON_CHAT_MODEL_MARKERS, OPENAI_PROVIDER_ID
from ...errors import UpstreamError
from .base import AIModel, ModelProvider, translate_status_error

logger = logging.getLogger(__name__)

_ROLES = frozenset({"system", "user", "assistant"})


def _model(model_id: str, name: str, capabilities: tuple[str, ...], max_tokens: int) -> AIModel:
    return AIModel(
        id=model_id,
        display_name=name,
        provider_id=OPENAI_PROVIDER_ID,
        capabilities=frozenset(capabilities),
        max_tokens=max_tokens,
        default_temperature=DEFAULT_TEMPERATURE,
    )


# Metadata for models we know about; anything else the API lists gets a bare entry
KNOWN_MODELS: dict[str, AIModel] = {
    m.id: m
    for m in (
        _model("gpt-4o", "GPT-4o", ("functionCalling", "vision"), 32768),
        _model("gpt-4o-mini", "GPT-4o Mini", ("functionCalling", "vision"), 16384),
        _model("gpt-4-turbo", "GPT-4 Turbo", ("functionCalling", "vision"), 32768),
        _model("gpt-4-vision-preview", "GPT-4 Vision", ("functionCalling", "vision"), 8192),
        _model("gpt-4", "GPT-4", ("functionCalling",), 8192),
        _model("gpt-3.5-turbo", "GPT-3.5 Turbo", ("functionCalling",), 4096),
    )
}

DEFAULT_MODEL_IDS = ("gpt-4o", "gpt-4-turbo", "gpt-4", "gpt-3.5-turbo")


def is_chat_model(model_id: str) -> bool:
    """OpenAI's model list also contains audio, embedding and image models."""
    return not any(marker in model_id for marker in NON_CHAT_MODEL_MARKERS)


def format_model_name(model_id: str) -> str:
    return " ".join(part[:1].upper() + part[1:] for part in model_id.split("-"))


def to_openai_messages(messages: list[dict]) -> list[dict]:
    """Map messages role for role; unknown roles are sent as user messages."""
    return [
        {
            "role": msg.get("role") if msg.get("role") in _ROLES else "user",
            "content": msg.get("content", ""),
        }
        for msg in messages
    ]


class OpenAIProvider(ModelProvider):
    """Provider for OpenAI GPT models."""

    provider_id = OPENAI_PROVIDER_ID
    display_name = "OpenAI"
    DEFAULT_MODELS = tuple(KNOWN_MODELS[model_id] for model_id in DEFAULT_MODEL_IDS)

    def __init__(self, client_factory: Callable[..., Any] = AsyncOpenAI):
        self._client_factory = client_factory

    def _client(self, api_key: str):
        return self._client_factory(api_key=api_key)

    def _to_ai_model(self, model_id: str) -> AIModel:
        known = KNOWN_MODELS.get(model_id)
        if known:
            return known
        return AIModel(id=model_id, display_name=format_model_name(model_id), provider_id=self.provider_id)

    async def list_models(self, api_key: str) -> list[AIModel]:
        response = await self._client(api_key).models.list()
        return [
            self._to_ai_model(model.id)
            for model in response.data
            if is_chat_model(model.id)
        ]

    async def validate_credential(self, api_key: str) -> bool:
        if not api_key:
            return False
        try:
            await self._client(api_key).models.list()
            return True
        except Exception as e:
            logger.debug(f"OpenAI key validation failed: {e}")
            return False

    async def create_completion(
        self,
        api_key: str,
        model_id: str,
        messages: list[dict],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> Any:
        """Start a streaming chat completion.

        Temperature is passed through as given; the API accepts 0-2.
        """
        request_params: dict[str, Any] = {
            "model": model_id,
            "messages": to_openai_messages(messages),
            "stream": True,
        }
        if temperature is not None:
            request_params["temperature"] = temperature
        if max_tokens is not None:
            request_params["max_tokens"] = max_tokens

        client = self._client(api_key)
        try:
            return await client.chat.completions.create(**request_params)
        except openai.APIStatusError as e:
            logger.warning(f"OpenAI request failed with status {e.status_code}: {e.message}")
            raise translate_status_error(
                e.status_code, e.message, provider=self.provider_id, model=model_id
            ) from e
        except openai.APIError as e:
            logger.warning(f"OpenAI request failed: {e}")
            raise UpstreamError(
                f"OpenAI request failed: {e}", provider=self.provider_id, model=model_id
            ) from e
