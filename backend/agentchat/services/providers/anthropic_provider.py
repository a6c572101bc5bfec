"""Anthropic provider for Claude models."""

from __future__ import annotations

import logging
from typing import Any, Callable

import anthropic
from anthropic import AsyncAnthropic

from ...constants import (
    ANTHROPIC_DEFAULT_MAX_TOKENS,
    ANTHROPIC_MAX_TEMPERATURE,
    ANTHROPIC_MIN_TEMPERATURE,
    ANTHROPIC_MODEL_MARKER,
    ANTHROPIC_PROVIDER_ID,
    CONTINUATION_PROMPT,
    DEFAULT_TEMPERATURE,
)
from ...errors import UpstreamError
from .base import AIModel, ModelProvider, translate_status_error

logger = logging.getLogger(__name__)


def _model(model_id: str, name: str, vision: bool, max_tokens: int = 4096) -> AIModel:
    return AIModel(
        id=model_id,
        display_name=name,
        provider_id=ANTHROPIC_PROVIDER_ID,
        capabilities=frozenset({"vision"} if vision else ()),
        max_tokens=max_tokens,
        default_temperature=DEFAULT_TEMPERATURE,
    )


KNOWN_MODELS: dict[str, AIModel] = {
    m.id: m
    for m in (
        _model("claude-opus-4-5-20251101", "Claude Opus 4.5", True, 64000),
        _model("claude-sonnet-4-5-20250929", "Claude Sonnet 4.5", True, 64000),
        _model("claude-3-7-sonnet-20250219", "Claude 3.7 Sonnet", True, 8192),
        _model("claude-3-5-sonnet-20240620", "Claude 3.5 Sonnet", True, 8192),
        _model("claude-3-opus-20240229", "Claude 3 Opus", True),
        _model("claude-3-sonnet-20240229", "Claude 3 Sonnet", True),
        _model("claude-3-haiku-20240307", "Claude 3 Haiku", True),
        _model("claude-2.1", "Claude 2", False),
        _model("claude-instant-1.2", "Claude Instant", False),
    )
}

DEFAULT_MODEL_IDS = (
    "claude-3-opus-20240229",
    "claude-3-sonnet-20240229",
    "claude-3-haiku-20240307",
)


def clamp_temperature(temperature: float) -> float:
    return max(ANTHROPIC_MIN_TEMPERATURE, min(ANTHROPIC_MAX_TEMPERATURE, temperature))


def to_anthropic_messages(messages: list[dict]) -> tuple[str | None, list[dict]]:
    """Split out the system prompt and enforce user/assistant alternation.

    The Messages API takes a single top-level system string and requires
    turns to alternate, ending on a user turn.

    Returns:
        Tuple of (system_prompt, messages)
    """
    system_parts = [msg.get("content", "") for msg in messages if msg.get("role") == "system"]

    collapsed: list[dict] = []
    for msg in messages:
        role = msg.get("role")
        if role == "system":
            continue
        role = "assistant" if role == "assistant" else "user"
        # Keep the first message of a same-role run
        if collapsed and collapsed[-1]["role"] == role:
            continue
        collapsed.append({"role": role, "content": msg.get("content", "")})

    if collapsed and collapsed[-1]["role"] == "assistant":
        collapsed.append({"role": "user", "content": CONTINUATION_PROMPT})

    system_prompt = "\n".join(system_parts) if system_parts else None
    return system_prompt, collapsed


class AnthropicProvider(ModelProvider):
    """Provider for Anthropic Claude models."""

    provider_id = ANTHROPIC_PROVIDER_ID
    display_name = "Anthropic"
    DEFAULT_MODELS = tuple(KNOWN_MODELS[model_id] for model_id in DEFAULT_MODEL_IDS)

    # Map friendly names to API model IDs
    FRIENDLY_MODEL_MAP = {
        "claude-sonnet-4.5": "claude-sonnet-4-5-20250929",
        "claude-opus-4.5": "claude-opus-4-5-20251101",
        "claude-3.7-sonnet": "claude-3-7-sonnet-20250219",
        "claude-3-7-sonnet": "claude-3-7-sonnet-20250219",
        "claude-3.5-sonnet": "claude-3-5-sonnet-20240620",
        "claude-3-5-sonnet": "claude-3-5-sonnet-20240620",
        "claude-3-opus": "claude-3-opus-20240229",
        "claude-3-sonnet": "claude-3-sonnet-20240229",
        "claude-3-haiku": "claude-3-haiku-20240307",
        "claude-2": "claude-2.1",
        "claude-instant-1": "claude-instant-1.2",
    }

    def __init__(self, client_factory: Callable[..., Any] = AsyncAnthropic):
        self._client_factory = client_factory

    def _client(self, api_key: str):
        return self._client_factory(api_key=api_key)

    async def list_models(self, api_key: str) -> list[AIModel]:
        response = await self._client(api_key).models.list()
        models = []
        for info in response.data:
            if ANTHROPIC_MODEL_MARKER not in info.id:
                continue
            known = KNOWN_MODELS.get(info.id)
            models.append(
                known
                or AIModel(
                    id=info.id,
                    display_name=getattr(info, "display_name", None) or info.id,
                    provider_id=self.provider_id,
                    default_temperature=DEFAULT_TEMPERATURE,
                )
            )
        return models

    async def validate_credential(self, api_key: str) -> bool:
        if not api_key:
            return False
        try:
            await self._client(api_key).models.list()
            return True
        except Exception as e:
            logger.debug(f"Anthropic key validation failed: {e}")
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
        """Start a streaming message.

        Temperature is clamped to [0, 1] and max_tokens defaults to 1000,
        since the API requires an explicit cap.
        """
        system_prompt, anthropic_messages = to_anthropic_messages(messages)

        request_params: dict[str, Any] = {
            "model": model_id,
            "messages": anthropic_messages,
            "max_tokens": ANTHROPIC_DEFAULT_MAX_TOKENS if max_tokens is None else max_tokens,
            "stream": True,
        }
        if system_prompt:
            request_params["system"] = system_prompt
        if temperature is not None:
            request_params["temperature"] = clamp_temperature(temperature)

        logger.debug(f"Sending {len(anthropic_messages)} messages to Anthropic model {model_id}")

        client = self._client(api_key)
        try:
            return await client.messages.create(**request_params)
        except anthropic.APIStatusError as e:
            logger.warning(f"Anthropic request failed with status {e.status_code}: {e.message}")
            raise translate_status_error(
                e.status_code, e.message, provider=self.provider_id, model=model_id
            ) from e
        except anthropic.APIError as e:
            logger.warning(f"Anthropic request failed: {e}")
            raise UpstreamError(
                f"Anthropic request failed: {e}", provider=self.provider_id, model=model_id
            ) from e
