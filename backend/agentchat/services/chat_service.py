"""Route a chat request to the right provider and stream the reply."""

from __future__ import annotations

import logging
from contextlib import aclosing
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional, Sequence, Union

from ..errors import CredentialNotFoundError
from ..models import AgentConfig, ChatMessage
from .providers import ModelProvider, ProviderRegistry
from .stream_adapter import StreamCallback, normalize_stream
from .vault import CredentialVault

logger = logging.getLogger(__name__)

# (provider_label, owner_id) -> encrypted credential, or None when absent
CredentialLookup = Callable[[str, str], Awaitable[Optional[str]]]


class RouterState(str, Enum):
    RESOLVING = "resolving"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


def build_dispatch_messages(
    agent_config: AgentConfig,
    messages: Sequence[Union[ChatMessage, dict]],
) -> list[dict]:
    """Prepend the agent's system instructions to the conversation, keeping order."""
    dispatch = []
    if agent_config.system_instructions:
        dispatch.append({"role": "system", "content": agent_config.system_instructions})
    for message in messages:
        dispatch.append(message.to_dict() if isinstance(message, ChatMessage) else dict(message))
    return dispatch


class ChatCompletionRouter:
    """Handles exactly one completion request.

    Resolving: pick the provider, load and decrypt the owner's credential.
    Streaming: call the provider and normalize its stream.
    The router ends in COMPLETED once the stream is exhausted, or FAILED if
    any step raises. Construct a new router for every request.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        vault: CredentialVault,
        lookup_credential: CredentialLookup,
    ) -> None:
        self._registry = registry
        self._vault = vault
        self._lookup_credential = lookup_credential
        self._started = False
        self.state = RouterState.RESOLVING
        self.provider: ModelProvider | None = None
        self.model_id: str | None = None

    async def _resolve(self, model: str, owner_id: str) -> str:
        provider = self._registry.resolve_provider(model)
        self.provider = provider
        self.model_id = self._registry.resolve_friendly_model_id(model, provider.provider_id)
        if self.model_id != model:
            logger.info(f"Resolved model {model} to {self.model_id}")

        encrypted = await self._lookup_credential(provider.provider_id, owner_id)
        if not encrypted:
            raise CredentialNotFoundError(
                f"No {provider.display_name} API connection found",
                provider=provider.provider_id,
                model=self.model_id,
            )
        return self._vault.decrypt(encrypted)

    async def route(
        self,
        agent_config: AgentConfig,
        messages: Sequence[Union[ChatMessage, dict]],
        owner_id: str,
        *,
        on_token: StreamCallback | None = None,
        on_completion: StreamCallback | None = None,
    ) -> AsyncIterator[bytes]:
        """
        Resolve, start the upstream call and return the normalized byte stream.

        Errors raised before the first byte (unknown provider, missing or
        undecryptable credential, upstream rejection) propagate unchanged.
        """
        if self._started:
            raise RuntimeError("ChatCompletionRouter handles a single request")
        self._started = True

        try:
            api_key = await self._resolve(agent_config.model, owner_id)
            self.state = RouterState.STREAMING
            logger.info(f"Routing {agent_config.model} to {self.provider.provider_id}")
            handle = await self.provider.create_completion(
                api_key,
                self.model_id,
                build_dispatch_messages(agent_config, messages),
                temperature=agent_config.temperature,
                max_tokens=agent_config.max_tokens,
            )
        except Exception:
            self.state = RouterState.FAILED
            raise

        return self._track(normalize_stream(handle, on_token=on_token, on_completion=on_completion))

    async def _track(self, stream: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
        async with aclosing(stream):
            try:
                async for chunk in stream:
                    yield chunk
            except Exception:
                self.state = RouterState.FAILED
                logger.error(f"Stream from {self.model_id} failed", exc_info=True)
                raise
        self.state = RouterState.COMPLETED


async def route_completion(
    agent_config: AgentConfig,
    messages: Sequence[Union[ChatMessage, dict]],
    owner_id: str,
    *,
    registry: ProviderRegistry,
    vault: CredentialVault,
    lookup_credential: CredentialLookup,
    on_token: StreamCallback | None = None,
    on_completion: StreamCallback | None = None,
) -> AsyncIterator[bytes]:
    """Entry point for a chat completion; see ChatCompletionRouter."""
    router = ChatCompletionRouter(registry, vault, lookup_credential)
    return await router.route(
        agent_config,
        messages,
        owner_id,
        on_token=on_token,
        on_completion=on_completion,
    )
