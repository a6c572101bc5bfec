"""Agent chat router with streamed plain-text responses."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..auth import get_current_user
from ..database import get_agent, get_db, get_session_factory, lookup_credential, save_agent_message
from ..deps import get_credential_vault, get_registry
from ..models import AgentConfig, ChatMessage
from ..services.chat_service import route_completion
from ..services.providers import ProviderRegistry
from ..services.vault import CredentialVault

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/agents", tags=["chat"])


class AgentChatRequest(BaseModel):
    """Request body for the agent chat endpoint."""

    message: str = Field(min_length=1)
    conversation_id: Optional[str] = None
    history: list[ChatMessage] = []  # Earlier turns, oldest first


@router.post("/{agent_id}/chat")
async def chat_with_agent(
    agent_id: str,
    request: AgentChatRequest,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    registry: ProviderRegistry = Depends(get_registry),
    vault: CredentialVault = Depends(get_credential_vault),
) -> StreamingResponse:
    """
    Send a message to an agent and stream the reply as UTF-8 text.

    Provider, credential and upstream failures are raised before streaming
    starts and rendered by the AgentChatError handler, so an invalid key
    and a rate limit produce different status codes and messages.
    """
    agent = await get_agent(db, agent_id, user_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")

    conversation_id = request.conversation_id or str(uuid.uuid4())
    agent_config = AgentConfig(
        model=agent.model,
        temperature=agent.temperature,
        max_tokens=agent.max_tokens,
        system_instructions=agent.system_prompt,
    )
    messages = [*request.history, ChatMessage(role="user", content=request.message)]

    logger.info(
        f"Chat request for agent {agent_id}: {len(messages)} messages, model={agent.model}"
    )

    async def lookup(provider_label: str, owner_id: str) -> Optional[str]:
        return await lookup_credential(db, provider_label, owner_id)

    async def store_reply(completion: str) -> None:
        # The request session may already be closed once streaming ends
        async with session_factory() as session:
            await save_agent_message(
                session, agent.id, user_id, conversation_id, "assistant", completion
            )

    stream = await route_completion(
        agent_config,
        messages,
        user_id,
        registry=registry,
        vault=vault,
        lookup_credential=lookup,
        on_completion=store_reply,
    )

    await save_agent_message(db, agent.id, user_id, conversation_id, "user", request.message)

    return StreamingResponse(
        stream,
        media_type="text/plain; charset=utf-8",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
            "X-Conversation-Id": conversation_id,
        },
    )
