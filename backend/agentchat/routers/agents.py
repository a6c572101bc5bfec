"""Agent endpoints: create, list, read, update and delete the caller's agents."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import get_current_user
from ..database import (
    create_agent,
    delete_agent,
    get_agent,
    get_db,
    list_agents,
    list_api_connections,
    update_agent,
)
from ..deps import get_registry
from ..services.providers import ProviderRegistry, service_matches_provider
from .api_connections import ApiConnectionResponse

router = APIRouter(prefix="/api/agents", tags=["agents"])


class CreateAgentRequest(BaseModel):
    name: str = Field(min_length=1)
    model: str = Field(min_length=1)
    description: Optional[str] = None
    system_prompt: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0)
    max_tokens: Optional[int] = Field(default=None, gt=0)


class UpdateAgentRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    model: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    system_prompt: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0)
    max_tokens: Optional[int] = Field(default=None, gt=0)


class AgentResponse(BaseModel):
    id: str
    name: str
    description: Optional[str]
    system_prompt: Optional[str]
    model: str
    temperature: Optional[float]
    max_tokens: Optional[int]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


async def _owned_agent(db: AsyncSession, agent_id: str, user_id: str):
    agent = await get_agent(db, agent_id, user_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")
    return agent


@router.post("", response_model=AgentResponse, status_code=status.HTTP_201_CREATED)
async def create(
    request: CreateAgentRequest,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
):
    """Create an agent. The model must belong to a supported provider."""
    registry.resolve_provider(request.model)
    return await create_agent(db, user_id, **request.model_dump())


@router.get("", response_model=list[AgentResponse])
async def list_all(
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await list_agents(db, user_id)


@router.get("/{agent_id}", response_model=AgentResponse)
async def read(
    agent_id: str,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _owned_agent(db, agent_id, user_id)


@router.put("/{agent_id}", response_model=AgentResponse)
async def update(
    agent_id: str,
    request: UpdateAgentRequest,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
):
    """Partial update: only fields present in the body change."""
    agent = await _owned_agent(db, agent_id, user_id)
    fields = request.model_dump(exclude_unset=True)
    if fields.get("model") is not None:
        registry.resolve_provider(fields["model"])
    for required in ("name", "model"):
        if required in fields and fields[required] is None:
            raise HTTPException(status_code=400, detail=f"Agent {required} cannot be empty")
    return await update_agent(db, agent, **fields)


@router.delete("/{agent_id}")
async def remove(
    agent_id: str,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, bool]:
    if not await delete_agent(db, agent_id, user_id):
        raise HTTPException(status_code=404, detail="Agent not found")
    return {"deleted": True}


@router.get("/{agent_id}/api-connections", response_model=list[ApiConnectionResponse])
async def list_agent_connections(
    agent_id: str,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
):
    """The caller's connections that can serve this agent's model, newest first."""
    agent = await _owned_agent(db, agent_id, user_id)
    provider = registry.resolve_provider(agent.model)
    connections = await list_api_connections(db, user_id)
    return [c for c in connections if service_matches_provider(c.service, provider.provider_id)]
