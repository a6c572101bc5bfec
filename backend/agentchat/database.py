from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .services.providers import service_matches_provider

# Load environment variables from .env file
load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    logger.warning("DATABASE_URL not set. Database features will be unavailable.")


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class ApiConnection(Base):
    """A user's stored provider credential. The key is only kept encrypted."""

    __tablename__ = "api_connections"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    service: Mapped[str] = mapped_column(String(100), nullable=False)
    encrypted_api_key: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class Agent(Base):
    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    system_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    model: Mapped[str] = mapped_column(String(100), nullable=False, default="gpt-3.5-turbo")
    temperature: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_tokens: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class AgentMessage(Base):
    __tablename__ = "agent_messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    agent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    conversation_id: Mapped[str] = mapped_column(String(36), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("idx_agent_messages_conversation", "conversation_id", "created_at"),)


engine = None
async_session_maker = None

if DATABASE_URL:
    engine = create_async_engine(DATABASE_URL, echo=False)
    async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    """Initialize database by creating all tables."""
    if not engine:
        logger.warning("Database not configured, skipping initialization")
        return

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncSession:
    """Dependency for FastAPI routes to get database session."""
    if not async_session_maker:
        from fastapi import HTTPException
        raise HTTPException(
            status_code=503,
            detail="Database not configured. Set DATABASE_URL environment variable."
        )
    async with async_session_maker() as session:
        yield session


def get_session_factory() -> async_sessionmaker:
    """Session factory for work that outlives the request, e.g. stream callbacks."""
    if not async_session_maker:
        from fastapi import HTTPException
        raise HTTPException(status_code=503, detail="Database not configured.")
    return async_session_maker


async def lookup_credential(
    session: AsyncSession, provider_label: str, owner_id: str
) -> Optional[str]:
    """Return the owner's most recent encrypted key whose service matches the provider."""
    connections = await list_api_connections(session, owner_id)
    for connection in connections:
        if service_matches_provider(connection.service, provider_label):
            return connection.encrypted_api_key
    return None


async def list_api_connections(session: AsyncSession, user_id: str) -> list[ApiConnection]:
    stmt = (
        select(ApiConnection)
        .where(ApiConnection.user_id == user_id)
        .order_by(ApiConnection.updated_at.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_api_connection(
    session: AsyncSession,
    user_id: str,
    name: str,
    service: str,
    encrypted_api_key: str,
) -> ApiConnection:
    connection = ApiConnection(
        user_id=user_id,
        name=name,
        service=service,
        encrypted_api_key=encrypted_api_key,
    )
    session.add(connection)
    await session.commit()
    await session.refresh(connection)
    logger.info(f"Created API connection {connection.id} ({service}) for user {user_id}")
    return connection


async def get_api_connection(
    session: AsyncSession, connection_id: str, user_id: str
) -> Optional[ApiConnection]:
    stmt = select(ApiConnection).where(
        ApiConnection.id == connection_id,
        ApiConnection.user_id == user_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def update_api_connection(
    session: AsyncSession,
    connection: ApiConnection,
    *,
    name: Optional[str] = None,
    service: Optional[str] = None,
    encrypted_api_key: Optional[str] = None,
) -> ApiConnection:
    """Apply the given fields. A new key replaces the stored one entirely."""
    if name is not None:
        connection.name = name
    if service is not None:
        connection.service = service
    if encrypted_api_key is not None:
        connection.encrypted_api_key = encrypted_api_key
    await session.commit()
    await session.refresh(connection)
    logger.info(f"Updated API connection {connection.id} for user {connection.user_id}")
    return connection


async def delete_api_connection(session: AsyncSession, connection_id: str, user_id: str) -> bool:
    stmt = delete(ApiConnection).where(
        ApiConnection.id == connection_id,
        ApiConnection.user_id == user_id,
    )
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount > 0


async def get_agent(session: AsyncSession, agent_id: str, user_id: str) -> Optional[Agent]:
    stmt = select(Agent).where(Agent.id == agent_id, Agent.user_id == user_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_agents(session: AsyncSession, user_id: str) -> list[Agent]:
    stmt = select(Agent).where(Agent.user_id == user_id).order_by(Agent.created_at.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_agent(session: AsyncSession, user_id: str, **fields) -> Agent:
    agent = Agent(user_id=user_id, **fields)
    session.add(agent)
    await session.commit()
    await session.refresh(agent)
    logger.info(f"Created agent {agent.id} ({agent.model}) for user {user_id}")
    return agent


async def update_agent(session: AsyncSession, agent: Agent, **fields) -> Agent:
    for name, value in fields.items():
        setattr(agent, name, value)
    await session.commit()
    await session.refresh(agent)
    return agent


async def delete_agent(session: AsyncSession, agent_id: str, user_id: str) -> bool:
    """Delete an owned agent and its messages. False if no such agent."""
    agent = await get_agent(session, agent_id, user_id)
    if not agent:
        return False
    await session.execute(delete(AgentMessage).where(AgentMessage.agent_id == agent.id))
    await session.delete(agent)
    await session.commit()
    return True


async def save_agent_message(
    session: AsyncSession,
    agent_id: str,
    user_id: str,
    conversation_id: str,
    role: str,
    content: str,
) -> AgentMessage:
    message = AgentMessage(
        agent_id=agent_id,
        user_id=user_id,
        conversation_id=conversation_id,
        role=role,
        content=content,
    )
    session.add(message)
    await session.commit()
    return message
