"""Shared pytest fixtures: fake providers, a test vault and an in-memory database."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from agentchat.auth import get_current_user
from agentchat.database import Base, get_db, get_session_factory
from agentchat.deps import get_credential_vault, get_registry
from agentchat.main import app
from agentchat.services.providers import AnthropicProvider, OpenAIProvider, ProviderRegistry
from agentchat.services.vault import CredentialVault
from tests.fakes import (
    TEST_ENCRYPTION_KEY,
    FakeClientFactory,
    anthropic_events,
    openai_events,
)

TEST_USER_ID = "user-test-1"


@pytest.fixture
def vault() -> CredentialVault:
    return CredentialVault(TEST_ENCRYPTION_KEY)


@pytest.fixture
def openai_factory() -> FakeClientFactory:
    return FakeClientFactory(
        events=openai_events("Hello", " world", "!"),
        models=["gpt-4o", "gpt-4", "whisper-1", "text-embedding-3-small"],
    )


@pytest.fixture
def anthropic_factory() -> FakeClientFactory:
    return FakeClientFactory(
        events=anthropic_events("Hello", " world", "!"),
        models=["claude-3-haiku-20240307", "claude-3-opus-20240229"],
    )


@pytest.fixture
def registry(openai_factory, anthropic_factory) -> ProviderRegistry:
    registry = ProviderRegistry()
    registry.register_provider(OpenAIProvider(client_factory=openai_factory))
    registry.register_provider(AnthropicProvider(client_factory=anthropic_factory))
    return registry


@pytest_asyncio.fixture
async def session_maker():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_maker, registry, vault):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_maker
    app.dependency_overrides[get_current_user] = lambda: TEST_USER_ID
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_credential_vault] = lambda: vault

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
