"""Tests for provider classification, friendly ids and catalog caching."""

import pytest

from agentchat.constants import CATALOG_TTL_SECONDS
from agentchat.errors import UnsupportedProviderError
from agentchat.services.providers import (
    AnthropicProvider,
    OpenAIProvider,
    ProviderKind,
    ProviderRegistry,
    build_default_registry,
    classify_model,
    service_matches_provider,
)
from agentchat.services.providers.registry import CatalogEntry
from tests.fakes import FakeClientFactory, FakeClock

FRIENDLY_IDS = {
    "claude-3-opus": "claude-3-opus-20240229",
    "claude-3-sonnet": "claude-3-sonnet-20240229",
    "claude-3-haiku": "claude-3-haiku-20240307",
    "claude-3.5-sonnet": "claude-3-5-sonnet-20240620",
    "claude-3-7-sonnet": "claude-3-7-sonnet-20250219",
    "claude-2": "claude-2.1",
    "claude-instant-1": "claude-instant-1.2",
    "claude-sonnet-4.5": "claude-sonnet-4-5-20250929",
}


def _registry(factory: FakeClientFactory, clock: FakeClock) -> ProviderRegistry:
    registry = ProviderRegistry(clock=clock)
    registry.register_provider(OpenAIProvider(client_factory=factory))
    registry.register_provider(AnthropicProvider(client_factory=factory))
    return registry


class TestClassification:
    @pytest.mark.parametrize(
        "model_id",
        ["gpt-4", "gpt-4o", "gpt-4o-mini", "gpt-3.5-turbo", "GPT-4-Turbo", "chatgpt-4o-latest", "o1-mini"],
    )
    def test_openai_models(self, model_id):
        assert classify_model(model_id) is ProviderKind.OPENAI

    @pytest.mark.parametrize(
        "model_id",
        ["claude-3-opus", "claude-3-haiku-20240307", "claude-2.1", "Claude-Sonnet-4.5", "anthropic/claude-3-opus"],
    )
    def test_anthropic_models(self, model_id):
        assert classify_model(model_id) is ProviderKind.ANTHROPIC

    @pytest.mark.parametrize("model_id", ["llama-70b", "mistral-large", "gemini-pro", "", "   "])
    def test_unknown_models(self, model_id):
        assert classify_model(model_id) is ProviderKind.UNKNOWN

    def test_resolve_provider_rejects_unknown_model(self, registry):
        with pytest.raises(UnsupportedProviderError):
            registry.resolve_provider("llama-70b")

    def test_resolve_provider_picks_registered_instance(self, registry):
        assert registry.resolve_provider("gpt-4").provider_id == "openai"
        assert registry.resolve_provider("claude-3-haiku").provider_id == "anthropic"


class TestServiceLabels:
    @pytest.mark.parametrize("label", ["anthropic", "Anthropic", "ANTHROPIC", "anthropic-ai", " Anthropic API "])
    def test_anthropic_labels_match(self, label):
        assert service_matches_provider(label, "anthropic")

    @pytest.mark.parametrize("label", ["openai", "", None, "claude"])
    def test_other_labels_do_not_match(self, label):
        assert not service_matches_provider(label, "anthropic")

    def test_provider_for_service(self, registry):
        assert registry.provider_for_service("OpenAI").provider_id == "openai"
        assert registry.provider_for_service("anthropic-ai").provider_id == "anthropic"
        assert registry.provider_for_service("cohere") is None


class TestFriendlyModelIds:
    @pytest.mark.parametrize("short_id,qualified", FRIENDLY_IDS.items())
    def test_short_ids_resolve(self, registry, short_id, qualified):
        assert registry.resolve_friendly_model_id(short_id, "anthropic") == qualified

    @pytest.mark.parametrize("short_id", FRIENDLY_IDS)
    def test_resolution_is_idempotent(self, registry, short_id):
        once = registry.resolve_friendly_model_id(short_id, "anthropic")
        assert registry.resolve_friendly_model_id(once, "anthropic") == once

    def test_unknown_ids_are_unchanged(self, registry):
        assert registry.resolve_friendly_model_id("claude-99", "anthropic") == "claude-99"
        assert registry.resolve_friendly_model_id("gpt-4", "openai") == "gpt-4"
        assert registry.resolve_friendly_model_id("claude-3-opus", "nonexistent") == "claude-3-opus"

    @pytest.mark.asyncio
    async def test_get_model_by_friendly_id(self, registry):
        model = await registry.get_model_by_id("anthropic", "claude-3-haiku")

        assert model is not None
        assert model.id == "claude-3-haiku-20240307"
        assert model.supports("vision")

    @pytest.mark.asyncio
    async def test_get_model_by_id_not_found(self, registry):
        assert await registry.get_model_by_id("openai", "gpt-99") is None


class TestCatalogCache:
    def test_entry_staleness_boundary(self):
        entry = CatalogEntry.create([], fetched_at=100.0, ttl=60.0)

        assert not entry.is_stale(159.9)
        assert entry.is_stale(160.0)

    @pytest.mark.asyncio
    async def test_no_credential_returns_defaults_without_fetch(self):
        factory = FakeClientFactory(models=["gpt-4o"])
        registry = _registry(factory, FakeClock())

        models = await registry.get_models("openai")

        assert [m.id for m in models] == [m.id for m in OpenAIProvider.DEFAULT_MODELS]
        assert factory.list_calls == 0

    @pytest.mark.asyncio
    async def test_live_catalog_filters_non_chat_models(self):
        factory = FakeClientFactory(models=["gpt-4o", "whisper-1", "tts-1", "dall-e-3", "gpt-5-preview"])
        registry = _registry(factory, FakeClock())

        models = await registry.get_models("openai", "sk-test")

        assert [m.id for m in models] == ["gpt-4o", "gpt-5-preview"]
        assert models[0].display_name == "GPT-4o"
        assert models[1].display_name == "Gpt 5 Preview"
        assert models[1].capabilities == frozenset()

    @pytest.mark.asyncio
    async def test_cache_served_until_ttl_expires(self):
        factory = FakeClientFactory(models=["gpt-4o"])
        clock = FakeClock()
        registry = _registry(factory, clock)

        first = await registry.get_models("openai", "sk-test")
        clock.advance(CATALOG_TTL_SECONDS - 1)
        second = await registry.get_models("openai", "sk-test")

        assert factory.list_calls == 1
        assert second == first

        clock.advance(2)
        await registry.get_models("openai", "sk-test")

        assert factory.list_calls == 2

    @pytest.mark.asyncio
    async def test_fresh_cache_served_even_without_credential(self):
        factory = FakeClientFactory(models=["gpt-4o-mini"])
        registry = _registry(factory, FakeClock())

        await registry.get_models("openai", "sk-test")
        models = await registry.get_models("openai")

        assert [m.id for m in models] == ["gpt-4o-mini"]

    @pytest.mark.asyncio
    async def test_fetch_failure_falls_back_to_defaults(self):
        factory = FakeClientFactory(list_error=RuntimeError("connection reset"))
        registry = _registry(factory, FakeClock())

        models = await registry.get_models("anthropic", "sk-ant-bad")

        assert [m.id for m in models] == [m.id for m in AnthropicProvider.DEFAULT_MODELS]
        assert factory.list_calls == 1

    @pytest.mark.asyncio
    async def test_stale_entry_not_served_after_failed_refresh(self):
        factory = FakeClientFactory(models=["gpt-4o-mini"])
        clock = FakeClock()
        registry = _registry(factory, clock)

        await registry.get_models("openai", "sk-test")
        clock.advance(CATALOG_TTL_SECONDS + 1)
        factory.list_error = RuntimeError("upstream down")
        models = await registry.get_models("openai", "sk-test")

        assert [m.id for m in models] == [m.id for m in OpenAIProvider.DEFAULT_MODELS]

    @pytest.mark.asyncio
    async def test_anthropic_live_catalog_maps_known_models(self):
        factory = FakeClientFactory(models=["claude-3-haiku-20240307", "claude-future-1"])
        registry = _registry(factory, FakeClock())

        models = await registry.get_models("anthropic", "sk-ant")

        assert models[0].display_name == "Claude 3 Haiku"
        assert models[1].id == "claude-future-1"
        assert models[1].display_name == "claude-future-1"

    @pytest.mark.asyncio
    async def test_clear_cache_forces_refetch(self):
        factory = FakeClientFactory(models=["gpt-4o"])
        registry = _registry(factory, FakeClock())

        await registry.get_models("openai", "sk-test")
        registry.clear_cache("openai")
        await registry.get_models("openai", "sk-test")

        assert factory.list_calls == 2

    @pytest.mark.asyncio
    async def test_unknown_provider_raises(self, registry):
        with pytest.raises(UnsupportedProviderError):
            await registry.get_models("cohere")

    @pytest.mark.asyncio
    async def test_get_all_models(self, registry):
        catalogs = await registry.get_all_models()

        assert set(catalogs) == {"openai", "anthropic"}
        assert all(catalogs.values())


class TestRegistration:
    def test_last_registration_wins(self):
        registry = ProviderRegistry()
        first = OpenAIProvider(client_factory=FakeClientFactory())
        second = OpenAIProvider(client_factory=FakeClientFactory())

        registry.register_provider(first)
        registry.register_provider(second)

        assert registry.get_provider("openai") is second
        assert registry.provider_ids == ["openai"]

    def test_default_registry_options(self):
        registry = build_default_registry()

        assert registry.get_provider_options() == {"openai": "OpenAI", "anthropic": "Anthropic"}
        assert registry.get_provider("OpenAI").provider_id == "openai"
