"""Tests for the provider registry and GET /api/providers."""

import pytest
from httpx import ASGITransport, AsyncClient

from forkai.main import app
from forkai.providers.base import GenerationRequest, LLMProvider, StreamChunk
from forkai.providers.registry import (
    ProviderNotFoundError,
    clear_providers,
    get_all_providers,
    get_provider,
    register_provider,
)


class FakeProvider(LLMProvider):
    def __init__(self, provider_name: str = "fake", models: list[str] | None = None):
        self._name = provider_name
        self.suggested_models = models or ["fake-model"]

    @property
    def name(self) -> str:
        return self._name

    async def generate_stream(self, request: GenerationRequest):  # type: ignore[override]
        yield StreamChunk(type="text_delta", text="fake")


@pytest.fixture(autouse=True)
def _clean_registry():
    clear_providers()
    yield
    clear_providers()


class TestProviderRegistry:
    def test_register_and_get(self):
        provider = FakeProvider()
        register_provider(provider)
        assert get_provider("fake") is provider

    def test_get_unknown_raises_with_available_names(self):
        register_provider(FakeProvider("anthropic"))
        with pytest.raises(ProviderNotFoundError, match="anthropic"):
            get_provider("nonexistent")

    def test_re_register_replaces(self):
        register_provider(FakeProvider())
        replacement = FakeProvider()
        register_provider(replacement)
        assert get_all_providers() == [replacement]


class TestProvidersEndpoint:
    async def test_lists_registered_providers(self):
        register_provider(FakeProvider("anthropic", ["claude-x"]))
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            resp = await client.get("/api/providers")
        assert resp.status_code == 200
        assert resp.json() == [{"name": "anthropic", "available": True, "models": ["claude-x"]}]

    async def test_health(self):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            resp = await client.get("/api/health")
        assert resp.json() == {"status": "ok", "version": "0.1.0"}
