"""Common test fixtures for the Zettelstore MCP server."""

import pytest

from tests.fakes import FakeEmbeddingProvider, FakeRestStore
from zettelstore_mcp.config import config
from zettelstore_mcp.observability import metrics
from zettelstore_mcp.services.embedding_service import EmbeddingService
from zettelstore_mcp.services.zettel_service import ZettelService
from zettelstore_mcp.storage.store_client import StoreClient

TEST_REST_URL = "https://test-project.supabase.co/rest/v1"
TEST_API_KEY = "test-service-role-key"


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Keep the global metrics collector isolated between tests."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def test_config(monkeypatch):
    """Point the global config at a fake store (auto-restored even on crash)."""
    monkeypatch.setattr(config, "store_url", "https://test-project.supabase.co")
    monkeypatch.setattr(config, "anon_key", "test-anon-key")
    monkeypatch.setattr(config, "service_role_key", TEST_API_KEY)
    monkeypatch.setattr(config, "openai_api_key", None)
    yield config


@pytest.fixture
def fake_store():
    """In-memory PostgREST emulator."""
    return FakeRestStore()


@pytest.fixture
def store_client(fake_store):
    """A real StoreClient talking to the fake store."""
    client = StoreClient(TEST_REST_URL, TEST_API_KEY, transport=fake_store.transport())
    yield client
    client.close()


# =============================================================================
# Shared Embedding Test Fixtures
# =============================================================================


@pytest.fixture
def fake_embedder():
    """Deterministic 8-dim embedding provider."""
    return FakeEmbeddingProvider(dim=8)


@pytest.fixture
def embedding_service(fake_embedder):
    """EmbeddingService backed by the fake provider."""
    return EmbeddingService(provider=fake_embedder, expected_dim=8)


@pytest.fixture
def zettel_service(store_client, embedding_service):
    """ZettelService with embeddings enabled."""
    return ZettelService(store_client, embedding_service)


@pytest.fixture
def zettel_service_no_embeddings(store_client):
    """ZettelService without an embedding credential."""
    return ZettelService(store_client, EmbeddingService())
