"""Tests for the best-effort embedding service and the OpenAI provider."""
import logging
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from tests.fakes import FailingEmbeddingProvider, FakeEmbeddingProvider
from zettelstore_mcp.exceptions import EmbeddingError
from zettelstore_mcp.services.embedding_service import EmbeddingService, embedding_text
from zettelstore_mcp.services.embedding_types import EmbeddingProvider
from zettelstore_mcp.services.openai_provider import OpenAIEmbeddingProvider


class TestEmbeddingText:
    def test_joins_title_and_content(self):
        assert embedding_text("Title", "Body") == "Title\n\nBody"

    def test_strips_outer_whitespace(self):
        assert embedding_text("  Title", "Body\n") == "Title\n\nBody"


class TestEmbeddingService:
    """Tests for EmbeddingService.embed()."""

    def test_fakes_satisfy_protocol(self):
        assert isinstance(FakeEmbeddingProvider(), EmbeddingProvider)
        assert isinstance(FailingEmbeddingProvider(), EmbeddingProvider)

    def test_embed_returns_floats(self, embedding_service):
        vector = embedding_service.embed("hello world")
        assert len(vector) == 8
        assert all(isinstance(v, float) for v in vector)

    def test_deterministic(self, embedding_service):
        assert embedding_service.embed("same") == embedding_service.embed("same")
        assert embedding_service.embed("one") != embedding_service.embed("two")

    def test_no_provider_returns_none(self):
        service = EmbeddingService()
        assert service.available is False
        assert service.embed("hello") is None

    def test_blank_text_returns_none_without_call(self, fake_embedder):
        service = EmbeddingService(provider=fake_embedder)
        assert service.embed("") is None
        assert service.embed("   \n") is None
        assert fake_embedder.embed_count == 0

    def test_provider_failure_returns_none(self, caplog):
        provider = FailingEmbeddingProvider()
        service = EmbeddingService(provider=provider)
        with caplog.at_level(logging.WARNING):
            assert service.embed("hello") is None
        assert provider.embed_count == 1
        assert "Embedding generation failed" in caplog.text

    def test_unexpected_exception_returns_none(self):
        service = EmbeddingService(provider=FailingEmbeddingProvider(RuntimeError("boom")))
        assert service.embed("hello") is None

    def test_truncates_long_input(self, fake_embedder, caplog):
        service = EmbeddingService(provider=fake_embedder, max_chars=10)
        with caplog.at_level(logging.WARNING):
            assert service.embed("x" * 25) is not None
        assert fake_embedder.inputs == ["x" * 10]
        assert "truncated" in caplog.text

    def test_dimension_mismatch_returns_none(self, fake_embedder):
        service = EmbeddingService(provider=fake_embedder, expected_dim=16)
        assert service.embed("hello") is None

    def test_non_finite_values_rejected(self):
        provider = MagicMock()
        provider.model = "nan-model"
        provider.embed.return_value = [0.1, float("nan")]
        service = EmbeddingService(provider=provider)
        assert service.embed("hello") is None

    def test_injected_logger_is_used(self, caplog):
        logger = logging.getLogger("tests.embedding")
        service = EmbeddingService(provider=FailingEmbeddingProvider(), logger=logger)
        with caplog.at_level(logging.WARNING, logger="tests.embedding"):
            service.embed("hello")
        assert any(r.name == "tests.embedding" for r in caplog.records)


class TestFromConfig:
    def test_without_key(self, test_config):
        service = EmbeddingService.from_config(test_config)
        assert service.available is False

    def test_with_key(self, test_config, monkeypatch):
        monkeypatch.setattr(test_config, "openai_api_key", "sk-test")
        service = EmbeddingService.from_config(test_config)
        assert service.available is True
        assert service.model == "text-embedding-3-small"


class TestOpenAIEmbeddingProvider:
    """Tests for the OpenAI adapter with a stubbed client."""

    def test_embed(self):
        client = MagicMock()
        client.embeddings.create.return_value = SimpleNamespace(
            data=[SimpleNamespace(embedding=[0.1, 0.2, 0.3])]
        )
        provider = OpenAIEmbeddingProvider(api_key="sk-test", client=client)
        assert provider.embed("hello") == [0.1, 0.2, 0.3]
        client.embeddings.create.assert_called_once_with(
            model="text-embedding-3-small", input="hello"
        )

    def test_api_failure_raises_embedding_error(self):
        client = MagicMock()
        client.embeddings.create.side_effect = RuntimeError("rate limited")
        provider = OpenAIEmbeddingProvider(api_key="sk-test", client=client)
        with pytest.raises(EmbeddingError) as exc_info:
            provider.embed("hello")
        assert "rate limited" in exc_info.value.message

    def test_empty_response_raises(self):
        client = MagicMock()
        client.embeddings.create.return_value = SimpleNamespace(data=[])
        provider = OpenAIEmbeddingProvider(api_key="sk-test", client=client)
        with pytest.raises(EmbeddingError):
            provider.embed("hello")
