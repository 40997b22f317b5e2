"""Embedding service used when notes are created or their text changes.

Wraps an optional provider so that embedding is strictly best-effort:
``embed()`` never raises. It returns ``None`` when no provider is
configured, when the text is blank, or when the provider fails, and the
caller stores the note without a vector.

Usage:
    service = EmbeddingService.from_config(config)
    vector = service.embed(embedding_text(title, content))
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional

import numpy as np

from zettelstore_mcp.exceptions import EmbeddingError, ErrorCode

if TYPE_CHECKING:
    from zettelstore_mcp.config import ZettelstoreConfig
    from zettelstore_mcp.services.embedding_types import EmbeddingProvider


def embedding_text(title: str, content: str) -> str:
    """Text a note is embedded from: title, blank line, content."""
    return f"{title}\n\n{content}".strip()


class EmbeddingService:
    """Best-effort text embedding with input truncation and vector checks.

    Args:
        provider: An EmbeddingProvider implementation, or None to disable
            embeddings entirely.
        max_chars: Inputs longer than this are truncated before the call.
        expected_dim: If set, vectors of any other length are rejected.
        logger: Logger to use; defaults to this module's logger.
    """

    def __init__(
        self,
        provider: Optional[EmbeddingProvider] = None,
        max_chars: int = 32000,
        expected_dim: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._provider = provider
        self._max_chars = max_chars
        self._expected_dim = expected_dim
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(
        cls,
        cfg: ZettelstoreConfig,
        logger: Optional[logging.Logger] = None,
    ) -> EmbeddingService:
        """Build a service with an OpenAI provider when a key is configured."""
        provider = None
        if cfg.embeddings_configured:
            from zettelstore_mcp.services.openai_provider import (
                OpenAIEmbeddingProvider,
            )

            provider = OpenAIEmbeddingProvider(
                api_key=cfg.openai_api_key, model=cfg.embedding_model
            )
        else:
            (logger or logging.getLogger(__name__)).info(
                "OPENAI_API_KEY not set; notes will be stored without embeddings"
            )
        return cls(
            provider=provider,
            max_chars=cfg.embedding_max_chars,
            expected_dim=cfg.embedding_dim,
            logger=logger,
        )

    @property
    def available(self) -> bool:
        """Whether a provider is configured."""
        return self._provider is not None

    @property
    def model(self) -> Optional[str]:
        return self._provider.model if self._provider is not None else None

    def embed(self, text: str) -> Optional[List[float]]:
        """Embed ``text``, or return None if that is not possible.

        Args:
            text: Input text. Truncated to ``max_chars`` if longer.

        Returns:
            The vector as a list of floats, or None.
        """
        if self._provider is None:
            return None
        if not text or not text.strip():
            return None

        if len(text) > self._max_chars:
            self._logger.warning(
                f"Embedding input truncated from {len(text)} to {self._max_chars} chars"
            )
            text = text[: self._max_chars]

        try:
            return self._validate(self._provider.embed(text))
        except EmbeddingError as e:
            self._logger.warning(f"Embedding generation failed: {e}")
        except Exception as e:
            self._logger.error(
                f"Unexpected error from embedding provider: {e}", exc_info=True
            )
        return None

    def _validate(self, raw) -> List[float]:
        """Check shape and values of a provider vector."""
        vector = np.asarray(raw, dtype=np.float64)
        if vector.ndim != 1 or vector.size == 0:
            raise EmbeddingError(
                f"Provider returned a vector of shape {vector.shape}",
                code=ErrorCode.EMBEDDING_FAILED,
                model=self.model,
            )
        if self._expected_dim is not None and vector.size != self._expected_dim:
            raise EmbeddingError(
                f"Expected {self._expected_dim} dimensions, got {vector.size}",
                code=ErrorCode.EMBEDDING_FAILED,
                model=self.model,
            )
        if not np.all(np.isfinite(vector)):
            raise EmbeddingError(
                "Provider returned non-finite values",
                code=ErrorCode.EMBEDDING_FAILED,
                model=self.model,
            )
        return vector.tolist()
