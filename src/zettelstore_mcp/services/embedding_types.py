"""Type protocol for embedding providers.

Defines the structural contract that both the production OpenAI provider
and test fakes must satisfy. Uses Protocol (PEP 544) for structural
subtyping; implementations don't need to inherit from it.
"""
from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Contract for embedding text into dense vectors."""

    @property
    def model(self) -> str:
        """Identifier of the embedding model."""
        ...

    def embed(self, text: str) -> Sequence[float]:
        """Embed a single text into a dense vector.

        Args:
            text: Input text to embed. Never empty.

        Returns:
            The vector as a sequence of floats.

        Raises:
            EmbeddingError: If the provider cannot produce a vector.
        """
        ...
