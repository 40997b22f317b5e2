"""OpenAI embeddings provider using the official SDK."""

import logging
from typing import List, Optional

from openai import OpenAI

from zettelstore_mcp.exceptions import EmbeddingError, ErrorCode

logger = logging.getLogger(__name__)


class OpenAIEmbeddingProvider:
    """Generates embeddings through the OpenAI embeddings endpoint.

    One request per call, no batching and no retries (``max_retries=0`` on
    the client).

    Args:
        api_key: OpenAI API key.
        model: Embedding model name.
        base_url: Optional custom base URL (OpenAI-compatible gateways).
        client: Pre-built client, mainly for tests.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        base_url: Optional[str] = None,
        client: Optional[OpenAI] = None,
    ) -> None:
        self._model = model
        self._client = client or OpenAI(
            api_key=api_key, base_url=base_url, max_retries=0
        )

    @property
    def model(self) -> str:
        return self._model

    def embed(self, text: str) -> List[float]:
        try:
            response = self._client.embeddings.create(model=self._model, input=text)
        except Exception as e:
            logger.error(f"OpenAI embedding error ({self._model}): {e}")
            raise EmbeddingError(
                f"OpenAI embedding error: {e}",
                model=self._model,
                original_error=e,
            ) from e

        if not response.data:
            raise EmbeddingError(
                "OpenAI returned an empty embedding response",
                code=ErrorCode.EMBEDDING_FAILED,
                model=self._model,
            )
        return list(response.data[0].embedding)
