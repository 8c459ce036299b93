"""Embedding provider contract and the LiteLLM-backed implementation.

Any object with ``id``, ``model``, ``dimension``, ``version`` and the two
``embed`` methods can be handed to the indexer and to hybrid search; tests
use a deterministic fake.
"""

from __future__ import annotations

import logging
import os
from typing import Protocol, runtime_checkable

import litellm

from docquarry.errors import EmbeddingProviderError

logger = logging.getLogger(__name__)

# Provider prefix (``openai/text-embedding-3-small``) -> required API key env var.
_API_KEY_ENV: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
}


@runtime_checkable
class EmbeddingProvider(Protocol):
    id: str
    model: str
    dimension: int
    version: str

    def embed(self, text: str) -> list[float]: ...

    def embed_batch(self, texts: list[str]) -> list[list[float]]: ...


class LiteLLMEmbeddingProvider:
    """Embed text through ``litellm.embedding()``.

    Args:
        model:      LiteLLM model string, e.g. ``openai/text-embedding-3-small``.
        dimensions: Vector length the model returns.
        version:    Free-form version tag recorded in each chunk's
                    embedding metadata.
    """

    def __init__(
        self,
        model: str = "openai/text-embedding-3-small",
        dimensions: int = 1536,
        version: str = "1",
    ) -> None:
        self.model = model
        self.dimension = dimensions
        self.version = version
        self.id = model.split("/")[0].lower() if "/" in model else "litellm"
        if not os.environ.get("DOCQUARRY_LITELLM_VERBOSE"):
            litellm.suppress_debug_info = True

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in one request.

        Raises:
            EmbeddingProviderError: Missing API key, request failure, or a
                response whose length differs from the input.
        """
        if not texts:
            return []
        self._check_api_key()
        try:
            response = litellm.embedding(model=self.model, input=list(texts))
        except Exception as exc:
            raise EmbeddingProviderError(
                f"Embedding request to {self.model} failed: {exc}"
            ) from exc
        vectors = [item["embedding"] for item in response.data]
        if len(vectors) != len(texts):
            raise EmbeddingProviderError(
                f"Expected {len(texts)} embeddings, got {len(vectors)}",
                "EMBEDDING_BATCH_MISMATCH",
            )
        return vectors

    def _check_api_key(self) -> None:
        required_env = _API_KEY_ENV.get(self.id)
        if required_env and not os.environ.get(required_env):
            raise EmbeddingProviderError(
                f"No API key found for provider '{self.id}'. "
                f"Set the {required_env} environment variable.",
                "EMBEDDING_API_KEY_MISSING",
            )
