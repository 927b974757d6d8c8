"""Text embedder for the RAG ingestion pipeline.

Embedding providers
-------------------
``openai`` (default)
    Calls the OpenAI embeddings API with ``dimensions`` set to
    ``settings.embedding_dim`` (512), batching up to
    ``settings.embedding_batch_size`` texts per request.
    Requires ``OPENAI_API_KEY`` to be set.
    Configure via ``OPENAI_EMBED_MODEL``.

``ollama``
    Calls the local Ollama REST API at ``/api/embeddings``, one text per
    request.  Configure via ``OLLAMA_BASE_URL`` and ``OLLAMA_EMBED_MODEL``;
    the model must produce ``EMBEDDING_DIM``-sized vectors.

Set ``EMBEDDING_PROVIDER=ollama`` in your ``.env`` to switch providers.
"""

from __future__ import annotations

import logging
import os
from typing import Sequence

import httpx

from knowledgebase.config import settings

logger = logging.getLogger(__name__)


class EmbeddingError(RuntimeError):
    """The embedding service answered with something unusable."""


# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------

def _embed_openai(texts: Sequence[str]) -> list[list[float]]:
    """Call the OpenAI embeddings API in batches and return one vector per text."""
    api_key = os.environ.get("OPENAI_API_KEY", "")
    if not api_key:
        raise EnvironmentError(
            "OPENAI_API_KEY environment variable is not set. "
            "Set it or switch to EMBEDDING_PROVIDER=ollama."
        )

    vectors: list[list[float]] = []
    batch_size = max(1, settings.embedding_batch_size)
    with httpx.Client(timeout=60.0) as client:
        for offset in range(0, len(texts), batch_size):
            batch = list(texts[offset : offset + batch_size])
            response = client.post(
                "https://api.openai.com/v1/embeddings",
                headers={"Authorization": f"Bearer {api_key}"},
                json={
                    "model": settings.openai_embed_model,
                    "input": batch,
                    "dimensions": settings.embedding_dim,
                },
            )
            response.raise_for_status()
            data = sorted(response.json()["data"], key=lambda item: item["index"])
            vectors.extend(item["embedding"] for item in data)
    return vectors


def _embed_ollama(texts: Sequence[str]) -> list[list[float]]:
    """Call Ollama ``/api/embeddings`` once per text."""
    vectors: list[list[float]] = []
    with httpx.Client(timeout=60.0) as client:
        for text in texts:
            response = client.post(
                f"{settings.ollama_base_url}/api/embeddings",
                json={"model": settings.ollama_embed_model, "prompt": text},
            )
            response.raise_for_status()
            vectors.append(response.json()["embedding"])
    return vectors


def _check(texts: Sequence[str], vectors: list[list[float]]) -> list[list[float]]:
    if len(vectors) != len(texts):
        raise EmbeddingError(
            f"Expected {len(texts)} embeddings, received {len(vectors)}"
        )
    for vector in vectors:
        if len(vector) != settings.embedding_dim:
            raise EmbeddingError(
                f"Expected {settings.embedding_dim}-dimensional embeddings, "
                f"received {len(vector)}"
            )
    return vectors


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def embed_texts(texts: Sequence[str]) -> list[list[float]]:
    """Return one embedding vector per entry of *texts*, in order.

    The active provider is determined by ``settings.embedding_provider``
    (``"openai"`` or ``"ollama"``).

    Raises:
        httpx.HTTPError: If the embedding API fails or returns a non-2xx status.
        EnvironmentError: If ``OPENAI_API_KEY`` is missing when using the
            OpenAI provider.
        EmbeddingError: If the count or dimensionality of the vectors is wrong.
    """
    if not texts:
        return []
    logger.debug(
        "Embedding %d text(s) with provider %s", len(texts), settings.embedding_provider
    )
    if settings.embedding_provider == "ollama":
        vectors = _embed_ollama(texts)
    else:
        vectors = _embed_openai(texts)
    return _check(texts, vectors)


def embed_text(text: str) -> list[float]:
    """Return the embedding vector for a single *text*."""
    return embed_texts([text])[0]
