"""
Embedding Service

Generate vector embeddings for text.
Abstracts different embedding providers.

Design decisions:
- Provider-agnostic interface
- Batch embedding for efficiency
- Caching for repeated texts
- One fixed dimension (768 by default) shared by every domain
"""

import hashlib
import re
from abc import ABC, abstractmethod
from typing import Any

import numpy as np

from polyrag.core.exceptions import EmbeddingError

DEFAULT_DIMENSION = 768


class EmbeddingService(ABC):
    """
    Abstract embedding service.

    Generates dense vector representations of text
    for semantic similarity search.
    """

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Embedding dimension."""
        pass

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate embedding for single text."""
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts."""
        pass


class OpenAIEmbeddings(EmbeddingService):
    """
    OpenAI embedding service.

    Uses text-embedding-3 models with the ``dimensions`` parameter so
    every domain shares the same vector width.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "text-embedding-3-small",
        dimensions: int = DEFAULT_DIMENSION,
        base_url: str | None = None,
        cache_enabled: bool = True,
    ):
        self._model = model
        self._dimensions = dimensions
        self._api_key = api_key
        self._base_url = base_url
        self._client = None

        # Cache for repeated embeddings
        self._cache: dict[str, list[float]] = {}
        self._cache_enabled = cache_enabled

    def _get_client(self):
        if self._client is None:
            from openai import AsyncOpenAI

            kwargs: dict[str, Any] = {}
            if self._api_key:
                kwargs["api_key"] = self._api_key
            if self._base_url:
                kwargs["base_url"] = self._base_url

            self._client = AsyncOpenAI(**kwargs)
        return self._client

    @property
    def model(self) -> str:
        return self._model

    @property
    def dimension(self) -> int:
        return self._dimensions

    def _cache_key(self, text: str) -> str:
        """Generate cache key for text."""
        return hashlib.md5(text.encode()).hexdigest()

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for text."""
        cache_key = self._cache_key(text)
        if self._cache_enabled and cache_key in self._cache:
            return self._cache[cache_key]

        response = await self._get_client().embeddings.create(
            model=self._model,
            input=text,
            dimensions=self._dimensions,
        )
        embedding = response.data[0].embedding

        if self._cache_enabled:
            self._cache[cache_key] = embedding

        return embedding

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for batch."""
        if not texts:
            return []

        results: list[list[float] | None] = [None] * len(texts)
        uncached_indices = []
        uncached_texts = []

        for i, text in enumerate(texts):
            cached = self._cache.get(self._cache_key(text)) if self._cache_enabled else None
            if cached is not None:
                results[i] = cached
            else:
                uncached_indices.append(i)
                uncached_texts.append(text)

        if uncached_texts:
            response = await self._get_client().embeddings.create(
                model=self._model,
                input=uncached_texts,
                dimensions=self._dimensions,
            )

            if len(response.data) != len(uncached_texts):
                raise EmbeddingError(
                    f"Provider returned {len(response.data)} embeddings for {len(uncached_texts)} texts",
                    context={"model": self._model, "batch_size": len(uncached_texts)},
                )

            for original_idx, text, item in zip(uncached_indices, uncached_texts, response.data):
                results[original_idx] = item.embedding
                if self._cache_enabled:
                    self._cache[self._cache_key(text)] = item.embedding

        return results


class HashEmbeddings(EmbeddingService):
    """
    Deterministic offline embeddings.

    Hashes lower-cased word tokens into a fixed number of buckets and
    L2-normalises the counts. Texts sharing vocabulary get a high cosine
    similarity. Never makes network calls; used in offline mode and tests.
    """

    _TOKEN = re.compile(r"\w+", re.UNICODE)

    def __init__(self, dimension: int = DEFAULT_DIMENSION):
        if dimension < 1:
            raise ValueError("dimension must be >= 1")
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    def _bucket(self, token: str) -> int:
        digest = hashlib.sha256(token.encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "big") % self._dimension

    def _vectorize(self, text: str) -> list[float]:
        vector = np.zeros(self._dimension, dtype=np.float32)
        for token in self._TOKEN.findall(text.lower()):
            vector[self._bucket(token)] += 1.0

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.tolist()

    async def embed(self, text: str) -> list[float]:
        return self._vectorize(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self._vectorize(text) for text in texts]
