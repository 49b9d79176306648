"""
Multi-Index Adapter

Owns the lifecycle of named vector indexes against the vector-index
service and delegates embedding generation to the embedding provider.

Index lifecycle per name:
    unknown -> creating -> waiting-ready -> ready (handle cached)
Any failure while creating or waiting returns the name to unknown, so
a later call retries cleanly.

Design decisions:
- One adapter instance is shared by every domain service (injected)
- Concurrent first use of an index name triggers exactly one
  create+poll sequence (single-flight map of in-progress tasks)
- Upserts are split into sequential batches of at most 100 vectors
- Query and delete calls carry no timeout of their own; the client's
  defaults apply
"""

import asyncio
import functools
import math
from typing import Any

from polyrag.config.settings import VectorIndexSettings
from polyrag.core.exceptions import EmbeddingError, IndexTimeoutError, VectorIndexError
from polyrag.core.interfaces import EmbeddingProvider, VectorIndexClient, VectorIndexHandle
from polyrag.core.types import IndexQueryOptions, QueryMatch, VectorRecord
from polyrag.observability.logging import get_logger

logger = get_logger(__name__)

MAX_UPSERT_BATCH = 100


class MultiIndexAdapter:
    """
    Adapter giving each retrieval domain its own named index.

    Usage:
        adapter = MultiIndexAdapter(client, embeddings)
        await adapter.upsert_vectors("nup-chat-context", vectors)
        matches = await adapter.query(IndexQueryOptions(...))
    """

    def __init__(
        self,
        client: VectorIndexClient,
        embeddings: EmbeddingProvider,
        settings: VectorIndexSettings | None = None,
    ):
        settings = settings or VectorIndexSettings()

        self._client = client
        self._embeddings = embeddings

        self._metric = settings.metric
        self._cloud = settings.cloud
        self._region = settings.region
        self._batch_size = min(settings.upsert_batch_size, MAX_UPSERT_BATCH)
        self._poll_interval = settings.ready_poll_interval
        self._ready_timeout = settings.ready_timeout

        self._indexes: dict[str, VectorIndexHandle] = {}
        self._initializing: dict[str, asyncio.Task[None]] = {}

    @property
    def dimension(self) -> int:
        """Embedding dimension, used as the default index dimension."""
        return self._embeddings.dimension

    # =========================================================================
    # Index lifecycle
    # =========================================================================

    async def ensure_index(self, index_name: str, dimension: int | None = None) -> None:
        """
        Make sure ``index_name`` exists, is ready and has a cached handle.

        Concurrent callers for the same unseen name share one
        initialization; a caller being cancelled does not cancel it.

        Raises:
            IndexTimeoutError: Index never became ready
            Exception: Any failure of the vector-index service, unmodified
        """
        if index_name in self._indexes:
            return

        task = self._initializing.get(index_name)
        if task is None:
            task = asyncio.create_task(
                self._initialize_index(index_name, dimension or self.dimension),
                name=f"ensure-index:{index_name}",
            )
            self._initializing[index_name] = task
            task.add_done_callback(functools.partial(self._initialization_done, index_name))

        await asyncio.shield(task)

    def _initialization_done(self, index_name: str, task: asyncio.Task[None]) -> None:
        if self._initializing.get(index_name) is task:
            del self._initializing[index_name]
        # Consume the outcome so an initialization whose waiters were all
        # cancelled does not warn about an unretrieved exception
        if not task.cancelled():
            task.exception()

    async def _initialize_index(self, index_name: str, dimension: int) -> None:
        with logger.context(index_name=index_name):
            try:
                logger.info(f"Checking vector index: {index_name}")
                existing = await self._client.list_indexes()

                if index_name not in existing:
                    logger.info(
                        f"Creating vector index: {index_name}",
                        dimension=dimension,
                        metric=self._metric,
                        cloud=self._cloud,
                        region=self._region,
                    )
                    await self._client.create_index(
                        name=index_name,
                        dimension=dimension,
                        metric=self._metric,
                        cloud=self._cloud,
                        region=self._region,
                    )
                    await self._wait_for_index_ready(index_name)

                self._indexes[index_name] = self._client.index(index_name)
                logger.info(f"Connected to vector index: {index_name}")
            except Exception as e:
                logger.error(f"Failed to initialize index {index_name}", error=e)
                raise

    async def _wait_for_index_ready(self, index_name: str) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()

        while loop.time() - started < self._ready_timeout:
            try:
                description = await self._client.describe_index(index_name)
            except Exception as e:
                logger.warning(f"Index {index_name} not available yet, waiting", reason=str(e))
            else:
                if description.ready:
                    logger.info(f"Index {index_name} is ready")
                    return
                logger.info(
                    f"Waiting for index {index_name} to become ready",
                    elapsed_seconds=round(loop.time() - started, 1),
                )

            await asyncio.sleep(self._poll_interval)

        waited = loop.time() - started
        raise IndexTimeoutError(
            f"Timed out waiting for index {index_name} to become ready",
            index_name=index_name,
            waited_seconds=waited,
            context={"index_name": index_name, "timeout_seconds": self._ready_timeout},
        )

    async def _handle(self, index_name: str) -> VectorIndexHandle:
        await self.ensure_index(index_name)
        return self._indexes[index_name]

    def list_connected_indexes(self) -> list[str]:
        """Names of indexes with a cached handle."""
        return list(self._indexes)

    # =========================================================================
    # Data plane
    # =========================================================================

    async def upsert_vectors(self, index_name: str, vectors: list[VectorRecord]) -> None:
        """Upsert vectors in sequential batches of at most 100."""
        if not vectors:
            return

        index = await self._handle(index_name)
        total_batches = math.ceil(len(vectors) / self._batch_size)

        for batch_number, start in enumerate(range(0, len(vectors), self._batch_size), start=1):
            batch = vectors[start : start + self._batch_size]
            await index.upsert(batch)
            logger.info(
                f"Batch {batch_number}/{total_batches} sent to {index_name}",
                index_name=index_name,
                batch_size=len(batch),
            )

        logger.info(f"{len(vectors)} vectors indexed in {index_name}", index_name=index_name)

    async def query(self, options: IndexQueryOptions) -> list[QueryMatch]:
        """
        Similarity search on one index.

        The filter must contain ``user_id``. Matches are returned raw;
        threshold filtering is the caller's job.
        """
        if not options.filter.get("user_id"):
            raise VectorIndexError(
                "Index queries must be filtered by user_id",
                context={"index_name": options.index_name},
            )

        index = await self._handle(options.index_name)
        return await index.query(
            vector=options.vector,
            top_k=options.top_k,
            filter=options.filter,
            include_metadata=options.include_metadata,
        )

    async def delete_by_filter(self, index_name: str, filter: dict[str, Any]) -> None:
        """Delete every vector matching a metadata filter."""
        if not filter:
            raise VectorIndexError(
                "Refusing to delete with an empty filter",
                context={"index_name": index_name},
            )

        index = await self._handle(index_name)
        await index.delete(filter=filter)
        logger.info(f"Vectors deleted from {index_name}", index_name=index_name, filter=filter)

    async def delete_by_ids(self, index_name: str, ids: list[str]) -> None:
        """Delete vectors by id."""
        if not ids:
            return

        index = await self._handle(index_name)
        await index.delete(ids=ids)
        logger.info(f"{len(ids)} vectors deleted from {index_name}", index_name=index_name)

    async def get_index_stats(self, index_name: str) -> dict[str, Any]:
        """Statistics of one index."""
        index = await self._handle(index_name)
        return await index.describe_index_stats()

    # =========================================================================
    # Embeddings
    # =========================================================================

    async def generate_embedding(self, text: str) -> list[float]:
        """Embed one text with the shared provider."""
        try:
            return await self._embeddings.embed(text)
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(
                f"Embedding generation failed: {e}",
                context={"operation": "embed"},
                cause=e,
            ) from e

    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts with the shared provider."""
        try:
            return await self._embeddings.embed_batch(texts)
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(
                f"Batch embedding generation failed: {e}",
                context={"operation": "embed_batch", "batch_size": len(texts)},
                cause=e,
            ) from e
