"""
Vector Index Clients

Implementations of the vector-index service contract
(list/create/describe indexes, upsert/query/delete vectors, stats).

Design decisions:
- Abstract contract lives in core.interfaces for backend independence
- In-memory backend for development, offline mode and tests
- Pinecone backend as an optional extra; its SDK is blocking, so
  calls run in a worker thread to keep the event loop free
- Metadata filters follow the Pinecone filter language
"""

import asyncio
import operator
from typing import Any, Callable

import numpy as np

from polyrag.core.exceptions import VectorIndexError
from polyrag.core.types import IndexDescription, QueryMatch, VectorRecord


# =============================================================================
# METADATA FILTERS
# =============================================================================

def _compare(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def check(value: Any, operand: Any) -> bool:
        if value is None:
            return False
        try:
            return op(value, operand)
        except TypeError:
            return False

    return check


def _equals(value: Any, operand: Any) -> bool:
    if isinstance(value, list):
        return operand in value
    return value == operand


def _in(value: Any, operand: list[Any]) -> bool:
    if isinstance(value, list):
        return any(v in operand for v in value)
    return value in operand


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$eq": _equals,
    "$ne": lambda value, operand: not _equals(value, operand),
    "$lt": _compare(operator.lt),
    "$lte": _compare(operator.le),
    "$gt": _compare(operator.gt),
    "$gte": _compare(operator.ge),
    "$in": _in,
    "$nin": lambda value, operand: not _in(value, operand),
}


def matches_filter(metadata: dict[str, Any], filter: dict[str, Any] | None) -> bool:
    """Evaluate a Pinecone-style metadata filter against one record."""
    if not filter:
        return True

    for key, condition in filter.items():
        if key == "$and":
            if not all(matches_filter(metadata, sub) for sub in condition):
                return False
            continue
        if key == "$or":
            if not any(matches_filter(metadata, sub) for sub in condition):
                return False
            continue

        value = metadata.get(key)
        if isinstance(condition, dict):
            for op_name, operand in condition.items():
                check = _OPERATORS.get(op_name)
                if check is None:
                    raise VectorIndexError(
                        f"Unsupported filter operator: {op_name}",
                        context={"field": key},
                    )
                if not check(value, operand):
                    return False
        elif not _equals(value, condition):
            return False

    return True


# =============================================================================
# IN-MEMORY BACKEND
# =============================================================================

class InMemoryIndex:
    """
    Simple in-memory index.

    Uses brute-force cosine similarity. Not suitable for production.
    """

    def __init__(self, name: str, dimension: int, metric: str = "cosine"):
        self.name = name
        self.dimension = dimension
        self.metric = metric
        self._vectors: dict[str, np.ndarray] = {}
        self._metadata: dict[str, dict[str, Any]] = {}

    def __len__(self) -> int:
        return len(self._vectors)

    def _score(self, query: np.ndarray, vector: np.ndarray) -> float:
        if self.metric == "dotproduct":
            return float(np.dot(query, vector))
        if self.metric == "euclidean":
            return float(-np.linalg.norm(query - vector))

        norm = np.linalg.norm(query) * np.linalg.norm(vector)
        if norm == 0:
            return 0.0
        return float(np.dot(query, vector) / norm)

    async def upsert(self, vectors: list[VectorRecord]) -> None:
        for record in vectors:
            if len(record.values) != self.dimension:
                raise VectorIndexError(
                    f"Expected dimension {self.dimension}, got {len(record.values)}",
                    context={"index_name": self.name, "vector_id": record.id},
                )
            self._vectors[record.id] = np.asarray(record.values, dtype=np.float32)
            self._metadata[record.id] = dict(record.metadata)

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: dict[str, Any] | None = None,
        include_metadata: bool = True,
    ) -> list[QueryMatch]:
        query = np.asarray(vector, dtype=np.float32)

        scored = [
            (vector_id, self._score(query, stored))
            for vector_id, stored in self._vectors.items()
            if matches_filter(self._metadata[vector_id], filter)
        ]
        scored.sort(key=lambda item: item[1], reverse=True)

        return [
            QueryMatch(
                id=vector_id,
                score=score,
                metadata=dict(self._metadata[vector_id]) if include_metadata else {},
            )
            for vector_id, score in scored[:top_k]
        ]

    async def delete(
        self,
        ids: list[str] | None = None,
        filter: dict[str, Any] | None = None,
    ) -> None:
        if ids is None and filter is None:
            raise VectorIndexError("delete requires ids or a filter", context={"index_name": self.name})

        targets = set(ids or [])
        if filter is not None:
            targets.update(
                vector_id
                for vector_id, metadata in self._metadata.items()
                if matches_filter(metadata, filter)
            )

        for vector_id in targets:
            self._vectors.pop(vector_id, None)
            self._metadata.pop(vector_id, None)

    async def describe_index_stats(self) -> dict[str, Any]:
        return {
            "dimension": self.dimension,
            "total_vector_count": len(self._vectors),
            "namespaces": {"": {"vector_count": len(self._vectors)}},
        }


class InMemoryVectorIndexClient:
    """
    Process-local vector-index service.

    ``ready_after`` simulates creation latency: an index reports ready
    only after that many ``describe_index`` calls.
    """

    def __init__(self, ready_after: int = 0):
        self._indexes: dict[str, InMemoryIndex] = {}
        self._describe_calls: dict[str, int] = {}
        self._ready_after = ready_after
        self.create_calls: list[str] = []

    async def list_indexes(self) -> list[str]:
        return list(self._indexes)

    async def create_index(
        self,
        name: str,
        dimension: int,
        metric: str = "cosine",
        cloud: str = "aws",
        region: str = "us-east-1",
    ) -> None:
        if name in self._indexes:
            raise VectorIndexError(f"Index already exists: {name}", context={"index_name": name})

        self.create_calls.append(name)
        self._indexes[name] = InMemoryIndex(name, dimension, metric)
        self._describe_calls[name] = 0

    async def describe_index(self, name: str) -> IndexDescription:
        index = self._indexes.get(name)
        if index is None:
            raise VectorIndexError(f"Index not found: {name}", context={"index_name": name})

        self._describe_calls[name] += 1
        return IndexDescription(
            name=name,
            dimension=index.dimension,
            ready=self._describe_calls[name] > self._ready_after,
            metric=index.metric,
        )

    def index(self, name: str) -> InMemoryIndex:
        index = self._indexes.get(name)
        if index is None:
            raise VectorIndexError(f"Index not found: {name}", context={"index_name": name})
        return index


# =============================================================================
# PINECONE BACKEND
# =============================================================================

class PineconeIndexHandle:
    """Async wrapper over a Pinecone data-plane index."""

    def __init__(self, index: Any, name: str):
        self._index = index
        self.name = name

    async def upsert(self, vectors: list[VectorRecord]) -> None:
        payload = [
            {"id": record.id, "values": record.values, "metadata": record.metadata}
            for record in vectors
        ]
        await asyncio.to_thread(self._index.upsert, vectors=payload)

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: dict[str, Any] | None = None,
        include_metadata: bool = True,
    ) -> list[QueryMatch]:
        response = await asyncio.to_thread(
            self._index.query,
            vector=vector,
            top_k=top_k,
            filter=filter or None,
            include_metadata=include_metadata,
        )
        return [
            QueryMatch(
                id=match.id,
                score=float(match.score),
                metadata=dict(match.metadata or {}),
            )
            for match in response.matches
        ]

    async def delete(
        self,
        ids: list[str] | None = None,
        filter: dict[str, Any] | None = None,
    ) -> None:
        if ids is not None:
            await asyncio.to_thread(self._index.delete, ids=ids)
        elif filter is not None:
            await asyncio.to_thread(self._index.delete, filter=filter)
        else:
            raise VectorIndexError("delete requires ids or a filter", context={"index_name": self.name})

    async def describe_index_stats(self) -> dict[str, Any]:
        stats = await asyncio.to_thread(self._index.describe_index_stats)
        return stats.to_dict() if hasattr(stats, "to_dict") else dict(stats)


class PineconeIndexClient:
    """
    Pinecone-based vector-index service.

    Serverless indexes; requires the ``pinecone`` extra.
    """

    def __init__(self, api_key: str):
        self._api_key = api_key
        self._client = None

    def _get_client(self):
        """Lazy initialization of the Pinecone client."""
        if self._client is None:
            try:
                from pinecone import Pinecone
            except ImportError as e:
                raise ImportError(
                    "pinecone required. Install with: pip install 'polyrag[pinecone]'"
                ) from e

            self._client = Pinecone(api_key=self._api_key)
        return self._client

    async def list_indexes(self) -> list[str]:
        indexes = await asyncio.to_thread(self._get_client().list_indexes)
        return list(indexes.names())

    async def create_index(
        self,
        name: str,
        dimension: int,
        metric: str = "cosine",
        cloud: str = "aws",
        region: str = "us-east-1",
    ) -> None:
        from pinecone import ServerlessSpec

        await asyncio.to_thread(
            self._get_client().create_index,
            name=name,
            dimension=dimension,
            metric=metric,
            spec=ServerlessSpec(cloud=cloud, region=region),
        )

    async def describe_index(self, name: str) -> IndexDescription:
        description = await asyncio.to_thread(self._get_client().describe_index, name)

        status = description.status
        if isinstance(status, dict):
            ready = bool(status.get("ready"))
        else:
            ready = bool(getattr(status, "ready", False))

        return IndexDescription(
            name=name,
            dimension=int(description.dimension),
            ready=ready,
            metric=str(description.metric),
        )

    def index(self, name: str) -> PineconeIndexHandle:
        return PineconeIndexHandle(self._get_client().Index(name), name)
