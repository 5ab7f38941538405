"""Vector store interfaces and concrete adapters."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from math import sqrt
from typing import Any, Protocol

from citerag.types import RetrievedCandidate, StoredRecord

logger = logging.getLogger(__name__)


class VectorStore(Protocol):
    """Minimal vector store contract: upsert by id, top-k similarity search."""

    async def upsert(self, records: list[StoredRecord]) -> None:
        """Insert or replace records keyed by `record.id`."""

    async def search(self, vector: list[float], top_k: int) -> list[RetrievedCandidate]:
        """Return up to `top_k` candidates ordered by descending similarity."""


@dataclass(slots=True)
class _StoredVector:
    content: str
    embedding: list[float]
    metadata: dict[str, Any]


class InMemoryVectorStore:
    """Exact cosine search over a dict; used for tests and local prototyping."""

    def __init__(self) -> None:
        self._store: dict[str, _StoredVector] = {}

    def __len__(self) -> int:
        return len(self._store)

    async def upsert(self, records: list[StoredRecord]) -> None:
        for record in records:
            self._store[record.id] = _StoredVector(
                content=record.content,
                embedding=list(record.vector),
                metadata=dict(record.metadata),
            )

    async def search(self, vector: list[float], top_k: int) -> list[RetrievedCandidate]:
        ranked = sorted(
            (
                RetrievedCandidate(
                    chunk_id=chunk_id,
                    content=stored.content,
                    metadata=dict(stored.metadata),
                    similarity=_cosine_similarity(vector, stored.embedding),
                )
                for chunk_id, stored in self._store.items()
            ),
            key=lambda item: item.similarity,
            reverse=True,
        )
        return ranked[:top_k]


class ChromaVectorStore:
    """ChromaDB adapter using a cosine-space collection.

    Chroma reports cosine distance; similarity is returned as `1 - distance`
    so callers see the same ordering contract as `InMemoryVectorStore`.
    """

    def __init__(self, path: str, collection_name: str = "documents") -> None:
        try:
            import chromadb
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "ChromaDB is not available. Install the `chroma` extra."
            ) from exc

        self._client = chromadb.PersistentClient(
            path=path,
            settings=chromadb.Settings(anonymized_telemetry=False),
        )
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    async def upsert(self, records: list[StoredRecord]) -> None:
        if not records:
            return
        await asyncio.to_thread(
            self._collection.upsert,
            ids=[record.id for record in records],
            embeddings=[record.vector for record in records],
            documents=[record.content for record in records],
            metadatas=[record.metadata for record in records],
        )
        logger.debug("Upserted %d records into %s", len(records), self._collection.name)

    async def search(self, vector: list[float], top_k: int) -> list[RetrievedCandidate]:
        results = await asyncio.to_thread(
            self._collection.query,
            query_embeddings=[vector],
            n_results=top_k,
            include=["documents", "metadatas", "distances"],
        )
        ids = (results.get("ids") or [[]])[0]
        documents = (results.get("documents") or [[]])[0]
        metadatas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        return [
            RetrievedCandidate(
                chunk_id=str(chunk_id),
                content=str(document or ""),
                metadata=dict(metadata or {}),
                similarity=1.0 - float(distance),
            )
            for chunk_id, document, metadata, distance in zip(
                ids, documents, metadatas, distances, strict=True
            )
        ]


def _cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)
