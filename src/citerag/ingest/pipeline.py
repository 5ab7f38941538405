"""Ingest pipeline: chunk -> embed (batched) -> upsert."""

from __future__ import annotations

import logging

from citerag.config import IngestConfig
from citerag.ingest.chunker import SentenceWindowChunker
from citerag.ingest.embedder import Embedder
from citerag.retrieval.vector_store import VectorStore
from citerag.types import Chunk, StoredRecord

logger = logging.getLogger(__name__)


class IngestPipeline:
    """Coordinates chunker, embedder and vector store stages.

    Chunk ids are deterministic, so ingesting the same text under the same
    source again replaces the stored chunks instead of duplicating them.
    """

    def __init__(
        self,
        chunker: SentenceWindowChunker,
        embedder: Embedder,
        vector_store: VectorStore,
        config: IngestConfig | None = None,
    ) -> None:
        self._chunker = chunker
        self._embedder = embedder
        self._vector_store = vector_store
        self.config = config or IngestConfig()

    async def ingest_text(self, text: str, *, source: str, title: str) -> list[Chunk]:
        """Ingest one document's raw text and return the created chunks."""

        chunks = self._chunker.chunk(text, source, title)
        if not chunks:
            logger.info("No chunks produced for source %s", source)
            return []

        embeddings = await self._embedder.embed_documents(
            [chunk.text for chunk in chunks],
            batch_size=self.config.embed_batch_size,
        )
        if len(embeddings) != len(chunks):
            raise ValueError("chunks and embeddings must have the same length")

        await self._vector_store.upsert(
            [
                StoredRecord(
                    id=chunk.chunk_id,
                    content=chunk.text,
                    vector=embedding,
                    metadata=chunk.metadata(),
                )
                for chunk, embedding in zip(chunks, embeddings, strict=True)
            ]
        )
        logger.info("Ingested %d chunks for source %s", len(chunks), source)
        return chunks
