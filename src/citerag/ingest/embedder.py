"""Embedding abstractions, a deterministic baseline and a LangChain adapter."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from hashlib import blake2b
from math import sqrt
from typing import Any

from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


class Embedder(ABC):
    """Embedder interface used by ingestion and query-time retrieval."""

    @abstractmethod
    async def embed_query(self, text: str) -> list[float]:
        """Embed one query."""

    @abstractmethod
    async def embed_document(self, text: str) -> list[float]:
        """Embed one document passage."""

    async def embed_documents(
        self, texts: list[str], *, batch_size: int = 10
    ) -> list[list[float]]:
        """Embed many passages, preserving input order.

        Members of one batch are requested concurrently; batches run one after
        another. The first failing member fails the whole call and cancels the
        rest of its batch.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        vectors: list[list[float]] = []
        for offset in range(0, len(texts), batch_size):
            batch = texts[offset : offset + batch_size]
            vectors.extend(await self._embed_batch(batch))
            logger.debug("Embedded batch %d-%d", offset, offset + len(batch))
        return vectors

    async def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        tasks = [asyncio.ensure_future(self.embed_document(text)) for text in batch]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            raise


class HashingEmbedder(Embedder):
    """Deterministic sparse-like embedding without external model calls.

    Used for offline runs and tests. Configure an API key to switch to a
    provider-backed embedder.
    """

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension

    async def embed_query(self, text: str) -> list[float]:
        return self._embed(text)

    async def embed_document(self, text: str) -> list[float]:
        return self._embed(text)

    def _embed(self, text: str) -> list[float]:
        vector = [0.0 for _ in range(self.dimension)]
        tokens = text.lower().split()
        if not tokens:
            return vector

        for token in tokens:
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            idx = int.from_bytes(digest[:4], "little") % self.dimension
            sign = -1.0 if digest[4] % 2 else 1.0
            vector[idx] += sign

        norm = sqrt(sum(value * value for value in vector))
        if norm == 0:
            return vector
        return [value / norm for value in vector]


class LangChainEmbedder(Embedder):
    """Adapter over any `langchain_core` embeddings implementation."""

    def __init__(self, embeddings: Embeddings) -> None:
        self._embeddings = embeddings

    @classmethod
    def openai(cls, model: str, api_key: str | None = None) -> "LangChainEmbedder":
        from langchain_openai import OpenAIEmbeddings

        kwargs: dict[str, Any] = {"model": model}
        if api_key:
            kwargs["api_key"] = api_key
        return cls(OpenAIEmbeddings(**kwargs))

    async def embed_query(self, text: str) -> list[float]:
        return list(await self._embeddings.aembed_query(text))

    async def embed_document(self, text: str) -> list[float]:
        vectors = await self._embeddings.aembed_documents([text])
        return list(vectors[0])
