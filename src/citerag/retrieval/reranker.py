"""Rerankers that reorder search candidates by query relevance."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from citerag.types import RerankHit

logger = logging.getLogger(__name__)


class Reranker(ABC):
    """Reranker interface used between vector search and generation."""

    @abstractmethod
    async def rerank(self, query: str, documents: list[str], top_n: int) -> list[RerankHit]:
        """Return at most `top_n` hits ordered by descending relevance.

        `RerankHit.index` points into `documents`.
        """


class KeywordOverlapReranker(Reranker):
    """Lightweight reranker using query-document lexical overlap."""

    async def rerank(self, query: str, documents: list[str], top_n: int) -> list[RerankHit]:
        if not documents:
            return []
        query_terms = set(query.lower().split())
        hits: list[RerankHit] = []
        for index, document in enumerate(documents):
            doc_terms = set(document.lower().split())
            overlap = len(query_terms & doc_terms) / max(1, len(query_terms))
            hits.append(RerankHit(index=index, relevance_score=overlap))
        # sorted() is stable, so ties keep the vector-search order.
        hits = sorted(hits, key=lambda hit: hit.relevance_score, reverse=True)
        return hits[:top_n]


class CrossEncoderReranker(Reranker):
    """Cross-encoder relevance scoring via sentence-transformers.

    Slower than lexical overlap because every query-document pair runs
    through the model, but considerably more accurate.
    """

    DEFAULT_MODEL = "cross-encoder/ms-marco-MiniLM-L-6-v2"

    def __init__(self, model_name: str | None = None, device: str = "cpu") -> None:
        try:
            from sentence_transformers import CrossEncoder
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "sentence-transformers is not available. Install the `rerank` extra."
            ) from exc

        self.model_name = model_name or self.DEFAULT_MODEL
        self._model = CrossEncoder(self.model_name, device=device)
        logger.info("CrossEncoder initialized: %s", self.model_name)

    async def rerank(self, query: str, documents: list[str], top_n: int) -> list[RerankHit]:
        if not documents:
            return []
        pairs = [(query, document) for document in documents]
        scores = await asyncio.to_thread(self._model.predict, pairs)
        hits = [
            RerankHit(index=index, relevance_score=float(score))
            for index, score in enumerate(scores)
        ]
        hits.sort(key=lambda hit: hit.relevance_score, reverse=True)
        return hits[:top_n]
