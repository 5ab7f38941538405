"""Query and ingestion orchestration over the injected collaborators."""

from __future__ import annotations

import logging
import time

from citerag.config import AppConfig, RetrievalConfig
from citerag.errors import CiteRagError, InputValidationError
from citerag.generation.backend import GenerationBackend, LangChainChatBackend
from citerag.generation.extractive import ExtractiveBackend
from citerag.generation.generator import CitedAnswerGenerator
from citerag.ingest.chunker import SentenceWindowChunker
from citerag.ingest.embedder import Embedder, HashingEmbedder, LangChainEmbedder
from citerag.ingest.pipeline import IngestPipeline
from citerag.obs.tracing import CostModel, Timer
from citerag.retrieval.reranker import CrossEncoderReranker, KeywordOverlapReranker, Reranker
from citerag.retrieval.vector_store import ChromaVectorStore, InMemoryVectorStore, VectorStore
from citerag.types import (
    IngestResult,
    QueryMetrics,
    QueryResult,
    RankedResult,
    RetrievedCandidate,
    RerankHit,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Document"


class RagPipeline:
    """Runs embed -> search -> rerank -> generate, or chunk -> embed -> store.

    Stages run strictly in sequence. Every query-scoped value lives in local
    variables of one call, so concurrent calls share nothing but the
    collaborators. Failures never escape as exceptions: callers always get a
    `QueryResult` / `IngestResult`, with `error_kind` telling validation
    failures from backend failures.
    """

    def __init__(
        self,
        *,
        embedder: Embedder,
        vector_store: VectorStore,
        reranker: Reranker,
        generator: CitedAnswerGenerator,
        ingest_pipeline: IngestPipeline,
        retrieval: RetrievalConfig | None = None,
        cost_model: CostModel | None = None,
    ) -> None:
        self.embedder = embedder
        self.vector_store = vector_store
        self.reranker = reranker
        self.generator = generator
        self.ingest_pipeline = ingest_pipeline
        self.retrieval = retrieval or RetrievalConfig()
        self.cost_model = cost_model or CostModel()

    async def query(
        self,
        query: str,
        *,
        top_k: int | None = None,
        top_n: int | None = None,
    ) -> QueryResult:
        started = time.perf_counter()
        metrics = QueryMetrics()
        try:
            query, top_k, top_n = self._validate_query(query, top_k, top_n)

            async with Timer("embed") as t_embed:
                vector = await self.embedder.embed_query(query)
            metrics.embed_time_ms = t_embed.elapsed_ms

            async with Timer("search") as t_search:
                candidates = await self.vector_store.search(vector, top_k)
            metrics.search_time_ms = t_search.elapsed_ms
            metrics.retrieve_time_ms = t_embed.elapsed_ms + t_search.elapsed_ms
            metrics.retrieved_count = len(candidates)

            async with Timer("rerank") as t_rerank:
                ranked = await self._rerank(query, candidates, top_n)
            metrics.rerank_time_ms = t_rerank.elapsed_ms
            metrics.reranked_count = len(ranked)

            async with Timer("generate") as t_generate:
                outcome = await self.generator.generate(query, ranked)
            metrics.generate_time_ms = t_generate.elapsed_ms
        except Exception as exc:
            metrics.total_time_ms = _elapsed_ms(started)
            kind = exc.kind if isinstance(exc, CiteRagError) else "backend"
            if kind == "validation":
                logger.info("Query rejected: %s", exc)
            else:
                logger.exception("Query pipeline failed after %.1fms", metrics.total_time_ms)
            return QueryResult(success=False, metrics=metrics, error=str(exc), error_kind=kind)

        metrics.tokens_used = outcome.tokens_used
        metrics.total_time_ms = _elapsed_ms(started)
        metrics.estimated_cost = self.cost_model.estimate_cost(
            max(outcome.tokens_used - outcome.output_tokens, 0), outcome.output_tokens
        )
        logger.info(
            "Query answered in %.1fms (retrieved=%d reranked=%d model=%s)",
            metrics.total_time_ms,
            metrics.retrieved_count,
            metrics.reranked_count,
            outcome.model_used,
        )
        return QueryResult(
            success=True,
            answer=outcome.answer,
            citations=outcome.citations,
            sources=ranked,
            metrics=metrics,
            no_answer=outcome.no_answer,
            model_used=outcome.model_used,
        )

    async def ingest(
        self,
        text: str,
        *,
        source: str | None = None,
        title: str | None = None,
    ) -> IngestResult:
        started = time.perf_counter()
        try:
            if not text or not text.strip():
                raise InputValidationError("Text is required")
            source = source or f"doc-{int(time.time() * 1000)}"
            title = title or DEFAULT_TITLE
            chunks = await self.ingest_pipeline.ingest_text(text, source=source, title=title)
        except Exception as exc:
            elapsed = _elapsed_ms(started)
            kind = exc.kind if isinstance(exc, CiteRagError) else "backend"
            if kind == "validation":
                logger.info("Ingest rejected: %s", exc)
            else:
                logger.exception("Ingest failed after %.1fms", elapsed)
            return IngestResult(success=False, time_ms=elapsed, error=str(exc), error_kind=kind)

        return IngestResult(
            success=True,
            chunks_created=len(chunks),
            chunk_ids=[chunk.chunk_id for chunk in chunks],
            time_ms=_elapsed_ms(started),
        )

    def _validate_query(
        self, query: str, top_k: int | None, top_n: int | None
    ) -> tuple[str, int, int]:
        if not query or not query.strip():
            raise InputValidationError("Query is required")
        top_k = self.retrieval.top_k if top_k is None else top_k
        top_n = self.retrieval.top_n if top_n is None else top_n
        if top_k < 1 or top_n < 1:
            raise InputValidationError("top_k and top_n must be positive")
        return query.strip(), top_k, min(top_n, top_k)

    async def _rerank(
        self, query: str, candidates: list[RetrievedCandidate], top_n: int
    ) -> list[RankedResult]:
        if not candidates:
            return []
        hits = await self.reranker.rerank(
            query, [candidate.content for candidate in candidates], top_n
        )
        return _to_ranked(candidates, hits, top_n)


def _to_ranked(
    candidates: list[RetrievedCandidate], hits: list[RerankHit], top_n: int
) -> list[RankedResult]:
    valid = [hit for hit in hits if 0 <= hit.index < len(candidates)]
    return [
        RankedResult(candidate=candidates[hit.index], relevance_score=hit.relevance_score, rank=rank)
        for rank, hit in enumerate(valid[:top_n], start=1)
    ]


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0


def build_pipeline(config: AppConfig | None = None) -> RagPipeline:
    """Construct every collaborator once from `config` and wire the pipeline.

    Without an OpenAI API key the pipeline runs offline: hashing embeddings,
    lexical reranking and the extractive backend.
    """
    config = config or AppConfig()

    embedder: Embedder
    backend: GenerationBackend
    if config.offline:
        embedder = HashingEmbedder()
        backend = ExtractiveBackend()
    else:
        embedder = LangChainEmbedder.openai(config.embedding_model, config.openai_api_key)
        backend = LangChainChatBackend.openai(
            api_key=config.openai_api_key,
            temperature=config.generation.temperature,
            max_tokens=config.generation.max_output_tokens,
        )

    vector_store: VectorStore
    if config.chroma_path:
        vector_store = ChromaVectorStore(config.chroma_path, config.chroma_collection)
    else:
        vector_store = InMemoryVectorStore()

    reranker: Reranker
    if config.reranker_model:
        reranker = CrossEncoderReranker(config.reranker_model)
    else:
        reranker = KeywordOverlapReranker()

    ingest_pipeline = IngestPipeline(
        SentenceWindowChunker(config.chunking), embedder, vector_store, config.ingest
    )
    logger.info(
        "Pipeline built (offline=%s, store=%s, reranker=%s)",
        config.offline,
        type(vector_store).__name__,
        type(reranker).__name__,
    )
    return RagPipeline(
        embedder=embedder,
        vector_store=vector_store,
        reranker=reranker,
        generator=CitedAnswerGenerator(backend, config.generation),
        ingest_pipeline=ingest_pipeline,
        retrieval=config.retrieval,
    )
