import pytest

from citerag.config import AppConfig, GenerationConfig, RetrievalConfig
from citerag.errors import FatalBackendError
from citerag.generation.backend import GenerationBackend
from citerag.generation.generator import NO_CONTEXT_ANSWER, CitedAnswerGenerator
from citerag.ingest.chunker import SentenceWindowChunker
from citerag.ingest.embedder import HashingEmbedder
from citerag.ingest.pipeline import IngestPipeline
from citerag.obs.tracing import CostModel
from citerag.pipeline import RagPipeline, build_pipeline
from citerag.retrieval.reranker import KeywordOverlapReranker, Reranker
from citerag.retrieval.vector_store import InMemoryVectorStore
from citerag.types import RerankHit

CATS = "Why do cats purr? Cats purr when they feel content and safe."
DOGS = "Dogs bark to communicate with their owners and other animals."


class CannedBackend(GenerationBackend):
    def __init__(self, answer: str | Exception) -> None:
        self.answer = answer
        self.calls = 0

    async def generate(self, model_id: str, prompt: str) -> str:
        self.calls += 1
        if isinstance(self.answer, Exception):
            raise self.answer
        return self.answer


class CountingEmbedder(HashingEmbedder):
    def __init__(self) -> None:
        super().__init__()
        self.query_calls = 0

    async def embed_query(self, text: str) -> list[float]:
        self.query_calls += 1
        return await super().embed_query(text)


class SpyReranker(KeywordOverlapReranker):
    def __init__(self) -> None:
        self.calls = 0

    async def rerank(self, query: str, documents: list[str], top_n: int) -> list[RerankHit]:
        self.calls += 1
        return await super().rerank(query, documents, top_n)


class OutOfRangeReranker(Reranker):
    async def rerank(self, query: str, documents: list[str], top_n: int) -> list[RerankHit]:
        return [RerankHit(index=len(documents) + 3, relevance_score=0.99), RerankHit(0, 0.5)]


def _pipeline(
    backend: GenerationBackend,
    *,
    reranker: Reranker | None = None,
    embedder: HashingEmbedder | None = None,
    cost_model: CostModel | None = None,
) -> RagPipeline:
    embedder = embedder or HashingEmbedder()
    store = InMemoryVectorStore()
    return RagPipeline(
        embedder=embedder,
        vector_store=store,
        reranker=reranker or KeywordOverlapReranker(),
        generator=CitedAnswerGenerator(backend, GenerationConfig(models=["m1", "m2"])),
        ingest_pipeline=IngestPipeline(SentenceWindowChunker(), embedder, store),
        retrieval=RetrievalConfig(),
        cost_model=cost_model,
    )


@pytest.mark.asyncio
async def test_two_document_query_resolves_both_citations() -> None:
    backend = CannedBackend("Cats purr when content [1] and dogs bark [2].")
    pipeline = _pipeline(backend)
    await pipeline.ingest(CATS, source="cats-doc", title="Cats")
    await pipeline.ingest(DOGS, source="dogs-doc", title="Dogs")

    result = await pipeline.query("Why do cats purr?")

    assert result.success is True
    assert [c.index for c in result.citations] == [1, 2]
    assert [(c.source, c.title) for c in result.citations] == [
        ("cats-doc", "Cats"),
        ("dogs-doc", "Dogs"),
    ]
    assert result.citations[0].snippet == CATS
    assert [s.rank for s in result.sources] == [1, 2]
    assert result.model_used == "m1"
    assert result.no_answer is False
    assert result.metrics.retrieved_count == 2
    assert result.metrics.reranked_count == 2
    assert result.metrics.tokens_used > 0
    assert result.metrics.estimated_cost == 0.0
    assert result.metrics.total_time_ms >= result.metrics.generate_time_ms


@pytest.mark.asyncio
async def test_ingest_2500_chars_creates_three_overlapping_chunks() -> None:
    pipeline = _pipeline(CannedBackend("unused"))
    text = ("lorem " * 500)[:2500]

    result = await pipeline.ingest(text, source="lorem", title="Lorem")

    assert result.success is True
    assert result.chunks_created == 3
    assert result.chunk_ids == ["lorem-0", "lorem-1", "lorem-2"]
    assert len(pipeline.vector_store) == 3


@pytest.mark.asyncio
async def test_reingesting_same_source_replaces_chunks() -> None:
    pipeline = _pipeline(CannedBackend("unused"))
    text = ("ipsum " * 500)[:2500]

    first = await pipeline.ingest(text, source="doc", title="Doc")
    second = await pipeline.ingest(text, source="doc", title="Doc")

    assert first.chunk_ids == second.chunk_ids
    assert len(pipeline.vector_store) == 3


@pytest.mark.asyncio
async def test_blank_inputs_are_validation_failures_before_any_stage() -> None:
    embedder = CountingEmbedder()
    pipeline = _pipeline(CannedBackend("unused"), embedder=embedder)

    query_result = await pipeline.query("   ")
    ingest_result = await pipeline.ingest("\n\t ")

    assert query_result.success is False
    assert query_result.error_kind == "validation"
    assert query_result.error == "Query is required"
    assert ingest_result.success is False
    assert ingest_result.error_kind == "validation"
    assert embedder.query_calls == 0
    assert len(pipeline.vector_store) == 0


@pytest.mark.asyncio
async def test_invalid_top_k_is_rejected() -> None:
    pipeline = _pipeline(CannedBackend("unused"))

    result = await pipeline.query("question", top_k=0)

    assert result.success is False
    assert result.error_kind == "validation"


@pytest.mark.asyncio
async def test_empty_corpus_returns_no_answer_without_reranking_or_generation() -> None:
    backend = CannedBackend("unused")
    reranker = SpyReranker()
    pipeline = _pipeline(backend, reranker=reranker)

    result = await pipeline.query("Anything indexed?")

    assert result.success is True
    assert result.no_answer is True
    assert result.answer == NO_CONTEXT_ANSWER
    assert result.citations == []
    assert result.metrics.tokens_used == 0
    assert reranker.calls == 0
    assert backend.calls == 0


@pytest.mark.asyncio
async def test_backend_failure_becomes_structured_failure() -> None:
    backend = CannedBackend(FatalBackendError("m1: invalid api key"))
    pipeline = _pipeline(backend)
    await pipeline.ingest(CATS, source="cats-doc", title="Cats")

    result = await pipeline.query("Why do cats purr?")

    assert result.success is False
    assert result.error_kind == "backend"
    assert "invalid api key" in (result.error or "")
    assert result.answer == ""
    assert result.citations == []
    assert result.metrics.total_time_ms > 0.0
    assert backend.calls == 1


@pytest.mark.asyncio
async def test_top_n_is_clamped_to_top_k() -> None:
    pipeline = _pipeline(CannedBackend("See [1] and [2]."))
    await pipeline.ingest(CATS, source="cats-doc", title="Cats")
    await pipeline.ingest(DOGS, source="dogs-doc", title="Dogs")

    result = await pipeline.query("Why do cats purr?", top_k=1, top_n=5)

    assert result.metrics.retrieved_count == 1
    assert result.metrics.reranked_count == 1
    assert [c.index for c in result.citations] == [1]


@pytest.mark.asyncio
async def test_out_of_range_rerank_hits_are_dropped() -> None:
    pipeline = _pipeline(CannedBackend("Only [1]."), reranker=OutOfRangeReranker())
    await pipeline.ingest(CATS, source="cats-doc", title="Cats")

    result = await pipeline.query("cats")

    assert result.success is True
    assert [s.rank for s in result.sources] == [1]
    assert result.sources[0].candidate.chunk_id == "cats-doc-0"


@pytest.mark.asyncio
async def test_offline_pipeline_answers_with_extractive_citations() -> None:
    pipeline = build_pipeline(AppConfig())
    await pipeline.ingest(
        "Company policy states employees must encrypt customer data at rest. "
        "Access reviews happen quarterly.",
        source="policy",
        title="Security Policy",
    )

    result = await pipeline.query("What does policy require for customer data?")

    assert result.success is True
    assert result.model_used == AppConfig().generation.models[0]
    assert [c.index for c in result.citations] == [1]
    assert result.citations[0].title == "Security Policy"
    assert "encrypt customer data" in result.answer


@pytest.mark.asyncio
async def test_cost_prices_prompt_and_answer_tokens_separately() -> None:
    pipeline = _pipeline(
        CannedBackend("Only [1]."),
        cost_model=CostModel(input_per_1k=1.0, output_per_1k=2.0),
    )
    await pipeline.ingest(CATS, source="cats-doc", title="Cats")

    result = await pipeline.query("cats")

    output_tokens = 3  # ceil(len("Only [1].") / 4)
    input_tokens = result.metrics.tokens_used - output_tokens
    assert input_tokens > 0
    assert result.metrics.estimated_cost == pytest.approx(
        input_tokens / 1000.0 + output_tokens * 2.0 / 1000.0
    )
