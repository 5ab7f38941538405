"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True, frozen=True)
class Chunk:
    """A positioned slice of a normalized source document."""

    chunk_id: str
    text: str
    source: str
    title: str
    start_index: int
    end_index: int
    chunk_index: int

    def metadata(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "title": self.title,
            "start_index": self.start_index,
            "end_index": self.end_index,
            "chunk_index": self.chunk_index,
        }


@dataclass(slots=True)
class StoredRecord:
    """A chunk with its embedding, as handed to the vector store."""

    id: str
    content: str
    vector: list[float]
    metadata: dict[str, Any]


@dataclass(slots=True)
class RetrievedCandidate:
    """A vector search hit with its similarity score."""

    chunk_id: str
    content: str
    metadata: dict[str, Any]
    similarity: float

    @property
    def source(self) -> str:
        return str(self.metadata.get("source", "unknown"))

    @property
    def title(self) -> str:
        return str(self.metadata.get("title", "Untitled Document"))


@dataclass(slots=True)
class RerankHit:
    """Reranker output: position in the submitted documents plus relevance."""

    index: int
    relevance_score: float


@dataclass(slots=True)
class RankedResult:
    """A candidate after reranking; `rank` is its 1-based citation index."""

    candidate: RetrievedCandidate
    relevance_score: float
    rank: int


@dataclass(slots=True)
class Citation:
    index: int
    source: str
    title: str
    snippet: str


@dataclass(slots=True)
class GenerationOutcome:
    """Answer text plus the citations it actually references."""

    answer: str
    citations: list[Citation]
    tokens_used: int
    no_answer: bool
    model_used: str | None = None
    output_tokens: int = 0


@dataclass(slots=True)
class QueryMetrics:
    retrieved_count: int = 0
    reranked_count: int = 0
    tokens_used: int = 0
    embed_time_ms: float = 0.0
    search_time_ms: float = 0.0
    retrieve_time_ms: float = 0.0
    rerank_time_ms: float = 0.0
    generate_time_ms: float = 0.0
    total_time_ms: float = 0.0
    estimated_cost: float = 0.0


@dataclass(slots=True)
class QueryResult:
    """Structured outcome of one query call, success or failure."""

    success: bool
    answer: str = ""
    citations: list[Citation] = field(default_factory=list)
    sources: list[RankedResult] = field(default_factory=list)
    metrics: QueryMetrics = field(default_factory=QueryMetrics)
    no_answer: bool = True
    model_used: str | None = None
    error: str | None = None
    error_kind: str | None = None


@dataclass(slots=True)
class IngestResult:
    """Structured outcome of one ingestion call, success or failure."""

    success: bool
    chunks_created: int = 0
    chunk_ids: list[str] = field(default_factory=list)
    time_ms: float = 0.0
    error: str | None = None
    error_kind: str | None = None
