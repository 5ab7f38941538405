"""Configuration models for the cited RAG pipeline."""

from __future__ import annotations

import logging
import os

from pydantic import BaseModel, Field, model_validator

DEFAULT_MODELS = [
    "gpt-4o-mini",
    "gpt-4.1-mini",
    "gpt-4.1-nano",
    "gpt-4o",
]


class ChunkingConfig(BaseModel):
    """Configures character-window chunking with sentence-aware boundaries."""

    chunk_size: int = Field(default=1000, ge=1)
    chunk_overlap: int = Field(default=150, ge=0)
    boundary_window: int = Field(default=100, ge=0)

    @model_validator(mode="after")
    def _check_overlap(self) -> "ChunkingConfig":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be less than chunk_size")
        return self


class RetrievalConfig(BaseModel):
    """Configures candidate fetch and rerank cut-offs."""

    top_k: int = Field(default=20, ge=1)
    top_n: int = Field(default=5, ge=1)


class GenerationConfig(BaseModel):
    """Configures the generation backend and the model fallback order."""

    models: list[str] = Field(default_factory=lambda: list(DEFAULT_MODELS), min_length=1)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=1024, ge=1)
    snippet_length: int = Field(default=200, ge=1)


class IngestConfig(BaseModel):
    """Configures embedding fan-out during ingestion."""

    embed_batch_size: int = Field(default=10, ge=1)


class AppConfig(BaseModel):
    """Top-level configuration used to assemble a pipeline once at startup."""

    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)

    openai_api_key: str | None = None
    embedding_model: str = "text-embedding-3-small"
    chroma_path: str | None = None
    chroma_collection: str = "documents"
    reranker_model: str | None = None
    log_level: int = logging.INFO

    @property
    def offline(self) -> bool:
        return not self.openai_api_key

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build configuration from `CITERAG_*` and `OPENAI_API_KEY` variables."""
        models_raw = os.getenv("CITERAG_MODELS", "")
        models = [name.strip() for name in models_raw.split(",") if name.strip()]
        level = logging.getLevelName(os.getenv("CITERAG_LOG_LEVEL", "INFO").upper())

        return cls(
            chunking=ChunkingConfig(
                chunk_size=int(os.getenv("CITERAG_CHUNK_SIZE", "1000")),
                chunk_overlap=int(os.getenv("CITERAG_CHUNK_OVERLAP", "150")),
            ),
            retrieval=RetrievalConfig(
                top_k=int(os.getenv("CITERAG_TOP_K", "20")),
                top_n=int(os.getenv("CITERAG_TOP_N", "5")),
            ),
            generation=GenerationConfig(models=models or list(DEFAULT_MODELS)),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            embedding_model=os.getenv("CITERAG_EMBEDDING_MODEL", "text-embedding-3-small"),
            chroma_path=os.getenv("CITERAG_CHROMA_PATH") or None,
            reranker_model=os.getenv("CITERAG_RERANKER_MODEL") or None,
            log_level=level if isinstance(level, int) else logging.INFO,
        )
