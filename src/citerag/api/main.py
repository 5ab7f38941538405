"""FastAPI entrypoint for ingest/query endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from citerag.config import AppConfig
from citerag.obs.logging import setup_logging
from citerag.pipeline import RagPipeline, build_pipeline
from citerag.types import QueryResult


class IngestRequest(BaseModel):
    text: str = ""
    source: str | None = None
    title: str | None = None


class QueryRequest(BaseModel):
    query: str = ""
    top_k: int | None = None
    top_n: int | None = None


def create_app(pipeline: RagPipeline | None = None, config: AppConfig | None = None) -> FastAPI:
    """Build the app around one pipeline; built from the environment when omitted."""
    config = config or AppConfig.from_env()
    setup_logging(config.log_level)
    rag = pipeline or build_pipeline(config)

    app = FastAPI(title="Cited RAG", version="0.1.0")
    app.state.pipeline = rag

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "llm_configured": not config.offline,
            "models": config.generation.models,
        }

    @app.post("/ingest")
    async def ingest(request: IngestRequest) -> JSONResponse:
        result = await rag.ingest(request.text, source=request.source, title=request.title)
        return JSONResponse(
            status_code=_status_for(result.success, result.error_kind),
            content=asdict(result),
        )

    @app.post("/query")
    async def query(request: QueryRequest) -> JSONResponse:
        result = await rag.query(request.query, top_k=request.top_k, top_n=request.top_n)
        return JSONResponse(
            status_code=_status_for(result.success, result.error_kind),
            content=_query_payload(result),
        )

    return app


def _status_for(success: bool, error_kind: str | None) -> int:
    if success:
        return 200
    return 400 if error_kind == "validation" else 500


def _query_payload(result: QueryResult) -> dict[str, Any]:
    return {
        "success": result.success,
        "answer": result.answer,
        "citations": [asdict(citation) for citation in result.citations],
        "sources": [
            {
                "index": source.rank,
                "id": source.candidate.chunk_id,
                "source": source.candidate.source,
                "title": source.candidate.title,
                "similarity": source.candidate.similarity,
                "relevance_score": source.relevance_score,
            }
            for source in result.sources
        ],
        "metrics": asdict(result.metrics),
        "no_answer": result.no_answer,
        "model_used": result.model_used,
        "error": result.error,
        "error_kind": result.error_kind,
    }
