"""Cited retrieval-augmented question answering."""

from .config import AppConfig, ChunkingConfig, GenerationConfig, RetrievalConfig
from .pipeline import RagPipeline, build_pipeline

__all__ = [
    "AppConfig",
    "ChunkingConfig",
    "GenerationConfig",
    "RetrievalConfig",
    "RagPipeline",
    "build_pipeline",
]
