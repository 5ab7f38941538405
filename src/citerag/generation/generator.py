"""Cited answer generation with ordered model fallback."""

from __future__ import annotations

import logging
import re

from citerag.config import GenerationConfig
from citerag.errors import AllModelsFailedError, RetryableBackendError
from citerag.generation.backend import GenerationBackend
from citerag.generation.prompt import build_prompt, build_system_prompt
from citerag.obs.tracing import estimate_tokens
from citerag.types import Citation, GenerationOutcome, RankedResult

logger = logging.getLogger(__name__)

NO_CONTEXT_ANSWER = "I couldn't find any relevant information to answer your question."

_CITATION_MARKER = re.compile(r"\[(\d+)\]")
_NO_ANSWER_PHRASES = ("don't have enough information", "cannot answer", "no information")


class CitedAnswerGenerator:
    """Generates an answer grounded in ranked context and resolves its citations.

    Models in `config.models` are tried in order. A `RetryableBackendError`
    moves on to the next model; any other error aborts immediately. Only one
    backend call is in flight at a time.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        config: GenerationConfig | None = None,
    ) -> None:
        self.backend = backend
        self.config = config or GenerationConfig()
        if not self.config.models:
            raise ValueError("at least one generation model is required")

    async def generate(self, query: str, ranked: list[RankedResult]) -> GenerationOutcome:
        if not ranked:
            return GenerationOutcome(
                answer=NO_CONTEXT_ANSWER,
                citations=[],
                tokens_used=0,
                no_answer=True,
            )

        system_prompt = build_system_prompt(ranked)
        prompt = build_prompt(system_prompt, query)
        answer, model_used = await self._generate_with_fallback(prompt)

        indices = extract_citation_indices(answer, len(ranked))
        citations = [
            _resolve_citation(index, ranked[index - 1], self.config.snippet_length)
            for index in indices
        ]

        return GenerationOutcome(
            answer=answer,
            citations=citations,
            tokens_used=estimate_tokens(system_prompt, query, answer),
            no_answer=detect_no_answer(answer),
            model_used=model_used,
            output_tokens=estimate_tokens(answer),
        )

    async def _generate_with_fallback(self, prompt: str) -> tuple[str, str]:
        last_error: RetryableBackendError | None = None
        for model_id in self.config.models:
            logger.info("Trying model: %s", model_id)
            try:
                text = await self.backend.generate(model_id, prompt)
            except RetryableBackendError as exc:
                logger.warning("Model %s failed, falling back: %s", model_id, exc)
                last_error = exc
                continue
            logger.info("Success with model: %s", model_id)
            return text, model_id

        if last_error is None:
            raise ValueError("at least one generation model is required")
        raise AllModelsFailedError(self.config.models, last_error) from last_error


def extract_citation_indices(text: str, context_size: int) -> list[int]:
    """Distinct `[n]` markers with `1 <= n <= context_size`, sorted ascending.

    Markers are collected in order of first appearance; out-of-range markers
    are ignored.
    """
    seen: list[int] = []
    for match in _CITATION_MARKER.finditer(text):
        number = int(match.group(1))
        if 1 <= number <= context_size and number not in seen:
            seen.append(number)
    return sorted(seen)


def detect_no_answer(text: str) -> bool:
    """Advisory check for an explicit insufficient-context reply."""
    lowered = text.lower()
    return any(phrase in lowered for phrase in _NO_ANSWER_PHRASES)


def _resolve_citation(index: int, result: RankedResult, snippet_length: int) -> Citation:
    content = result.candidate.content
    snippet = content[:snippet_length]
    if len(content) > snippet_length:
        snippet += "..."
    return Citation(
        index=index,
        source=result.candidate.source,
        title=result.candidate.title,
        snippet=snippet,
    )
