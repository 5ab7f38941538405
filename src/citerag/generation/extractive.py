"""Deterministic generation backend for offline runs."""

from __future__ import annotations

import re

from citerag.generation.backend import GenerationBackend
from citerag.generation.prompt import parse_context

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")

NO_EVIDENCE_ANSWER = "I don't have enough information in the provided context to answer."


class ExtractiveBackend(GenerationBackend):
    """Answers by quoting the leading sentence of the top context passages.

    Keeps the same contract as model-backed backends and is used when no
    provider API key is configured. Every line it emits carries the citation
    marker of the passage it was taken from.
    """

    def __init__(self, max_passages: int = 3) -> None:
        self.max_passages = max_passages

    async def generate(self, model_id: str, prompt: str) -> str:
        del model_id  # every model id maps to the same extractive behavior.
        passages = parse_context(prompt)
        if not passages:
            return NO_EVIDENCE_ANSWER

        lines: list[str] = []
        for index, passage in passages[: self.max_passages]:
            lines.append(f"{_leading_sentence(passage)} [{index}]")
        return "\n".join(lines)


def _leading_sentence(passage: str) -> str:
    sentences = [part.strip() for part in _SENTENCE_SPLIT.split(passage) if part.strip()]
    return sentences[0] if sentences else passage.strip()
