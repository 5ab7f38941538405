"""Grounded prompt construction with numbered context passages."""

from __future__ import annotations

import re

from citerag.types import RankedResult

INSTRUCTIONS = """
You are a helpful assistant that answers questions based on the provided context.
You must:
1. Only use information from the provided context to answer.
2. Include inline citations like [1], [2], etc. that reference the context snippets.
3. If the context doesn't contain enough information to answer the question, say so clearly.
4. Be concise but comprehensive.
""".strip()

_CONTEXT_LINE = re.compile(r"^\[(?P<index>\d+)\] (?P<body>.+)$", flags=re.MULTILINE)


def build_system_prompt(ranked: list[RankedResult]) -> str:
    """Instruction block followed by `[i] content` passages in rank order."""
    parts = [f"[{i}] {result.candidate.content}" for i, result in enumerate(ranked, start=1)]
    return f"{INSTRUCTIONS}\n\nContext:\n" + "\n\n".join(parts)


def build_prompt(system_prompt: str, query: str) -> str:
    return f"{system_prompt}\n\nQuestion: {query}"


def parse_context(prompt: str) -> list[tuple[int, str]]:
    """Recover `(index, passage)` pairs from a prompt built by `build_prompt`."""
    _, _, tail = prompt.partition("\n\nContext:\n")
    context, _, _ = tail.rpartition("\n\nQuestion: ")
    return [
        (int(match.group("index")), match.group("body").strip())
        for match in _CONTEXT_LINE.finditer(context)
    ]
