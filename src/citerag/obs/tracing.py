"""Stage timing, token estimation and cost accounting."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


@dataclass(slots=True)
class CostModel:
    """Token pricing model (USD per 1K tokens).

    Defaults are zero: the configured embedding, rerank and generation tiers
    are treated as free, so the reported cost is a placeholder.
    """

    input_per_1k: float = 0.0
    output_per_1k: float = 0.0

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        return (input_tokens / 1000.0) * self.input_per_1k + (
            output_tokens / 1000.0
        ) * self.output_per_1k


class Timer:
    """Context timer for pipeline stages (sync and async).

    When a `label` is given, the elapsed time is logged at DEBUG on exit.
    """

    def __init__(self, label: str = "") -> None:
        self.label = label
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self._stop()

    async def __aenter__(self) -> "Timer":
        return self.__enter__()

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        self._stop()

    def _stop(self) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
        if self.label:
            logger.debug("%s completed in %.1fms", self.label, self.elapsed_ms)


def estimate_tokens(*texts: str) -> int:
    """Rough 4-characters-per-token estimate over the combined texts."""
    return math.ceil(sum(len(text) for text in texts) / CHARS_PER_TOKEN)
