"""Logging setup for the `citerag` namespace."""

from __future__ import annotations

import logging
import sys

_configured = False


def setup_logging(level: int = logging.INFO) -> None:
    """Attach one stream handler to the `citerag` logger; later calls only adjust the level."""
    global _configured
    root = logging.getLogger("citerag")
    root.setLevel(level)
    if _configured:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
    root.propagate = False
    _configured = True
