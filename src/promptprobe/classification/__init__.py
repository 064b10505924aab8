from __future__ import annotations

from .confidence import (  # noqa: F401
    ConfidenceBand,
    ConfidenceSummary,
    classify,
    classify_score,
    summarize,
)

__all__: list[str] = [
    "ConfidenceBand",
    "ConfidenceSummary",
    "classify",
    "classify_score",
    "summarize",
]
