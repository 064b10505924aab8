"""
Confidence banding for analysis results

This module maps engine confidence scores onto the three bands used by every
report and alert, and folds a whole batch into per-band counts.

Design constraints
==================
• The public helpers are _pure_ functions without settings, so a given
  score always lands in the same band.
• Boundaries are inclusive to the higher band: 0.8 is HIGH, 0.5 is MEDIUM.

Edge cases
----------
• A result with **no** candidates is LOW.  Absence of evidence is the weakest
  classification, never "unknown".
• Only the top candidate (``candidates[0]``) is consulted; the engine ranks
  candidates before they reach the orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final

from promptprobe.inference.schema import AnalysisResult, BatchResult

__all__: list[str] = [
    "ConfidenceBand",
    "ConfidenceSummary",
    "HIGH_CONFIDENCE",
    "MEDIUM_CONFIDENCE",
    "classify",
    "classify_score",
    "summarize",
]

HIGH_CONFIDENCE: Final[float] = 0.8
MEDIUM_CONFIDENCE: Final[float] = 0.5


class ConfidenceBand(str, Enum):
    """Coarse classification of a confidence score."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass(frozen=True)
class ConfidenceSummary:
    """Per-band counts over a batch; ``total`` always equals their sum."""

    high: int = 0
    medium: int = 0
    low: int = 0

    @property
    def total(self) -> int:
        return self.high + self.medium + self.low

    def as_dict(self) -> dict[str, int]:
        return {
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
            "total": self.total,
        }


def classify_score(score: float) -> ConfidenceBand:
    """
    Band a single confidence score.

    Args:
        score: Confidence in ``[0, 1]``.

    Returns:
        HIGH for ``score >= 0.8``, MEDIUM for ``0.5 <= score < 0.8``, else LOW.
    """
    if score >= HIGH_CONFIDENCE:
        return ConfidenceBand.HIGH
    if score >= MEDIUM_CONFIDENCE:
        return ConfidenceBand.MEDIUM
    return ConfidenceBand.LOW


def classify(result: AnalysisResult) -> ConfidenceBand:
    """Band a result by its top candidate; no candidates means LOW."""
    top = result.top_confidence
    if top is None:
        return ConfidenceBand.LOW
    return classify_score(top)


def summarize(batch: BatchResult) -> ConfidenceSummary:
    """Fold :func:`classify` over every entry of *batch*."""
    counts = {band: 0 for band in ConfidenceBand}
    for result in batch.values():
        counts[classify(result)] += 1
    return ConfidenceSummary(
        high=counts[ConfidenceBand.HIGH],
        medium=counts[ConfidenceBand.MEDIUM],
        low=counts[ConfidenceBand.LOW],
    )
