"""
Search report – files whose top candidate clears a confidence threshold.

Matches are ranked by confidence, highest first.  The sort is stable, so equal
confidences keep the batch's order and re-running on identical input yields
identical text.  The report carries no timestamp.
"""

from __future__ import annotations

from typing import List, Tuple

from promptprobe.inference.schema import BatchResult, Candidate

__all__: list[str] = ["render_search", "select_matches", "SEARCH_TITLE"]

SEARCH_TITLE = "AI-GENERATED CONTENT DETECTION REPORT"
_RULE = "=" * 50
_ENTRY_RULE = "-" * 50

Match = Tuple[str, Candidate]


def select_matches(batch: BatchResult, min_confidence: float) -> List[Match]:
    """
    Keep results whose top candidate has ``confidence >= min_confidence``.

    Args:
        batch: Results keyed by file path.
        min_confidence: Inclusive threshold.

    Returns:
        ``(file_path, top_candidate)`` pairs, confidence descending, ties in
        batch order.
    """
    matches: List[Match] = []
    for file_path, result in batch.items():
        top = result.top_candidate
        if top is not None and top.confidence >= min_confidence:
            matches.append((file_path, top))
    # Stable: ties keep batch order.
    return sorted(matches, key=lambda match: -match[1].confidence)


def render_search(batch: BatchResult, min_confidence: float) -> str:
    """Render the detection report for *batch* at *min_confidence*."""
    matches = select_matches(batch, min_confidence)

    lines = [
        SEARCH_TITLE,
        _RULE,
        f"Minimum confidence threshold: {min_confidence:g}",
        "",
        f"Found {len(matches)} files likely to be AI-generated:",
        "",
    ]
    for file_path, candidate in matches:
        lines.extend(
            [
                f"File: {file_path}",
                f"Confidence: {candidate.confidence:.2f}",
                f"Inferred prompt: {candidate.prompt}",
                f"Evidence: {', '.join(candidate.evidence)}",
                _ENTRY_RULE,
            ]
        )
    return "\n".join(lines) + "\n"
