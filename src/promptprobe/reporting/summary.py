"""
Summary report – a per-file audit trail of a batch run.

Files appear in the batch's iteration order, not ranked; each entry shows the
top candidate's band, confidence, prompt and reasoning, and the report closes
with the band counts from :func:`promptprobe.classification.summarize`.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from promptprobe.classification.confidence import (
    HIGH_CONFIDENCE,
    MEDIUM_CONFIDENCE,
    classify,
    summarize,
)
from promptprobe.inference.schema import AnalysisResult, BatchResult

__all__: list[str] = ["render_summary", "SUMMARY_TITLE", "GENERATED_PREFIX"]

SUMMARY_TITLE = "AI PROMPT INFERENCE ANALYSIS REPORT"
GENERATED_PREFIX = "Generated: "
_RULE = "=" * 50
_ENTRY_RULE = "-" * 30


def _render_entry(file_path: str, result: AnalysisResult) -> List[str]:
    lines = [f"File: {file_path}", f"Type: {result.file_type}"]
    top = result.top_candidate
    if top is None:
        lines.append("No candidates found")
    else:
        band = classify(result)
        lines.append(f"Top prompt ({band.value} - {top.confidence:.2f}): {top.prompt}")
        lines.append(f"Reasoning: {top.reasoning}")
    lines.append(_ENTRY_RULE)
    return lines


def render_summary(
    batch: BatchResult, *, generated_at: Optional[datetime] = None
) -> str:
    """
    Render the statistics report for *batch*.

    Args:
        batch: Results keyed by file path.
        generated_at: Timestamp for the header; defaults to now.  It is the
            only line that differs between renderings of the same batch.

    Returns:
        Newline-terminated report text.
    """
    generated_at = generated_at or datetime.now()
    counts = summarize(batch)

    lines = [
        SUMMARY_TITLE,
        _RULE,
        f"{GENERATED_PREFIX}{generated_at.strftime('%Y-%m-%d %H:%M:%S')}",
        f"Total files analyzed: {len(batch)}",
        "",
    ]
    for file_path, result in batch.items():
        lines.extend(_render_entry(file_path, result))

    lines.extend(
        [
            "",
            "SUMMARY STATISTICS:",
            f"High confidence results (≥{HIGH_CONFIDENCE}): {counts.high}",
            f"Medium confidence results ({MEDIUM_CONFIDENCE}-{HIGH_CONFIDENCE}): {counts.medium}",
            f"Low confidence results (<{MEDIUM_CONFIDENCE}): {counts.low}",
            f"Total: {counts.total}",
        ]
    )
    return "\n".join(lines) + "\n"
