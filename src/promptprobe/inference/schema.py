"""src/promptprobe/inference/schema.py
###############################################################################
Typed models and parsers for inference-engine output.
###############################################################################
The engine emits JSON in two shapes:

• single-file mode – one ``AnalysisResult`` object;
• batch mode – an object keyed by file path whose values are
  ``AnalysisResult`` objects (the ``BatchResult``).

Both are validated here with Pydantic so that downstream consumers
(classification, reporting, alerting) only ever see well-formed, immutable
results.  A candidate is either complete, with all four fields present, or the
payload is rejected as malformed.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from promptprobe.core.exceptions import MalformedResultError

__all__: list[str] = [
    "Candidate",
    "AnalysisResult",
    "BatchResult",
    "parse_analysis",
    "parse_batch",
    "dump_batch",
]

logger = structlog.get_logger(__name__)

UNKNOWN_FILE_TYPE = "unknown"


class Candidate(BaseModel):
    """One inferred generation prompt with its supporting evidence."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    prompt: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str
    evidence: List[str]


class AnalysisResult(BaseModel):
    """All candidates (possibly none) the engine produced for one file.

    Candidates arrive pre-ranked by descending confidence and are kept in
    that order.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    file_path: str
    file_type: str = UNKNOWN_FILE_TYPE
    candidates: List[Candidate] = Field(default_factory=list)

    @classmethod
    def empty(
        cls, file_path: Union[str, Path], file_type: Optional[str] = None
    ) -> "AnalysisResult":
        """Zero-candidate result recorded for a file whose analysis failed."""
        return cls(
            file_path=str(file_path),
            file_type=file_type or _guess_file_type(file_path),
        )

    @property
    def top_candidate(self) -> Optional[Candidate]:
        return self.candidates[0] if self.candidates else None

    @property
    def top_confidence(self) -> Optional[float]:
        top = self.top_candidate
        return top.confidence if top is not None else None


# Insertion order is preserved but carries no meaning; sort explicitly.
BatchResult = Dict[str, AnalysisResult]


_TEXT_EXTENSIONS = {"txt", "md"}
_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "webp"}


def _guess_file_type(file_path: Union[str, Path]) -> str:
    suffix = Path(file_path).suffix.lower().lstrip(".")
    if suffix in _TEXT_EXTENSIONS:
        return "text"
    if suffix in _IMAGE_EXTENSIONS:
        return "image"
    return UNKNOWN_FILE_TYPE


def _load_json(raw: str, target: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedResultError(target, f"invalid JSON: {e}") from e


def _validate_result(payload: Any, file_path: str) -> AnalysisResult:
    if not isinstance(payload, dict):
        raise MalformedResultError(
            file_path, f"expected an object, got {type(payload).__name__}"
        )
    data = dict(payload)
    data.setdefault("file_path", file_path)
    if data.get("candidates") is None:
        data["candidates"] = []
    try:
        return AnalysisResult.model_validate(data)
    except ValidationError as e:
        raise MalformedResultError(file_path, str(e)) from e


def parse_analysis(raw: str, *, file_path: Union[str, Path]) -> AnalysisResult:
    """
    Parse single-file engine output.

    Args:
        raw: JSON text produced by the engine.
        file_path: The analysed path; fills ``file_path`` when the engine omits it.

    Returns:
        The validated, immutable result.

    Raises:
        MalformedResultError: If the text is not JSON or violates the schema.
    """
    target = str(file_path)
    return _validate_result(_load_json(raw, target), target)


def parse_batch(raw: str, *, directory: Union[str, Path]) -> BatchResult:
    """
    Parse batch-mode engine output keyed by file path.

    A single entry that violates the schema does not invalidate the batch: it
    is recorded as a zero-candidate result under its key.  Only a payload that
    is not JSON, or not an object, is rejected as a whole.

    Raises:
        MalformedResultError: If the payload as a whole cannot be interpreted.
    """
    target = str(directory)
    payload = _load_json(raw, target)
    if not isinstance(payload, dict):
        raise MalformedResultError(
            target, f"expected an object keyed by path, got {type(payload).__name__}"
        )

    batch: BatchResult = {}
    for file_path, entry in payload.items():
        key = str(file_path)
        try:
            batch[key] = _validate_result(entry, key)
        except MalformedResultError as e:
            logger.warning("batch_entry_malformed", file_path=key, error=e.detail)
            file_type = entry.get("file_type") if isinstance(entry, dict) else None
            batch[key] = AnalysisResult.empty(
                key, file_type if isinstance(file_type, str) else None
            )
    return batch


def dump_batch(batch: BatchResult) -> str:
    """Serialise a batch to the same JSON shape the engine emits."""
    data = {path: result.model_dump(mode="json") for path, result in batch.items()}
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"
