"""
Inference Client

Turns raw engine invocations into validated :class:`AnalysisResult` and
:class:`BatchResult` objects and applies the orchestrator's recovery policy.

Key Responsibilities:
- Validate inputs (existence, supported type) before spawning anything.
- Parse engine output against the result schema.
- Persist the raw engine output to a caller-chosen artifact path (best-effort).
- Convert per-file failures into zero-candidate results where the calling
  flow favours availability (batch, search, benchmark, monitor).

Single-file ``analyze`` calls :meth:`InferenceClient.analyze_one` and lets
failures propagate; every other flow goes through
:meth:`InferenceClient.analyze_or_empty` or the batch helpers.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Union

import structlog

from promptprobe.core.config import Settings, get_settings
from promptprobe.core.exceptions import (
    EngineInvocationError,
    InputNotFoundError,
    MalformedResultError,
    UnsupportedFileTypeError,
)
from promptprobe.inference.engine import InferenceEngine
from promptprobe.inference.schema import (
    AnalysisResult,
    BatchResult,
    dump_batch,
    parse_analysis,
    parse_batch,
)
from promptprobe.ingestion.artifacts import write_artifact_best_effort
from promptprobe.ingestion.validators import (
    iter_supported_files,
    validate_directory,
    validate_file,
)

__all__: list[str] = ["InferenceClient"]

logger = structlog.get_logger(__name__)

PathArg = Union[str, Path]

# Failures local to one file; recovered as an empty result outside ``analyze``.
RECOVERABLE_ERRORS = (EngineInvocationError, MalformedResultError)


class InferenceClient:
    """Orchestrator-side wrapper around an :class:`InferenceEngine`."""

    def __init__(
        self,
        engine: InferenceEngine,
        *,
        settings: Optional[Settings] = None,
    ) -> None:
        self.engine = engine
        self.settings = settings or get_settings()

    async def analyze_one(
        self, path: PathArg, artifact_path: Optional[PathArg] = None
    ) -> AnalysisResult:
        """
        Analyse a single file.

        Args:
            path: An existing regular file with a supported extension.
            artifact_path: Where to store the raw engine output, if anywhere.

        Returns:
            The parsed result.

        Raises:
            InputNotFoundError: The file does not exist.
            UnsupportedFileTypeError: The extension is not supported.
            EngineInvocationError: The engine could not run or exited non-zero.
            MalformedResultError: The engine output violates the schema.
        """
        file_path = validate_file(path, settings=self.settings)
        raw = await self.engine.run_file(file_path)
        if artifact_path is not None:
            write_artifact_best_effort(artifact_path, raw)
        result = parse_analysis(raw, file_path=file_path)
        logger.debug(
            "file_analyzed",
            file_path=result.file_path,
            candidates=len(result.candidates),
            top_confidence=result.top_confidence,
        )
        return result

    async def analyze_or_empty(self, path: PathArg) -> AnalysisResult:
        """Analyse *path*, recording engine or parse failures as no candidates."""
        try:
            return await self.analyze_one(path)
        except RECOVERABLE_ERRORS as e:
            logger.warning(
                "file_analysis_failed",
                file_path=str(path),
                error_type=type(e).__name__,
                error=str(e),
            )
            return AnalysisResult.empty(path)

    async def analyze_files(self, paths: Iterable[PathArg]) -> BatchResult:
        """Sequentially analyse *paths*, never aborting on a single failure.

        Files that vanish before their turn are skipped, not recorded.
        """
        batch: BatchResult = {}
        for path in paths:
            try:
                batch[str(path)] = await self.analyze_or_empty(path)
            except InputNotFoundError:
                logger.info("file_skipped_vanished", file_path=str(path))
            except UnsupportedFileTypeError:
                logger.debug("file_skipped_unsupported", file_path=str(path))
        return batch

    async def analyze_batch(
        self, dir_path: PathArg, artifact_path: Optional[PathArg] = None
    ) -> BatchResult:
        """
        Analyse every file in a directory using the engine's batch mode.

        When batch mode fails as a whole and ``batch_fallback_sequential`` is
        enabled, each supported file is analysed on its own instead.

        Raises:
            InputNotFoundError: The directory does not exist.
            EngineInvocationError: Batch mode failed and fallback is disabled.
            MalformedResultError: Batch output unreadable and fallback is disabled.
        """
        directory = validate_directory(dir_path)
        raw: Optional[str]
        try:
            raw = await self.engine.run_directory(directory)
            batch = parse_batch(raw, directory=directory)
        except RECOVERABLE_ERRORS as e:
            if not self.settings.batch_fallback_sequential:
                raise
            logger.warning(
                "batch_mode_failed_falling_back",
                directory=str(directory),
                error_type=type(e).__name__,
                error=str(e),
            )
            batch = await self.analyze_files(
                iter_supported_files(directory, settings=self.settings)
            )
            raw = None

        if artifact_path is not None:
            write_artifact_best_effort(
                artifact_path, raw if raw is not None else dump_batch(batch)
            )

        logger.info("batch_analyzed", directory=str(directory), files=len(batch))
        return batch
