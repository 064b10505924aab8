"""
Service layer for the orchestrator's command flows.

Each public coroutine implements one command end to end, from input checks
through engine calls, report rendering and artifact writes, and returns a
small value object the CLI prints from.  Nothing here parses arguments or
decides exit codes.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

import structlog

from promptprobe.classification.confidence import ConfidenceSummary, summarize
from promptprobe.core.config import Settings, get_settings
from promptprobe.core.logging import log_success
from promptprobe.inference.client import InferenceClient
from promptprobe.inference.engine import InferenceEngine, SubprocessEngine
from promptprobe.inference.schema import AnalysisResult, BatchResult
from promptprobe.ingestion.artifacts import write_artifact, write_artifact_best_effort
from promptprobe.ingestion.validators import iter_supported_files, validate_directory
from promptprobe.monitoring.alerts import AlertEmitter, NotificationSink, NullSink, SyslogSink
from promptprobe.monitoring.watcher import DirectoryWatcher, WatchStats
from promptprobe.reporting.search import render_search, select_matches
from promptprobe.reporting.summary import render_summary

__all__: list[str] = [
    "AnalyzeOutcome",
    "BatchOutcome",
    "SearchOutcome",
    "BenchmarkReport",
    "build_client",
    "build_sink",
    "analyze_file",
    "batch_analyze",
    "search_directory",
    "benchmark_directory",
    "monitor_directory",
]

logger = structlog.get_logger(__name__)

PathArg = Union[str, Path]

BATCH_RESULTS_FILENAME = "batch_results.json"
SUMMARY_FILENAME = "summary.txt"


@dataclass(frozen=True)
class AnalyzeOutcome:
    result: AnalysisResult
    output_path: Path


@dataclass(frozen=True)
class BatchOutcome:
    batch: BatchResult
    summary: ConfidenceSummary
    results_path: Path
    summary_path: Path
    summary_written: bool


@dataclass(frozen=True)
class SearchOutcome:
    matches: int
    threshold: float
    report_path: Path


@dataclass(frozen=True)
class BenchmarkReport:
    """Wall-clock timing of a sequential run over a directory."""

    files_processed: int
    total_seconds: float
    without_candidates: int = 0
    results: BatchResult = field(default_factory=dict, repr=False)

    @property
    def average_seconds(self) -> float:
        if self.files_processed == 0:
            return 0.0
        return self.total_seconds / self.files_processed


def build_client(
    settings: Optional[Settings] = None, engine: Optional[InferenceEngine] = None
) -> InferenceClient:
    """Client backed by *engine*, or by the configured engine command."""
    settings = settings or get_settings()
    return InferenceClient(engine or SubprocessEngine(settings=settings), settings=settings)


def _syslog_address(raw: str) -> Union[str, Tuple[str, int]]:
    """``host:port`` selects UDP; anything else is a Unix socket path."""
    host, sep, port = raw.rpartition(":")
    if sep and host and port.isdigit():
        return host, int(port)
    return raw


def build_sink(settings: Optional[Settings] = None) -> NotificationSink:
    settings = settings or get_settings()
    if not settings.syslog_address:
        return NullSink()
    return SyslogSink(_syslog_address(settings.syslog_address))


def analysis_filename(path: PathArg) -> str:
    return f"{Path(path).stem}_analysis.json"


async def analyze_file(
    client: InferenceClient, path: PathArg, output_dir: PathArg
) -> AnalyzeOutcome:
    """
    Interactive single-file analysis.

    Failures are **not** recovered here; the caller reports them.

    Raises:
        InputNotFoundError, UnsupportedFileTypeError,
        EngineInvocationError, MalformedResultError
    """
    output_path = Path(output_dir) / analysis_filename(path)
    logger.info("analysis_started", path=str(path))
    result = await client.analyze_one(path, artifact_path=output_path)
    log_success(
        logger,
        "analysis_complete",
        path=str(path),
        output=str(output_path),
        candidates=len(result.candidates),
    )
    return AnalyzeOutcome(result=result, output_path=output_path)


async def batch_analyze(
    client: InferenceClient, directory: PathArg, output_dir: PathArg
) -> BatchOutcome:
    """Analyse a directory and write ``batch_results.json`` plus ``summary.txt``."""
    validate_directory(directory)
    out_dir = Path(output_dir)
    results_path = out_dir / BATCH_RESULTS_FILENAME
    summary_path = out_dir / SUMMARY_FILENAME

    logger.info("batch_started", directory=str(directory))
    batch = await client.analyze_batch(directory, artifact_path=results_path)
    summary_written = write_artifact_best_effort(summary_path, render_summary(batch))
    counts = summarize(batch)

    log_success(
        logger,
        "batch_complete",
        directory=str(directory),
        output_dir=str(out_dir),
        **counts.as_dict(),
    )
    return BatchOutcome(
        batch=batch,
        summary=counts,
        results_path=results_path,
        summary_path=summary_path,
        summary_written=summary_written,
    )


async def search_directory(
    client: InferenceClient,
    directory: PathArg,
    min_confidence: float,
    output_file: PathArg,
) -> SearchOutcome:
    """
    Analyse a directory and write the detection report.

    The batch itself is not persisted.

    Raises:
        InputNotFoundError: The directory does not exist.
        ArtifactWriteError: The report could not be written.
    """
    validate_directory(directory)
    logger.info(
        "search_started", directory=str(directory), min_confidence=min_confidence
    )
    batch = await client.analyze_batch(directory)
    report_path = write_artifact(output_file, render_search(batch, min_confidence))
    matches = len(select_matches(batch, min_confidence))

    log_success(logger, "search_complete", report=str(report_path), matches=matches)
    return SearchOutcome(matches=matches, threshold=min_confidence, report_path=report_path)


async def benchmark_directory(client: InferenceClient, directory: PathArg) -> BenchmarkReport:
    """Time a sequential, per-file run over the supported files in *directory*."""
    files: List[Path] = list(iter_supported_files(directory, settings=client.settings))
    if not files:
        logger.warning("benchmark_no_supported_files", directory=str(directory))

    logger.info("benchmark_started", directory=str(directory), files=len(files))
    start = time.perf_counter()
    batch = await client.analyze_files(files)
    total_seconds = time.perf_counter() - start

    without_candidates = sum(1 for result in batch.values() if not result.candidates)
    report = BenchmarkReport(
        files_processed=len(batch),
        total_seconds=total_seconds,
        without_candidates=without_candidates,
        results=batch,
    )
    log_success(
        logger,
        "benchmark_complete",
        files=report.files_processed,
        total_seconds=round(report.total_seconds, 3),
        average_seconds=round(report.average_seconds, 3),
    )
    return report


async def monitor_directory(
    client: InferenceClient,
    directory: PathArg,
    threshold: float,
    *,
    sink: Optional[NotificationSink] = None,
    stop_event: Optional[asyncio.Event] = None,
    observer_factory: Any = None,
) -> WatchStats:
    """Run the directory watcher until *stop_event* is set."""
    validate_directory(directory)
    emitter = AlertEmitter(sink if sink is not None else build_sink(client.settings))
    kwargs: dict[str, Any] = {}
    if observer_factory is not None:
        kwargs["observer_factory"] = observer_factory
    watcher = DirectoryWatcher(
        directory,
        client,
        emitter,
        threshold=threshold,
        settings=client.settings,
        **kwargs,
    )
    return await watcher.run(stop_event)
