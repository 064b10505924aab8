"""Command-line entry point for the prompt inference orchestrator."""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

import structlog

from promptprobe.core.config import Settings, get_settings
from promptprobe.core.exceptions import (
    ArtifactWriteError,
    EngineInvocationError,
    InputNotFoundError,
    MalformedResultError,
    UnsupportedFileTypeError,
)
from promptprobe.core.logging import configure_logging
from promptprobe.inference.client import InferenceClient
from promptprobe.services import flows

__all__: list[str] = ["build_parser", "main", "run"]

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def _confidence(value: str) -> float:
    try:
        score = float(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from e
    if not 0.0 <= score <= 1.0:
        raise argparse.ArgumentTypeError(f"must be between 0 and 1: {value}")
    return score


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the promptprobe CLI."""
    parser = argparse.ArgumentParser(
        prog="promptprobe",
        description=(
            "Infer the generation prompt behind text and image files, "
            "report on batches and watch directories for new content."
        ),
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument(
        "--json-logs", action="store_true", help="Emit logs as JSON lines."
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Pass the verbosity flag through to the inference engine.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    analyze_p = sub.add_parser("analyze", help="Analyze a single file")
    analyze_p.add_argument("file", help="File to analyze")
    analyze_p.add_argument(
        "output_dir", nargs="?", default=None, help="Output directory (default: ./results)"
    )

    batch_p = sub.add_parser("batch", help="Batch analyze a directory")
    batch_p.add_argument("directory", help="Directory to analyze")
    batch_p.add_argument(
        "output_dir",
        nargs="?",
        default=None,
        help="Output directory (default: ./batch_results)",
    )

    search_p = sub.add_parser("search", help="Search a directory for AI-generated content")
    search_p.add_argument("directory", help="Directory to search")
    search_p.add_argument(
        "min_confidence",
        nargs="?",
        type=_confidence,
        default=None,
        help="Minimum confidence threshold (default: 0.7)",
    )
    search_p.add_argument(
        "output_file",
        nargs="?",
        default=None,
        help="Report path (default: ./ai_content_report.txt)",
    )

    monitor_p = sub.add_parser("monitor", help="Monitor a directory for new AI content")
    monitor_p.add_argument("directory", help="Directory to watch")
    monitor_p.add_argument(
        "alert_threshold",
        nargs="?",
        type=_confidence,
        default=None,
        help="Alert threshold (default: 0.8)",
    )

    bench_p = sub.add_parser("benchmark", help="Run a performance benchmark")
    bench_p.add_argument(
        "test_dir", nargs="?", default=None, help="Directory of samples (default: ./test_samples)"
    )

    return parser


async def _cmd_analyze(args: argparse.Namespace, client: InferenceClient) -> int:
    settings = client.settings
    outcome = await flows.analyze_file(
        client, args.file, args.output_dir or settings.results_dir
    )
    top = outcome.result.top_candidate
    if top is None:
        print("No candidates found")
    else:
        print(f"Top candidate ({top.confidence:.2f}): {top.prompt}")
    return EXIT_OK


async def _cmd_batch(args: argparse.Namespace, client: InferenceClient) -> int:
    outcome = await flows.batch_analyze(
        client, args.directory, args.output_dir or client.settings.batch_results_dir
    )
    counts = outcome.summary
    print(f"Files analyzed: {counts.total}")
    print(f"High: {counts.high}  Medium: {counts.medium}  Low: {counts.low}")
    if outcome.summary_written:
        print(f"Summary report: {outcome.summary_path}")
    return EXIT_OK


async def _cmd_search(args: argparse.Namespace, client: InferenceClient) -> int:
    settings = client.settings
    threshold = (
        settings.search_min_confidence
        if args.min_confidence is None
        else args.min_confidence
    )
    outcome = await flows.search_directory(
        client,
        args.directory,
        threshold,
        args.output_file or settings.search_report_path,
    )
    print(f"Found {outcome.matches} files at confidence >= {threshold:g}")
    print(f"Report saved to: {outcome.report_path}")
    return EXIT_OK


def _install_stop_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; KeyboardInterrupt still applies.
            pass


async def _cmd_monitor(args: argparse.Namespace, client: InferenceClient) -> int:
    threshold = (
        client.settings.alert_threshold
        if args.alert_threshold is None
        else args.alert_threshold
    )
    stop_event = asyncio.Event()
    _install_stop_handlers(stop_event)
    print(f"Monitoring {args.directory} (alert threshold {threshold:g}). Press Ctrl+C to stop.")
    stats = await flows.monitor_directory(
        client, args.directory, threshold, stop_event=stop_event
    )
    print(f"Files analyzed: {stats.dispatched}  Alerts: {stats.alerts}  Failures: {stats.failed}")
    return EXIT_OK


async def _cmd_benchmark(args: argparse.Namespace, client: InferenceClient) -> int:
    report = await flows.benchmark_directory(
        client, args.test_dir or client.settings.benchmark_dir
    )
    print("Benchmark complete:")
    print(f"Files processed: {report.files_processed}")
    print(f"Total time: {report.total_seconds:.3f}s")
    print(f"Average time per file: {report.average_seconds:.3f}s")
    return EXIT_OK


_COMMANDS = {
    "analyze": _cmd_analyze,
    "batch": _cmd_batch,
    "search": _cmd_search,
    "monitor": _cmd_monitor,
    "benchmark": _cmd_benchmark,
}


async def run(
    args: argparse.Namespace,
    settings: Settings,
    client: Optional[InferenceClient] = None,
) -> int:
    """Execute the parsed command and return its exit status."""
    structlog.contextvars.bind_contextvars(command=args.command)
    if client is None:
        if args.verbose:
            settings.engine_verbose = True
        client = flows.build_client(settings)

    try:
        return await _COMMANDS[args.command](args, client)
    except InputNotFoundError as e:
        logger.error("input_not_found", path=e.path, kind=e.kind)
        return EXIT_FAILURE
    except UnsupportedFileTypeError as e:
        logger.error(
            "unsupported_file_type",
            path=e.path,
            supported=sorted(settings.supported_extensions),
        )
        return EXIT_FAILURE
    except EngineInvocationError as e:
        logger.error(
            "engine_invocation_failed",
            target=e.target,
            returncode=e.returncode,
            stderr=e.stderr or None,
        )
        return EXIT_FAILURE
    except MalformedResultError as e:
        logger.error("engine_output_malformed", target=e.target, detail=e.detail)
        return EXIT_FAILURE
    except ArtifactWriteError as e:
        logger.error("artifact_write_failed", path=e.path, reason=e.reason)
        return EXIT_FAILURE
    finally:
        structlog.contextvars.clear_contextvars()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the promptprobe CLI."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(
        debug=args.debug or settings.debug,
        json_logs=args.json_logs or settings.json_logs,
    )

    try:
        return asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        logger.info("interrupted_by_user")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
