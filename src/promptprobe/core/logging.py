from __future__ import annotations

import logging
import sys
from typing import Any, List

# structlog must be imported before its typing helpers
import structlog
from structlog.types import Processor

__all__: list[str] = [
    "configure_logging",
    "log_success",
]


def _ensure_command_context(
    logger: Any,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Guarantee a *command* key exists in *event_dict*."""

    event_dict.setdefault("command", None)
    return event_dict


def _build_processors(json_logs: bool) -> List[Processor]:
    """Assemble the processor chain; only the final renderer differs."""

    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )
    return [
        structlog.contextvars.merge_contextvars,
        _ensure_command_context,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        renderer,
    ]


def _configure_stdlib_logging(level: int) -> None:
    """Route stdlib *logging* records (watchdog, asyncio) to *stderr*.

    Structured events from structlog are printed by its own logger factory;
    the stdlib handler only carries third-party records.
    """

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s %(message)s"))

    # Remove default handlers to avoid duplicate logs in some runtimes.
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # The observer thread is chatty at DEBUG.
    logging.getLogger("watchdog").setLevel(max(level, logging.INFO))


_LOGGING_CONFIGURED: bool = False


def configure_logging(debug: bool = False, json_logs: bool = False) -> None:
    """Initialise `structlog` for the entire process.

    Call **once**, before the first command runs.  The function is
    idempotent: calls after the first are no-ops.

    Parameters
    ----------
    debug:
        When *True* lowers the log level to ``DEBUG``; otherwise ``INFO``.
    json_logs:
        Render one JSON object per line instead of the human console format.
    """

    global _LOGGING_CONFIGURED

    if _LOGGING_CONFIGURED:
        return

    level: int = logging.DEBUG if debug else logging.INFO

    _configure_stdlib_logging(level)

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        processors=_build_processors(json_logs),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    _LOGGING_CONFIGURED = True


def log_success(logger: Any, event: str, **kwargs: Any) -> None:
    """Emit an info event flagged as a successful outcome."""

    logger.info(event, outcome="success", **kwargs)
