from __future__ import annotations

from pathlib import Path
from typing import Union

import structlog

from promptprobe.core.exceptions import ArtifactWriteError

__all__: list[str] = ["write_artifact", "write_artifact_best_effort"]

logger = structlog.get_logger(__name__)


def _newline_terminated(content: str) -> str:
    return content if content.endswith("\n") else content + "\n"


def write_artifact(path: Union[str, Path], content: str) -> Path:
    """Write *content* as UTF-8, creating parent directories.

    Raises:
        ArtifactWriteError: If the file or its parents cannot be written.
    """
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(_newline_terminated(content), encoding="utf-8")
    except OSError as e:
        raise ArtifactWriteError(target, str(e)) from e
    return target


def write_artifact_best_effort(path: Union[str, Path], content: str) -> bool:
    """Write an artifact, logging instead of raising on failure."""
    try:
        write_artifact(path, content)
    except ArtifactWriteError as e:
        logger.warning("artifact_write_failed", path=e.path, reason=e.reason)
        return False
    logger.debug("artifact_written", path=str(path))
    return True
