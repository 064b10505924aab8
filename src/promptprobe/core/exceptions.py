"""
Core Custom Exceptions

Domain-specific exceptions raised by the prompt-inference orchestrator.  The
taxonomy mirrors how each failure is *recovered*:

- `InputNotFoundError`: a referenced file or directory is absent.  Fatal for
  the invocation that hit it, never for the process as a whole.
- `UnsupportedFileTypeError`: the path's extension is not in the allow-list.
  Filtered silently by the watcher and skipped by the benchmark.
- `EngineInvocationError`: the external inference engine could not be started
  or exited non-zero.  Recovered as a zero-candidate result in batch and
  monitor flows; surfaced directly by single-file ``analyze``.
- `MalformedResultError`: engine output does not match the result schema.
  Same recovery policy as `EngineInvocationError`.
- `ArtifactWriteError`: a best-effort artifact write failed.  Logged only.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

__all__: list[str] = [
    "PromptProbeError",
    "InputNotFoundError",
    "UnsupportedFileTypeError",
    "EngineInvocationError",
    "MalformedResultError",
    "ArtifactWriteError",
]

PathLike = Union[str, Path]


class PromptProbeError(Exception):
    """Base class for every error raised by the orchestrator."""


class InputNotFoundError(PromptProbeError):
    """Raised when an input file or directory does not exist."""

    def __init__(self, path: PathLike, kind: str = "file") -> None:
        self.path = str(path)
        self.kind = kind
        super().__init__(f"Input {kind} not found: {self.path}")


class UnsupportedFileTypeError(PromptProbeError):
    """Raised when a file's extension is not in the supported allow-list."""

    def __init__(self, path: PathLike) -> None:
        self.path = str(path)
        super().__init__(f"Unsupported file type: {self.path}")


class EngineInvocationError(PromptProbeError):
    """Raised when the inference engine cannot run or exits non-zero.

    Attributes:
        target: The file or directory the engine was asked to analyse.
        returncode: Process exit status, or None when it never started.
        stderr: Tail of the engine's standard error, if captured.
    """

    def __init__(
        self,
        target: PathLike,
        message: str,
        *,
        returncode: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        self.target = str(target)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Inference engine failed for {self.target}: {message}")


class MalformedResultError(PromptProbeError):
    """Raised when engine output cannot be parsed against the result schema."""

    def __init__(self, target: PathLike, detail: str) -> None:
        self.target = str(target)
        self.detail = detail
        super().__init__(f"Malformed engine output for {self.target}: {detail}")


class ArtifactWriteError(PromptProbeError):
    """Raised internally when an output artifact cannot be written."""

    def __init__(self, path: PathLike, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Could not write artifact {self.path}: {reason}")
