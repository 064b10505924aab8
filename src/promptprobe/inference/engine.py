"""
Inference engine capability.

The engine itself is an external program.  The orchestrator only depends on
the :class:`InferenceEngine` protocol ("given a path, hand back the raw JSON
the engine produced"), so every flow can be exercised against a stub.

:class:`SubprocessEngine` is the production implementation.  It runs the
configured command line as

    <engine_command...> <target> -o <output.json> [-v] [--batch]

and reads the JSON back from ``<output.json>``, which lives in a temporary
directory owned by that single invocation and removed on every exit path.
"""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union

import structlog

from promptprobe.core.config import Settings, get_settings
from promptprobe.core.exceptions import EngineInvocationError

__all__: list[str] = [
    "InferenceEngine",
    "SubprocessEngine",
]

logger = structlog.get_logger(__name__)

_OUTPUT_FILENAME = "engine_output.json"
_STDERR_TAIL_CHARS = 2000


class InferenceEngine(Protocol):
    """Black-box content-to-prompt inference capability."""

    async def run_file(self, path: Path) -> str:
        """Analyse one file and return the engine's raw JSON output."""
        ...

    async def run_directory(self, path: Path) -> str:
        """Analyse every file under *path* and return raw batch JSON."""
        ...


class SubprocessEngine:
    """Invoke the inference engine as a child process."""

    def __init__(
        self,
        command: Optional[Sequence[str]] = None,
        *,
        verbose: Optional[bool] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or get_settings()
        self.command: List[str] = list(command or settings.engine_command)
        self.verbose = settings.engine_verbose if verbose is None else verbose

    async def run_file(self, path: Path) -> str:
        return await self._run(path, batch=False)

    async def run_directory(self, path: Path) -> str:
        return await self._run(path, batch=True)

    def build_argv(self, target: Union[str, Path], output: Path, *, batch: bool) -> List[str]:
        argv = [*self.command, str(target), "-o", str(output)]
        if self.verbose:
            argv.append("-v")
        if batch:
            argv.append("--batch")
        return argv

    async def _run(self, target: Path, *, batch: bool) -> str:
        with tempfile.TemporaryDirectory(prefix="promptprobe-") as tmp_dir:
            output = Path(tmp_dir) / _OUTPUT_FILENAME
            argv = self.build_argv(target, output, batch=batch)
            logger.debug("engine_invocation_started", argv=argv, batch=batch)

            try:
                proc = await asyncio.create_subprocess_exec(
                    *argv,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise EngineInvocationError(
                    target, f"could not start {argv[0]!r}: {e}"
                ) from e

            stdout, stderr = await proc.communicate()
            stderr_text = stderr.decode("utf-8", errors="replace")[-_STDERR_TAIL_CHARS:]

            if proc.returncode != 0:
                raise EngineInvocationError(
                    target,
                    f"exit status {proc.returncode}",
                    returncode=proc.returncode,
                    stderr=stderr_text,
                )

            if not output.is_file():
                raise EngineInvocationError(
                    target,
                    "engine exited cleanly but wrote no output",
                    returncode=proc.returncode,
                    stderr=stderr_text,
                )

            logger.debug(
                "engine_invocation_finished",
                target=str(target),
                stdout_bytes=len(stdout),
            )
            return output.read_text(encoding="utf-8")
