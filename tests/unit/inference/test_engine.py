from __future__ import annotations

import json
import sys
import textwrap
from pathlib import Path

import pytest

from promptprobe.core.exceptions import EngineInvocationError
from promptprobe.inference.engine import SubprocessEngine
from tests.conftest import MockSettings

# Minimal engine: writes a fixed result to the -o path and records the flags.
_FAKE_ENGINE = textwrap.dedent(
    """
    import json, sys
    from pathlib import Path

    args = sys.argv[1:]
    output = Path(args[args.index("-o") + 1])
    Path(args[0] + ".argv").write_text(json.dumps(args + [str(output.parent)]))
    output.write_text(json.dumps({
        "file_path": args[0],
        "file_type": "text",
        "candidates": [],
        "batch": "--batch" in args,
        "verbose": "-v" in args,
    }))
    """
)


@pytest.fixture
def fake_engine(tmp_path: Path) -> Path:
    script = tmp_path / "fake_engine.py"
    script.write_text(_FAKE_ENGINE)
    return script


def _engine(*command: str, verbose: bool = False) -> SubprocessEngine:
    return SubprocessEngine(list(command), verbose=verbose, settings=MockSettings())


def test_build_argv_layout() -> None:
    engine = _engine("engine", "--model", "x", verbose=True)

    argv = engine.build_argv("in.txt", Path("/tmp/out.json"), batch=True)

    assert argv == ["engine", "--model", "x", "in.txt", "-o", "/tmp/out.json", "-v", "--batch"]


def test_command_defaults_to_settings() -> None:
    engine = SubprocessEngine(settings=MockSettings(engine_command=["infer"], engine_verbose=True))

    assert engine.command == ["infer"]
    assert engine.verbose is True


@pytest.mark.asyncio
async def test_run_file_returns_output_and_cleans_temp_dir(
    tmp_path: Path, fake_engine: Path
) -> None:
    target = tmp_path / "sample.txt"
    target.write_text("hello")

    raw = await _engine(sys.executable, str(fake_engine)).run_file(target)

    payload = json.loads(raw)
    assert payload["file_path"] == str(target)
    assert payload["batch"] is False
    assert payload["verbose"] is False
    recorded = json.loads(Path(str(target) + ".argv").read_text())
    assert not Path(recorded[-1]).exists()


@pytest.mark.asyncio
async def test_run_directory_passes_batch_flag(tmp_path: Path, fake_engine: Path) -> None:
    raw = await _engine(sys.executable, str(fake_engine), verbose=True).run_directory(tmp_path)

    payload = json.loads(raw)
    assert payload["batch"] is True
    assert payload["verbose"] is True


@pytest.mark.asyncio
async def test_nonzero_exit_raises_with_stderr(tmp_path: Path) -> None:
    script = tmp_path / "failing.py"
    script.write_text("import sys\nsys.stderr.write('model missing')\nsys.exit(3)\n")

    with pytest.raises(EngineInvocationError) as exc_info:
        await _engine(sys.executable, str(script)).run_file(tmp_path / "a.txt")

    assert exc_info.value.returncode == 3
    assert "model missing" in exc_info.value.stderr


@pytest.mark.asyncio
async def test_missing_executable_raises(tmp_path: Path) -> None:
    with pytest.raises(EngineInvocationError) as exc_info:
        await _engine(str(tmp_path / "no-such-engine")).run_file(tmp_path / "a.txt")

    assert exc_info.value.returncode is None


@pytest.mark.asyncio
async def test_clean_exit_without_output_raises(tmp_path: Path) -> None:
    script = tmp_path / "silent.py"
    script.write_text("pass\n")

    with pytest.raises(EngineInvocationError) as exc_info:
        await _engine(sys.executable, str(script)).run_file(tmp_path / "a.txt")

    assert exc_info.value.returncode == 0
