# ruff: noqa: E402
from __future__ import annotations

import sys
from pathlib import Path

# Make the src/ layout importable without an editable install
_src_root: Path = Path(__file__).resolve().parent.parent / "src"  # tests/ -> repo/src
if str(_src_root) not in sys.path:
    sys.path.insert(0, str(_src_root))

import json
from typing import Any, Dict, Iterable, List, Optional, Set

import pytest

from promptprobe.core.exceptions import EngineInvocationError


class MockSettings:  # Does NOT inherit from real Settings
    """Mock Settings class for testing."""

    debug: bool = False
    json_logs: bool = False

    engine_command: List[str] = ["prompt-engine"]
    engine_verbose: bool = False
    batch_fallback_sequential: bool = True

    supported_extensions_raw: str = "txt,md,jpg,jpeg,png,webp"
    supported_extensions: Set[str] = {"txt", "md", "jpg", "jpeg", "png", "webp"}

    search_min_confidence: float = 0.7
    alert_threshold: float = 0.8

    # Short enough for timer-driven tests
    debounce_seconds: float = 0.05
    watch_recursive: bool = True
    syslog_address: Optional[str] = None

    results_dir: str = "./results"
    batch_results_dir: str = "./batch_results"
    search_report_path: str = "./ai_content_report.txt"
    benchmark_dir: str = "./test_samples"

    def __init__(self, **kwargs):
        """Initialize with optional overrides for any attribute."""
        # Set default values from class attributes first
        for key, value in self.__class__.__dict__.items():
            if not key.startswith("__") and not callable(value):
                setattr(self, key, value)

        for key, value in kwargs.items():
            setattr(self, key, value)

        # If supported_extensions_raw is provided in kwargs, re-calculate supported_extensions
        if "supported_extensions_raw" in kwargs:
            raw_value = kwargs["supported_extensions_raw"] or ""
            self.supported_extensions = {
                ext.strip().lower().lstrip(".")
                for ext in raw_value.split(",")
                if ext.strip()
            }

    def is_extension_allowed(self, extension: str) -> bool:
        """Check if file extension is allowed."""
        if not extension:
            return False
        clean_ext = extension.lower().lstrip(".")
        return clean_ext in self.supported_extensions


def make_candidate(
    prompt: str = "a watercolor fox",
    confidence: float = 0.9,
    reasoning: str = "style markers",
    evidence: Iterable[str] = ("brush texture",),
) -> Dict[str, Any]:
    """Candidate payload in the engine's JSON shape."""
    return {
        "prompt": prompt,
        "confidence": confidence,
        "reasoning": reasoning,
        "evidence": list(evidence),
    }


class StubEngine:
    """In-memory stand-in for the external inference engine.

    ``candidates`` maps a file *name* to the candidate payloads the engine
    "infers" for it; unknown names yield no candidates.
    """

    def __init__(
        self,
        candidates: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        *,
        failing: Iterable[str] = (),
        malformed: Iterable[str] = (),
        batch_error: Optional[Exception] = None,
        batch_raw: Optional[str] = None,
    ) -> None:
        self.candidates = candidates or {}
        self.failing = set(failing)
        self.malformed = set(malformed)
        self.batch_error = batch_error
        self.batch_raw = batch_raw
        self.file_calls: List[Path] = []
        self.directory_calls: List[Path] = []

    def _payload(self, path: Path) -> Dict[str, Any]:
        return {
            "file_path": str(path),
            "file_type": "image" if path.suffix in {".png", ".jpg"} else "text",
            "candidates": self.candidates.get(path.name, []),
        }

    async def run_file(self, path: Path) -> str:
        path = Path(path)
        self.file_calls.append(path)
        if path.name in self.failing:
            raise EngineInvocationError(path, "exit status 1", returncode=1)
        if path.name in self.malformed:
            return "{not json"
        return json.dumps(self._payload(path))

    async def run_directory(self, path: Path) -> str:
        path = Path(path)
        self.directory_calls.append(path)
        if self.batch_error is not None:
            raise self.batch_error
        if self.batch_raw is not None:
            return self.batch_raw
        payload = {
            str(entry): self._payload(entry)
            for entry in sorted(path.iterdir())
            if entry.is_file()
        }
        return json.dumps(payload)


class VanishingEngine(StubEngine):
    """Deletes ``victim`` while analysing ``trigger``, as a concurrent cleanup would."""

    def __init__(self, trigger: str, victim: Path, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.trigger = trigger
        self.victim = victim

    async def run_file(self, path: Path) -> str:
        if Path(path).name == self.trigger:
            self.victim.unlink(missing_ok=True)
        return await super().run_file(path)


class FakeObserver:
    """Stands in for watchdog's Observer; events are injected by the test."""

    def __init__(self) -> None:
        self.handler: Any = None
        self.path: Optional[str] = None
        self.recursive: Optional[bool] = None
        self.started = False
        self.stopped = False
        self.joined = False

    def schedule(self, handler: Any, path: str, recursive: bool = False) -> None:
        self.handler = handler
        self.path = path
        self.recursive = recursive

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout: Optional[float] = None) -> None:
        self.joined = True


@pytest.fixture
def mock_settings():
    """Provide a plain MockSettings instance."""
    settings = MockSettings()
    yield settings


@pytest.fixture
def stub_engine():
    return StubEngine()


@pytest.fixture(autouse=True)
def _disable_dotenv(monkeypatch):
    """Prevent the application Settings class from reading the developer *.env* file.

    Unit-tests must operate against a *clean* environment.  Loading the real
    *.env* would inject values such as ``SUPPORTED_EXTENSIONS`` that invalidate
    default-value assertions (see *tests/unit/core/test_config.py*).
    """

    from promptprobe.core.config import Settings  # Imported here to avoid circularity

    monkeypatch.setitem(Settings.model_config, "env_file", None)

    for name in (
        "SUPPORTED_EXTENSIONS",
        "SUPPORTED_EXTENSIONS_RAW",
        "ENGINE_COMMAND",
        "SYSLOG_ADDRESS",
        "DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)
