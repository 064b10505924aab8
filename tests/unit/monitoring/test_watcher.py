from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, List, Optional

import pytest
from watchdog.events import DirCreatedEvent, FileCreatedEvent, FileMovedEvent

from promptprobe.core.exceptions import InputNotFoundError
from promptprobe.inference.client import InferenceClient
from promptprobe.monitoring.alerts import Alert, AlertEmitter
from promptprobe.monitoring.watcher import DirectoryWatcher, PathState
from tests.conftest import FakeObserver, MockSettings, StubEngine, make_candidate

DEBOUNCE = 0.05


class RecordingSink:
    def __init__(self) -> None:
        self.alerts: List[Alert] = []

    def notify(self, alert: Alert) -> None:
        self.alerts.append(alert)


async def _wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


def _watcher(
    root: Path, engine: StubEngine, sink: Optional[RecordingSink] = None, **kwargs: Any
) -> DirectoryWatcher:
    settings = MockSettings(debounce_seconds=DEBOUNCE)
    client = InferenceClient(engine, settings=settings)
    return DirectoryWatcher(
        root,
        client,
        AlertEmitter(sink or RecordingSink()),
        settings=settings,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_double_event_yields_one_dispatch(tmp_path: Path) -> None:
    target = tmp_path / "a.txt"
    target.write_text("hello")
    engine = StubEngine({"a.txt": [make_candidate(confidence=0.3)]})
    watcher = _watcher(tmp_path, engine)

    watcher.submit(str(target))
    watcher.submit(str(target))
    assert watcher.state_of(target) is PathState.PENDING

    await asyncio.sleep(DEBOUNCE * 3)
    assert watcher.state_of(target) is PathState.DISPATCH
    await watcher.process_next()

    assert engine.file_calls == [target]
    assert watcher.stats.dispatched == 1
    assert watcher.stats.events_seen == 2
    assert watcher.state_of(target) is PathState.IDLE


@pytest.mark.asyncio
async def test_unsupported_events_are_ignored(tmp_path: Path) -> None:
    watcher = _watcher(tmp_path, StubEngine())

    watcher.submit(str(tmp_path / "report.pdf"))

    assert watcher.stats.events_ignored == 1
    assert watcher.state_of(tmp_path / "report.pdf") is PathState.IDLE


@pytest.mark.asyncio
async def test_vanished_file_is_never_dispatched(tmp_path: Path) -> None:
    target = tmp_path / "partial.png"
    target.write_text("x")
    engine = StubEngine()
    watcher = _watcher(tmp_path, engine)

    watcher.submit(str(target))
    target.unlink()
    await asyncio.sleep(DEBOUNCE * 3)

    assert watcher.state_of(target) is PathState.IDLE
    assert engine.file_calls == []


@pytest.mark.asyncio
async def test_alert_at_exact_threshold(tmp_path: Path) -> None:
    target = tmp_path / "essay.md"
    target.write_text("x")
    sink = RecordingSink()
    watcher = _watcher(
        tmp_path,
        StubEngine({"essay.md": [make_candidate(confidence=0.8)]}),
        sink,
        threshold=0.8,
    )

    watcher.submit(str(target))
    await asyncio.sleep(DEBOUNCE * 3)
    await watcher.process_next()

    assert watcher.stats.alerts == 1
    assert [a.file_path for a in sink.alerts] == [str(target)]


@pytest.mark.asyncio
async def test_failure_does_not_stop_monitoring(tmp_path: Path) -> None:
    bad = tmp_path / "bad.txt"
    good = tmp_path / "good.png"
    bad.write_text("x")
    good.write_text("x")
    sink = RecordingSink()
    engine = StubEngine(
        {"good.png": [make_candidate(confidence=0.95)]},
        failing={"bad.txt"},
    )
    watcher = _watcher(tmp_path, engine, sink, threshold=0.8)

    watcher.submit(str(bad))
    watcher.submit(str(good))
    await asyncio.sleep(DEBOUNCE * 3)
    await watcher.process_next()
    await watcher.process_next()

    assert watcher.stats.failed == 1
    assert watcher.stats.alerts == 1
    assert sink.alerts[0].file_path == str(good)
    assert watcher.state_of(bad) is PathState.IDLE


class FlakyEmitter(AlertEmitter):
    """Raises on the first alert check, then behaves normally."""

    def __init__(self, sink: RecordingSink) -> None:
        super().__init__(sink)
        self.calls = 0

    def maybe_alert(self, result, threshold):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("alert formatting exploded")
        return super().maybe_alert(result, threshold)


@pytest.mark.asyncio
async def test_alert_failure_does_not_stop_monitoring(tmp_path: Path) -> None:
    first = tmp_path / "first.txt"
    second = tmp_path / "second.md"
    first.write_text("x")
    second.write_text("x")
    sink = RecordingSink()
    settings = MockSettings(debounce_seconds=DEBOUNCE)
    engine = StubEngine(
        {
            "first.txt": [make_candidate(confidence=0.9)],
            "second.md": [make_candidate(confidence=0.9)],
        }
    )
    watcher = DirectoryWatcher(
        tmp_path,
        InferenceClient(engine, settings=settings),
        FlakyEmitter(sink),
        threshold=0.8,
        settings=settings,
    )

    watcher.submit(str(first))
    await asyncio.sleep(DEBOUNCE * 3)
    await watcher.process_next()
    watcher.submit(str(second))
    await asyncio.sleep(DEBOUNCE * 3)
    await watcher.process_next()

    assert watcher.stats.failed == 1
    assert watcher.stats.alerts == 1
    assert [a.file_path for a in sink.alerts] == [str(second)]
    assert watcher.state_of(first) is PathState.IDLE


@pytest.mark.asyncio
async def test_malformed_output_is_counted_as_failure(tmp_path: Path) -> None:
    target = tmp_path / "a.txt"
    target.write_text("x")
    watcher = _watcher(tmp_path, StubEngine(malformed={"a.txt"}))

    watcher.submit(str(target))
    await asyncio.sleep(DEBOUNCE * 3)
    await watcher.process_next()

    assert watcher.stats.failed == 1
    assert watcher.stats.alerts == 0


@pytest.mark.asyncio
async def test_run_forwards_observer_events_and_stops(tmp_path: Path) -> None:
    observer = FakeObserver()
    sink = RecordingSink()
    engine = StubEngine({"new.jpg": [make_candidate(confidence=0.9)]})
    watcher = _watcher(tmp_path, engine, sink, threshold=0.8, observer_factory=lambda: observer)
    stop_event = asyncio.Event()

    task = asyncio.create_task(watcher.run(stop_event))
    await _wait_for(lambda: observer.started)
    assert observer.path == str(tmp_path)
    assert observer.recursive is True

    created = tmp_path / "new.jpg"
    created.write_text("x")
    observer.handler.dispatch(DirCreatedEvent(str(tmp_path / "subdir")))
    observer.handler.dispatch(FileCreatedEvent(str(created)))
    await _wait_for(lambda: watcher.stats.dispatched == 1)

    stop_event.set()
    stats = await asyncio.wait_for(task, timeout=2.0)

    assert stats.alerts == 1
    assert stats.events_seen == 1
    assert observer.stopped and observer.joined
    assert len(sink.alerts) == 1


@pytest.mark.asyncio
async def test_moved_in_file_uses_destination(tmp_path: Path) -> None:
    observer = FakeObserver()
    engine = StubEngine()
    watcher = _watcher(tmp_path, engine, observer_factory=lambda: observer)
    stop_event = asyncio.Event()

    task = asyncio.create_task(watcher.run(stop_event))
    await _wait_for(lambda: observer.started)

    dest = tmp_path / "final.txt"
    dest.write_text("x")
    observer.handler.dispatch(FileMovedEvent(str(tmp_path / ".final.txt.tmp"), str(dest)))
    await _wait_for(lambda: watcher.stats.dispatched == 1)

    stop_event.set()
    await asyncio.wait_for(task, timeout=2.0)

    assert engine.file_calls == [dest]


@pytest.mark.asyncio
async def test_events_after_stop_are_ignored(tmp_path: Path) -> None:
    observer = FakeObserver()
    engine = StubEngine()
    watcher = _watcher(tmp_path, engine, observer_factory=lambda: observer)
    stop_event = asyncio.Event()
    stop_event.set()

    await watcher.run(stop_event)
    target = tmp_path / "late.txt"
    target.write_text("x")
    watcher.submit(str(target))
    await asyncio.sleep(DEBOUNCE * 3)

    assert watcher.stats.events_seen == 0
    assert engine.file_calls == []


@pytest.mark.asyncio
async def test_run_rejects_missing_root(tmp_path: Path) -> None:
    observer = FakeObserver()
    watcher = _watcher(tmp_path / "missing", StubEngine(), observer_factory=lambda: observer)

    with pytest.raises(InputNotFoundError):
        await watcher.run(asyncio.Event())

    assert observer.started is False
