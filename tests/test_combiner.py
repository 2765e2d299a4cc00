import os
import threading
import time

import pytest
from watchdog.events import (
    EVENT_TYPE_CLOSED,
    DirModifiedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileModifiedEvent,
)

from conftest import FakeObserver
from jarvis import combiner as combiner_mod
from jarvis.combiner import Combiner
from jarvis.errors import AlreadyStarted, ConfigError, MediaToolError


class Recorded:
    def __init__(self):
        self.paths = []
        self.called = threading.Event()

    def __call__(self, stop_event, path):
        self.paths.append(path)
        self.called.set()


@pytest.fixture
def dirs(tmp_path):
    return str(tmp_path / "chunks"), str(tmp_path / "combined")


def _make(dirs, on_combined=None, **kwargs):
    kwargs.setdefault("write_event", EVENT_TYPE_CLOSED)
    return Combiner(dirs[0], dirs[1], on_combined or Recorded(), chunk_num=6, **kwargs)


def _touch_chunk(dirs, slot):
    path = os.path.join(dirs[0], f"chunk_{slot}.aac")
    with open(path, "wb") as fh:
        fh.write(b"\xff\xf1")
    return path


def _ffmpeg_input(args):
    return args[args.index("-i") + 1]


def test_constructor_validates_and_creates_dirs(dirs):
    with pytest.raises(ConfigError):
        Combiner("", dirs[1], Recorded())
    with pytest.raises(ConfigError):
        Combiner(dirs[0], "", Recorded())
    with pytest.raises(ConfigError):
        Combiner(dirs[0], dirs[1], None)

    _make(dirs)
    assert os.path.isdir(dirs[0]) and os.path.isdir(dirs[1])


def test_cold_start_uses_current_chunk_alone(dirs, fake_run, stop_event):
    on_combined = Recorded()
    comb = _make(dirs, on_combined)
    curr = _touch_chunk(dirs, 0)

    out = comb.handle_event(stop_event, FileClosedEvent(curr))

    assert _ffmpeg_input(fake_run.calls[0]) == curr
    assert on_combined.paths == [out]
    assert os.path.dirname(out) == dirs[1]
    assert os.path.basename(out).startswith("combined_") and out.endswith(".wav")


def test_wraps_to_previous_slot_then_follows_sequence(dirs, fake_run, stop_event):
    comb = _make(dirs)
    chunk_5 = _touch_chunk(dirs, 5)
    chunk_0 = _touch_chunk(dirs, 0)

    comb.handle_event(stop_event, FileClosedEvent(chunk_0))
    chunk_1 = _touch_chunk(dirs, 1)
    comb.handle_event(stop_event, FileClosedEvent(chunk_1))

    assert _ffmpeg_input(fake_run.calls[0]) == f"concat:{chunk_5}|{chunk_0}"
    assert _ffmpeg_input(fake_run.calls[1]) == f"concat:{chunk_0}|{chunk_1}"


def test_combined_output_is_mono_16k_pcm(dirs, fake_run, stop_event):
    comb = _make(dirs)
    comb.handle_event(stop_event, FileClosedEvent(_touch_chunk(dirs, 3)))
    args = fake_run.calls[0]
    assert args[args.index("-acodec") + 1] == "pcm_s16le"
    assert args[args.index("-ar") + 1] == "16000"
    assert args[args.index("-ac") + 1] == "1"


@pytest.mark.parametrize("make_event", [
    lambda d: FileCreatedEvent(os.path.join(d, "chunk_1.aac")),
    lambda d: FileModifiedEvent(os.path.join(d, "chunk_1.aac")),
    lambda d: FileClosedEvent(os.path.join(d, "chunk_1.wav")),
    lambda d: FileClosedEvent(os.path.join(d, "combined_1.aac")),
    lambda d: FileClosedEvent(os.path.join(d, "chunk_x.aac")),
    lambda d: DirModifiedEvent(d),
])
def test_ignores_everything_but_completed_chunk_writes(dirs, fake_run, stop_event, make_event):
    on_combined = Recorded()
    comb = _make(dirs, on_combined)
    assert comb.handle_event(stop_event, make_event(dirs[0])) is None
    assert fake_run.calls == []
    assert on_combined.paths == []


def test_modified_is_write_complete_where_close_is_unavailable(dirs, fake_run, stop_event):
    comb = _make(dirs, write_event="modified")
    assert comb.handle_event(stop_event, FileModifiedEvent(_touch_chunk(dirs, 2))) is not None
    assert comb.handle_event(stop_event, FileClosedEvent(_touch_chunk(dirs, 3))) is None


def test_artifact_names_are_distinct_within_one_clock_tick(dirs, fake_run, stop_event, monkeypatch):
    monkeypatch.setattr(combiner_mod.time, "time_ns", lambda: 1_000)
    comb = _make(dirs)
    paths = [comb.handle_chunk(stop_event, slot % 6) for slot in range(20)]
    assert len(set(paths)) == len(paths)


def test_failed_combine_skips_callback(dirs, fake_run, stop_event):
    fake_run.code = 1
    on_combined = Recorded()
    comb = _make(dirs, on_combined)
    with pytest.raises(MediaToolError):
        comb.handle_chunk(stop_event, 0)
    assert on_combined.paths == []


# ── running combiner ──────────────────────────────────────────────────────────

def _start(dirs, stop_event, on_combined=None):
    observer = FakeObserver()
    comb = _make(dirs, on_combined, observer_factory=lambda: observer)
    comb.start(stop_event)
    return comb, observer


def test_running_combiner_handles_events_and_stops_on_request(dirs, fake_run):
    stop = threading.Event()
    on_combined = Recorded()
    comb, observer = _start(dirs, stop, on_combined)
    assert comb.state == Combiner.RUNNING
    assert observer.path == dirs[0]

    observer.handler.on_any_event(FileClosedEvent(_touch_chunk(dirs, 0)))
    assert on_combined.called.wait(5)

    stop.set()
    assert comb.wait(5)
    assert comb.state == Combiner.STOPPED
    assert observer.stopped


def test_start_twice_is_already_started(dirs, fake_run, stop_event):
    comb, _ = _start(dirs, stop_event)
    with pytest.raises(AlreadyStarted):
        comb.start(stop_event)


def test_stopped_is_terminal(dirs, fake_run):
    stop = threading.Event()
    comb, _ = _start(dirs, stop)
    stop.set()
    assert comb.wait(5)
    with pytest.raises(AlreadyStarted):
        comb.start(threading.Event())


def test_combine_failure_stops_combiner(dirs, fake_run, stop_event):
    fake_run.code = 1
    comb, observer = _start(dirs, stop_event)
    observer.handler.on_any_event(FileClosedEvent(_touch_chunk(dirs, 0)))
    assert comb.wait(5)
    assert comb.state == Combiner.STOPPED


def test_callback_exception_stops_combiner(dirs, fake_run, stop_event):
    def explode(stop_event, path):
        raise RuntimeError("boom")

    comb, observer = _start(dirs, stop_event, explode)
    observer.handler.on_any_event(FileClosedEvent(_touch_chunk(dirs, 0)))
    assert comb.wait(5)


def test_watcher_death_stops_combiner(dirs, fake_run, stop_event):
    comb, observer = _start(dirs, stop_event)
    observer.alive = False
    assert comb.wait(5)
    assert comb.state == Combiner.STOPPED


def test_events_are_handled_in_arrival_order(dirs, fake_run, stop_event):
    on_combined = Recorded()
    comb, observer = _start(dirs, stop_event, on_combined)
    for slot in (2, 3, 4):
        observer.handler.on_any_event(FileClosedEvent(_touch_chunk(dirs, slot)))

    for _ in range(50):
        if len(fake_run.calls) == 3:
            break
        time.sleep(0.1)
    inputs = [_ffmpeg_input(args) for args in fake_run.calls]
    assert [i.rsplit("|", 1)[-1] for i in inputs] == [
        os.path.join(dirs[0], f"chunk_{slot}.aac") for slot in (2, 3, 4)
    ]
