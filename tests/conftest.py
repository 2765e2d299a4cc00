"""Pytest configuration and shared fakes."""

import sys
import threading
from pathlib import Path

import pytest


def _ensure_repo_on_path() -> None:
    """Allow tests to import from repo modules without installing the package."""
    repo_root = Path(__file__).resolve().parents[1]
    path_str = str(repo_root)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)


_ensure_repo_on_path()


class FakeTranscriber:
    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.calls = []

    def transcribe(self, stop_event, file_path):
        self.calls.append(file_path)
        if self.error is not None:
            raise self.error
        return self.text


class FakeInterpreter:
    def __init__(self, response="", error=None):
        self.response = response
        self.error = error
        self.prompts = []
        self.timeouts = []

    def prompt(self, stop_event, prompt, timeout=None):
        self.prompts.append(prompt)
        self.timeouts.append(timeout)
        if self.error is not None:
            raise self.error
        return self.response


class FakeExecutor:
    def __init__(self):
        self.sent = []

    def send_command(self, command):
        self.sent.append(command)


class FakeProcessRun:
    """Stands in for jarvis.process.run; writes the output file on success."""

    def __init__(self, code=0):
        self.code = code
        self.calls = []

    def __call__(self, args, stop_event, debug=False):
        self.calls.append(list(args))
        if self.code == 0 and args and args[0] == "ffmpeg":
            Path(args[-1]).write_bytes(b"RIFF")
        return self.code


@pytest.fixture
def stop_event():
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture
def fake_run(monkeypatch):
    from jarvis import process

    fake = FakeProcessRun()
    monkeypatch.setattr(process, "run", fake)
    return fake


class FakeObserver:
    """Stands in for watchdog's Observer; tests push events via .handler."""

    def __init__(self):
        self.handler = None
        self.alive = False
        self.stopped = False

    def schedule(self, handler, path, recursive=False):
        self.handler = handler
        self.path = path

    def start(self):
        self.alive = True

    def stop(self):
        self.stopped = True
        self.alive = False

    def join(self, timeout=None):
        pass

    def is_alive(self):
        return self.alive
