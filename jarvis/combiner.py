import logging
import os
import queue
import sys
import threading
import time
from typing import Callable, List, Optional

from watchdog.events import (
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_MODIFIED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from . import config, ffmpeg, process
from .errors import AlreadyStarted, ConfigError, FSEventError, MediaToolError

log = logging.getLogger(__name__)

# on_combined(stop_event, combined_path)
OnCombined = Callable[[threading.Event, str], None]

# inotify reports the close after ffmpeg finishes a segment. FSEvents and
# ReadDirectoryChangesW have no close event, so a modification is the best
# signal there. A bare "created" is never used: the file may still be empty.
if sys.platform.startswith("linux"):
    WRITE_COMPLETE_EVENT = EVENT_TYPE_CLOSED
else:
    WRITE_COMPLETE_EVENT = EVENT_TYPE_MODIFIED


class _EventQueue(FileSystemEventHandler):
    """Forwards every watchdog event to the combiner's worker thread."""

    def __init__(self, events: "queue.Queue[FileSystemEvent]"):
        self._events = events

    def on_any_event(self, event: FileSystemEvent):
        self._events.put(event)


class Combiner:
    """
    Turns rolling chunks into overlapping two-chunk WAV artifacts.

    For every completed chunk_<k>.aac the previous slot's chunk and the current
    one are joined into <output_dir>/combined_<nanos>.wav, so an utterance cut
    by a chunk boundary is whole in at least one artifact. On cold start, when
    the previous slot does not exist yet, the current chunk is used alone.

    State machine:
      UNSTARTED — constructed, not watching.
      RUNNING   — watchdog observer feeds a queue; one worker thread handles
                  events strictly in arrival order and calls on_combined
                  synchronously, so event k+1 waits for event k's callback.
      STOPPED   — terminal. Reached on stop event, watcher death, a failed
                  ffmpeg combine, or an exception from on_combined.

    on_combined is expected to handle its own per-artifact failures; anything
    it raises stops the combiner.
    """

    UNSTARTED = "UNSTARTED"
    RUNNING   = "RUNNING"
    STOPPED   = "STOPPED"

    _POLL_S = 0.2

    def __init__(
        self,
        input_dir: str,
        output_dir: str,
        on_combined: Optional[OnCombined],
        chunk_num: int = config.CHUNK_NUM,
        debug: bool = False,
        write_event: str = WRITE_COMPLETE_EVENT,
        observer_factory: Callable = Observer,
    ):
        if not input_dir:
            raise ConfigError("combiner input directory is required")
        if not output_dir:
            raise ConfigError("combiner output directory is required")
        if on_combined is None:
            raise ConfigError("combiner on_combined callback is required")
        config.ensure_dir(input_dir)
        config.ensure_dir(output_dir)

        self._input_dir   = input_dir
        self._output_dir  = output_dir
        self._on_combined = on_combined
        self._chunk_num   = chunk_num
        self._debug       = debug
        self._write_event = write_event
        self._observer_factory = observer_factory

        self._events: "queue.Queue[FileSystemEvent]" = queue.Queue()
        self._observer = None
        self._thread: Optional[threading.Thread] = None
        self._state = self.UNSTARTED
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._last_nanos = 0

    @property
    def state(self) -> str:
        return self._state

    # ── lifecycle ─────────────────────────────────────────────────────────────

    def start(self, stop_event: threading.Event):
        with self._lock:
            if self._state != self.UNSTARTED:
                raise AlreadyStarted("combiner already started")

            observer = self._observer_factory()
            try:
                observer.schedule(_EventQueue(self._events), self._input_dir, recursive=False)
                observer.start()
            except OSError as exc:
                raise FSEventError(f"failed to watch {self._input_dir}: {exc}") from exc

            self._observer = observer
            self._state = self.RUNNING

        self._thread = threading.Thread(
            target=self._run, args=(stop_event,), name="combiner", daemon=True
        )
        self._thread.start()
        log.info("Combiner started (watching %s → %s)", self._input_dir, self._output_dir)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the combiner reaches STOPPED. Returns False on timeout."""
        return self._stopped.wait(timeout)

    def _stop(self, reason: str):
        # Only the worker thread calls this.
        with self._lock:
            if self._state == self.STOPPED:
                return
            self._state = self.STOPPED
            observer, self._observer = self._observer, None

        if observer is not None:
            observer.stop()
            observer.join(timeout=2)
        self._stopped.set()
        log.info("Combiner stopped: %s", reason)

    def _run(self, stop_event: threading.Event):
        while True:
            if stop_event.is_set():
                self._stop("stop requested")
                return

            try:
                event = self._events.get(timeout=self._POLL_S)
            except queue.Empty:
                if not self._observer.is_alive():
                    self._stop("filesystem watcher closed")
                    return
                continue

            try:
                self.handle_event(stop_event, event)
            except Exception as exc:
                self._stop(f"failed to handle watcher event: {exc}")
                return

    # ── event handling ────────────────────────────────────────────────────────

    def handle_event(self, stop_event: threading.Event, event: FileSystemEvent) -> Optional[str]:
        """Combine for a completed chunk. Returns the artifact path, or None
        when the event is not a completed write of a chunk file."""
        if event.is_directory or event.event_type != self._write_event:
            return None

        match = ffmpeg.CHUNK_REGEX.search(os.path.basename(os.fsdecode(event.src_path)))
        if match is None:
            return None

        if self._debug:
            log.info("chunk event: %s %s", event.event_type, event.src_path)

        return self.handle_chunk(stop_event, int(match.group(1)))

    def handle_chunk(self, stop_event: threading.Event, slot: int) -> str:
        prev_slot = ffmpeg.previous_slot(slot, self._chunk_num)
        curr_path = os.path.join(self._input_dir, ffmpeg.chunk_name(slot))
        prev_path = os.path.join(self._input_dir, ffmpeg.chunk_name(prev_slot))

        if os.path.exists(prev_path):
            inputs = [prev_path, curr_path]
        else:
            # Cold start: chunk_0 arrives before any chunk_5 exists.
            inputs = [curr_path]

        combined_path = os.path.join(self._output_dir, ffmpeg.combined_name(self._next_nanos()))

        if self._debug:
            log.info("handling chunk %d, previous chunk %d", slot, prev_slot)

        self.combine(stop_event, inputs, combined_path)
        self._on_combined(stop_event, combined_path)
        return combined_path

    def combine(self, stop_event: threading.Event, inputs: List[str], combined_path: str):
        args = ffmpeg.build_ffmpeg_args(
            ffmpeg.COMBINED_FFMPEG_ARGS,
            ["-i", ffmpeg.concat_input(inputs)],
            [combined_path],
        )
        try:
            code = process.run(args, stop_event, self._debug)
        except OSError as exc:
            raise MediaToolError(f"failed to launch ffmpeg: {exc}") from exc
        if code != 0:
            raise MediaToolError(f"ffmpeg exited with code {code} combining {inputs}")

        if self._debug:
            log.info("combined chunks: %s -> %s", " + ".join(inputs), combined_path)

    def _next_nanos(self) -> int:
        # Strictly increasing even if two events land in the same clock tick.
        nanos = max(time.time_ns(), self._last_nanos + 1)
        self._last_nanos = nanos
        return nanos
