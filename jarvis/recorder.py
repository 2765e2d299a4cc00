import logging
import os
import sys
import threading
from typing import List, Optional

from . import config, ffmpeg, process
from .errors import AlreadyStarted, ConfigError, MediaToolError

log = logging.getLogger(__name__)


class Recorder:
    """
    Rolling microphone recorder.

    Drives one long-lived ffmpeg process that writes CHUNK_SECONDS segments to
    <output_dir>/chunk_<slot>.aac, wrapping after chunk_num slots so the disk
    footprint stays at chunk_num files. Nothing downstream talks back to it.

    The process runs in its own process group and is killed together with its
    children once the stop event passed to start() is set.
    """

    _POLL_S = 0.5

    def __init__(
        self,
        output_dir: str,
        chunk_num: int = config.CHUNK_NUM,
        chunk_seconds: int = config.CHUNK_SECONDS,
        debug: bool = False,
        platform: Optional[str] = None,
    ):
        if not output_dir:
            raise ConfigError("recorder output directory is required")
        if chunk_num < 2 or chunk_seconds < 1:
            raise ConfigError(
                f"invalid chunk settings: {chunk_num} chunks of {chunk_seconds}s"
            )
        config.ensure_dir(output_dir)

        self._output_dir    = output_dir
        self._chunk_num     = chunk_num
        self._chunk_seconds = chunk_seconds
        self._debug         = debug
        # Resolved eagerly so an unknown OS fails at startup.
        self._input_args    = ffmpeg.input_device_args(platform or sys.platform)

        self._proc = None
        self._thread: Optional[threading.Thread] = None

    def build_args(self) -> List[str]:
        chunk_args = ffmpeg.CHUNK_FFMPEG_ARGS + [
            "-segment_time", str(self._chunk_seconds),
            "-segment_wrap", str(self._chunk_num),
        ]
        return ffmpeg.build_ffmpeg_args(
            chunk_args,
            self._input_args,
            [os.path.join(self._output_dir, ffmpeg.CHUNK_PATTERN)],
        )

    # ── lifecycle ─────────────────────────────────────────────────────────────

    def start(self, stop_event: threading.Event):
        if self._proc is not None:
            raise AlreadyStarted("recorder already started")

        try:
            self._proc = process.spawn(self.build_args(), self._debug)
        except OSError as exc:
            raise MediaToolError(f"failed to launch ffmpeg recorder: {exc}") from exc

        self._thread = threading.Thread(
            target=self._supervise, args=(stop_event,), name="recorder", daemon=True
        )
        self._thread.start()
        log.info(
            "Recorder started (%d × %ds chunks → %s)",
            self._chunk_num, self._chunk_seconds, self._output_dir,
        )

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the supervisor thread exits. Returns False on timeout."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _supervise(self, stop_event: threading.Event):
        while not stop_event.wait(self._POLL_S):
            code = self._proc.poll()
            if code is not None:
                log.error("ffmpeg recorder exited unexpectedly (code %d), no new chunks.", code)
                return
        process.kill_group(self._proc)
        log.info("Recorder stopped.")
