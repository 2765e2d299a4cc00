import logging
import os
import threading
import time
from typing import Callable, Optional, Sequence

from . import commands, config
from .errors import LLMTimeout

log = logging.getLogger(__name__)


class AudioProcessor:
    """
    Turns one combined artifact into at most one dispatched command:
      transcribe → delete artifact → normalise → wake word → LLM → match → send

    Each step short-circuits on an empty result so the LLM is only asked
    about transcripts that mention the wake word.

    transcriber — .transcribe(stop_event, path) -> str
    interpreter — .prompt(stop_event, prompt, timeout=...) -> str, LLMTimeout on deadline
    executor    — .send_command(command)
    speech_gate — optional callable(path) -> bool run before transcription
    """

    def __init__(
        self,
        transcriber,
        interpreter,
        executor,
        wake_word: str = config.WAKE_WORD,
        command_list: Sequence[str] = commands.COMMANDS,
        timeout: Optional[float] = None,
        speech_gate: Optional[Callable[[str], bool]] = None,
        debug: bool = False,
    ):
        self._transcriber  = transcriber
        self._interpreter  = interpreter
        self._executor     = executor
        self._wake_word    = wake_word.lower()
        self._commands     = tuple(command_list)
        self._timeout      = timeout
        self._speech_gate  = speech_gate
        self._debug        = debug

    # ── combiner callback (runs on the combiner thread) ──────────────────────

    def __call__(self, stop_event: threading.Event, file_path: str):
        """on_combined hook. Per-artifact failures are logged, never raised,
        so a flaky STT or LLM never stops the combiner."""
        try:
            self.process(stop_event, file_path)
        except Exception as exc:
            log.error("Abandoned %s: %s", os.path.basename(file_path), exc)

    def process(self, stop_event: threading.Event, file_path: str) -> str:
        """Run the pipeline on *file_path*. Returns the dispatched command or ""."""
        if self._speech_gate is not None and not self._speech_gate(file_path):
            os.remove(file_path)
            return ""

        transcript = self.transcribe(stop_event, file_path)
        if not transcript:
            return ""
        if self._debug:
            log.info("transcript: %s", transcript)

        if not commands.has_wake_word(transcript, self._wake_word):
            return ""
        if self._debug:
            log.info("transcript has wake word: %s", transcript)

        command = self.extract_command(stop_event, transcript)
        if not command:
            return ""

        self._executor.send_command(command)
        log.info("Dispatched %s (heard: %r)", command, transcript)
        return command

    def transcribe(self, stop_event: threading.Event, file_path: str) -> str:
        t0 = time.time()
        raw = self._transcriber.transcribe(stop_event, file_path)
        if self._debug:
            log.info("STT: completed in %.0f ms", (time.time() - t0) * 1000)

        # The artifact is ours; remove it as soon as the STT engine is done.
        os.remove(file_path)

        return commands.normalize_transcript(raw)

    def extract_command(self, stop_event: threading.Event, transcript: str) -> str:
        prompt = commands.build_prompt(transcript, self._commands)

        t0 = time.time()
        try:
            response = self._interpreter.prompt(stop_event, prompt, timeout=self._timeout)
        except LLMTimeout:
            log.info("LLM: timed out after %.1fs, no command.", time.time() - t0)
            return ""
        if self._debug:
            log.info("LLM: %r in %.0f ms", response, (time.time() - t0) * 1000)

        command = commands.match_command(response, self._commands)
        if not command:
            log.info("LLM: no command in response %r", response.strip())
        return command
