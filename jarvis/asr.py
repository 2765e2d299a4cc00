import base64
import logging
import os
import subprocess
import threading
from typing import List, Optional

import requests

from . import config, process
from .errors import ConfigError, STTError, STTUnavailable

log = logging.getLogger(__name__)


class WhisperTranscriber:
    """
    Runs the whisper CLI inside the docker compose service and reads back the
    sidecar <output_dir>/<basename>.txt it writes. The sidecar is deleted once
    read. The audio path must be visible at the same location inside the
    container (mount the artifacts directory at the same path).
    """

    def __init__(
        self,
        model: str,
        language: str,
        output_dir: str,
        prompt: str = config.WHISPER_PROMPT,
        service: str = config.WHISPER_SERVICE,
        debug: bool = False,
        check_running: bool = True,
    ):
        if not model:
            raise ConfigError("whisper model is required")
        if not language:
            raise ConfigError("whisper language is required")
        if not output_dir:
            raise ConfigError("whisper output directory is required")

        self._model      = model
        self._language   = language
        self._output_dir = output_dir
        self._prompt     = prompt
        self._service    = service
        self._debug      = debug

        if check_running:
            self.ensure_running()
        config.ensure_dir(output_dir)

    def ensure_running(self):
        """Raise STTUnavailable unless the whisper compose service is up."""
        try:
            result = subprocess.run(
                ["docker", "compose", "ps", "--status=running", "--services"],
                capture_output=True, text=True, timeout=15,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired) as exc:
            raise STTUnavailable(f"failed to check running containers: {exc}") from exc
        if result.returncode != 0:
            raise STTUnavailable(
                f"failed to check running containers: {result.stderr.strip()}"
            )

        services = [s.strip() for s in result.stdout.splitlines() if s.strip()]
        if self._debug:
            log.info("services running: %s", services)
        if self._service not in services:
            raise STTUnavailable(f"service {self._service!r} is not running")

    def build_args(self, file_path: str) -> List[str]:
        args = [
            "docker", "compose", "exec", "-T", self._service,
            "whisper", file_path,
            # Each artifact stands alone; don't condition on earlier text.
            "--condition_on_previous_text", "False",
            "--model", self._model,
            "--language", self._language,
            "--output_format", "txt",
            "--output_dir", self._output_dir,
        ]
        if self._prompt:
            args += ["--initial_prompt", self._prompt]
        return args

    def transcript_path(self, file_path: str) -> str:
        stem = os.path.splitext(os.path.basename(file_path))[0]
        return os.path.join(self._output_dir, f"{stem}.txt")

    def transcribe(self, stop_event: threading.Event, file_path: str) -> str:
        try:
            code = process.run(self.build_args(file_path), stop_event, self._debug)
        except OSError as exc:
            raise STTError(f"failed to launch whisper: {exc}") from exc
        if code != 0:
            raise STTError(f"transcription command failed with code {code}")

        txt_path = self.transcript_path(file_path)
        try:
            # Whisper can emit broken bytes on noise; keep what decodes.
            with open(txt_path, encoding="utf-8", errors="replace") as fh:
                text = fh.read()
            os.remove(txt_path)
        except OSError as exc:
            raise STTError(f"failed to read transcription file: {exc}") from exc

        text = text.strip()
        if self._debug:
            log.info("whisper transcript: %r", text)
        return text


class HTTPTranscriber:
    """Send a WAV file to the ASR service and return transcribed text."""

    def __init__(self, endpoint: str = config.ASR_ENDPOINT,
                 timeout: int = config.ASR_TIMEOUT, debug: bool = False):
        self._endpoint = endpoint
        self._timeout  = timeout
        self._debug    = debug

    def transcribe(self, stop_event: threading.Event, file_path: str) -> str:
        try:
            with open(file_path, "rb") as fh:
                b64 = base64.b64encode(fh.read()).decode()
        except OSError as exc:
            raise STTError(f"failed to read audio file: {exc}") from exc

        try:
            resp = requests.post(
                self._endpoint,
                json={"wav_base64": b64},
                timeout=self._timeout,
            )
            resp.raise_for_status()
            text = (resp.json().get("text") or "").strip()
        except requests.RequestException as exc:
            raise STTError(f"ASR request failed: {exc}") from exc
        except (ValueError, AttributeError) as exc:
            raise STTError(f"ASR unexpected response: {exc}") from exc

        log.debug("ASR result: %r", text)
        return text


def create_transcriber(model: str, language: str, output_dir: str,
                       backend: Optional[str] = None, debug: bool = False):
    backend = (backend or config.STT_BACKEND).lower()
    if backend == "whisper":
        return WhisperTranscriber(model, language, output_dir, debug=debug)
    if backend == "http":
        return HTTPTranscriber(debug=debug)
    raise ConfigError(f"unknown STT_BACKEND {backend!r} (expected whisper or http)")
