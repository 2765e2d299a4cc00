import logging
import wave
from typing import Tuple

import numpy as np
import webrtcvad

from . import config

log = logging.getLogger(__name__)


def read_wav_pcm(path: str) -> Tuple[bytes, int]:
    """Return (16-bit mono PCM, sample rate) from a combined artifact."""
    with wave.open(path, "rb") as wf:
        if wf.getsampwidth() != 2 or wf.getnchannels() != 1:
            raise ValueError(
                f"{path}: expected 16-bit mono, got {wf.getsampwidth() * 8}-bit "
                f"x{wf.getnchannels()}"
            )
        return wf.readframes(wf.getnframes()), wf.getframerate()


def pcm_rms(pcm_bytes: bytes) -> int:
    samples = np.frombuffer(pcm_bytes, dtype=np.int16).astype(np.int32)
    if samples.size == 0:
        return 0
    return int(np.sqrt(np.mean(samples ** 2)))


class SpeechGate:
    """
    Cheap pre-STT check on a combined WAV.

    Rejects artifacts quieter than silence_rms, then runs WebRTC VAD over
    30 ms frames and requires at least min_speech_ms of voiced audio.

    AudioProcessor deletes a rejected artifact without transcribing it.
    """

    _FRAME_MS = 30

    def __init__(
        self,
        aggressiveness: int = config.VAD_AGGRESSIVENESS,
        min_speech_ms: int = config.VAD_MIN_SPEECH_MS,
        silence_rms: int = config.SILENCE_RMS,
    ):
        self._vad = webrtcvad.Vad(aggressiveness)
        self._min_frames = max(1, min_speech_ms // self._FRAME_MS)
        self._silence_rms = silence_rms

    def __call__(self, path: str) -> bool:
        try:
            return self.has_speech(path)
        except (wave.Error, ValueError, EOFError) as exc:
            # Unreadable here does not mean unreadable for the STT engine.
            log.warning("Speech gate skipped for %s: %s", path, exc)
            return True

    def has_speech(self, path: str) -> bool:
        pcm, rate = read_wav_pcm(path)

        rms = pcm_rms(pcm)
        if rms < self._silence_rms:
            log.debug("Speech gate: %s below silence level (rms=%d)", path, rms)
            return False

        frame_bytes = rate * self._FRAME_MS // 1000 * 2
        voiced = 0
        for offset in range(0, len(pcm) - frame_bytes + 1, frame_bytes):
            if self._vad.is_speech(pcm[offset: offset + frame_bytes], rate):
                voiced += 1
                if voiced >= self._min_frames:
                    return True
        log.debug("Speech gate: %s has %d voiced frames (rms=%d)", path, voiced, rms)
        return False
