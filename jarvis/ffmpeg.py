import re
from typing import List, Sequence

from .errors import PlatformError

# ─── Chunks ───────────────────────────────────────────────────────────────────
# AAC in ADTS: ffmpeg's `concat:` protocol joins these byte-for-byte, which
# neither WAV nor most other containers tolerate.
CHUNK_FORMAT  = "aac"
CHUNK_PATTERN = f"chunk_%d.{CHUNK_FORMAT}"
CHUNK_REGEX   = re.compile(rf"chunk_(\d+)\.{CHUNK_FORMAT}$")

CHUNK_FFMPEG_ARGS = [
    "-acodec", "aac",
    "-ar", "16000",               # 16 kHz, what Whisper expects
    "-ac", "1",                   # mono
    "-f", "segment",
    "-segment_format", CHUNK_FORMAT,
    "-reset_timestamps", "1",     # every segment decodes on its own
]

# ─── Combined artifacts ───────────────────────────────────────────────────────
COMBINED_FORMAT  = "wav"
COMBINED_PATTERN = f"combined_%d.{COMBINED_FORMAT}"

COMBINED_FFMPEG_ARGS = [
    "-acodec", "pcm_s16le",
    "-ar", "16000",
    "-ac", "1",
]

# ─── Input devices ────────────────────────────────────────────────────────────
_INPUT_DEVICES = {
    "darwin": ["-f", "avfoundation", "-i", ":0"],        # default microphone
    "linux":  ["-f", "alsa", "-i", "default"],
    "win32":  ["-f", "dshow", "-i", "audio=Microphone"],  # adjust to your device name
}


def input_device_args(platform: str) -> List[str]:
    """Return the capture input args for a `sys.platform` value."""
    for prefix, args in _INPUT_DEVICES.items():
        if platform.startswith(prefix):
            return list(args)
    raise PlatformError(f"unsupported platform: {platform!r}")


def build_ffmpeg_args(config_args: Sequence[str], input_args: Sequence[str],
                      output_args: Sequence[str]) -> List[str]:
    """ffmpeg wants its input first, then codec options, then the output."""
    return ["ffmpeg", "-hide_banner", *input_args, *config_args, *output_args]


def chunk_name(slot: int) -> str:
    return CHUNK_PATTERN % slot


def combined_name(nanos: int) -> str:
    return COMBINED_PATTERN % nanos


def previous_slot(slot: int, chunk_num: int) -> int:
    """Slot written just before *slot* under segment wrap (0 → chunk_num-1)."""
    return (slot - 1 + chunk_num) % chunk_num


def concat_input(paths: Sequence[str]) -> str:
    if len(paths) == 1:
        return paths[0]
    return "concat:" + "|".join(paths)
