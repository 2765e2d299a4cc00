import os
from dataclasses import dataclass

from .errors import ConfigError

# ─── Logging ──────────────────────────────────────────────────────────────────
LOG_FILE  = os.getenv("LOG_FILE",  "jarvis.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ─── Rolling chunks ───────────────────────────────────────────────────────────
# CHUNK_NUM slots of CHUNK_SECONDS each are kept on disk (chunk_0 … chunk_5).
CHUNK_NUM     = int(os.getenv("CHUNK_NUM",     "6"))
CHUNK_SECONDS = int(os.getenv("CHUNK_SECONDS", "2"))

# ─── Wake word ────────────────────────────────────────────────────────────────
# Matched as a substring of the lowered transcript.
WAKE_WORD = os.getenv("WAKE_WORD", "jarvis").lower()

# ─── Speech-to-text ───────────────────────────────────────────────────────────
# STT_BACKEND — "whisper" drives the whisper CLI inside the docker compose
#   service; "http" posts the WAV to an ASR service at ASR_BASE_URL.
STT_BACKEND     = os.getenv("STT_BACKEND",     "whisper").lower()
WHISPER_SERVICE = os.getenv("WHISPER_SERVICE", "whisper")
WHISPER_PROMPT  = os.getenv("WHISPER_PROMPT",  "")
ASR_BASE_URL    = os.getenv("ASR_BASE_URL",    "http://localhost:8005")
ASR_ENDPOINT    = f"{ASR_BASE_URL}/asr"
ASR_TIMEOUT     = int(os.getenv("ASR_TIMEOUT", "30"))

# ─── Executor link ────────────────────────────────────────────────────────────
# Dial the executor once at startup so the listener fails fast when it is down.
EXECUTOR_HEALTHCHECK = os.getenv("EXECUTOR_HEALTHCHECK", "true").lower() == "true"

# ─── Speech gate ──────────────────────────────────────────────────────────────
# Optional WebRTC VAD pass over each combined WAV before it reaches the STT
# engine. Off by default: every artifact is transcribed.
SPEECH_GATE        = os.getenv("SPEECH_GATE", "false").lower() == "true"
VAD_AGGRESSIVENESS = int(os.getenv("VAD_AGGRESSIVENESS", "3"))    # 0-3
VAD_MIN_SPEECH_MS  = int(os.getenv("VAD_MIN_SPEECH_MS",  "300"))  # voiced ms needed
SILENCE_RMS        = int(os.getenv("SILENCE_RMS",        "0"))    # 0 = no level check


def lookup(name: str) -> str:
    """Return a required env var or raise ConfigError."""
    value = os.getenv(name)
    if value is None:
        raise ConfigError(f"env var {name} not set")
    return value


def lookup_bool(name: str) -> bool:
    """Debug toggles are optional; only the literal "true" enables them."""
    return os.getenv(name, "false").lower() == "true"


def lookup_int(name: str) -> int:
    value = lookup(name)
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"env var {name} is not an integer: {value!r}") from None


def split_address(address: str, default_host: str = "127.0.0.1"):
    """Split "host:port" into (host, port). An empty host means loopback."""
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ConfigError(f"invalid address {address!r}, expected host:port")
    try:
        port_num = int(port)
    except ValueError:
        raise ConfigError(f"invalid port in address {address!r}") from None
    return host or default_host, port_num


@dataclass
class ListenerEnv:
    executor_address: str
    recorder_output_dir: str
    combiner_output_dir: str
    ollama_url: str
    ollama_model: str
    ollama_timeout: int
    whisper_model: str
    whisper_language: str
    whisper_output_dir: str
    recorder_debug: bool = False
    combiner_debug: bool = False
    whisper_debug: bool = False
    ollama_debug: bool = False
    audio_processor_debug: bool = False
    executor_debug: bool = False

    @classmethod
    def from_env(cls) -> "ListenerEnv":
        return cls(
            executor_address=lookup("EXECUTOR_ADDRESS"),
            recorder_output_dir=lookup("RECORDER_OUTPUT_DIR"),
            combiner_output_dir=lookup("COMBINER_OUTPUT_DIR"),
            ollama_url=lookup("OLLAMA_URL"),
            ollama_model=lookup("OLLAMA_MODEL"),
            ollama_timeout=lookup_int("OLLAMA_TIMEOUT"),
            whisper_model=lookup("WHISPER_MODEL"),
            whisper_language=lookup("WHISPER_LANGUAGE"),
            whisper_output_dir=lookup("WHISPER_OUTPUT_DIR"),
            recorder_debug=lookup_bool("RECORDER_DEBUG"),
            combiner_debug=lookup_bool("COMBINER_DEBUG"),
            whisper_debug=lookup_bool("WHISPER_DEBUG"),
            ollama_debug=lookup_bool("OLLAMA_DEBUG"),
            audio_processor_debug=lookup_bool("AUDIO_PROCESSOR_DEBUG"),
            executor_debug=lookup_bool("EXECUTOR_DEBUG"),
        )


@dataclass
class ExecutorEnv:
    executor_address: str
    executor_debug: bool = False
    message_handler_debug: bool = False
    command_debug: bool = False

    @classmethod
    def from_env(cls) -> "ExecutorEnv":
        return cls(
            executor_address=lookup("EXECUTOR_ADDRESS"),
            executor_debug=lookup_bool("EXECUTOR_DEBUG"),
            message_handler_debug=lookup_bool("MESSAGE_HANDLER_DEBUG"),
            command_debug=lookup_bool("COMMAND_DEBUG"),
        )


def ensure_dir(path: str) -> None:
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as exc:
        raise ConfigError(f"failed to create dir {path}: {exc}") from exc
