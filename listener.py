#!/usr/bin/env python3
"""
Jarvis listener — entry point
------------------------------
Flow: Mic → ffmpeg rolling chunks → overlap combiner → Whisper → wake word
      → Ollama → executor (TCP)

Run:  python listener.py        (start executor.py first)

Configuration:
  Copy .env.example → .env and fill in your values. Regular environment
  variables override .env values.

Required:
  EXECUTOR_ADDRESS, RECORDER_OUTPUT_DIR, COMBINER_OUTPUT_DIR,
  OLLAMA_URL, OLLAMA_MODEL, OLLAMA_TIMEOUT,
  WHISPER_MODEL, WHISPER_LANGUAGE, WHISPER_OUTPUT_DIR
"""

import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env before jarvis.config reads the environment at import time.
load_dotenv(dotenv_path=Path.cwd() / ".env")

from jarvis.config import ListenerEnv
from jarvis.daemon import ListenerDaemon, setup_logging
from jarvis.errors import JarvisError

log = logging.getLogger("listener")


def main() -> int:
    setup_logging()
    try:
        daemon = ListenerDaemon(ListenerEnv.from_env())
        daemon.run()
    except JarvisError as exc:
        log.error("%s: %s", type(exc).__name__, exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
