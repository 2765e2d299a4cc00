#!/usr/bin/env python3
"""
Jarvis executor — entry point
------------------------------
Listens on EXECUTOR_ADDRESS for command tokens and taps the matching key on
this desktop. Must run in the logged-in user's graphical session.

Run:  python executor.py
"""

import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(dotenv_path=Path.cwd() / ".env")

from jarvis.config import ExecutorEnv
from jarvis.daemon import ExecutorDaemon, setup_logging
from jarvis.errors import JarvisError

log = logging.getLogger("executor")


def main() -> int:
    setup_logging()
    try:
        daemon = ExecutorDaemon(ExecutorEnv.from_env())
        daemon.run()
    except JarvisError as exc:
        log.error("%s: %s", type(exc).__name__, exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
