"""Subprocess helpers that bind external tools to a stop event."""

import logging
import os
import signal
import subprocess
import threading
from typing import List

log = logging.getLogger(__name__)

_POLL_S = 0.1


def spawn(args: List[str], debug: bool = False) -> subprocess.Popen:
    """Launch *args* in its own process group.

    With debug on the tool inherits our stdout/stderr, otherwise its output
    is discarded.
    """
    out = None if debug else subprocess.DEVNULL
    kwargs = dict(stdin=subprocess.DEVNULL, stdout=out, stderr=out)
    if os.name == "posix":
        kwargs["start_new_session"] = True
    else:
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
    log.debug("exec: %s", " ".join(args))
    return subprocess.Popen(args, **kwargs)


def kill_group(proc: subprocess.Popen) -> None:
    """Kill the process group led by *proc* and reap it. No-op once exited."""
    if proc.poll() is not None:
        return
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        pass
    proc.wait()


def run(args: List[str], stop_event: threading.Event, debug: bool = False) -> int:
    """Run *args* to completion and return its exit code.

    If *stop_event* is set first, the process group is killed and the
    (non-zero) exit code of the killed process is returned.
    """
    proc = spawn(args, debug)
    try:
        while True:
            try:
                return proc.wait(timeout=_POLL_S)
            except subprocess.TimeoutExpired:
                if stop_event.is_set():
                    log.debug("stop requested, killing %s", args[0])
                    kill_group(proc)
                    return proc.returncode
    finally:
        kill_group(proc)
