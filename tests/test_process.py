import os
import sys
import threading
import time

import pytest

from jarvis import process

pytestmark = pytest.mark.skipif(os.name != "posix", reason="process groups are POSIX-only here")


def test_run_returns_exit_code(stop_event):
    assert process.run([sys.executable, "-c", "import sys; sys.exit(3)"], stop_event) == 3


def test_run_kills_on_stop_event():
    stop = threading.Event()
    stop.set()
    t0 = time.time()
    code = process.run([sys.executable, "-c", "import time; time.sleep(30)"], stop)
    assert code != 0
    assert time.time() - t0 < 10


def test_kill_group_is_noop_after_exit(stop_event):
    proc = process.spawn([sys.executable, "-c", "pass"])
    proc.wait()
    process.kill_group(proc)
    assert proc.returncode == 0
