"""Helpers for tests that run real child processes."""

from __future__ import annotations

import sys
import time
from pathlib import Path

from spawner.local.manifest import ProcessSpec

SLEEPER = "import time; time.sleep(30)"
FAIL_ONCE = (
    "import os, sys, time\n"
    "marker = sys.argv[1]\n"
    "if not os.path.exists(marker):\n"
    "    open(marker, 'w').close()\n"
    "    sys.exit(1)\n"
    "time.sleep(30)\n"
)


def python_spec(code: str, *args: str, **kwargs) -> ProcessSpec:
    """Returns a spec running `code` with the current interpreter."""
    return ProcessSpec(path=sys.executable, args=("-c", code, *args), **kwargs)


def wait_for_file_content(path: Path, text: str, timeout: float = 10.0) -> bool:
    """Polls `path` until it contains `text`."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if path.exists() and text in path.read_text():
            return True
        time.sleep(0.05)
    return False
