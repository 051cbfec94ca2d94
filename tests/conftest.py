"""Pytest configuration and fixtures."""

import importlib
import json
import os
import stat
import sys
import textwrap
import time
from io import StringIO
from pathlib import Path

import pytest
from loguru import logger


def require_module(name: str):
    """Skip the calling test module when ``name`` cannot be imported.

    Like ``pytest.importorskip``, but sounddevice raises OSError rather than
    ImportError when the PortAudio library is missing.
    """
    try:
        return importlib.import_module(name)
    except (ImportError, OSError) as e:
        pytest.skip(f"{name} unavailable: {e}", allow_module_level=True)


@pytest.fixture
def captured_logs():
    """Fixture to capture loguru logs."""
    log_stream = StringIO()
    handler_id = logger.add(log_stream, format="{level} {message}", level="DEBUG")
    yield log_stream
    logger.remove(handler_id)


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Point the config file at a temporary location."""
    path = tmp_path / "config" / "config.yaml"
    monkeypatch.setenv("VKPANEL_CONFIG", str(path))
    return path


class FakeCues:
    """Records cues instead of playing them."""

    def __init__(self):
        self.played = []
        self.closed = False

    def start_cue(self):
        self.played.append("start")
        return True

    def stop_cue(self):
        self.played.append("stop")
        return True

    def close(self):
        self.closed = True


@pytest.fixture
def cues():
    return FakeCues()


WORKER_TEMPLATE = """\
#!{python}
import json, os, signal, sys, time

if {ignore_term}:
    signal.signal(signal.SIGTERM, signal.SIG_IGN)

marker = os.path.join(os.path.dirname(os.path.abspath(__file__)), "worker-%d.json" % os.getpid())
with open(marker + ".tmp", "w") as f:
    json.dump({{"args": sys.argv[1:], "env": dict(os.environ)}}, f)
os.rename(marker + ".tmp", marker)

time.sleep({lifetime})
sys.exit({exit_code})
"""


class WorkerBin:
    """A bin/ directory holding a fake launcher and a fake voice-keyboard worker."""

    def __init__(self, root: Path):
        self.dir = root / "bin"
        self.dir.mkdir()
        self.launcher = self.dir / "vkpanel"
        self.launcher.write_text("#!/bin/sh\n")
        self.worker = self.dir / "voice-keyboard"

    def write_worker(self, ignore_term=False, lifetime=60, exit_code=0):
        self.worker.write_text(
            WORKER_TEMPLATE.format(
                python=sys.executable,
                ignore_term=ignore_term,
                lifetime=lifetime,
                exit_code=exit_code,
            )
        )
        self.worker.chmod(self.worker.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return self.worker

    def write_script(self, body: str):
        self.worker.write_text("#!/bin/sh\n" + textwrap.dedent(body))
        self.worker.chmod(self.worker.stat().st_mode | stat.S_IXUSR)
        return self.worker

    def wait_for_marker(self, pid: int, timeout: float = 10.0) -> dict:
        """Block until the worker with ``pid`` reports it is running."""
        path = self.dir / f"worker-{pid}.json"
        deadline = time.monotonic() + timeout
        while not path.exists():
            if time.monotonic() > deadline:
                raise AssertionError(f"worker {pid} never became ready")
            time.sleep(0.02)
        return json.loads(path.read_text())


@pytest.fixture
def worker_bin(tmp_path):
    return WorkerBin(tmp_path)


def pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True
