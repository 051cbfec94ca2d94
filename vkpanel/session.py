"""
Session state for the dictation worker.

The Session is the only owner of the live worker handle. Callers get at it
through ``acquire()``, which holds the session lock for the whole block.
"""

import subprocess
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional


class SessionState(Enum):
    """State of the dictation session."""
    IDLE = "idle"
    RECORDING = "recording"


class Session:
    """
    Process-wide record of whether a worker is running.

    ``handle`` is set if and only if ``state`` is RECORDING. Both are only
    touched while the lock is held.

    Usage:
        with session.acquire() as s:
            if s.state is SessionState.IDLE:
                s.begin(child)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = SessionState.IDLE
        self._handle: Optional[subprocess.Popen] = None
        self._owner: Optional[int] = None

    @contextmanager
    def acquire(self) -> Iterator["Session"]:
        """Hold the session exclusively for the duration of the ``with`` block."""
        with self._lock:
            self._owner = threading.get_ident()
            try:
                yield self
            finally:
                self._owner = None

    def _check_owner(self) -> None:
        if self._owner != threading.get_ident():
            raise RuntimeError("Session accessed without holding acquire()")

    @property
    def state(self) -> SessionState:
        self._check_owner()
        return self._state

    @property
    def handle(self) -> Optional[subprocess.Popen]:
        self._check_owner()
        return self._handle

    def begin(self, handle: subprocess.Popen) -> None:
        """Store the freshly launched worker and enter RECORDING."""
        self._check_owner()
        if self._handle is not None:
            raise RuntimeError("A worker is already running")
        self._handle = handle
        self._state = SessionState.RECORDING

    def release(self) -> Optional[subprocess.Popen]:
        """Give up the worker handle (if any) and return to IDLE."""
        self._check_owner()
        handle, self._handle = self._handle, None
        self._state = SessionState.IDLE
        return handle

    def peek_state(self) -> SessionState:
        """Unlocked read for display purposes; may be stale by the time it is used."""
        return self._state
