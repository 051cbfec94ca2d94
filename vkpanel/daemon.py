"""
Headless runner for vkpanel.

Runs the dictation controller with only the global hotkey as a trigger:
hotkey press -> toggle worker on/off, until SIGINT/SIGTERM.
"""

import signal
import threading
from dataclasses import dataclass, field
from typing import Optional

from loguru import logger

from vkpanel.config import Config
from vkpanel.controller import DictationController
from vkpanel.environment import snapshot
from vkpanel.hotkey import HotkeyListener


@dataclass
class DaemonProcess:
    """
    Background process toggling dictation on the hotkey.

    Usage:
        daemon = DaemonProcess()
        daemon.run()  # Blocks until stopped
    """

    config: Config = field(default_factory=Config.load)

    # Internal state
    _controller: Optional[DictationController] = field(default=None, init=False)
    _hotkey_listener: Optional[HotkeyListener] = field(default=None, init=False)
    _stop_event: threading.Event = field(default_factory=threading.Event, init=False)

    def _on_status(self, status: str) -> None:
        logger.info(f"Status: {status}")

    def _setup_signal_handlers(self) -> None:
        """Set up graceful shutdown on SIGINT/SIGTERM."""
        def handle_signal(signum, frame):
            logger.info("Shutting down...")
            self.stop()

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

    def run(self) -> None:
        """
        Run the daemon. Blocks until stop() is called.

        Raises:
            RuntimeError: If configuration is invalid
            HotkeyError: If the hotkey cannot be watched
        """
        errors = self.config.validate(snapshot())
        if errors:
            raise RuntimeError(f"Invalid configuration: {'; '.join(errors)}")

        self._controller = DictationController(
            config=self.config,
            on_status_change=self._on_status,
        )
        self._hotkey_listener = HotkeyListener(
            on_trigger=self._controller.toggle,
            key=self.config.hotkey_code,
        )

        try:
            self._hotkey_listener.start()
            self._setup_signal_handlers()
            logger.info(f"Ready! Press {self.config.hotkey_code} to start or stop dictation.")
            while not self._stop_event.is_set():
                self._stop_event.wait(timeout=0.5)
        finally:
            self._cleanup()

    def stop(self) -> None:
        """Stop the daemon gracefully."""
        self._stop_event.set()

    def _cleanup(self) -> None:
        """Stop the listener, then make sure no worker outlives us."""
        if self._hotkey_listener:
            self._hotkey_listener.stop()
        if self._controller:
            self._controller.shutdown()
        logger.info("Stopped.")

    @property
    def controller(self) -> Optional[DictationController]:
        return self._controller
