"""
Global hotkey listener for vkpanel.

Watches every keyboard that has the configured key (F13 by default) with
python-evdev and reports each key press on a single background thread, so
presses reach the controller one at a time and in order.
"""

import select
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import evdev
from evdev import ecodes, InputDevice
from loguru import logger


class HotkeyError(Exception):
    """Exception raised for hotkey errors."""
    pass


KEY_DOWN = 1


def key_code_for(name: str) -> Optional[int]:
    """Map a key name such as ``F13`` or ``KEY_F13`` to its evdev code."""
    name = name.strip().upper()
    if not name:
        return None
    if not name.startswith("KEY_"):
        name = f"KEY_{name}"
    code = ecodes.ecodes.get(name)
    return code if isinstance(code, int) else None


def find_keyboard_devices(key_code: int) -> List[InputDevice]:
    """Find all input devices that can emit ``key_code``."""
    keyboards = []
    for path in evdev.list_devices():
        try:
            device = InputDevice(path)
        except OSError as e:
            logger.debug(f"Cannot open {path}: {e}")
            continue

        caps = device.capabilities()
        if key_code in caps.get(ecodes.EV_KEY, []):
            keyboards.append(device)
        else:
            device.close()
    return keyboards


@dataclass
class HotkeyListener:
    """
    Hotkey trigger source.

    Devices are read without grabbing them, so every key still reaches the
    desktop.

    Usage:
        listener = HotkeyListener(on_trigger=controller.toggle, key="F13")
        listener.start()  # Runs in background thread
        # ... app runs ...
        listener.stop()
    """

    on_trigger: Optional[Callable[[], None]] = None
    key: str = "F13"
    poll_timeout: float = 0.1

    # Internal state
    _code: Optional[int] = field(default=None, init=False)
    _devices: List[InputDevice] = field(default_factory=list, init=False)
    _thread: Optional[threading.Thread] = field(default=None, init=False)
    _running: bool = field(default=False, init=False)

    def _fire(self) -> None:
        logger.debug(f"Hotkey {self.key} pressed")
        if self.on_trigger:
            try:
                self.on_trigger()
            except Exception:
                logger.exception("Hotkey handler failed")

    def _run(self) -> None:
        """Read key events from all devices until stopped."""
        fds: Dict[int, InputDevice] = {device.fd: device for device in self._devices}

        while self._running and fds:
            try:
                ready, _, _ = select.select(list(fds), [], [], self.poll_timeout)
            except (OSError, ValueError) as e:
                if self._running:
                    logger.error(f"Hotkey select failed: {e}")
                break

            for fd in ready:
                device = fds[fd]
                try:
                    events = list(device.read())
                except OSError as e:
                    logger.warning(f"Lost keyboard {device.name}: {e}")
                    del fds[fd]
                    continue

                for event in events:
                    if not self._running:
                        return
                    if (
                        event.type == ecodes.EV_KEY
                        and event.code == self._code
                        and event.value == KEY_DOWN
                    ):
                        self._fire()

        if self._running and not fds:
            logger.error("No keyboard devices left; hotkey disabled")

    def start(self) -> None:
        """
        Start listening for the hotkey.

        Raises:
            HotkeyError: If the key is unknown or no keyboard can be read
        """
        if self._running:
            return

        self._code = key_code_for(self.key)
        if self._code is None:
            raise HotkeyError(f"Unknown hotkey: {self.key!r}")

        self._devices = find_keyboard_devices(self._code)
        if not self._devices:
            raise HotkeyError(
                f"No keyboard device with {self.key} found. Make sure you have permission "
                "to access /dev/input/event*. Add your user to the 'input' group:\n"
                "  sudo usermod -aG input $USER\n"
                "Then log out and back in."
            )

        logger.info(
            f"Listening for {self.key} on: " + ", ".join(d.name for d in self._devices)
        )
        self._running = True
        self._thread = threading.Thread(target=self._run, name="vkpanel-hotkey", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop listening and release all devices."""
        if not self._running:
            return

        self._running = False

        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=1)

        for device in self._devices:
            try:
                device.close()
            except OSError as e:
                logger.debug(f"Error closing {device.path}: {e}")

        self._devices = []
        self._thread = None

    @property
    def is_running(self) -> bool:
        """Check if listener is running."""
        return self._running

    def __enter__(self) -> "HotkeyListener":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()
