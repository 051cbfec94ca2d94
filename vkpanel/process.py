"""
Worker process management for vkpanel.

Launches the voice-keyboard worker through a privilege-elevation helper and
stops it again with a graceful-then-forced termination protocol.
"""

import os
import shutil
import signal
import subprocess
import sys
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from loguru import logger

from vkpanel.environment import API_KEY_VAR, snapshot


WORKER_NAME = "voice-keyboard"
WORKER_ARGUMENT = "--test-stt"
DEFAULT_HELPER = "pkexec"

# User-initiated stop: be patient with the worker
STOP_GRACE = 2.0
STOP_POLL = 0.1

# Application exit: responsiveness first
SHUTDOWN_GRACE = 1.0
SHUTDOWN_POLL = 0.05

# pkexec exits 126 when authorization is dismissed, 127 when it cannot authenticate
ELEVATION_DENIED_CODES = (126, 127)
SPAWN_CHECK = 0.2


class VKPanelError(Exception):
    """Base class for recoverable vkpanel errors."""
    pass


class ConfigMissing(VKPanelError):
    """Raised when a required configuration value (the API key) is empty."""
    pass


class PathResolutionError(VKPanelError):
    """Raised when the location of the running executable cannot be determined."""
    pass


class SpawnError(VKPanelError):
    """Raised when the helper or the worker could not be started."""
    pass


class TerminationError(VKPanelError):
    """Raised when the worker could not be force-killed."""
    pass


class TerminationOutcome(Enum):
    """How a worker ended after a termination request."""
    EXITED = "exited"
    TIMED_OUT_THEN_KILLED = "timed_out_then_killed"


@dataclass(frozen=True)
class LaunchSpec:
    """Everything needed to start one worker. Built fresh for every start."""
    executable_path: Path
    env: Dict[str, str] = field(default_factory=dict)
    fixed_argument: str = WORKER_ARGUMENT

    @classmethod
    def build(
        cls,
        api_key: str,
        environ: Optional[Mapping[str, str]] = None,
        executable: Optional[Path] = None,
    ) -> "LaunchSpec":
        """
        Build the launch description for the worker next to the running executable.

        Args:
            api_key: Deepgram API key, must be non-empty
            environ: Environment to snapshot (default: os.environ)
            executable: Override for the running executable's path

        Raises:
            ConfigMissing: If the API key is empty
            PathResolutionError: If the executable location is unknown
        """
        if not api_key:
            raise ConfigMissing("API key is not set")

        env = snapshot(environ)
        env[API_KEY_VAR] = api_key
        return cls(executable_path=resolve_worker_path(executable), env=env)


def current_executable() -> Path:
    """
    Return the resolved path of the running application binary.

    For a frozen build this is the interpreter-embedding binary, otherwise the
    launcher script in sys.argv[0].

    Raises:
        PathResolutionError: If no usable path is available
    """
    if getattr(sys, "frozen", False):
        candidate = sys.executable
    else:
        candidate = sys.argv[0] if sys.argv else ""

    if not candidate or candidate in ("-c", "-"):
        raise PathResolutionError("Cannot determine the location of the running executable")

    path = Path(candidate)
    if not path.is_absolute() and os.sep not in candidate:
        found = shutil.which(candidate)
        if found:
            path = Path(found)

    try:
        return path.resolve(strict=True)
    except OSError as e:
        raise PathResolutionError(f"Cannot resolve executable {candidate}: {e}") from e


def resolve_worker_path(executable: Optional[Path] = None) -> Path:
    """Return the worker binary path: the running executable's directory + WORKER_NAME."""
    if executable is None:
        executable = current_executable()
    return Path(executable).parent / WORKER_NAME


def build_command(spec: LaunchSpec, helper: str = DEFAULT_HELPER) -> List[str]:
    """
    Build the elevated command line.

    The environment is forwarded through ``env`` because pkexec clears the
    caller's environment before running the target.
    """
    cmd = [helper, "env"]
    cmd.extend(f"{name}={value}" for name, value in spec.env.items())
    cmd.append(str(spec.executable_path))
    cmd.append(spec.fixed_argument)
    return cmd


def mask_command(cmd: List[str]) -> str:
    """Render a command for logging with the API key hidden."""
    masked = []
    for arg in cmd:
        if arg.startswith(f"{API_KEY_VAR}="):
            arg = f"{API_KEY_VAR}=****"
        masked.append(arg)
    return " ".join(masked)


def launch(
    spec: LaunchSpec,
    helper: str = DEFAULT_HELPER,
    spawn_check: float = SPAWN_CHECK,
) -> subprocess.Popen:
    """
    Start the worker under the privilege helper.

    Args:
        spec: What to launch
        helper: Privilege-elevation helper (pkexec, sudo, ...)
        spawn_check: Seconds to watch for an immediate helper failure

    Returns:
        The child handle; the caller owns it from here on

    Raises:
        SpawnError: If the worker is missing, the helper cannot be started,
                    or elevation was refused
    """
    if not spec.executable_path.exists():
        raise SpawnError(f"Worker binary not found: {spec.executable_path}")

    cmd = build_command(spec, helper)
    logger.info(f"Launching worker: {mask_command(cmd)}")

    try:
        child = subprocess.Popen(cmd, stdin=subprocess.DEVNULL)
    except FileNotFoundError as e:
        raise SpawnError(f"Privilege helper not found: {helper}") from e
    except PermissionError as e:
        raise SpawnError(f"Permission denied running {helper}: {e}") from e
    except OSError as e:
        raise SpawnError(f"{e}") from e

    if spawn_check > 0:
        try:
            code = child.wait(timeout=spawn_check)
        except subprocess.TimeoutExpired:
            code = None

        if code in ELEVATION_DENIED_CODES:
            raise SpawnError(f"Authorization was denied or dismissed ({helper} exited {code})")
        if code is not None:
            raise SpawnError(f"Worker exited immediately with code {code}")

    logger.info(f"Worker started (PID {child.pid})")
    return child


def wait_for_exit(child: subprocess.Popen, timeout: float, poll_interval: float) -> bool:
    """
    Poll ``child`` until it exits or ``timeout`` seconds pass.

    Returns:
        True if the child exited within the window
    """
    deadline = time.monotonic() + timeout
    while True:
        if child.poll() is not None:
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        time.sleep(min(poll_interval, remaining))


def _signal(child: subprocess.Popen, sig: signal.Signals, helper: Optional[str]) -> None:
    """
    Send ``sig`` to the child, going through ``helper`` when the child runs
    as another user.

    Raises:
        PermissionError: If the signal could not be delivered at all
    """
    try:
        child.send_signal(sig)
        return
    except ProcessLookupError:
        return
    except PermissionError:
        if not helper:
            raise

    logger.debug(f"Signalling PID {child.pid} with {sig.name} via {helper}")
    result = subprocess.run(
        [helper, "kill", f"-{sig.name[3:]}", str(child.pid)],
        stdin=subprocess.DEVNULL,
        capture_output=True,
        text=True,
    )
    if result.returncode != 0 and child.poll() is None:
        raise PermissionError(
            f"{helper} kill failed with code {result.returncode}: {result.stderr.strip()}"
        )


def terminate(
    child: subprocess.Popen,
    grace: float = STOP_GRACE,
    poll_interval: float = STOP_POLL,
    helper: Optional[str] = None,
) -> TerminationOutcome:
    """
    Stop the worker: SIGTERM, wait up to ``grace`` seconds, then SIGKILL.

    Args:
        child: Handle of the worker
        grace: Seconds to wait for a voluntary exit
        poll_interval: Seconds between exit checks
        helper: Privilege helper used to signal a worker running as root

    Returns:
        EXITED if the worker left on its own within the grace window,
        TIMED_OUT_THEN_KILLED otherwise

    Raises:
        TerminationError: If the forced kill could not be delivered
    """
    pid = child.pid

    if child.poll() is not None:
        logger.info(f"Worker {pid} had already exited (code {child.returncode})")
        return TerminationOutcome.EXITED

    try:
        _signal(child, signal.SIGTERM, helper)
        logger.debug(f"Sent SIGTERM to worker {pid}")
    except OSError as e:
        logger.warning(f"Could not send SIGTERM to worker {pid}: {e}")

    if wait_for_exit(child, grace, poll_interval):
        logger.info(f"Worker {pid} exited (code {child.returncode})")
        return TerminationOutcome.EXITED

    logger.warning(f"Worker {pid} still running after {grace:.1f}s, killing")
    try:
        _signal(child, signal.SIGKILL, helper)
    except OSError as e:
        raise TerminationError(f"Could not kill worker {pid}: {e}") from e

    child.wait()
    logger.info(f"Worker {pid} killed (code {child.returncode})")
    return TerminationOutcome.TIMED_OUT_THEN_KILLED
