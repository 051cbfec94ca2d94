"""Logging setup for vkpanel (loguru to stderr and a rotating file)."""

import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def get_log_file_path() -> Path:
    """Default log file under $XDG_STATE_HOME/voice-keyboard."""
    base = Path(os.environ.get("XDG_STATE_HOME") or Path.home() / ".local" / "state")
    return base / "voice-keyboard" / "vkpanel.log"


def configure_logging(log_file: Optional[Path] = None, verbose: bool = False) -> Path:
    """Configure loguru to log to both stderr and a rotating file.

    Args:
        log_file: Optional custom path to log file. If None, uses the default.
        verbose: Log DEBUG messages to stderr as well.

    Returns:
        The path to the log file being used.
    """
    if log_file is None:
        log_file = get_log_file_path()
    log_file = Path(log_file).expanduser().resolve()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")
    logger.add(
        log_file,
        rotation="10 MB",
        retention=3,
        compression="zip",
        level="DEBUG",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        backtrace=True,
        diagnose=False,
    )

    logger.debug(f"Logging to file: {log_file}")
    return log_file
