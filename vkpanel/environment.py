"""
Environment snapshot for the dictation worker.

pkexec starts its target with a scrubbed environment, so the variables the
worker needs (API key, audio session, display) are captured here and passed
through explicitly.
"""

import os
from typing import Dict, Mapping, Optional

API_KEY_VAR = "DEEPGRAM_API_KEY"

# Forwarded to the worker only when set in our own environment
ENVIRONMENT_ALLOWLIST = (
    API_KEY_VAR,
    "PULSE_RUNTIME_PATH",
    "XDG_RUNTIME_DIR",
    "DISPLAY",
    "WAYLAND_DISPLAY",
    "HOME",
    "USER",
)


def snapshot(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Capture the allow-listed variables from ``environ`` (default: os.environ).

    Unset variables are left out rather than forwarded as empty strings.
    """
    if environ is None:
        environ = os.environ
    return {name: environ[name] for name in ENVIRONMENT_ALLOWLIST if name in environ}
