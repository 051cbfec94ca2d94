"""
Configuration management for vkpanel.

Handles loading, saving, and validating configuration from
~/.config/voice-keyboard/config.yaml
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Mapping, Optional

import yaml
from loguru import logger

from vkpanel.environment import API_KEY_VAR


def get_config_path() -> Path:
    """Return the path to the config file (``VKPANEL_CONFIG`` overrides it)."""
    override = os.environ.get("VKPANEL_CONFIG")
    if override:
        return Path(override).expanduser()

    base = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
    return base / "voice-keyboard" / "config.yaml"


@dataclass
class Config:
    """Main configuration for vkpanel."""
    api_key: str = ""
    project_id: str = ""
    hotkey_code: str = "F13"
    privilege_helper: str = "pkexec"

    @classmethod
    def get_config_path(cls) -> Path:
        """Return the path to the config file."""
        return get_config_path()

    @classmethod
    def load(cls) -> "Config":
        """
        Load configuration from file.
        Returns defaults if the file doesn't exist, is empty, or is not valid YAML.
        """
        path = get_config_path()
        if not path.exists():
            return cls()

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Ignoring unreadable config {path}: {e}")
            return cls()

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict) -> "Config":
        """Create Config from dictionary, ignoring unknown or mistyped keys."""
        if not isinstance(data, dict):
            return cls()

        defaults = cls()
        values = {}
        for f in fields(cls):
            value = data.get(f.name, getattr(defaults, f.name))
            if not isinstance(value, str):
                value = getattr(defaults, f.name)
            values[f.name] = value
        return cls(**values)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def save(self) -> None:
        """Save configuration to file."""
        path = get_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def resolve_api_key(self, env: Optional[Mapping[str, str]] = None) -> str:
        """
        Return the API key to hand to the worker.

        The configured key wins; otherwise the ``DEEPGRAM_API_KEY`` value
        from the environment snapshot is used.
        """
        if self.api_key.strip():
            return self.api_key.strip()
        if env:
            return env.get(API_KEY_VAR, "").strip()
        return ""

    def validate(self, env: Optional[Mapping[str, str]] = None) -> list[str]:
        """
        Validate the configuration.
        Returns a list of error messages (empty if valid).
        """
        from vkpanel.hotkey import key_code_for

        errors = []

        if not self.resolve_api_key(env):
            errors.append(
                f"API key is not set. Run 'vkpanel setup' or export {API_KEY_VAR}."
            )

        if key_code_for(self.hotkey_code) is None:
            errors.append(f"Unknown hotkey code: {self.hotkey_code!r}")

        if not self.privilege_helper.strip():
            errors.append("Privilege helper is not set.")

        return errors

    def is_valid(self, env: Optional[Mapping[str, str]] = None) -> bool:
        """Check if configuration is valid."""
        return len(self.validate(env)) == 0
