"""
Configuration management for the command queue runner.
"""

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Optional, Union

from .exceptions import ConfigurationError, ValidationError
from .logging import QueueLogger

ENV_PREFIX = "CMDQUEUE_"

# Color names understood by click.style().
VALID_COLORS = frozenset(
    [
        "black",
        "red",
        "green",
        "yellow",
        "blue",
        "magenta",
        "cyan",
        "white",
        "reset",
    ]
    + [
        f"bright_{name}"
        for name in ("black", "red", "green", "yellow", "blue", "magenta", "cyan", "white")
    ]
)

DEFAULT_THEME: Dict[str, str] = {
    "input": "bright_black",
    "verbose": "cyan",
    "prompt": "bright_black",
    "info": "green",
    "data": "bright_black",
    "help": "cyan",
    "warn": "yellow",
    "debug": "blue",
    "error": "red",
}


@dataclass
class Settings:
    """Runtime settings read from ``CMDQUEUE_*`` environment variables.

    Attributes:
        mode: Default queue mode for the CLI
        theme: Path to a JSON color theme
        log_dir: Directory for log files
        debug: Enable debug logging
    """

    mode: str = "sequential"
    theme: Optional[str] = None
    log_dir: Optional[str] = None
    debug: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "Settings":
        environ = os.environ if environ is None else environ
        values = {}
        for settings_field in fields(cls):
            env_value = environ.get(f"{ENV_PREFIX}{settings_field.name.upper()}")
            if env_value is None:
                continue
            env_value = env_value.strip()
            if settings_field.type is bool:
                values[settings_field.name] = env_value.lower() in (
                    "true",
                    "1",
                    "yes",
                    "on",
                )
            else:
                values[settings_field.name] = env_value or None
        return cls(**values)


class ThemeConfiguration:
    """Color roles used by the console reporter."""

    def __init__(self, theme_path: Optional[Union[str, Path]] = None):
        """Initialize with the default theme, then apply ``theme_path`` if given.

        Args:
            theme_path: Optional path to a JSON theme file
        """
        self.logger = QueueLogger().get_context_logger(
            config_class=self.__class__.__name__
        )
        self._theme: Dict[str, str] = dict(DEFAULT_THEME)
        if theme_path:
            self.load(theme_path)

    def load(self, theme_path: Union[str, Path], encoding: str = "utf-8") -> None:
        """Merge color roles from a JSON file into the theme.

        Raises:
            ConfigurationError: If the file is missing or not valid JSON
            ValidationError: If an entry is not a known color name
        """
        path = Path(theme_path)
        try:
            with open(path, "r", encoding=encoding) as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(
                f"Theme file not found: {path}", config_path=str(path)
            ) from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in theme file: {str(e)}", config_path=str(path)
            ) from e
        except OSError as e:
            raise ConfigurationError(
                f"Failed to load theme: {str(e)}", config_path=str(path)
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                "Theme file must contain a JSON object", config_path=str(path)
            )
        for role, color in data.items():
            self.validate_color(role, color)

        self._theme.update(data)
        self.logger.debug(
            "Loaded theme from %s", path, extra={"theme": self._theme}
        )

    @staticmethod
    def validate_color(role: str, color: object) -> bool:
        if not isinstance(color, str) or color not in VALID_COLORS:
            raise ValidationError(
                f"Invalid color for theme role '{role}': {color!r}",
                field=role,
                value=color,
            )
        return True

    def color(self, role: str) -> Optional[str]:
        """Color for ``role``, or None when the role is not themed."""
        return self._theme.get(role)

    def as_dict(self) -> Dict[str, str]:
        return self._theme.copy()
