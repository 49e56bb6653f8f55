"""
Logging settings for dungeon_fabric.

The CSV log is written next to the game content, under
``<game>/logs/dungeon_fabric.csv``, unless a path has been stored.
Without a game folder it falls back to ``logs/`` in the working directory.
"""

import logging
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from ..errors import ConfigError
from .base import SettingsGroup

if TYPE_CHECKING:
    from PySide6.QtCore import QSettings
    from .paths import PathSettings

logger = logging.getLogger(__name__)

LOG_DIR = "logs"
LOG_FILE_NAME = "dungeon_fabric.csv"
DEFAULT_LEVEL = "INFO"
VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def normalize_level(value: str) -> str:
    """Return the upper-case name of a logging level.

    Raises:
        ConfigError: if ``value`` does not name a level
    """
    level = value.strip().upper()
    if level not in VALID_LEVELS:
        raise ConfigError(
            f"Invalid log level '{value}', expected one of: {', '.join(VALID_LEVELS)}"
        )
    return level


class LoggingSettings(SettingsGroup):
    """Console output options and the location of the CSV log file."""

    section = "logging"

    def __init__(self, settings: "QSettings", paths: "PathSettings"):
        super().__init__(settings)
        self.paths = paths

    @property
    def console_logging(self) -> bool:
        return self._get_bool("console_enabled", True)

    @console_logging.setter
    def console_logging(self, value: bool) -> None:
        self._set("console_enabled", value)

    @property
    def console_log_level(self) -> str:
        """Stored console level; a corrupt value reads as INFO."""
        stored = self._get_str("console_level", DEFAULT_LEVEL)
        try:
            return normalize_level(stored)
        except ConfigError as e:
            logger.warning(f"{e}; using {DEFAULT_LEVEL}")
            return DEFAULT_LEVEL

    @console_log_level.setter
    def console_log_level(self, value: str) -> None:
        self._set("console_level", normalize_level(value))

    @property
    def console_use_colors(self) -> bool:
        return self._get_bool("console_use_colors", True)

    @console_use_colors.setter
    def console_use_colors(self, value: bool) -> None:
        self._set("console_use_colors", value)

    @property
    def file_logging(self) -> bool:
        return self._get_bool("file_enabled", False)

    @file_logging.setter
    def file_logging(self, value: bool) -> None:
        self._set("file_enabled", value)

    @property
    def log_file_path(self) -> Path:
        """Stored log path, else the game folder's log, else ./logs."""
        stored = self._get_str("file_path")
        if stored:
            return Path(stored)
        game_path = self.paths.game_path
        if game_path is not None:
            return game_path / LOG_DIR / LOG_FILE_NAME
        return Path(LOG_DIR) / LOG_FILE_NAME

    @log_file_path.setter
    def log_file_path(self, value: Optional[Path]) -> None:
        # None goes back to the derived location
        if value is None:
            self._remove("file_path")
        else:
            self._set("file_path", str(value))

    @property
    def log_file_absolute_path(self) -> Path:
        return self.log_file_path.resolve()
