"""
Core settings management for dungeon_fabric.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from PySide6.QtCore import QSettings

from ..errors import ConfigError
from .migration import SettingsMigrator
from .validation import SettingsValidator, ValidationResult
from .paths import PathSettings
from .logging import LoggingSettings
from .layers import LayerSettings
from .compiler import CompilerSettings

logger = logging.getLogger(__name__)

ORGANIZATION = "dungeon_fabric"
APPLICATION = "dungeon_fabric"


class AppSettings:
    """
    Configuration management using QSettings.

    Provides type-safe access to application settings with automatic
    cross-platform storage and validation.
    """

    def __init__(self, profile: str = "default", settings_file: Optional[Path] = None):
        """Initialize settings storage and profile.

        Args:
            profile: Settings profile name (default: "default")
            settings_file: Optional INI file; native storage is used when omitted

        Raises:
            ConfigError: if the settings storage cannot be read
        """
        if settings_file is not None:
            self.settings = QSettings(str(settings_file), QSettings.Format.IniFormat)
        else:
            self.settings = QSettings(ORGANIZATION, APPLICATION)
        self.profile = profile

        if self.settings.status() != QSettings.Status.NoError:
            raise ConfigError(
                f"Cannot read settings from {self.settings.fileName()}: {self.settings.status()}"
            )

        # Use profile as a group to create hierarchy: dungeon_fabric/default/...
        self.settings.beginGroup(profile)

        # Initialize subsystems
        self._migrator = SettingsMigrator(self.settings)
        self._validator = SettingsValidator(self)
        self._paths = PathSettings(self.settings)
        self._logging = LoggingSettings(self.settings, self._paths)
        self._layers = LayerSettings(self.settings)
        self._compiler = CompilerSettings(self.settings)

        # Ensure version and migrate if needed
        self._migrator.ensure_version()

        logger.debug(
            f"Settings initialized for profile '{profile}', stored at: {self.settings.fileName()}"
        )

    # === SUBSYSTEM ACCESS ===

    @property
    def paths(self) -> PathSettings:
        """Access path settings subsystem."""
        return self._paths

    @property
    def logging(self) -> LoggingSettings:
        """Access logging settings subsystem."""
        return self._logging

    @property
    def layers(self) -> LayerSettings:
        """Access layer selection subsystem."""
        return self._layers

    @property
    def compiler(self) -> CompilerSettings:
        """Access compiler settings subsystem."""
        return self._compiler

    # === VERSION AND FIRST RUN ===

    @property
    def is_first_run(self) -> bool:
        """Check if this is the first run of the application."""
        return self._migrator.is_first_run

    def set_first_run_complete(self) -> None:
        self._migrator.set_first_run_complete()

    @property
    def version(self) -> str:
        """Stored settings layout version."""
        return self._migrator.version

    # === PATH SETTINGS (DELEGATED) ===

    @property
    def game_path(self) -> Optional[Path]:
        """Get game directory path."""
        return self._paths.game_path

    @game_path.setter
    def game_path(self, value: Optional[Path]) -> None:
        """Set game directory path."""
        self._paths.game_path = value

    @property
    def recent_games(self) -> List[str]:
        """Get list of recently opened game folders."""
        return self._paths.recent_games

    def add_recent_game(self, game_path: Union[str, Path]) -> None:
        """Add game folder to the recent list (max 10 items)."""
        self._paths.add_recent_game(game_path)

    def clear_recent_games(self) -> None:
        """Clear recent games list."""
        self._paths.clear_recent_games()

    # === LOGGING SETTINGS (DELEGATED) ===

    @property
    def console_logging(self) -> bool:
        """Check if console logging is enabled."""
        return self._logging.console_logging

    @console_logging.setter
    def console_logging(self, value: bool) -> None:
        """Set console logging enabled state."""
        self._logging.console_logging = value

    @property
    def console_log_level(self) -> str:
        """Get console logging level."""
        return self._logging.console_log_level

    @console_log_level.setter
    def console_log_level(self, value: str) -> None:
        """Set console logging level.

        Raises:
            ConfigError: if value does not name a logging level
        """
        self._logging.console_log_level = value

    @property
    def console_use_colors(self) -> bool:
        """Check if console should use colors."""
        return self._logging.console_use_colors

    @console_use_colors.setter
    def console_use_colors(self, value: bool) -> None:
        """Set console color usage."""
        self._logging.console_use_colors = value

    @property
    def file_logging(self) -> bool:
        """Check if file logging is enabled."""
        return self._logging.file_logging

    @file_logging.setter
    def file_logging(self, value: bool) -> None:
        """Set file logging enabled state."""
        self._logging.file_logging = value

    @property
    def log_file_path(self) -> Path:
        """CSV log location, derived from the game folder unless stored."""
        return self._logging.log_file_path

    @log_file_path.setter
    def log_file_path(self, value: Optional[Path]) -> None:
        self._logging.log_file_path = value

    @property
    def log_file_absolute_path(self) -> Path:
        """Get absolute path to log file."""
        return self._logging.log_file_absolute_path

    # === LAYER SETTINGS (DELEGATED) ===

    @property
    def active_layers(self) -> List[str]:
        """Get list of active layers (empty means all)."""
        return self._layers.active_layers

    @active_layers.setter
    def active_layers(self, value: List[str]) -> None:
        """Set list of active layers."""
        self._layers.active_layers = value

    @property
    def available_layers(self) -> List[str]:
        """Get list of layers seen on disk."""
        return self._layers.available_layers

    @available_layers.setter
    def available_layers(self, value: List[str]) -> None:
        """Set list of layers seen on disk."""
        self._layers.available_layers = value

    def add_layer(self, layer_id: str) -> None:
        """Add a layer to the active list if not already present."""
        self._layers.add_layer(layer_id)

    def remove_layer(self, layer_id: str) -> None:
        """Remove a layer from the active list."""
        self._layers.remove_layer(layer_id)

    def clear_active_layers(self) -> None:
        """Clear all active layers."""
        self._layers.clear_active_layers()

    def is_layer_active(self, layer_id: str) -> bool:
        """Check if a layer is active."""
        return self._layers.is_layer_active(layer_id)

    @property
    def always_include_core(self) -> bool:
        """Whether to always include the core layer regardless of active layers."""
        return self._layers.always_include_core

    @always_include_core.setter
    def always_include_core(self, value: bool) -> None:
        """Set whether to always include the core layer."""
        self._layers.always_include_core = value

    # === VALIDATION ===

    def validate(self) -> ValidationResult:
        """Validate current configuration."""
        return self._validator.validate()

    # === UTILITY METHODS ===

    def get_settings_file_path(self) -> str:
        """Get the file path where settings are stored."""
        return self.settings.fileName()

    def sync(self) -> None:
        """Force synchronization of settings to storage."""
        self.settings.sync()
