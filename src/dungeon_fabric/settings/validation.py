"""
Settings validation system for dungeon_fabric.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, TYPE_CHECKING

from ..content.models import CORE_LAYER_ID

if TYPE_CHECKING:
    from .core import AppSettings

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of configuration validation."""
    is_valid: bool
    errors: List[str]
    warnings: List[str]


class SettingsValidator:
    """Checks stored settings against the file system."""

    def __init__(self, settings: "AppSettings"):
        self.settings = settings

    def validate(self) -> ValidationResult:
        """Validate current configuration, dropping stale recent games."""
        errors: List[str] = []
        warnings: List[str] = []

        game_path = self.settings.game_path
        if game_path:
            if not game_path.exists():
                errors.append(f"Game path does not exist: {game_path}")
            elif not (game_path / CORE_LAYER_ID).is_dir():
                warnings.append(
                    f"Game path might be invalid (no '{CORE_LAYER_ID}' layer): {game_path}"
                )
            else:
                missing = [
                    layer_id
                    for layer_id in self.settings.active_layers
                    if not (game_path / layer_id).is_dir()
                ]
                if missing:
                    warnings.append(f"Active layers not found in game path: {missing}")
        else:
            warnings.append("Game path not set")

        compiler = self.settings.compiler
        for name, value in (
            ("room_size", compiler.room_size),
            ("text_default_width", compiler.text_default_width),
            ("text_default_height", compiler.text_default_height),
        ):
            if value <= 0:
                errors.append(f"Compiler option {name} must be positive, got {value}")

        if self.settings.file_logging and self.settings.log_file_path.is_dir():
            errors.append(f"Log file path is a directory: {self.settings.log_file_path}")

        paths = self.settings.paths
        recent_games = paths.recent_games
        valid_recent = [game for game in recent_games if Path(game).exists()]
        for game in recent_games:
            if game not in valid_recent:
                warnings.append(f"Recent game no longer exists: {game}")
        if len(valid_recent) != len(recent_games):
            paths.recent_games = valid_recent

        if errors:
            logger.warning(f"Settings validation found {len(errors)} errors")
        return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)
