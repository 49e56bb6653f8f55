"""
Settings versioning for dungeon_fabric.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Tuple, TYPE_CHECKING

from .base import SettingsGroup
from .paths import PathSettings

if TYPE_CHECKING:
    from PySide6.QtCore import QSettings

logger = logging.getLogger(__name__)


class ConfigVersion(Enum):
    """Layout versions of the stored settings."""
    V1_0 = "1.0"
    # recent games are stored as absolute paths
    V1_1 = "1.1"
    CURRENT = V1_1


class SettingsMigrator(SettingsGroup):
    """Owns the 'app' section: the layout version and the first-run flag.

    Steps are chained, so settings from any known older version are
    brought up to ConfigVersion.CURRENT one version at a time.
    """

    section = "app"

    def __init__(self, settings: "QSettings"):
        super().__init__(settings)
        # stored version -> (next version, step)
        self.steps: Dict[str, Tuple[str, Callable[[], None]]] = {
            ConfigVersion.V1_0.value: (ConfigVersion.V1_1.value, self._absolute_recent_games),
        }

    @property
    def version(self) -> str:
        return self._get_str("version", ConfigVersion.CURRENT.value)

    @property
    def is_first_run(self) -> bool:
        return self._get_bool("first_run", True)

    def set_first_run_complete(self) -> None:
        self._set("first_run", False)

    def ensure_version(self) -> None:
        """Stamp fresh settings with the current version, migrate old ones."""
        stored = self._get_str("version")
        if not stored:
            self._set("version", ConfigVersion.CURRENT.value)
            self._set("first_run", True)
            logger.info("First run detected, initializing configuration")
        elif stored != ConfigVersion.CURRENT.value:
            self.migrate(stored)

    def migrate(self, from_version: str) -> None:
        """Apply every step from ``from_version`` up to the current version.

        Unknown versions keep their stored values and are stamped current.
        """
        version = from_version
        while version != ConfigVersion.CURRENT.value:
            step = self.steps.get(version)
            if step is None:
                logger.warning(f"No migration from settings version {version}, keeping stored values")
                break
            next_version, apply_step = step
            logger.info(f"Migrating settings from {version} to {next_version}")
            apply_step()
            version = next_version

        self._set("version", ConfigVersion.CURRENT.value)
        self._set("migrated_from", from_version)

    def _absolute_recent_games(self) -> None:
        paths = PathSettings(self.settings)
        resolved: List[str] = []
        for game in paths.recent_games:
            game_path = str(Path(game).resolve())
            if game_path not in resolved:
                resolved.append(game_path)
        paths.recent_games = resolved
