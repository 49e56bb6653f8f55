"""
Path-related settings for dungeon_fabric.
"""

from pathlib import Path
from typing import List, Optional, Union

from .base import SettingsGroup

MAX_RECENT_GAMES = 10


class PathSettings(SettingsGroup):
    """The current game folder and the recently compiled ones."""

    section = "paths"

    @property
    def game_path(self) -> Optional[Path]:
        """Game folder holding the layer directories, if one was chosen."""
        path_str = self._get_str("game")
        return Path(path_str) if path_str else None

    @game_path.setter
    def game_path(self, value: Optional[Path]) -> None:
        self._set("game", str(value) if value else "")

    @property
    def recent_games(self) -> List[str]:
        """Recently compiled game folders, newest first."""
        return self._get_list("recent_games")

    @recent_games.setter
    def recent_games(self, value: List[str]) -> None:
        self._set("recent_games", list(value)[:MAX_RECENT_GAMES])

    def add_recent_game(self, game_path: Union[str, Path]) -> None:
        """Move a game folder to the front of the recent list."""
        path_str = str(game_path)
        recent = [game for game in self.recent_games if game != path_str]
        self.recent_games = [path_str] + recent

    def clear_recent_games(self) -> None:
        self.recent_games = []
