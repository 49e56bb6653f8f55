"""
Dungeon compiler settings for dungeon_fabric.
"""

from ..dungeon.compiler import CompilerOptions
from ..dungeon.geometry import ROOM_SIZE
from ..dungeon.models import DEFAULT_FOG_IMAGE
from ..errors import ConfigError
from .base import SettingsGroup

DEFAULT_TEXT_WIDTH = 800
DEFAULT_TEXT_HEIGHT = 600


class CompilerSettings(SettingsGroup):
    """Manages the tunables passed to every dungeon compilation."""

    section = "compiler"

    def _set_positive(self, name: str, value: float) -> None:
        if value <= 0:
            raise ConfigError(f"{self._key(name)} must be positive, got {value}")
        self._set(name, value)

    @property
    def room_size(self) -> float:
        """Size of a room icon in map pixels."""
        return self._get_float("room_size", ROOM_SIZE)

    @room_size.setter
    def room_size(self, value: float) -> None:
        self._set_positive("room_size", value)

    @property
    def text_default_width(self) -> float:
        """Width used by text dungeons without an explicit size."""
        return self._get_float("text_width", DEFAULT_TEXT_WIDTH)

    @text_default_width.setter
    def text_default_width(self, value: float) -> None:
        self._set_positive("text_width", value)

    @property
    def text_default_height(self) -> float:
        return self._get_float("text_height", DEFAULT_TEXT_HEIGHT)

    @text_default_height.setter
    def text_default_height(self, value: float) -> None:
        self._set_positive("text_height", value)

    @property
    def default_fog_image(self) -> str:
        """Fog texture used when a dungeon config has none."""
        return self._get_str("default_fog_image", DEFAULT_FOG_IMAGE)

    @default_fog_image.setter
    def default_fog_image(self, value: str) -> None:
        self._set("default_fog_image", value)

    def to_options(self) -> CompilerOptions:
        """Snapshot the stored values as CompilerOptions."""
        return CompilerOptions(
            room_size=self.room_size,
            text_default_width=self.text_default_width,
            text_default_height=self.text_default_height,
            default_fog_image=self.default_fog_image,
        )
