"""
Typed access to one section of the settings storage.
"""

import logging
from typing import Any, List, Optional, TYPE_CHECKING, cast

if TYPE_CHECKING:
    from PySide6.QtCore import QSettings

logger = logging.getLogger(__name__)


class SettingsGroup:
    """Base for the settings sections ('paths', 'logging', 'layers', ...).

    Keys are given without the section name. INI storage hands every value
    back as a string (and a one-element list as a bare string), so reads go
    through the typed getters below; every write is synced immediately.
    """

    section = ""

    def __init__(self, settings: "QSettings"):
        self.settings = settings

    def _key(self, name: str) -> str:
        return f"{self.section}/{name}"

    def _get_str(self, name: str, default: str = "") -> str:
        value = self.settings.value(self._key(name), default)
        return str(value) if value not in (None, "") else default

    def _get_bool(self, name: str, default: bool = False) -> bool:
        value = self.settings.value(self._key(name), default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ("true", "1", "yes")
        return bool(value) if value is not None else default

    def _get_float(self, name: str, default: float) -> float:
        value = self.settings.value(self._key(name), default)
        try:
            return float(str(value)) if value is not None else default
        except (ValueError, TypeError):
            logger.warning(f"Invalid number for {self._key(name)}: {value!r}, using {default}")
            return default

    def _get_list(self, name: str, default: Optional[List[str]] = None) -> List[str]:
        value = self.settings.value(self._key(name), default if default is not None else [])
        if isinstance(value, list):
            return ["" if item is None else str(item) for item in cast(List[Any], value)]
        if isinstance(value, str):
            return [value] if value else []
        return list(default or [])

    def _set(self, name: str, value: Any) -> None:
        self.settings.setValue(self._key(name), value)
        self.settings.sync()

    def _remove(self, name: str) -> None:
        self.settings.remove(self._key(name))
        self.settings.sync()
