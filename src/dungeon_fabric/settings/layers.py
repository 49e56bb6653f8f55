"""
Layer selection settings for dungeon_fabric.
"""

from typing import List

from .base import SettingsGroup


class LayerSettings(SettingsGroup):
    """Manages which content layers take part in merging.

    The active list only selects layers; merge order always comes from the
    layer manifests (core first, then load_order and name).
    """

    section = "layers"

    @property
    def active_layers(self) -> List[str]:
        """Active overlay layers; empty means every layer found on disk."""
        return self._get_list("active")

    @active_layers.setter
    def active_layers(self, value: List[str]) -> None:
        self._set("active", list(value))

    @property
    def available_layers(self) -> List[str]:
        """Layers seen on disk during the last load, cached for tools."""
        return self._get_list("available")

    @available_layers.setter
    def available_layers(self, value: List[str]) -> None:
        self._set("available", list(value))

    def add_layer(self, layer_id: str) -> None:
        active = self.active_layers
        if layer_id not in active:
            self.active_layers = active + [layer_id]

    def remove_layer(self, layer_id: str) -> None:
        active = self.active_layers
        if layer_id in active:
            active.remove(layer_id)
            self.active_layers = active

    def clear_active_layers(self) -> None:
        self.active_layers = []

    def is_layer_active(self, layer_id: str) -> bool:
        return layer_id in self.active_layers

    @property
    def always_include_core(self) -> bool:
        """Keep the core layer even when the active list does not name it."""
        return self._get_bool("always_include_core", True)

    @always_include_core.setter
    def always_include_core(self, value: bool) -> None:
        self._set("always_include_core", value)
