"""
Managers for layered content indexing and retrieval.

Provides ContentManager, which stores what each layer contributes to each
dungeon and indexes merged dungeon content for constant-time lookups.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

from .merge import LayerPayload
from .models import ContentRecord, DungeonContent


class ContentManager:
    """Manager for per-layer payloads and merged dungeon content.

    Maintains two groups of indices:
    - payloads: dungeon_id -> layer_id -> file kind -> parsed data
    - contents/lines: dungeon_id -> merged DungeonContent and its line map

    Raw payloads are kept so merges can be redone for another layer
    selection without touching the disk again.
    """

    def __init__(self):
        # dungeon_id -> (layer_id -> (kind -> data))
        self.payloads: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)

        # Merged content, filled lazily by the service
        self.contents: Dict[str, DungeonContent] = {}

        # Layers and dungeons in order of discovery
        self.available_layers: List[str] = []
        self.dungeon_ids: List[str] = []
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.logger.debug("ContentManager initialized")

    def add_layer_content(self, layer_id: str, dungeon_id: str, files: Dict[str, Any]) -> None:
        """Add the files one layer provides for one dungeon.

        Args:
            layer_id: Layer providing the files
            dungeon_id: Dungeon the files belong to
            files: Mapping of file kind ('config', 'rooms', ...) to parsed data
        """
        if layer_id not in self.available_layers:
            self.available_layers.append(layer_id)
        if dungeon_id not in self.dungeon_ids:
            self.dungeon_ids.append(dungeon_id)

        if files:
            self.payloads[dungeon_id].setdefault(layer_id, {}).update(files)
        # New layer data invalidates an earlier merge
        self.contents.pop(dungeon_id, None)

    def register_layer(self, layer_id: str) -> None:
        """Track a layer even if it provides no dungeon content."""
        if layer_id not in self.available_layers:
            self.available_layers.append(layer_id)

    def finalize_dungeons(self) -> None:
        """Sort the discovered dungeon IDs."""
        self.dungeon_ids = sorted(self.dungeon_ids)

    def get_dungeon_ids(self) -> List[str]:
        """Return a copy of the discovered dungeon IDs."""
        return self.dungeon_ids.copy()

    def get_available_layers(self) -> List[str]:
        """Return a copy of the discovered layer IDs."""
        return self.available_layers.copy()

    def has_dungeon(self, dungeon_id: str) -> bool:
        return dungeon_id in self.payloads

    def get_layers_for_dungeon(self, dungeon_id: str, layer_order: Sequence[str]) -> List[str]:
        """Return the layers, in ``layer_order``, that provide files for a dungeon."""
        provided = self.payloads.get(dungeon_id, {})
        return [layer_id for layer_id in layer_order if layer_id in provided]

    def get_payloads(
        self, dungeon_id: str, kind: str, layer_order: Sequence[str]
    ) -> List[LayerPayload]:
        """Return one file kind of a dungeon from each layer that has it.

        Args:
            dungeon_id: Dungeon to look up
            kind: File kind ('config', 'rooms', 'encounters', 'content_parsed')
            layer_order: Layers in merge order, base layer first

        Returns:
            LayerPayload list ready for the merge engine
        """
        provided = self.payloads.get(dungeon_id, {})
        result: List[LayerPayload] = []
        for layer_id in layer_order:
            files = provided.get(layer_id)
            if files and kind in files:
                result.append(LayerPayload(layer_id=layer_id, data=files[kind]))
        return result

    def store_content(self, content: DungeonContent) -> None:
        """Keep merged content for later lookups."""
        self.contents[content.dungeon_id] = content

    def get_content(self, dungeon_id: str) -> Optional[DungeonContent]:
        return self.contents.get(dungeon_id)

    def get_line(self, dungeon_id: str, line_id: str) -> Optional[ContentRecord]:
        """Return a merged line record, if that dungeon has been merged."""
        content = self.contents.get(dungeon_id)
        if content is None:
            return None
        return content.lines.get(line_id)

    def get_room_record(self, dungeon_id: str, room_id: str) -> Optional[ContentRecord]:
        content = self.contents.get(dungeon_id)
        return content.rooms.get(room_id) if content else None

    def get_encounter_record(self, dungeon_id: str, encounter_id: str) -> Optional[ContentRecord]:
        content = self.contents.get(dungeon_id)
        return content.encounters.get(encounter_id) if content else None

    def clear_merged(self) -> None:
        """Drop merged content, e.g. after the layer selection changed."""
        self.contents.clear()
