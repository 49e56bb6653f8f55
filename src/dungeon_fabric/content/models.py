"""
Data models for layered game content.

Contains type definitions and key constants used throughout the content
package. Keeps a dict-based approach for raw records while providing
clear type hints; typed records live in dungeon_fabric.dungeon.models.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, TypeAlias

# Type aliases for clarity
ContentRecord: TypeAlias = Dict[str, Any]
"""A single content record (room, encounter, config, line) as a dict."""

RecordCollection: TypeAlias = List[ContentRecord]
"""An ID-keyed collection of content records."""

LinesMap: TypeAlias = Dict[str, ContentRecord]
"""Maps content line ID to its raw line record ({id, val/text, params})."""


# Metadata keys added to records during loading
METADATA_LAYER_ID = "_layer_id"
METADATA_SOURCE_FILE = "_source_file"
METADATA_KEYS = (METADATA_LAYER_ID, METADATA_SOURCE_FILE)

# Key that identifies records inside ID-keyed collections
ID_KEY = "id"

# Special keys for overlay directives
EXTEND_KEY = "extend"
DELETE_KEY = "delete"
DIRECTIVE_KEYS = (EXTEND_KEY, DELETE_KEY)

# Text field of a parsed content line
LINE_TEXT_KEY = "val"

# Base layer, always loaded first
CORE_LAYER_ID = "_core"

# Per-dungeon content files inside a layer
CONFIG_FILE = "config"
ROOMS_FILE = "rooms"
ENCOUNTERS_FILE = "encounters"
LINES_FILE = "content_parsed"
DUNGEON_FILES = (CONFIG_FILE, ROOMS_FILE, ENCOUNTERS_FILE, LINES_FILE)


@dataclass
class DungeonContent:
    """Merged content of one dungeon across all active layers.

    Rooms, encounters and lines keep the first-seen order of their IDs.
    """
    dungeon_id: str
    config: ContentRecord = field(default_factory=dict)
    rooms: Dict[str, ContentRecord] = field(default_factory=dict)
    encounters: Dict[str, ContentRecord] = field(default_factory=dict)
    lines: LinesMap = field(default_factory=dict)
    layers: List[str] = field(default_factory=list)
