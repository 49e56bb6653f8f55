"""
Module for working with layered game content.

Provides loading, indexing and merging of per-layer dungeon files. The
ContentService that ties them together lives in ``content.service``.
"""

from .models import (
    ContentRecord,
    RecordCollection,
    LinesMap,
    DungeonContent,
    METADATA_LAYER_ID,
    METADATA_SOURCE_FILE,
    CORE_LAYER_ID,
)
from .merge import LayerMerger, LayerPayload, MergePolicy
from .managers import ContentManager
from .loaders import ContentFileLoader

# Public exports
__all__ = [
    # Type aliases
    "ContentRecord",
    "RecordCollection",
    "LinesMap",
    "DungeonContent",
    # Constants
    "METADATA_LAYER_ID",
    "METADATA_SOURCE_FILE",
    "CORE_LAYER_ID",
    # Component classes
    "LayerMerger",
    "LayerPayload",
    "MergePolicy",
    "ContentManager",
    "ContentFileLoader",
]
