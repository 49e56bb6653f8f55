"""
dungeon_fabric: layered content merging and dungeon compilation

Merges a base content layer and ordered overlay layers into per-dungeon
datasets and compiles them into linked dungeon graphs (rooms, encounters,
events, choices and doors).
"""

__version__ = "0.1.0"
__author__ = "dungeon_fabric Contributors"

# Core service imports
from .content.service import ContentService
from .content.merge import LayerMerger, LayerPayload, MergePolicy
from .dungeon.compiler import CompileResult, CompilerOptions, DungeonCompiler
from .utils.logging_config import setup_logging

# Errors
from .errors import (
    DungeonFabricError,
    NoDataError,
    SchemaMismatchError,
    NotFoundError,
    AssetNotFoundError,
    ConfigError,
    LoadFailedError,
)

__all__ = [
    # Services
    "ContentService",
    "LayerMerger",
    "LayerPayload",
    "MergePolicy",
    "DungeonCompiler",
    "CompileResult",
    "CompilerOptions",
    # Logging
    "setup_logging",
    # Errors
    "DungeonFabricError",
    "NoDataError",
    "SchemaMismatchError",
    "NotFoundError",
    "AssetNotFoundError",
    "ConfigError",
    "LoadFailedError",
]
