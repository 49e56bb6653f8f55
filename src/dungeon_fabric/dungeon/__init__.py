"""
Dungeon compilation: line classification, door geometry and the compiler
that assembles the runtime dungeon graph.
"""

from .models import (
    Dungeon,
    DungeonState,
    DungeonType,
    Room,
    Encounter,
    Event,
    Choice,
    Connection,
)
from .compiler import CompileResult, CompileStage, CompilerOptions, DungeonCompiler
from .services import DungeonEventEmitter, ImageAssetProvider, InertResolver

__all__ = [
    "Dungeon",
    "DungeonState",
    "DungeonType",
    "Room",
    "Encounter",
    "Event",
    "Choice",
    "Connection",
    "CompileResult",
    "CompileStage",
    "CompilerOptions",
    "DungeonCompiler",
    "DungeonEventEmitter",
    "ImageAssetProvider",
    "InertResolver",
]
