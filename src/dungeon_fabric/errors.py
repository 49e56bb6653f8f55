"""
Exception types shared across dungeon_fabric.

Structural errors (bad layer shapes) and load-critical errors are turned
into a failed CompileResult by the compiler. NotFoundError is raised for
runtime lookups of IDs that do not exist in a compiled dungeon.
"""

from typing import Optional


class DungeonFabricError(Exception):
    """Base class for all dungeon_fabric errors."""
    pass


class NoDataError(DungeonFabricError):
    """Raised when a merge is requested over zero layers."""

    def __init__(self, what: str = "dataset"):
        super().__init__(f"No layers provided for {what}")
        self.what = what


class SchemaMismatchError(DungeonFabricError):
    """Raised when a layer does not have the shape a merge expects."""

    def __init__(self, layer_id: str, path: str, message: str):
        location = f"{layer_id}:{path}" if path else layer_id
        super().__init__(f"Schema mismatch in {location}: {message}")
        self.layer_id = layer_id
        self.path = path


class NotFoundError(DungeonFabricError, KeyError):
    """Raised when a room, encounter or line ID is not part of a dungeon."""

    def __init__(self, kind: str, object_id: str, owner: Optional[str] = None):
        message = f"{kind.capitalize()} '{object_id}' not found"
        if owner:
            message += f" in dungeon '{owner}'"
        DungeonFabricError.__init__(self, message)
        self.kind = kind
        self.object_id = object_id
        self.owner = owner

    def __str__(self) -> str:
        return str(self.args[0])


class AssetNotFoundError(DungeonFabricError):
    """Raised by asset providers when an image cannot be located or read."""

    def __init__(self, path: str, reason: str = "file not found"):
        super().__init__(f"Asset '{path}': {reason}")
        self.path = path


class ConfigError(DungeonFabricError):
    """Raised when settings are invalid or cannot be accessed."""
    pass


class LoadFailedError(DungeonFabricError):
    """Raised inside a compilation when load-critical content is missing."""

    def __init__(self, dungeon_id: str, reason: str):
        super().__init__(f"Dungeon '{dungeon_id}' failed to load: {reason}")
        self.dungeon_id = dungeon_id
        self.reason = reason
