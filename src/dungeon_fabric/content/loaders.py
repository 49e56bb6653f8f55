"""
File loaders for layered game content.

Handles reading and parsing the JSON files of one layer with orjson.
Each loaded record is annotated with the layer and file it came from.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, cast

import orjson

from .models import (
    ContentRecord,
    METADATA_LAYER_ID,
    METADATA_SOURCE_FILE,
    DUNGEON_FILES,
    CONFIG_FILE,
    LINES_FILE,
)

MANIFEST_FILE = "manifest.json"
DUNGEONS_DIR = "dungeons"


class ContentFileLoader:
    """Loads and parses content JSON files of a single layer."""

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.logger.debug("ContentFileLoader initialized")

    @staticmethod
    def read_json_file(json_file: Path) -> Any:
        """Read and parse one JSON file.

        Raises:
            OSError: if the file cannot be read
            orjson.JSONDecodeError: if the file is not valid JSON
        """
        with json_file.open("rb") as f:  # orjson works with bytes
            return orjson.loads(f.read())

    def read_manifest(self, layer_path: Path) -> ContentRecord:
        """Read a layer manifest, falling back to an empty one.

        Args:
            layer_path: Layer root directory

        Returns:
            Manifest dict with at least 'id' set to the directory name
        """
        manifest: ContentRecord = {}
        manifest_file = layer_path / MANIFEST_FILE
        if manifest_file.exists():
            try:
                data = self.read_json_file(manifest_file)
                if isinstance(data, dict):
                    manifest = cast(ContentRecord, data)
                else:
                    self.logger.warning(f"Manifest is not an object: {manifest_file}")
            except (OSError, orjson.JSONDecodeError) as e:
                self.logger.error(f"Error reading manifest {manifest_file}: {e}")
        manifest.setdefault("id", layer_path.name)
        return manifest

    def list_dungeons(self, layer_path: Path) -> List[str]:
        """Return dungeon IDs (directory names) provided by a layer."""
        dungeons_path = layer_path / DUNGEONS_DIR
        if not dungeons_path.is_dir():
            return []
        return sorted(d.name for d in dungeons_path.iterdir() if d.is_dir())

    def read_dungeon_layer(
        self, layer_path: Path, dungeon_id: str, layer_id: str
    ) -> Dict[str, Any]:
        """Read the content files one layer provides for a dungeon.

        Files that are missing are left out of the result; files that fail
        to parse are logged and also left out, so one broken overlay does
        not hide the other layers.

        Args:
            layer_path: Layer root directory
            dungeon_id: Dungeon directory name
            layer_id: Layer identifier used for record metadata

        Returns:
            Dict mapping file kind ('config', 'rooms', ...) to parsed data
        """
        dungeon_path = layer_path / DUNGEONS_DIR / dungeon_id
        result: Dict[str, Any] = {}

        for kind in DUNGEON_FILES:
            json_file = dungeon_path / f"{kind}.json"
            if not json_file.exists():
                continue
            try:
                data = self.read_json_file(json_file)
            except (OSError, orjson.JSONDecodeError) as e:
                # Log parse/read errors but do not stop the whole loading process
                self.logger.error(f"Error reading JSON file {json_file}: {e}")
                continue
            result[kind] = self._annotate(data, kind, layer_id, json_file)

        return result

    @staticmethod
    def _annotate(data: Any, kind: str, layer_id: str, json_file: Path) -> Any:
        """Tag records with their origin, copying them to avoid shared state."""
        if kind == CONFIG_FILE:
            if isinstance(data, dict):
                data = cast(ContentRecord, data).copy()
                data[METADATA_LAYER_ID] = layer_id
                data[METADATA_SOURCE_FILE] = str(json_file)
            return data

        if kind == LINES_FILE and isinstance(data, dict):
            # Line layers may also be written as {line_id: {text, params}}
            lines: Dict[str, Any] = {}
            for line_id, value in cast(Dict[str, Any], data).items():
                if isinstance(value, dict):
                    value = cast(ContentRecord, value).copy()
                    value[METADATA_LAYER_ID] = layer_id
                    value[METADATA_SOURCE_FILE] = str(json_file)
                lines[line_id] = value
            return lines

        if not isinstance(data, list):
            # Shape problems are reported by the merge engine
            return data

        annotated: List[Any] = []
        for obj in cast(List[Any], data):
            if isinstance(obj, dict):
                obj = cast(ContentRecord, obj).copy()
                obj[METADATA_LAYER_ID] = layer_id
                obj[METADATA_SOURCE_FILE] = str(json_file)
            annotated.append(obj)
        return annotated


def find_layer_dirs(game_path: Path) -> List[Path]:
    """Return layer directories directly under a game folder."""
    if not game_path.is_dir():
        return []
    return sorted(d for d in game_path.iterdir() if d.is_dir() and not d.name.startswith("."))


def layer_sort_key(manifest: ContentRecord) -> tuple[int, str]:
    """Sort key for overlay layers: manifest load_order, then ID."""
    raw_order: Optional[Any] = manifest.get("load_order")
    try:
        order = int(raw_order) if raw_order is not None else 0
    except (TypeError, ValueError):
        order = 0
    return order, str(manifest.get("id", ""))
