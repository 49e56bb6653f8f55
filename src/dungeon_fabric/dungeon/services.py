"""
Services consumed by the dungeon compiler.

The compiler never reaches for globals: the condition/action resolver,
the asset-metadata provider and the event sink are passed in. This module
defines their interfaces and ships the concrete implementations used by
the content service and the command line tool.
"""

import copy
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Mapping, NamedTuple, Optional, Protocol, Tuple, cast

from PIL import Image, UnidentifiedImageError
from PySide6.QtCore import QObject, Signal

from ..errors import AssetNotFoundError
from .models import Predicate


class ImageDimensions(NamedTuple):
    width: int
    height: int


class ConditionActionResolver(Protocol):
    """Compiles condition/action/placeholder expressions from content params."""

    def compile_condition(self, expr: Any) -> Predicate:
        """Compile a condition expression into a boolean-producing predicate."""
        ...

    def compile_params(self, raw: Mapping[str, Any]) -> Any:
        """Compile placeholder/action params into bound params."""
        ...

    def resolve_actions(self, bound_params: Any) -> None:
        """Execute compiled or raw action params."""
        ...

    def get_delayed_actions(self, params: Mapping[str, Any]) -> Mapping[str, Any]:
        """Return the subset of params that are action bindings."""
        ...


class AssetProvider(Protocol):
    """Read-only access to asset metadata."""

    def get_image_dimensions(self, path: str) -> ImageDimensions:
        """Return natural image size.

        Raises:
            AssetNotFoundError: if the image is missing or unreadable
        """
        ...


class EventSink(Protocol):
    """Receiver of engine notifications such as 'dungeon_create'."""

    def trigger(self, event_name: str, *payload: Any) -> None:
        ...


class ImageAssetProvider:
    """Asset provider reading image headers with Pillow.

    Relative paths are resolved against ``base_path``. Dimensions are cached
    per path; the cache is shared safely between threads.
    """

    def __init__(self, base_path: Optional[Path] = None):
        self.base_path = Path(base_path) if base_path else None
        self._cache: Dict[str, ImageDimensions] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def resolve_path(self, path: str) -> Path:
        image_path = Path(path)
        if self.base_path and not image_path.is_absolute():
            image_path = self.base_path / image_path
        return image_path

    def get_image_dimensions(self, path: str) -> ImageDimensions:
        with self._lock:
            cached = self._cache.get(path)
        if cached:
            return cached

        image_path = self.resolve_path(path)
        if not image_path.is_file():
            self.logger.warning(f"Image file not found: {image_path}")
            raise AssetNotFoundError(path)

        try:
            # Image.open only reads the header; size is available without decoding
            with Image.open(image_path) as image:
                dimensions = ImageDimensions(*cast(Tuple[int, int], image.size))
        except (OSError, UnidentifiedImageError) as e:
            raise AssetNotFoundError(path, f"unreadable image ({e})") from e

        with self._lock:
            self._cache[path] = dimensions
        self.logger.debug(f"Image {path}: {dimensions.width}x{dimensions.height}")
        return dimensions

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()


class DungeonEventEmitter(QObject):
    """Qt event sink: re-emits every trigger as a signal.

    Listeners connect to ``triggered(event_name, payload)``; ``dungeon_created``
    is emitted in addition for 'dungeon_create' notifications.
    """

    triggered = Signal(str, object)
    dungeon_created = Signal(object)

    def trigger(self, event_name: str, *payload: Any) -> None:
        self.triggered.emit(event_name, payload)  # type: ignore
        if event_name == "dungeon_create" and payload:
            self.dungeon_created.emit(payload[0])  # type: ignore


CONDITION_KEYS = frozenset({"if", "ifOr", "active", "rooms", "repeat"})


class InertResolver:
    """Resolver that compiles nothing: conditions are always true.

    Used to compile content without a running game, e.g. for content
    checks. Every parameter that is not a condition key counts as an
    action binding.
    """

    def __init__(self, condition_keys: frozenset[str] = CONDITION_KEYS):
        self.condition_keys = condition_keys
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def compile_condition(self, expr: Any) -> Predicate:
        return lambda: True

    def compile_params(self, raw: Mapping[str, Any]) -> Any:
        return copy.deepcopy(dict(raw))

    def resolve_actions(self, bound_params: Any) -> None:
        self.logger.debug(f"Skipping actions: {bound_params}")

    def get_delayed_actions(self, params: Mapping[str, Any]) -> Mapping[str, Any]:
        return {k: v for k, v in params.items() if k not in self.condition_keys}
