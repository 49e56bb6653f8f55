"""Shared fixtures: fake resolver, asset provider and event sink."""

import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Tuple

import pytest

from dungeon_fabric.dungeon.compiler import DungeonCompiler
from dungeon_fabric.dungeon.services import ImageDimensions
from dungeon_fabric.errors import AssetNotFoundError

ACTION_KEYS = frozenset({"set", "add", "goto", "scene", "exit"})


class FakeResolver:
    """Resolver whose conditions read a literal 'visible' flag.

    Keys in ACTION_KEYS count as action bindings; every call is recorded.
    """

    def __init__(self) -> None:
        self.conditions: List[Any] = []
        self.resolved: List[Any] = []

    def compile_condition(self, expr: Any) -> Any:
        self.conditions.append(expr)
        visible = bool(expr.get("visible", True)) if isinstance(expr, Mapping) else True
        return lambda: visible

    def compile_params(self, raw: Mapping[str, Any]) -> Any:
        return {"bound": dict(raw)}

    def resolve_actions(self, bound_params: Any) -> None:
        self.resolved.append(bound_params)

    def get_delayed_actions(self, params: Mapping[str, Any]) -> Mapping[str, Any]:
        return {k: v for k, v in params.items() if k in ACTION_KEYS}


class FakeAssets:
    """Asset provider backed by a dict of known image sizes."""

    def __init__(self, sizes: Dict[str, Tuple[int, int]]) -> None:
        self.sizes = sizes
        self.requests: List[str] = []

    def get_image_dimensions(self, path: str) -> ImageDimensions:
        self.requests.append(path)
        if path not in self.sizes:
            raise AssetNotFoundError(path)
        return ImageDimensions(*self.sizes[path])


class RecordingSink:
    """Event sink remembering every trigger."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, Tuple[Any, ...]]] = []

    def trigger(self, event_name: str, *payload: Any) -> None:
        self.events.append((event_name, payload))


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def assets() -> FakeAssets:
    return FakeAssets({"maps/cave.png": (1000, 800), "screens/hall.png": (1600, 1000)})


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def compiler(resolver: FakeResolver, assets: FakeAssets, sink: RecordingSink) -> DungeonCompiler:
    return DungeonCompiler(resolver, assets, events=sink)


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    """Isolated INI settings storage."""
    return tmp_path / "settings.ini"


@pytest.fixture
def restore_root_handlers() -> Iterator[None]:
    """Put the root logger back the way the test found it."""
    root = logging.getLogger()
    handlers: List[logging.Handler] = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
