"""
Main service for working with layered game content.

Provides high-level API for discovering layers on disk, loading their
dungeon files, merging them into per-dungeon content and compiling
dungeons from it.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING, Tuple

from ..dungeon.compiler import CompileResult, CompileStage, CompilerOptions, DungeonCompiler
from ..dungeon.models import DUNGEON_NAME_LINE
from ..dungeon.services import AssetProvider, ConditionActionResolver, EventSink
from ..errors import DungeonFabricError, NotFoundError
from .loaders import ContentFileLoader, find_layer_dirs, layer_sort_key
from .managers import ContentManager
from .merge import LayerMerger
from .models import (
    CONFIG_FILE,
    CORE_LAYER_ID,
    ENCOUNTERS_FILE,
    LINES_FILE,
    ROOMS_FILE,
    ContentRecord,
    DungeonContent,
)

if TYPE_CHECKING:
    from ..settings import AppSettings


class ContentService:
    """Service for working with layered dungeon content.

    Responsible for reading each layer's dungeon JSON files, merging them
    in layer order (core first, then overlays by load_order and name) and
    handing the merged content to the dungeon compiler. Files are read in
    parallel with a thread pool and parsed with orjson.
    """

    def __init__(
        self,
        game_path: str | Path,
        settings: Optional["AppSettings"] = None,
        merger: Optional[LayerMerger] = None,
        active_layers: Optional[Sequence[str]] = None,
        max_workers: int = 16,
    ):
        """Initialize the content service and load every layer.

        Args:
            game_path: Game folder holding one directory per layer
            settings: App settings for the active layer selection
            merger: Merge engine; a default LayerMerger when omitted
            active_layers: Explicit layer filter, overrides settings
            max_workers: Thread pool size for file reads
        """
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.game_path = Path(game_path)
        self.settings = settings
        self.max_workers = max_workers
        self._active_layers = list(active_layers) if active_layers is not None else None

        # Initialize components
        self.loader = ContentFileLoader()
        self.manager = ContentManager()
        self.merger = merger or LayerMerger()

        # Layer order used for merging, filled by _discover_layers
        self.layer_order: List[str] = []
        self.manifests: Dict[str, ContentRecord] = {}

        self.logger.info(f"Initializing ContentService with path: {game_path}")
        self._load_data()

    # === LOADING ===

    def _load_data(self) -> None:
        """Discover layers and load their dungeon files."""
        self.logger.info("Starting content loading process...")

        layers = self._discover_layers()
        self._load_layers(layers)
        self.manager.finalize_dungeons()

        self.logger.info(
            f"Content loading completed. Found {len(self.manager.dungeon_ids)} dungeons "
            f"across {len(self.layer_order)} layers"
        )
        self.logger.debug(f"Layer order: {self.layer_order}")

    def _discover_layers(self) -> List[Tuple[str, Path]]:
        """Read layer manifests and compute the merge order."""
        if not self.game_path.is_dir():
            self.logger.warning(f"Game path does not exist: {self.game_path}")
            return []

        discovered: Dict[str, Path] = {}
        for layer_path in find_layer_dirs(self.game_path):
            manifest = self.loader.read_manifest(layer_path)
            layer_id = str(manifest["id"])
            if layer_id in discovered:
                self.logger.warning(
                    f"Duplicate layer id '{layer_id}' in {layer_path}, keeping {discovered[layer_id]}"
                )
                continue
            discovered[layer_id] = layer_path
            self.manifests[layer_id] = manifest
            self.manager.register_layer(layer_id)

        overlays = sorted(
            (layer_id for layer_id in discovered if layer_id != CORE_LAYER_ID),
            key=lambda layer_id: layer_sort_key(self.manifests[layer_id]),
        )
        order = ([CORE_LAYER_ID] if CORE_LAYER_ID in discovered else []) + overlays
        if CORE_LAYER_ID not in discovered:
            self.logger.warning(f"No core layer '{CORE_LAYER_ID}' found in {self.game_path}")

        self.layer_order = self._filter_layers(order)
        return [(layer_id, discovered[layer_id]) for layer_id in self.layer_order]

    def _filter_layers(self, order: List[str]) -> List[str]:
        """Apply the active layer selection; core stays first when included."""
        active = self._compute_active_layers()
        if active is None:
            return order

        include_core = self.settings.always_include_core if self.settings else True
        result: List[str] = []
        for layer_id in order:
            if layer_id == CORE_LAYER_ID and include_core:
                result.append(layer_id)
            elif layer_id in active:
                result.append(layer_id)

        missing = [layer_id for layer_id in active if layer_id not in order]
        if missing:
            self.logger.warning(f"Active layers not found on disk: {missing}")
        return result

    def _compute_active_layers(self) -> Optional[List[str]]:
        """Return the active layer filter, or None for 'all layers'."""
        if self._active_layers is not None:
            return self._active_layers
        if self.settings and self.settings.active_layers:
            return self.settings.active_layers.copy()
        return None

    def _load_layers(self, layers: List[Tuple[str, Path]]) -> None:
        """Read every dungeon of every layer in parallel."""
        jobs: List[Tuple[str, Path, str]] = []
        for layer_id, layer_path in layers:
            dungeon_ids = self.loader.list_dungeons(layer_path)
            if not dungeon_ids:
                self.logger.debug(f"No dungeons found in layer: {layer_id}")
            for dungeon_id in dungeon_ids:
                jobs.append((layer_id, layer_path, dungeon_id))

        if not jobs:
            self.logger.warning("No dungeon files found")
            return

        self.logger.info(f"Reading {len(jobs)} dungeon folders")

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_job = {
                executor.submit(
                    self.loader.read_dungeon_layer, layer_path, dungeon_id, layer_id
                ): (layer_id, dungeon_id)
                for layer_id, layer_path, dungeon_id in jobs
            }

            for future in as_completed(future_to_job):
                layer_id, dungeon_id = future_to_job[future]
                try:
                    files = future.result()
                except OSError as e:
                    self.logger.error(f"Error reading dungeon {dungeon_id} of layer {layer_id}: {e}")
                    continue
                self.manager.add_layer_content(layer_id, dungeon_id, files)

    # === MERGING ===

    def get_content(self, dungeon_id: str) -> DungeonContent:
        """Return the merged content of a dungeon, merging on first use.

        Raises:
            NotFoundError: if no active layer provides the dungeon
            NoDataError: if no active layer provides its config
            SchemaMismatchError: if a layer file has the wrong shape
        """
        content = self.manager.get_content(dungeon_id)
        if content is not None:
            return content

        if not self.manager.has_dungeon(dungeon_id):
            raise NotFoundError("dungeon", dungeon_id)

        order = self.layer_order
        content = DungeonContent(
            dungeon_id=dungeon_id,
            config=dict(self.merger.merge_config(self.manager.get_payloads(dungeon_id, CONFIG_FILE, order))),
            rooms=self._merge_collection(dungeon_id, ROOMS_FILE),
            encounters=self._merge_collection(dungeon_id, ENCOUNTERS_FILE),
            lines=self._merge_lines(dungeon_id),
            layers=self.manager.get_layers_for_dungeon(dungeon_id, order),
        )
        self.manager.store_content(content)
        self.logger.debug(
            f"Merged dungeon {dungeon_id} from layers {content.layers}: "
            f"{len(content.rooms)} rooms, {len(content.encounters)} encounters, "
            f"{len(content.lines)} lines"
        )
        return content

    def _merge_collection(self, dungeon_id: str, kind: str) -> Dict[str, ContentRecord]:
        payloads = self.manager.get_payloads(dungeon_id, kind, self.layer_order)
        if not payloads:
            return {}
        return self.merger.merge_records_by_id(payloads)

    def _merge_lines(self, dungeon_id: str) -> Dict[str, ContentRecord]:
        payloads = self.manager.get_payloads(dungeon_id, LINES_FILE, self.layer_order)
        if not payloads:
            return {}
        return self.merger.merge_lines(payloads)

    # === COMPILATION ===

    def compile_dungeon(
        self,
        dungeon_id: str,
        resolver: ConditionActionResolver,
        assets: AssetProvider,
        events: Optional[EventSink] = None,
        options: Optional[CompilerOptions] = None,
    ) -> CompileResult:
        """Merge and compile one dungeon.

        Merge failures are reported the same way as compile failures: a
        CompileResult without a dungeon.
        """
        try:
            content = self.get_content(dungeon_id)
        except DungeonFabricError as e:
            self.logger.error(f"Dungeon '{dungeon_id}' failed to merge: {e}")
            return CompileResult(
                dungeon_id=dungeon_id, failed_stage=CompileStage.LOAD_CONFIG, errors=[str(e)]
            )

        compiler = DungeonCompiler(
            resolver, assets, events=events, options=options or self._compiler_options(), merger=self.merger
        )
        return compiler.compile(content)

    def compile_all(
        self,
        resolver: ConditionActionResolver,
        assets: AssetProvider,
        events: Optional[EventSink] = None,
        options: Optional[CompilerOptions] = None,
        dungeon_ids: Optional[Sequence[str]] = None,
    ) -> Dict[str, CompileResult]:
        """Compile several dungeons, each independently of the others.

        Compilation runs on the calling thread: the resolver and event sink
        are not required to be thread-safe.

        Args:
            dungeon_ids: Dungeons to compile; all discovered dungeons if None

        Returns:
            Mapping of dungeon ID to its CompileResult, in request order
        """
        results: Dict[str, CompileResult] = {}
        for dungeon_id in dungeon_ids if dungeon_ids is not None else self.get_dungeon_ids():
            results[dungeon_id] = self.compile_dungeon(
                dungeon_id, resolver, assets, events=events, options=options
            )

        failed = [dungeon_id for dungeon_id, result in results.items() if result.load_failed]
        if failed:
            self.logger.warning(f"{len(failed)} of {len(results)} dungeons failed to load: {failed}")
        return results

    def _compiler_options(self) -> CompilerOptions:
        if self.settings is None:
            return CompilerOptions()
        return self.settings.compiler.to_options()

    # === LOOKUPS ===

    def get_dungeon_ids(self) -> List[str]:
        """Return the dungeons provided by the active layers."""
        return self.manager.get_dungeon_ids()

    def get_available_layers(self) -> List[str]:
        """Return every layer found on disk, active or not."""
        return self.manager.get_available_layers()

    def get_line(self, dungeon_id: str, line_id: str) -> ContentRecord:
        """Return a merged content line record.

        Raises:
            NotFoundError: if the dungeon or the line does not exist
        """
        lines = self.get_content(dungeon_id).lines
        line = lines.get(line_id)
        if line is None:
            raise NotFoundError("line", line_id, dungeon_id)
        return line

    def get_dungeon_name(self, dungeon_id: str) -> str:
        """Display name from the '$dungeon_name' line, or the dungeon ID."""
        try:
            line: Any = self.get_line(dungeon_id, DUNGEON_NAME_LINE)
        except DungeonFabricError:
            # Missing or unmergeable lines fall back to the ID
            return dungeon_id
        text = line.get("val", line.get("text"))
        return str(text) if text else dungeon_id
