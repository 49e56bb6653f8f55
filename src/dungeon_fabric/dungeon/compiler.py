"""
Dungeon compiler.

Turns the merged content of one dungeon (config, room records, encounter
records and content lines) into a linked Dungeon graph. Stages run in a
fixed order; any structural or load-critical failure stops the run and is
reported through CompileResult instead of leaving a half-built graph.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, cast

from ..content.merge import LayerMerger
from ..content.models import ContentRecord, DungeonContent
from ..errors import DungeonFabricError, LoadFailedError, SchemaMismatchError
from .geometry import ROOM_SIZE, DoorBuilder, neighbor_angle
from .lines import ChoiceBinder, ClassifiedLines, LineClassifier, LinePath, to_content_lines
from .models import (
    DEFAULT_FOG_IMAGE,
    SCREEN_ROOM_ID,
    ContentLine,
    Dungeon,
    DungeonConfig,
    DungeonType,
    Encounter,
    EncounterRecord,
    NeighborRoom,
    Room,
    RoomRecord,
)
from .services import AssetProvider, ConditionActionResolver, EventSink

DUNGEON_CREATE_ACTION = "dungeon_create"
DUNGEON_CREATE_EVENT = "dungeon_create"


class CompileStage(Enum):
    """Compilation stages in execution order."""
    LOAD_CONFIG = 1
    LOAD_GEOMETRY = 2
    BUILD_ROOMS = 3
    BUILD_ENCOUNTERS = 4
    BUILD_DOORS = 5
    BIND_LINES = 6
    CREATE_HOOK = 7
    COMPLETE = 8


@dataclass(frozen=True)
class CompilerOptions:
    """Tunables shared by every compilation run."""
    room_size: float = ROOM_SIZE
    text_default_width: float = 800
    text_default_height: float = 600
    screen_padding: float = 5
    default_fog_image: str = DEFAULT_FOG_IMAGE


@dataclass
class CompileResult:
    """Outcome of one compilation: a finished dungeon or the load errors."""
    dungeon_id: str
    dungeon: Optional[Dungeon] = None
    failed_stage: Optional[CompileStage] = None
    errors: List[str] = field(default_factory=list)

    @property
    def load_failed(self) -> bool:
        return self.dungeon is None

    @property
    def ok(self) -> bool:
        return self.dungeon is not None


class DungeonCompiler:
    """Compiles merged dungeon content into a Dungeon graph.

    External systems are injected: the condition/action resolver compiles
    predicates and actions, the asset provider reports image sizes and the
    optional event sink is told when a dungeon has been constructed.
    """

    def __init__(
        self,
        resolver: ConditionActionResolver,
        assets: AssetProvider,
        events: Optional[EventSink] = None,
        options: Optional[CompilerOptions] = None,
        merger: Optional[LayerMerger] = None,
    ):
        self.resolver = resolver
        self.assets = assets
        self.events = events
        self.options = options or CompilerOptions()
        self.merger = merger or LayerMerger()
        self.classifier = LineClassifier()
        self.door_builder = DoorBuilder(self.options.room_size)
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    # === ENTRY POINTS ===

    def compile_layers(
        self,
        dungeon_id: str,
        config_layers: Sequence[Any],
        room_layers: Sequence[Any] = (),
        encounter_layers: Sequence[Any] = (),
        line_layers: Sequence[Any] = (),
    ) -> CompileResult:
        """Merge per-layer content and compile it.

        Config layers are required; the other collections may have no
        layers at all, which means an empty collection.
        """
        try:
            config = self.merger.merge_config(config_layers)
            content = DungeonContent(
                dungeon_id=dungeon_id,
                config=dict(config),
                rooms=self._merge_keyed(room_layers),
                encounters=self._merge_keyed(encounter_layers),
                lines=self.merger.merge_lines(line_layers) if line_layers else {},
            )
        except DungeonFabricError as e:
            return self._failure(dungeon_id, CompileStage.LOAD_CONFIG, e)
        return self.compile(content)

    def compile(self, content: DungeonContent) -> CompileResult:
        """Run every stage over already merged content.

        Args:
            content: Merged config, records and lines of one dungeon

        Returns:
            CompileResult holding the dungeon, or the failure stage and errors
        """
        stage = CompileStage.LOAD_CONFIG
        try:
            config = self._load_config(content)
            dungeon = self._new_dungeon(content.dungeon_id, config)

            stage = CompileStage.LOAD_GEOMETRY
            self._load_geometry(dungeon, config)

            stage = CompileStage.BUILD_ROOMS
            room_records = self._room_records(dungeon, content)
            dungeon.rooms = self._build_rooms(dungeon, room_records)

            stage = CompileStage.BUILD_ENCOUNTERS
            dungeon.encounters = self._build_encounters(dungeon, content)

            stage = CompileStage.BUILD_DOORS
            dungeon.connections = self.door_builder.build(room_records)

            stage = CompileStage.BIND_LINES
            self._bind_lines(dungeon, content.lines)

            stage = CompileStage.CREATE_HOOK
            self._fire_create_hook(dungeon)
        except DungeonFabricError as e:
            return self._failure(content.dungeon_id, stage, e)

        self.logger.info(
            f"Compiled dungeon '{dungeon.id}' ({dungeon.dungeon_type.value}): "
            f"{len(dungeon.rooms)} rooms, {len(dungeon.encounters)} encounters, "
            f"{len(dungeon.connections)} doors"
        )
        return CompileResult(dungeon_id=dungeon.id, dungeon=dungeon)

    # === STAGE 1: CONFIG ===

    def _load_config(self, content: DungeonContent) -> DungeonConfig:
        if not isinstance(content.config, Mapping):
            raise LoadFailedError(content.dungeon_id, "config is not an object")
        config = DungeonConfig.from_dict(content.config)
        if config.dungeon_type is None:
            raise LoadFailedError(
                content.dungeon_id,
                f"config has no recognized dungeon_type ({config.raw_type!r})",
            )
        return config

    def _new_dungeon(self, dungeon_id: str, config: DungeonConfig) -> Dungeon:
        dungeon_type = cast(DungeonType, config.dungeon_type)
        dungeon = Dungeon(
            id=dungeon_id,
            dungeon_type=dungeon_type,
            image=config.image,
            image_scaling=config.image_scaling,
            music=config.music,
            fog_image=config.fog_image or self.options.default_fog_image,
            actions=dict(config.actions),
        )
        # Fog only exists on explorable maps
        if dungeon_type is DungeonType.MAP:
            dungeon.fog_default = config.fog_default
            dungeon.fog_shadow_coef = config.fog_shadow_coef
        return dungeon

    # === STAGE 2: GEOMETRY INPUTS ===

    def _load_geometry(self, dungeon: Dungeon, config: DungeonConfig) -> None:
        """Derive background size and padding for the dungeon type.

        Raises:
            LoadFailedError: if a required background image is not configured
            AssetNotFoundError: if the asset provider cannot read the image
        """
        if dungeon.dungeon_type is DungeonType.TEXT:
            dungeon.width_background = (
                config.map_width if config.map_width is not None else self.options.text_default_width
            )
            dungeon.height_background = (
                config.map_height if config.map_height is not None else self.options.text_default_height
            )
            dungeon.padding = config.padding
            dungeon.indent = 0
        else:
            explicit_size = config.map_width is not None and config.map_height is not None
            if dungeon.dungeon_type is DungeonType.MAP and explicit_size:
                width = cast(float, config.map_width)
                height = cast(float, config.map_height)
            else:
                if not config.image:
                    raise LoadFailedError(
                        dungeon.id, f"{dungeon.dungeon_type.value} dungeon requires an image"
                    )
                dimensions = self.assets.get_image_dimensions(config.image)
                width, height = dimensions.width, dimensions.height

            dungeon.width_background = width * config.image_scaling
            dungeon.height_background = height * config.image_scaling

            if dungeon.dungeon_type is DungeonType.MAP:
                dungeon.padding = config.padding
                dungeon.indent = 0
            else:
                dungeon.padding = self.options.screen_padding
                dungeon.indent = config.indent
                screen_height = dungeon.width_background * 9 / 16
                left_over = dungeon.height_background - screen_height
                dungeon.indent_y = dungeon.indent * 9 / 16 / 2 + left_over / 2
                dungeon.screen_width = dungeon.width_background - dungeon.indent
                dungeon.screen_height = dungeon.height_background - dungeon.indent

        dungeon.width_with_padding = dungeon.width_background + dungeon.padding * 2
        dungeon.height_with_padding = dungeon.height_background + dungeon.padding * 2

    # === STAGE 3: ROOMS ===

    def _room_records(self, dungeon: Dungeon, content: DungeonContent) -> List[RoomRecord]:
        if dungeon.dungeon_type is DungeonType.SCREEN:
            if content.rooms:
                self.logger.debug(
                    f"Dungeon {dungeon.id}: screen type ignores {len(content.rooms)} authored rooms"
                )
            return [RoomRecord(id=SCREEN_ROOM_ID)]

        records: List[RoomRecord] = []
        for key, raw in content.rooms.items():
            record = RoomRecord.from_dict(self._require_mapping(dungeon.id, f"rooms.{key}", raw))
            if not record.id:
                self.logger.warning(f"Dungeon {dungeon.id}: skipping room without id")
                continue
            records.append(record)
        return records

    def _build_rooms(self, dungeon: Dungeon, records: List[RoomRecord]) -> Dict[str, Room]:
        rooms: Dict[str, Room] = {}
        for record in records:
            room = Room(id=record.id, dungeon=dungeon)
            room.set_position(record.x, record.y, dungeon.padding, self.options.room_size)
            room.set_fog(record.fog, dungeon.fog_default, dungeon.fog_shadow_coef, dungeon.padding)
            room.fog_mask_shadow_neighbor = bool((record.fog or {}).get("neighbor_shadow", False))
            room.default_assets = list(record.default_assets)
            room.actions = dict(record.actions)
            rooms[room.id] = room

        for record in records:
            room = rooms[record.id]
            for door in record.doors:
                neighbor = rooms.get(door)
                if neighbor is None:
                    self.logger.warning(
                        f"Dungeon {dungeon.id}: room '{room.id}' has a door to unknown room '{door}'"
                    )
                    continue
                angle = neighbor_angle(
                    (room.x_center, room.y_center), (neighbor.x_center, neighbor.y_center)
                )
                room.neighbors.append(neighbor)
                room.neighbors_with_direction.append(NeighborRoom(room=neighbor, angle=angle))
        return rooms

    # === STAGE 4: ENCOUNTERS ===

    def _build_encounters(self, dungeon: Dungeon, content: DungeonContent) -> Dict[str, Encounter]:
        encounters: Dict[str, Encounter] = {}
        for key, raw in content.encounters.items():
            record = EncounterRecord.from_dict(
                self._require_mapping(dungeon.id, f"encounters.{key}", raw)
            )
            if not record.id:
                self.logger.warning(f"Dungeon {dungeon.id}: skipping encounter without id")
                continue
            room_id = record.id.split(".")[0]
            room = dungeon.rooms.get(room_id)
            if room is None:
                self.logger.warning(
                    f"Dungeon {dungeon.id}: encounter '{record.id}' refers to unknown room '{room_id}'"
                )
            encounters[record.id] = Encounter.from_record(record, room)
        return encounters

    # === STAGE 6: CONTENT LINES ===

    def _bind_lines(self, dungeon: Dungeon, raw_lines: Any) -> None:
        lines = to_content_lines(raw_lines)
        dungeon.lines = lines
        classified = self.classifier.classify(lines)

        self._bind_events(dungeon, classified)
        self._bind_descriptions(dungeon, classified)
        order = self._bind_encounter_content(dungeon, classified)
        dungeon.encounters = self._resequence(dungeon.encounters, order)

        for room_id, anchors in classified.anchors.items():
            room = dungeon.rooms.get(room_id)
            if room is not None:
                room.anchors = list(anchors)

        binder = ChoiceBinder(self.resolver, lines)
        for encounter in dungeon.encounters.values():
            binder.bind(encounter, classified.choices)
        for room in dungeon.rooms.values():
            if room.description_encounter is not None:
                binder.bind(room.description_encounter, classified.choices)

    def _bind_events(self, dungeon: Dungeon, classified: ClassifiedLines) -> None:
        for event in classified.events:
            for room_id in event.room_ids:
                room = dungeon.rooms.get(room_id)
                if room is None:
                    self.logger.warning(
                        f"Dungeon {dungeon.id}: event {event.id} refers to unknown room '{room_id}'"
                    )
                    continue
                room.events.append(event)

    def _bind_descriptions(self, dungeon: Dungeon, classified: ClassifiedLines) -> None:
        for room_id, line in classified.descriptions.items():
            room = dungeon.rooms.get(room_id)
            if room is None:
                self.logger.warning(
                    f"Dungeon {dungeon.id}: description {line.id} refers to unknown room '{room_id}'"
                )
                continue
            encounter = Encounter(id=line.id[1:], room=room)
            self._apply_line(encounter, line)
            room.description_encounter = encounter

    def _bind_encounter_content(self, dungeon: Dungeon, classified: ClassifiedLines) -> List[str]:
        """Attach '@' lines to encounters; returns encounter IDs in line order."""
        order: List[str] = []
        for encounter_id, line in classified.encounter_content.items():
            encounter = dungeon.encounters.get(encounter_id)

            if encounter is None and dungeon.dungeon_type is DungeonType.TEXT:
                room_id = LinePath.parse(line.id).room_id
                room = dungeon.rooms.get(room_id)
                if room is None:
                    self.logger.warning(
                        f"Dungeon {dungeon.id}: cannot create encounter {encounter_id}, "
                        f"unknown room '{room_id}'"
                    )
                    continue
                encounter = Encounter(id=encounter_id, room=room)
                encounter.init()
                dungeon.encounters[encounter_id] = encounter

            if encounter is None:
                self.logger.debug(f"Dungeon {dungeon.id}: no encounter for line {line.id}")
                continue

            order.append(encounter_id)
            self._apply_line(encounter, line)
        return order

    def _apply_line(self, encounter: Encounter, line: ContentLine) -> None:
        encounter.raw_content = line.text
        if line.params:
            encounter.is_visible = self.resolver.compile_condition(line.params)

    @staticmethod
    def _resequence(encounters: Mapping[str, Encounter], order: List[str]) -> Dict[str, Encounter]:
        """New encounter map in authored line order, unmatched ones last."""
        sequenced: Dict[str, Encounter] = {
            encounter_id: encounters[encounter_id]
            for encounter_id in order
            if encounter_id in encounters
        }
        for encounter_id, encounter in encounters.items():
            if encounter_id not in sequenced:
                sequenced[encounter_id] = encounter
        return sequenced

    # === STAGE 7: CREATION HOOK ===

    def _fire_create_hook(self, dungeon: Dungeon) -> None:
        """Run the dungeon's own create actions, then notify listeners.

        The notification fires on every construction, including loads from
        a save file.
        """
        create_actions = dungeon.actions.get(DUNGEON_CREATE_ACTION)
        if create_actions:
            self.logger.info(f"Running {DUNGEON_CREATE_ACTION} actions for: {dungeon.id}")
            self.resolver.resolve_actions(create_actions)
        if self.events is not None:
            self.events.trigger(DUNGEON_CREATE_EVENT, dungeon)

    # === HELPERS ===

    @staticmethod
    def _require_mapping(dungeon_id: str, path: str, value: Any) -> Mapping[str, Any]:
        if not isinstance(value, Mapping):
            raise SchemaMismatchError(
                dungeon_id, path, f"expected a record mapping, got {type(value).__name__}"
            )
        return cast(Mapping[str, Any], value)

    def _merge_keyed(self, layers: Sequence[Any]) -> Dict[str, ContentRecord]:
        if not layers:
            return {}
        return self.merger.merge_records_by_id(layers)

    def _failure(self, dungeon_id: str, stage: CompileStage, error: Exception) -> CompileResult:
        self.logger.error(
            f"Dungeon '{dungeon_id}' failed to compile at {stage.name.lower()}: {error}"
        )
        return CompileResult(
            dungeon_id=dungeon_id, failed_stage=stage, errors=[str(error)]
        )
