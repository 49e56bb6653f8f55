"""
Data models for dungeon compilation.

Two groups of models live here:

- Record variants (DungeonConfig, RoomRecord, EncounterRecord, ContentLine)
  give typed access to merged JSON records. Every known field is explicit;
  anything the compiler does not interpret is kept in ``extra``.
- The runtime graph (Dungeon, Room, Encounter, Event, Choice, Connection)
  produced by the compiler. A Dungeon owns all of its rooms, encounters,
  events, choices and connections; rooms only hold back-references.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, cast

from ..content.models import METADATA_KEYS, METADATA_LAYER_ID
from ..errors import NotFoundError

Predicate = Callable[[], bool]
"""Compiled condition: call it to evaluate against current game state."""

Point = Tuple[float, float]

DEFAULT_FOG_IMAGE = "assets/engine_assets/ui/fog.png"
DEFAULT_ENCOUNTER_Z = 25
DUNGEON_NAME_LINE = "$dungeon_name"
SCREEN_ROOM_ID = "main"


def _always_visible() -> bool:
    return True


def _split_known(
    data: Mapping[str, Any], known: Tuple[str, ...]
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Split a raw record into known fields and the extra-properties bag."""
    known_fields: Dict[str, Any] = {}
    extra: Dict[str, Any] = {}
    for key, value in data.items():
        if key in known:
            known_fields[key] = value
        elif key not in METADATA_KEYS:
            extra[key] = value
    return known_fields, extra


def _as_number(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


# =============================================================================
# Record variants
# =============================================================================

class DungeonType(str, Enum):
    """Recognized dungeon presentation types."""

    MAP = "map"
    """Explorable map with positioned rooms over a background image."""

    SCREEN = "screen"
    """Visual-novel style single screen; always exactly one room."""

    TEXT = "text"
    """Line-oriented dungeon without a background image."""

    @classmethod
    def parse(cls, value: Any) -> Optional["DungeonType"]:
        """Return the matching type, or None for a missing/unknown tag."""
        try:
            return cls(value)
        except (ValueError, TypeError):
            return None


@dataclass
class DungeonConfig:
    """Merged dungeon configuration record."""
    dungeon_type: Optional[DungeonType] = None
    raw_type: Any = None
    image: str = ""
    image_scaling: float = 1.0
    padding: float = 0.0
    indent: float = 0.0
    fog_default: float = 0.0
    fog_shadow_coef: float = 0.0
    fog_image: str = ""
    music: str = ""
    map_width: Optional[float] = None
    map_height: Optional[float] = None
    actions: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN = (
        "dungeon_type", "image", "image_scaling", "padding", "indent",
        "fog_default", "fog_shadow_coef", "fog_image", "music",
        "map_width", "map_height", "actions",
    )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DungeonConfig":
        """Create DungeonConfig from a merged config dict."""
        known, extra = _split_known(data, cls._KNOWN)
        raw_actions = known.get("actions")
        map_width = known.get("map_width")
        map_height = known.get("map_height")
        return cls(
            dungeon_type=DungeonType.parse(known.get("dungeon_type")),
            raw_type=known.get("dungeon_type"),
            image=str(known.get("image") or ""),
            image_scaling=_as_number(known.get("image_scaling"), 1.0),
            padding=_as_number(known.get("padding"), 0.0),
            indent=_as_number(known.get("indent"), 0.0),
            fog_default=_as_number(known.get("fog_default"), 0.0),
            fog_shadow_coef=_as_number(known.get("fog_shadow_coef"), 0.0),
            fog_image=str(known.get("fog_image") or ""),
            music=str(known.get("music") or ""),
            map_width=None if map_width is None else _as_number(map_width, 0.0),
            map_height=None if map_height is None else _as_number(map_height, 0.0),
            actions=dict(cast(Mapping[str, Any], raw_actions)) if isinstance(raw_actions, Mapping) else {},
            extra=extra,
        )


@dataclass
class RoomRecord:
    """Merged room record as authored in rooms.json."""
    id: str
    x: float = 0.0
    y: float = 0.0
    doors: List[str] = field(default_factory=list)
    fog: Optional[Dict[str, Any]] = None
    default_assets: List[str] = field(default_factory=list)
    actions: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("id", "x", "y", "doors", "fog", "default_assets", "actions")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RoomRecord":
        """Create RoomRecord from a merged room dict."""
        known, extra = _split_known(data, cls._KNOWN)
        doors = known.get("doors") or []
        fog = known.get("fog")
        assets = known.get("default_assets") or []
        actions = known.get("actions")
        return cls(
            id=str(known.get("id", "")),
            x=_as_number(known.get("x"), 0.0),
            y=_as_number(known.get("y"), 0.0),
            doors=[str(d) for d in cast(List[Any], doors)] if isinstance(doors, list) else [],
            fog=dict(cast(Mapping[str, Any], fog)) if isinstance(fog, Mapping) else None,
            default_assets=[str(a) for a in cast(List[Any], assets)] if isinstance(assets, list) else [],
            actions=dict(cast(Mapping[str, Any], actions)) if isinstance(actions, Mapping) else {},
            extra=extra,
        )


@dataclass
class EncounterRecord:
    """Merged encounter record as authored in encounters.json."""
    id: str
    x: float = 0.0
    y: float = 0.0
    z: float = DEFAULT_ENCOUNTER_Z
    scale: float = 1.0
    rotation: float = 0.0
    image: str = ""
    polygon: str = ""
    type: str = "encounter"
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("id", "x", "y", "z", "scale", "rotation", "image", "polygon", "type")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EncounterRecord":
        """Create EncounterRecord from a merged encounter dict."""
        known, extra = _split_known(data, cls._KNOWN)
        return cls(
            id=str(known.get("id", "")),
            x=_as_number(known.get("x"), 0.0),
            y=_as_number(known.get("y"), 0.0),
            z=_as_number(known.get("z"), DEFAULT_ENCOUNTER_Z),
            scale=_as_number(known.get("scale"), 1.0),
            rotation=_as_number(known.get("rotation"), 0.0),
            image=str(known.get("image") or ""),
            polygon=str(known.get("polygon") or ""),
            type=str(known.get("type") or "encounter"),
            extra=extra,
        )


@dataclass
class ContentLine:
    """One annotated content line: ID, text and optional parameters."""
    id: str
    text: str = ""
    params: Optional[Dict[str, Any]] = None
    anchor: Optional[str] = None
    layer_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("id", "val", "text", "params", "anchor")

    @classmethod
    def from_dict(cls, line_id: str, data: Any) -> "ContentLine":
        """Create ContentLine from a raw line value.

        Accepts the parsed-content form ({id, val, params}), the
        {text, params} form, or a bare string.
        """
        if isinstance(data, str):
            return cls(id=line_id, text=data)
        if not isinstance(data, Mapping):
            return cls(id=line_id)
        raw = cast(Mapping[str, Any], data)
        known, extra = _split_known(raw, cls._KNOWN)
        text = known.get("text", known.get("val"))
        params = known.get("params")
        anchor = known.get("anchor")
        return cls(
            id=line_id,
            text="" if text is None else str(text),
            params=dict(cast(Mapping[str, Any], params)) if isinstance(params, Mapping) else None,
            anchor=None if anchor is None else str(anchor),
            layer_id=raw.get(METADATA_LAYER_ID),
            extra=extra,
        )


# =============================================================================
# Runtime graph
# =============================================================================

@dataclass
class FogMask:
    """Fog-of-war reveal shape for a room."""
    shape: str
    points: Optional[str] = None
    radius: Optional[float] = None
    center_x: Optional[float] = None
    center_y: Optional[float] = None


@dataclass
class NeighborRoom:
    """Adjacent room with the direction of the connection in degrees (0 = north)."""
    room: "Room"
    angle: float


@dataclass(frozen=True)
class Connection:
    """Single geometric door between an unordered pair of rooms."""
    room_ids: Tuple[str, str]
    start: Point
    end: Point

    def connects(self, room_id: str) -> bool:
        """Return True if the door touches the given room."""
        return room_id in self.room_ids


@dataclass
class Event:
    """Conditional room event declared by a '#' line."""
    id: str
    room_ids: List[str] = field(default_factory=list)
    repeatable: bool = False
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def primary_room_id(self) -> str:
        return self.room_ids[0] if self.room_ids else ""


@dataclass
class Choice:
    """Player-selectable option attached to one encounter."""
    id: str
    name: str
    params: Dict[str, Any] = field(default_factory=dict)
    bound_params: Any = None
    is_visible: Predicate = _always_visible

    @property
    def default_scene(self) -> Optional[str]:
        scene = self.params.get("scene")
        return scene if isinstance(scene, str) else None


@dataclass(eq=False)
class Encounter:
    """Point of interest inside a room."""
    id: str
    room: Optional["Room"] = None
    x: float = 0.0
    y: float = 0.0
    z: float = DEFAULT_ENCOUNTER_Z
    scale: float = 1.0
    rotation: float = 0.0
    image: str = ""
    polygon: str = ""
    type: str = "encounter"
    raw_content: str = ""
    inverse_scale: float = 1.0
    is_visible: Predicate = _always_visible
    choices: List[Choice] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: EncounterRecord, room: Optional["Room"]) -> "Encounter":
        """Build an encounter from its merged record."""
        encounter = cls(
            id=record.id,
            room=room,
            x=record.x,
            y=record.y,
            z=record.z,
            scale=record.scale,
            rotation=record.rotation,
            image=record.image,
            polygon=record.polygon,
            type=record.type,
            extra=dict(record.extra),
        )
        encounter.init()
        return encounter

    def init(self) -> None:
        """Derive display parameters from the transform."""
        self.inverse_scale = 1.0 / self.scale if self.scale else 1.0

    def is_prop(self) -> bool:
        """Props are decoration: not selectable and without outlines."""
        return self.type == "prop"

    def is_here(self, room: Optional["Room"]) -> bool:
        if self.room is None or room is None:
            return False
        return self.room.id == room.id

    def get_visibility_state(self) -> bool:
        return bool(self.is_visible())


@dataclass(eq=False)
class Room:
    """Room of a compiled dungeon."""
    id: str
    x: float = 0.0
    y: float = 0.0
    x_center: float = 0.0
    y_center: float = 0.0
    x_circle_with_padding: float = 0.0
    y_circle_with_padding: float = 0.0
    x_compass: float = 0.0
    y_compass: float = 0.0
    fog_mask_main: Optional[FogMask] = None
    fog_mask_shadow: Optional[FogMask] = None
    fog_mask_shadow_neighbor: bool = False
    neighbors: List["Room"] = field(default_factory=list)
    neighbors_with_direction: List[NeighborRoom] = field(default_factory=list)
    events: List[Event] = field(default_factory=list)
    description_encounter: Optional[Encounter] = None
    default_assets: List[str] = field(default_factory=list)
    actions: Dict[str, Any] = field(default_factory=dict)
    anchors: List[str] = field(default_factory=list)
    dungeon: Optional["Dungeon"] = field(default=None, repr=False)

    def get_description_id(self) -> str:
        return f"@{self.id}.description"

    def set_position(self, x: float, y: float, padding: float, room_size: float) -> None:
        """Place the room and derive its helper points."""
        self.x = x
        self.y = y
        self.x_center = x + room_size / 2
        self.y_center = y + room_size / 2
        self.x_circle_with_padding = x + padding + 5
        self.y_circle_with_padding = y + padding + 5
        self.x_compass = x - 5
        self.y_compass = y - 5

    def set_fog(
        self,
        fog: Optional[Mapping[str, Any]],
        fog_default: float,
        fog_shadow_coef: float,
        padding: float,
    ) -> None:
        """Compute fog masks from the room override and dungeon defaults.

        Fog is disabled when the dungeon default radius is 0.
        """
        if not fog_default:
            return

        fog_shadow_coef = max(fog_shadow_coef, 1)
        fog_default = max(fog_default, 1)

        if not fog:
            self.fog_mask_main = FogMask(
                shape="circle",
                radius=fog_default,
                center_x=self.x_center + padding,
                center_y=self.y_center + padding,
            )
            self.fog_mask_shadow = FogMask(
                shape="circle",
                radius=fog_default * fog_shadow_coef,
                center_x=self.x_center + padding,
                center_y=self.y_center + padding,
            )
            return

        shape = fog.get("shape")
        if shape == "circle":
            radius = _as_number(fog.get("radius"), fog_default)
            center_x = _as_number(fog.get("center_x"), self.x_center) + padding
            center_y = _as_number(fog.get("center_y"), self.y_center) + padding
            self.fog_mask_main = FogMask(
                shape="circle", radius=radius, center_x=center_x, center_y=center_y
            )
            self.fog_mask_shadow = FogMask(
                shape="circle",
                radius=radius * fog_shadow_coef,
                center_x=center_x,
                center_y=center_y,
            )
        elif shape == "polygon":
            points = fog.get("points")
            if not isinstance(points, str) or not points.strip():
                return
            shifted: List[str] = []
            for point in points.split():
                px, _, py = point.partition(",")
                shifted.append(
                    f"{_format_coord(_as_number(px, 0.0) + padding)},"
                    f"{_format_coord(_as_number(py, 0.0) + padding)}"
                )
            self.fog_mask_main = FogMask(shape="polygon", points=" ".join(shifted))
            self.fog_mask_shadow = self.fog_mask_main

    def is_visited(self) -> bool:
        return self.dungeon is not None and self.dungeon.state.is_room_visited(self.id)

    def is_visible(self) -> bool:
        return self.dungeon is not None and self.dungeon.state.is_room_visible(self.id)


def _format_coord(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


CHOICE_HISTORY_PREFIXES = ("!", ">", "~")


@dataclass
class DungeonState:
    """Per-dungeon progress: visited/visible rooms, events, choices, flags."""
    visited_rooms: set[str] = field(default_factory=set)
    visible_rooms: set[str] = field(default_factory=set)
    visited_events: set[str] = field(default_factory=set)
    visited_choices: set[str] = field(default_factory=set)
    flags: Dict[str, int] = field(default_factory=dict)

    def add_visited_room(self, room_id: str) -> None:
        self.visited_rooms.add(room_id)

    def add_visible_room(self, room_id: str) -> None:
        self.visible_rooms.add(room_id)

    def is_room_visited(self, room_id: str) -> bool:
        return room_id in self.visited_rooms

    def is_room_visible(self, room_id: str) -> bool:
        return room_id in self.visible_rooms

    def add_visited_event(self, event_id: str) -> None:
        self.visited_events.add(event_id)

    def is_event_visited(self, event_id: str) -> bool:
        return event_id in self.visited_events

    def add_visited_choice(self, choice_id: str) -> None:
        """Record a choice; only choice-like IDs ('!', '>', '~') are kept."""
        if choice_id[:1] in CHOICE_HISTORY_PREFIXES:
            self.visited_choices.add(choice_id)

    def get_flag(self, flag_id: str) -> int:
        return self.flags.get(flag_id, 0)

    def set_flag(self, flag_id: str, value: int) -> None:
        self.flags[flag_id] = value

    def add_flag(self, flag_id: str, value: int) -> None:
        self.flags[flag_id] = self.get_flag(flag_id) + value


@dataclass(eq=False)
class Dungeon:
    """Compiled dungeon: the linked world graph handed to the runtime."""
    id: str
    dungeon_type: DungeonType = DungeonType.MAP
    image: str = ""
    image_scaling: float = 1.0
    music: str = ""
    fog_default: float = 0.0
    fog_shadow_coef: float = 0.0
    fog_image: str = DEFAULT_FOG_IMAGE
    padding: float = 0.0
    indent: float = 0.0
    width_background: float = 0.0
    height_background: float = 0.0
    width_with_padding: float = 0.0
    height_with_padding: float = 0.0
    screen_width: float = 0.0
    screen_height: float = 0.0
    indent_y: float = 0.0
    actions: Dict[str, Any] = field(default_factory=dict)
    rooms: Dict[str, Room] = field(default_factory=dict)
    encounters: Dict[str, Encounter] = field(default_factory=dict)
    connections: List[Connection] = field(default_factory=list)
    state: DungeonState = field(default_factory=DungeonState)
    lines: Mapping[str, ContentLine] = field(default_factory=dict, repr=False)

    def get_room(self, room_id: str) -> Room:
        """Return a room by ID.

        Raises:
            NotFoundError: if the room does not exist
        """
        room = self.rooms.get(room_id)
        if room is None:
            raise NotFoundError("room", room_id, self.id)
        return room

    def get_encounter(self, encounter_id: str) -> Encounter:
        """Return an encounter by ID.

        Raises:
            NotFoundError: if the encounter does not exist
        """
        encounter = self.encounters.get(encounter_id)
        if encounter is None:
            raise NotFoundError("encounter", encounter_id, self.id)
        return encounter

    def get_line(self, line_id: str) -> ContentLine:
        """Return a content line by ID.

        Raises:
            NotFoundError: if the line does not exist
        """
        line = self.lines.get(line_id)
        if line is None:
            raise NotFoundError("line", line_id, self.id)
        return line

    def get_visited_rooms(self) -> List[Room]:
        return [room for room in self.rooms.values() if room.is_visited()]

    def get_visible_rooms(self) -> List[Room]:
        return [room for room in self.rooms.values() if room.is_visible()]

    def get_connections_for(self, room_id: str) -> List[Connection]:
        return [c for c in self.connections if c.connects(room_id)]

    def get_dungeon_name(self) -> str:
        """Display name from the '$dungeon_name' line, or the dungeon ID."""
        line = self.lines.get(DUNGEON_NAME_LINE)
        if line is None or not line.text:
            return self.id
        return line.text
