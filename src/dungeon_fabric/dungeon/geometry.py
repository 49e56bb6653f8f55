"""
Door geometry between positioned rooms.

Rooms are square icons of a fixed size placed by their top-left corner.
A door is drawn from the edge of one room facing the other: right/left
middles when the rooms are mostly side by side, bottom/top middles
otherwise.
"""

import logging
import math
from typing import Iterable, List, Mapping, Protocol, Sequence, Tuple

from .models import Connection, Point

ROOM_SIZE = 40

logger = logging.getLogger(__name__)


class PositionedRoom(Protocol):
    """Anything with an ID, a top-left position and declared door IDs."""
    id: str
    x: float
    y: float
    doors: Sequence[str]


def room_center(x: float, y: float, room_size: float = ROOM_SIZE) -> Point:
    """Center of a room icon placed at (x, y)."""
    half = room_size / 2
    return x + half, y + half


def neighbor_angle(source: Point, target: Point) -> float:
    """Direction from source to target center in degrees.

    0 points north (up) and angles grow clockwise, in [0, 360).
    """
    dx = target[0] - source[0]
    dy = target[1] - source[1]
    angle = (math.degrees(math.atan2(dy, dx)) + 90) % 360
    if angle < 0:
        angle += 360
    return angle


def door_anchors(
    source: Tuple[float, float], target: Tuple[float, float], room_size: float = ROOM_SIZE
) -> Tuple[Point, Point]:
    """Anchor points of a door between two rooms given their top-left corners.

    The horizontal branch needs a strictly larger horizontal delta; equal
    deltas produce a vertical door.
    """
    source_x, source_y = source
    target_x, target_y = target
    source_cx, source_cy = room_center(source_x, source_y, room_size)
    target_cx, target_cy = room_center(target_x, target_y, room_size)
    dx = target_cx - source_cx
    dy = target_cy - source_cy

    if abs(dx) > abs(dy):
        if dx > 0:
            # target to the right
            return (source_x + room_size, source_cy), (target_x, target_cy)
        return (source_x, source_cy), (target_x + room_size, target_cy)

    if dy > 0:
        # target below
        return (source_cx, source_y + room_size), (target_cx, target_y)
    return (source_cx, source_y), (target_cx, target_y + room_size)


class DoorBuilder:
    """Builds one Connection per unordered pair of adjacent rooms.

    A door belongs to the room whose ID sorts first: it is built only when
    that room lists the other one, and measured from it. Rooms listing each
    other therefore produce a single door, and a door listed only by the
    room whose ID sorts later is not built.
    """

    def __init__(self, room_size: float = ROOM_SIZE):
        self.room_size = room_size
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def build(self, rooms: Iterable[PositionedRoom]) -> List[Connection]:
        """Compute door geometry for a set of rooms.

        Args:
            rooms: Rooms with positions and declared neighbor IDs

        Returns:
            Connections in room order, then declared door order
        """
        room_map: Mapping[str, PositionedRoom] = {room.id: room for room in rooms}
        connections: List[Connection] = []
        seen: set[Tuple[str, str]] = set()

        for source in room_map.values():
            for target_id in source.doors:
                target = room_map.get(target_id)
                if target is None:
                    self.logger.debug(f"Room {source.id}: door to unknown room '{target_id}'")
                    continue
                # Only the room whose ID sorts first builds the door
                if not source.id or source.id >= target.id:
                    continue
                pair = (source.id, target.id)
                if pair in seen:
                    continue
                seen.add(pair)

                start, end = door_anchors(
                    (source.x, source.y), (target.x, target.y), self.room_size
                )
                connections.append(Connection(room_ids=pair, start=start, end=end))

        self.logger.debug(f"Built {len(connections)} doors for {len(room_map)} rooms")
        return connections
