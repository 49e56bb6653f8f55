"""Unit tests for door geometry."""

import pytest

from dungeon_fabric.dungeon.geometry import DoorBuilder, door_anchors, neighbor_angle, room_center
from dungeon_fabric.dungeon.models import RoomRecord


class TestDoorAnchors:
    """Test anchor selection between two rooms."""

    def test_room_center(self) -> None:
        assert room_center(10, 20) == (30, 40)

    def test_target_to_the_right(self) -> None:
        """Mostly horizontal: right middle to left middle."""
        assert door_anchors((0, 0), (100, 0)) == ((40, 20), (100, 20))

    def test_target_to_the_left(self) -> None:
        assert door_anchors((0, 0), (-100, 10)) == ((0, 20), (-60, 30))

    def test_target_above(self) -> None:
        assert door_anchors((0, 0), (0, -100)) == ((20, 0), (20, -60))

    def test_diagonal_tie_is_vertical(self) -> None:
        """Equal deltas take the vertical branch."""
        assert door_anchors((0, 0), (100, 100)) == ((20, 40), (120, 100))

    def test_custom_room_size(self) -> None:
        assert door_anchors((0, 0), (100, 0), room_size=20) == ((20, 10), (100, 10))


class TestNeighborAngle:
    """Test compass angles (0 = north, clockwise)."""

    @pytest.mark.parametrize(
        "target, expected",
        [((0, -10), 0), ((10, 0), 90), ((0, 10), 180), ((-10, 0), 270), ((10, -10), 45)],
    )
    def test_angles(self, target: tuple, expected: float) -> None:
        assert neighbor_angle((0, 0), target) == pytest.approx(expected)


class TestDoorBuilder:
    """Test door deduplication."""

    def test_mutual_declaration_gives_one_door(self) -> None:
        """Rooms listing each other share a single connection."""
        rooms = [
            RoomRecord(id="a", x=0, y=0, doors=["b"]),
            RoomRecord(id="b", x=100, y=0, doors=["a"]),
        ]
        doors = DoorBuilder().build(rooms)

        assert len(doors) == 1
        assert doors[0].room_ids == ("a", "b")
        assert doors[0].start == (40, 20)
        assert doors[0].end == (100, 20)

    def test_door_listed_only_by_later_room_is_skipped(self) -> None:
        """Only the room whose ID sorts first builds a door."""
        doors = DoorBuilder().build(
            [RoomRecord(id="1", x=0, y=0), RoomRecord(id="2", x=100, y=0, doors=["1"])]
        )
        assert doors == []

    def test_door_listed_by_earlier_room_only(self) -> None:
        """A one-sided door from the earlier room is measured from it."""
        doors = DoorBuilder().build(
            [RoomRecord(id="1", x=100, y=0, doors=["2"]), RoomRecord(id="2", x=0, y=0)]
        )
        assert [d.room_ids for d in doors] == [("1", "2")]
        assert doors[0].start == (100, 20)
        assert doors[0].end == (40, 20)

    def test_unknown_and_self_doors_are_ignored(self) -> None:
        doors = DoorBuilder().build([RoomRecord(id="a", doors=["a", "ghost"])])
        assert doors == []

    def test_connections_lookup(self) -> None:
        doors = DoorBuilder().build(
            [
                RoomRecord(id="a", x=0, y=0, doors=["b", "c"]),
                RoomRecord(id="b", x=100, y=0),
                RoomRecord(id="c", x=0, y=100),
            ]
        )
        assert [d.room_ids for d in doors] == [("a", "b"), ("a", "c")]
        assert all(d.connects("a") for d in doors)
