"""Unit tests for the dungeon compiler."""

from typing import Any, Dict, List

import pytest

from dungeon_fabric.content.models import DungeonContent
from dungeon_fabric.dungeon.compiler import CompileStage, CompilerOptions, DungeonCompiler
from dungeon_fabric.dungeon.models import DungeonType
from dungeon_fabric.dungeon.services import DungeonEventEmitter
from dungeon_fabric.errors import NotFoundError


def cave_layers() -> Dict[str, List[Any]]:
    return {
        "config_layers": [
            {
                "dungeon_type": "map",
                "image": "maps/cave.png",
                "image_scaling": 0.5,
                "padding": 10,
                "fog_default": 50,
                "fog_shadow_coef": 2,
                "actions": {"dungeon_create": {"set": {"flag": 1}}},
            }
        ],
        "room_layers": [
            [
                {"id": "1", "x": 0, "y": 0, "doors": ["2"]},
                {"id": "2", "x": 100, "y": 0, "doors": ["1", "9"]},
            ]
        ],
        "encounter_layers": [
            [{"id": "1.b", "x": 5, "scale": 2}, {"id": "1.a", "scale": 0}, {"id": "7.orphan"}]
        ],
        "line_layers": [
            [
                {"id": "$dungeon_name", "val": "Old Cave"},
                {"id": "@1.a", "val": "A"},
                {"id": "@1.b", "val": "B"},
                {"id": "@1.description", "val": "Cave"},
                {"id": "!1.a.open", "val": "Open"},
                {"id": "!1.description.look", "val": "__Default__:look_around"},
                {"id": "#1.description~look.1.1.1", "val": "You look"},
                {"id": "#2.enter", "val": "Enter", "params": {"if": {"x": 1}}},
            ]
        ],
    }


class TestMapCompilation:
    """Test compiling a map dungeon end to end."""

    def test_geometry(self, compiler: DungeonCompiler) -> None:
        """Background size is scaled and padded."""
        dungeon = compiler.compile_layers("cave", **cave_layers()).dungeon
        assert dungeon is not None
        assert dungeon.dungeon_type is DungeonType.MAP
        assert dungeon.width_background == 500
        assert dungeon.height_background == 400
        assert dungeon.width_with_padding == 520

    def test_rooms_and_doors(self, compiler: DungeonCompiler) -> None:
        """Rooms link to declared neighbors; mutual doors collapse."""
        dungeon = compiler.compile_layers("cave", **cave_layers()).dungeon
        assert dungeon is not None
        assert list(dungeon.rooms) == ["1", "2"]
        room = dungeon.get_room("1")
        assert [n.id for n in room.neighbors] == ["2"]
        assert room.neighbors_with_direction[0].angle == pytest.approx(90)
        # door to unknown room '9' is skipped
        assert [n.id for n in dungeon.get_room("2").neighbors] == ["1"]
        assert len(dungeon.connections) == 1
        assert dungeon.get_connections_for("2")[0].room_ids == ("1", "2")

    def test_fog_masks(self, compiler: DungeonCompiler) -> None:
        """Default fog is a circle around the room center, shadow scaled."""
        room = compiler.compile_layers("cave", **cave_layers()).dungeon.get_room("1")  # type: ignore
        assert room.fog_mask_main is not None
        assert room.fog_mask_main.radius == 50
        assert (room.fog_mask_main.center_x, room.fog_mask_main.center_y) == (30, 30)
        assert room.fog_mask_shadow is not None
        assert room.fog_mask_shadow.radius == 100

    def test_encounters_follow_line_order(self, compiler: DungeonCompiler) -> None:
        """Encounters are re-sequenced by their content lines, others last."""
        dungeon = compiler.compile_layers("cave", **cave_layers()).dungeon
        assert dungeon is not None
        assert list(dungeon.encounters) == ["1.a", "1.b", "7.orphan"]
        assert dungeon.get_encounter("1.a").raw_content == "A"
        assert dungeon.get_encounter("1.a").inverse_scale == 1.0
        assert dungeon.get_encounter("1.b").inverse_scale == 0.5
        assert dungeon.get_encounter("7.orphan").room is None

    def test_choices_events_and_descriptions(self, compiler: DungeonCompiler) -> None:
        """Lines bind to encounters, rooms and room descriptions."""
        dungeon = compiler.compile_layers("cave", **cave_layers()).dungeon
        assert dungeon is not None
        assert [c.id for c in dungeon.get_encounter("1.a").choices] == ["!1.a.open"]
        assert [e.id for e in dungeon.get_room("2").events] == ["#2.enter"]

        description = dungeon.get_room("1").description_encounter
        assert description is not None
        assert description.raw_content == "Cave"
        look = description.choices[0]
        assert look.name == "Look Around"
        assert look.default_scene == "#1.description~look.1.1.1"
        assert dungeon.get_room("2").description_encounter is None

    def test_create_hook(self, compiler: DungeonCompiler, resolver: Any, sink: Any) -> None:
        """Create actions run, then listeners hear about the dungeon."""
        dungeon = compiler.compile_layers("cave", **cave_layers()).dungeon
        assert resolver.resolved == [{"set": {"flag": 1}}]
        assert sink.events == [("dungeon_create", (dungeon,))]

    def test_lookups(self, compiler: DungeonCompiler) -> None:
        """Runtime lookups raise NotFoundError for unknown IDs."""
        dungeon = compiler.compile_layers("cave", **cave_layers()).dungeon
        assert dungeon is not None
        assert dungeon.get_dungeon_name() == "Old Cave"
        assert dungeon.get_line("@1.b").text == "B"
        with pytest.raises(NotFoundError):
            dungeon.get_room("nope")
        with pytest.raises(KeyError):
            dungeon.get_encounter("")

    def test_name_falls_back_to_id(self, compiler: DungeonCompiler) -> None:
        layers = cave_layers()
        layers["line_layers"] = []
        dungeon = compiler.compile_layers("cave", **layers).dungeon
        assert dungeon is not None
        assert dungeon.get_dungeon_name() == "cave"

    def test_explicit_size_without_image(self, compiler: DungeonCompiler, assets: Any) -> None:
        """Maps may give their size instead of an image."""
        result = compiler.compile_layers(
            "plain", [{"dungeon_type": "map", "map_width": 300, "map_height": 200}]
        )
        assert result.ok
        assert result.dungeon.width_background == 300  # type: ignore
        assert assets.requests == []

    def test_explicit_size_wins_over_image(self, compiler: DungeonCompiler, assets: Any) -> None:
        """Explicit map size is used even when an image is configured."""
        result = compiler.compile_layers(
            "sized",
            [
                {
                    "dungeon_type": "map",
                    "image": "maps/cave.png",
                    "map_width": 300,
                    "map_height": 200,
                }
            ],
        )
        dungeon = result.dungeon
        assert dungeon is not None
        assert (dungeon.width_background, dungeon.height_background) == (300, 200)
        assert assets.requests == []


class TestScreenAndText:
    """Test the screen and text dungeon types."""

    def test_screen_has_single_main_room(self, compiler: DungeonCompiler) -> None:
        """Authored rooms are ignored; one 'main' room exists."""
        result = compiler.compile_layers(
            "hall",
            [{"dungeon_type": "screen", "image": "screens/hall.png", "indent": 100, "fog_default": 40}],
            room_layers=[[{"id": "x"}, {"id": "y"}]],
        )
        dungeon = result.dungeon
        assert dungeon is not None
        assert list(dungeon.rooms) == ["main"]
        assert dungeon.rooms["main"].fog_mask_main is None
        assert dungeon.padding == 5
        assert dungeon.screen_width == 1500
        assert dungeon.screen_height == 900
        assert dungeon.indent_y == pytest.approx(78.125)

    def test_text_synthesizes_encounters(self, compiler: DungeonCompiler, assets: Any) -> None:
        """Text dungeons create encounters from their lines."""
        result = compiler.compile_layers(
            "story",
            [{"dungeon_type": "text"}],
            room_layers=[[{"id": "1"}]],
            line_layers=[
                [
                    {"id": "@1.b", "val": "b"},
                    {"id": "@1.a", "val": "a"},
                    {"id": "@9.z", "val": "no such room"},
                ]
            ],
        )
        dungeon = result.dungeon
        assert dungeon is not None
        assert list(dungeon.encounters) == ["1.b", "1.a"]
        assert dungeon.get_encounter("1.a").room is dungeon.get_room("1")
        assert (dungeon.width_background, dungeon.height_background) == (800, 600)
        assert assets.requests == []

    def test_lines_as_id_mapping(self, compiler: DungeonCompiler) -> None:
        """Line layers may map line IDs to {text, params}."""
        result = compiler.compile_layers(
            "story",
            [{"dungeon_type": "text"}],
            room_layers=[[{"id": "1"}]],
            line_layers=[{"@1.a": {"text": "A", "params": None}}, {"@1.a": "A2"}],
        )
        dungeon = result.dungeon
        assert dungeon is not None
        assert list(dungeon.encounters) == ["1.a"]
        assert dungeon.get_line("@1.a").text == "A2"

    def test_text_size_from_options(self, resolver: Any, assets: Any) -> None:
        compiler = DungeonCompiler(
            resolver, assets, options=CompilerOptions(text_default_width=640, text_default_height=480)
        )
        dungeon = compiler.compile_layers("story", [{"dungeon_type": "text"}]).dungeon
        assert dungeon is not None
        assert (dungeon.width_background, dungeon.height_background) == (640, 480)


class TestLoadFailures:
    """Test that failures produce a load-failed result instead of a graph."""

    def test_unknown_type(self, compiler: DungeonCompiler, sink: Any) -> None:
        result = compiler.compile_layers("odd", [{"dungeon_type": "cube"}])
        assert result.load_failed
        assert result.failed_stage is CompileStage.LOAD_CONFIG
        assert result.errors
        assert sink.events == []

    def test_map_without_image(self, compiler: DungeonCompiler) -> None:
        result = compiler.compile_layers("bare", [{"dungeon_type": "map"}])
        assert result.failed_stage is CompileStage.LOAD_GEOMETRY

    def test_missing_image_asset(self, compiler: DungeonCompiler) -> None:
        result = compiler.compile_layers("lost", [{"dungeon_type": "map", "image": "nope.png"}])
        assert result.load_failed
        assert "nope.png" in result.errors[0]

    def test_no_config_layers(self, compiler: DungeonCompiler) -> None:
        result = compiler.compile_layers("empty", [])
        assert result.load_failed

    def test_bad_room_layer_shape(self, compiler: DungeonCompiler) -> None:
        result = compiler.compile_layers(
            "bad", [{"dungeon_type": "text"}], room_layers=[{"id": "1"}]
        )
        assert result.load_failed

    def test_non_mapping_room_record(self, compiler: DungeonCompiler) -> None:
        content = DungeonContent(
            dungeon_id="bad", config={"dungeon_type": "text"}, rooms={"1": 5}  # type: ignore
        )
        result = compiler.compile(content)
        assert result.failed_stage is CompileStage.BUILD_ROOMS


class TestRuntimeState:
    """Test dungeon state helpers and the Qt event emitter."""

    def test_visited_and_visible_rooms(self, compiler: DungeonCompiler) -> None:
        dungeon = compiler.compile_layers("cave", **cave_layers()).dungeon
        assert dungeon is not None
        dungeon.state.add_visited_room("1")
        dungeon.state.add_visible_room("2")
        assert [r.id for r in dungeon.get_visited_rooms()] == ["1"]
        assert [r.id for r in dungeon.get_visible_rooms()] == ["2"]
        assert dungeon.get_room("1").is_visited()

    def test_only_choice_ids_are_recorded(self, compiler: DungeonCompiler) -> None:
        dungeon = compiler.compile_layers("cave", **cave_layers()).dungeon
        assert dungeon is not None
        for choice_id in ("!1.a.open", ">jump", "~scene", "@1.a"):
            dungeon.state.add_visited_choice(choice_id)
        assert dungeon.state.visited_choices == {"!1.a.open", ">jump", "~scene"}

    def test_flags(self, compiler: DungeonCompiler) -> None:
        dungeon = compiler.compile_layers("cave", **cave_layers()).dungeon
        assert dungeon is not None
        dungeon.state.add_flag("gold", 2)
        dungeon.state.add_flag("gold", 3)
        assert dungeon.state.get_flag("gold") == 5
        assert dungeon.state.get_flag("missing") == 0

    def test_event_emitter_signals(self, resolver: Any, assets: Any) -> None:
        """The Qt sink re-emits dungeon_create as a signal."""
        emitter = DungeonEventEmitter()
        created: List[Any] = []
        triggered: List[Any] = []
        emitter.dungeon_created.connect(created.append)
        emitter.triggered.connect(lambda name, payload: triggered.append(name))

        compiler = DungeonCompiler(resolver, assets, events=emitter)
        dungeon = compiler.compile_layers("story", [{"dungeon_type": "text"}]).dungeon

        assert created == [dungeon]
        assert triggered == ["dungeon_create"]
