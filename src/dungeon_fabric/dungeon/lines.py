"""
Content line classification and choice binding.

Content line IDs start with a directive character followed by a dotted
path, e.g. ``#1.enter`` (event), ``@1.chest`` (encounter content),
``!1.chest.open`` (choice) or ``^1.intro`` (room anchor). The classifier
sorts raw lines into these categories without touching any game state;
the binder turns queued choice lines into Choice objects for an encounter.
"""

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, cast

from ..errors import SchemaMismatchError
from .models import Choice, ContentLine, Encounter, Event
from .services import ConditionActionResolver

logger = logging.getLogger(__name__)

DEFAULT_TITLE_MARKER = "__Default__:"
DESCRIPTION_SEGMENT = "description"
SCENE_SEPARATOR = "~"
SCENE_INDEX_SUFFIX = "1.1.1"


class Directive(str, Enum):
    """Leading character of a content line ID."""
    EVENT = "#"
    CONTENT = "@"
    CHOICE = "!"
    ANCHOR = "^"


# Minimum dotted segments each directive needs to be addressable
MIN_SEGMENTS = {
    Directive.EVENT: 1,
    Directive.CONTENT: 2,
    Directive.CHOICE: 3,
    Directive.ANCHOR: 1,
}


@dataclass(frozen=True)
class LinePath:
    """A line ID split into its directive and dotted segments."""
    directive: Optional[Directive]
    segments: Tuple[str, ...]

    @classmethod
    def parse(cls, line_id: str) -> "LinePath":
        """Split a line ID; unknown leading characters give directive None."""
        directive: Optional[Directive] = None
        body = line_id
        if line_id:
            try:
                directive = Directive(line_id[0])
                body = line_id[1:]
            except ValueError:
                directive = None
        return cls(directive=directive, segments=tuple(body.split(".")) if body else ())

    @property
    def body(self) -> str:
        """The ID without its directive character."""
        return ".".join(self.segments)

    @property
    def room_id(self) -> str:
        return self.segments[0] if self.segments else ""

    def segment(self, index: int) -> Optional[str]:
        return self.segments[index] if len(self.segments) > index else None

    def is_well_formed(self) -> bool:
        if self.directive is None:
            return False
        required = MIN_SEGMENTS[self.directive]
        return len(self.segments) >= required and all(self.segments[:required])

    def matches_prefix(self, *prefix: str) -> bool:
        """Segment-wise comparison against a leading path."""
        return len(self.segments) > len(prefix) and self.segments[: len(prefix)] == prefix


@dataclass
class ClassifiedLines:
    """Result of classifying one dungeon's content lines.

    ``encounter_content`` preserves the order in which encounter lines were
    first seen, which is the authored narrative order.
    """
    events: List[Event] = field(default_factory=list)
    descriptions: Dict[str, ContentLine] = field(default_factory=dict)
    encounter_content: Dict[str, ContentLine] = field(default_factory=dict)
    choices: List[ContentLine] = field(default_factory=list)
    anchors: Dict[str, List[str]] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)

    @property
    def encounter_order(self) -> List[str]:
        return list(self.encounter_content.keys())


def to_content_lines(lines: Any) -> Dict[str, ContentLine]:
    """Normalize raw line input into ContentLine objects, keeping order.

    Raises:
        SchemaMismatchError: if ``lines`` is not a mapping
    """
    if not isinstance(lines, Mapping):
        raise SchemaMismatchError(
            "lines", "", f"expected a mapping of line IDs, got {type(lines).__name__}"
        )
    result: Dict[str, ContentLine] = {}
    for line_id, value in cast(Mapping[Any, Any], lines).items():
        if not isinstance(line_id, str):
            logger.warning(f"Skipping content line with non-string ID: {line_id!r}")
            continue
        if isinstance(value, ContentLine):
            result[line_id] = value
        else:
            result[line_id] = ContentLine.from_dict(line_id, value)
    return result


def parse_room_list(value: Any) -> List[str]:
    """Parse the 'rooms' event parameter (comma-separated or a list)."""
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, list):
        items = [str(v) for v in cast(List[Any], value)]
    else:
        return []
    return [item.strip() for item in items if item.strip()]


class LineClassifier:
    """Sorts content lines into events, encounter content and choices."""

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def classify(self, lines: Any) -> ClassifiedLines:
        """Classify every line by its directive prefix.

        A malformed line is logged and skipped; only input that is not a
        mapping at all is an error.

        Args:
            lines: Mapping of line ID to raw line record or ContentLine

        Returns:
            ClassifiedLines with events, descriptions, encounter content,
            queued choices and room anchors
        """
        content_lines = to_content_lines(lines)
        result = ClassifiedLines()

        for line_id, line in content_lines.items():
            path = LinePath.parse(line_id)
            if path.directive is None:
                # '$' name/quest lines, '_config_' and legacy content
                continue
            if not path.is_well_formed():
                self.logger.warning(
                    f"Malformed {path.directive.name.lower()} line '{line_id}': "
                    f"expected at least {MIN_SEGMENTS[path.directive]} dotted segments"
                )
                result.skipped.append(line_id)
                continue

            if path.directive is Directive.EVENT:
                event = self._build_event(line, path)
                if event:
                    result.events.append(event)
            elif path.directive is Directive.CONTENT:
                if path.segment(1) == DESCRIPTION_SEGMENT:
                    result.descriptions[path.room_id] = line
                elif path.body not in result.encounter_content:
                    result.encounter_content[path.body] = line
            elif path.directive is Directive.CHOICE:
                result.choices.append(line)
            elif path.directive is Directive.ANCHOR:
                result.anchors.setdefault(path.room_id, []).append(line_id)

        self.logger.debug(
            f"Classified {len(content_lines)} lines: {len(result.events)} events, "
            f"{len(result.encounter_content)} encounters, "
            f"{len(result.descriptions)} descriptions, {len(result.choices)} choices"
        )
        return result

    def _build_event(self, line: ContentLine, path: LinePath) -> Optional[Event]:
        """Build an Event from a '#' line that declares a trigger condition.

        Lines without a condition are scene text, not events.
        """
        params = line.params or {}
        if not (params.get("if") or params.get("ifOr")):
            return None

        room_ids = [path.room_id]
        for room_id in parse_room_list(params.get("rooms")):
            if room_id not in room_ids:
                room_ids.append(room_id)

        return Event(
            id=line.id,
            room_ids=room_ids,
            repeatable=bool(params.get("repeat", False)),
            params=params,
        )


def derive_choice_title(text: str) -> str:
    """Return a choice's display name.

    ``__Default__:go_north.extra`` becomes ``Go North``; any other text is
    used verbatim.
    """
    marker_at = text.find(DEFAULT_TITLE_MARKER)
    if marker_at < 0:
        return text
    reference = text[marker_at + len(DEFAULT_TITLE_MARKER):]
    identifier = reference.split(".", 1)[0]
    return " ".join(token[:1].upper() + token[1:] for token in identifier.split("_"))


def default_scene_id(path: LinePath) -> str:
    """Scene line a choice falls back to: ``#<room>.<sub>~<variant>.1.1.1``."""
    room, sub, variant = path.segments[0], path.segments[1], path.segments[2]
    return f"{Directive.EVENT.value}{room}.{sub}{SCENE_SEPARATOR}{variant}.{SCENE_INDEX_SUFFIX}"


class ChoiceBinder:
    """Binds queued choice lines to the encounter they belong to.

    A choice ``!<room>.<sub>.<variant>`` belongs to the encounter whose ID
    starts with ``<room>.<sub>``.
    """

    def __init__(
        self,
        resolver: ConditionActionResolver,
        lines: Mapping[str, Any],
    ):
        self.resolver = resolver
        self.lines = lines
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def bind(self, encounter: Encounter, choice_lines: Sequence[ContentLine]) -> List[Choice]:
        """Build and attach the choices of one encounter, in line order.

        Args:
            encounter: Encounter (or room description) receiving the choices
            choice_lines: All queued '!' lines of the dungeon

        Returns:
            The choices appended to ``encounter.choices``
        """
        owner = encounter.id.split(".")
        if len(owner) < 2 or not owner[0] or not owner[1]:
            return []

        bound: List[Choice] = []
        for line in choice_lines:
            path = LinePath.parse(line.id)
            if path.directive is not Directive.CHOICE or not path.matches_prefix(owner[0], owner[1]):
                continue
            bound.append(self.build_choice(line, path))

        encounter.choices.extend(bound)
        return bound

    def build_choice(self, line: ContentLine, path: Optional[LinePath] = None) -> Choice:
        """Create one Choice: derive its name and default scene action."""
        path = path or LinePath.parse(line.id)
        params: Dict[str, Any] = copy.deepcopy(line.params) if line.params else {}

        if not self.resolver.get_delayed_actions(params):
            scene_id = default_scene_id(path)
            if scene_id in self.lines:
                params["scene"] = scene_id
            else:
                self.logger.debug(f"Choice {line.id} has no actions and no scene {scene_id}")

        return Choice(
            id=line.id,
            name=derive_choice_title(line.text),
            params=params,
            bound_params=self.resolver.compile_params(params),
            is_visible=self.resolver.compile_condition(params),
        )
