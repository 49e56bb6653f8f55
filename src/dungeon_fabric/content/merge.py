"""
Layer merge engine.

Folds an ordered list of per-layer datasets (base layer first) into one
logical dataset. Config objects deep-merge field by field; ID-keyed
collections merge entry by entry while keeping the first-seen order of
IDs. Overlay records may carry 'extend'/'delete' directives to add to or
remove from inherited list and mapping fields.
"""

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, cast

from ..errors import NoDataError, SchemaMismatchError
from .models import (
    ContentRecord,
    RecordCollection,
    ID_KEY,
    EXTEND_KEY,
    DELETE_KEY,
    DIRECTIVE_KEYS,
    LINE_TEXT_KEY,
)

_MISSING = object()


@dataclass(frozen=True)
class LayerPayload:
    """One layer's contribution to a merge, tagged with the layer name."""
    layer_id: str
    data: Any


@dataclass(frozen=True)
class MergePolicy:
    """Per-field merge policy.

    Plain value lists (lists without ID-keyed entries) are replaced by the
    last layer defining them. Fields listed in ``additive_fields`` are
    concatenated instead. Entries may be a bare field name (matches at any
    depth) or a dotted path from the record root.
    """
    additive_fields: FrozenSet[str] = frozenset()

    def is_additive(self, path: str) -> bool:
        """Return True if the list at ``path`` concatenates across layers."""
        if not self.additive_fields:
            return False
        name = path.rsplit(".", 1)[-1]
        return path in self.additive_fields or name in self.additive_fields


def record_id(item: Any) -> Optional[str]:
    """Return the ID of a collection entry as a string, or None if it has no usable ID.

    Integer IDs are stringified so that 1 and "1" name the same record.
    """
    if not isinstance(item, Mapping):
        return None
    value = cast(Mapping[str, Any], item).get(ID_KEY)
    if isinstance(value, bool):
        return None
    if isinstance(value, (str, int)):
        return str(value)
    return None


class LayerMerger:
    """Pure merge engine over ordered layers.

    The merger never mutates its inputs; every merged value is a fresh copy,
    with the single exception of ``merge_config`` over exactly one layer,
    which hands that layer back untouched.
    """

    def __init__(self, policy: Optional[MergePolicy] = None):
        self.policy = policy or MergePolicy()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    # === PUBLIC API ===

    def merge_config(self, layers: Sequence[Any]) -> ContentRecord:
        """Merge single-object layers (configs, manifests) left to right.

        Args:
            layers: LayerPayload objects or raw mappings, base layer first

        Returns:
            The merged mapping

        Raises:
            NoDataError: if ``layers`` is empty
            SchemaMismatchError: if a layer is not a mapping
        """
        payloads = self._as_payloads(layers)
        if not payloads:
            raise NoDataError("config")

        for payload in payloads:
            if not isinstance(payload.data, Mapping):
                raise SchemaMismatchError(
                    payload.layer_id,
                    "",
                    f"expected a mapping, got {type(payload.data).__name__}",
                )

        if len(payloads) == 1:
            return cast(ContentRecord, payloads[0].data)

        merged: ContentRecord = {}
        for payload in payloads:
            merged = self._merge_record(merged, payload.data, payload.layer_id, "")
        self.logger.debug(f"Merged config from layers {[p.layer_id for p in payloads]}")
        return merged

    def merge_records(self, layers: Sequence[Any]) -> RecordCollection:
        """Merge ID-keyed record collections left to right.

        Entries with an ID already seen deep-merge onto the existing entry;
        new IDs append at the end. Duplicate IDs inside one layer collapse
        the same way.

        Args:
            layers: LayerPayload objects or raw lists, base layer first

        Returns:
            Merged records in first-seen ID order

        Raises:
            NoDataError: if ``layers`` is empty
            SchemaMismatchError: if a layer is not a list or an entry has no ID
        """
        return list(self.merge_records_by_id(layers).values())

    def merge_records_by_id(self, layers: Sequence[Any]) -> Dict[str, ContentRecord]:
        """Same as merge_records, returned as an insertion-ordered ID map."""
        payloads = self._as_payloads(layers)
        if not payloads:
            raise NoDataError("record collection")

        accumulator: Dict[str, ContentRecord] = {}
        for payload in payloads:
            data = payload.data
            if isinstance(data, (str, bytes)) or not isinstance(data, Sequence):
                raise SchemaMismatchError(
                    payload.layer_id,
                    "",
                    f"expected a list of records, got {type(data).__name__}",
                )

            for index, entry in enumerate(cast(Sequence[Any], data)):
                location = f"[{index}]"
                if not isinstance(entry, Mapping):
                    raise SchemaMismatchError(
                        payload.layer_id,
                        location,
                        f"expected a record mapping, got {type(entry).__name__}",
                    )
                entry_id = record_id(entry)
                if entry_id is None:
                    raise SchemaMismatchError(
                        payload.layer_id, location, "record has no usable 'id'"
                    )
                base = accumulator.get(entry_id, {})
                accumulator[entry_id] = self._merge_record(
                    base, cast(Mapping[str, Any], entry), payload.layer_id, location
                )

        return accumulator

    def merge_lines(self, layers: Sequence[Any]) -> Dict[str, ContentRecord]:
        """Merge content line layers into an ordered line ID map.

        A layer is either a list of parsed line records ({id, val, params})
        or a mapping of line IDs to {text, params} (or to bare text).
        Mapping layers are turned into records first, with 'text' stored as
        'val' so both forms override each other field by field.

        Raises:
            NoDataError: if ``layers`` is empty
            SchemaMismatchError: if a layer or a line has the wrong shape
        """
        payloads = [
            LayerPayload(layer_id=payload.layer_id, data=self._line_records(payload))
            for payload in self._as_payloads(layers)
        ]
        return self.merge_records_by_id(payloads)

    @staticmethod
    def _line_records(payload: LayerPayload) -> Any:
        if not isinstance(payload.data, Mapping):
            return payload.data

        records: RecordCollection = []
        for line_id, value in cast(Mapping[Any, Any], payload.data).items():
            if isinstance(value, str):
                records.append({ID_KEY: line_id, LINE_TEXT_KEY: value})
            elif isinstance(value, Mapping):
                record: ContentRecord = {}
                for key, item in cast(Mapping[str, Any], value).items():
                    record[LINE_TEXT_KEY if key == "text" else key] = item
                record[ID_KEY] = line_id
                records.append(record)
            else:
                raise SchemaMismatchError(
                    payload.layer_id,
                    str(line_id),
                    f"expected a line record or text, got {type(value).__name__}",
                )
        return records

    # === RECORD LEVEL ===

    def _merge_record(
        self,
        base: ContentRecord,
        overlay: Mapping[str, Any],
        layer_id: str,
        location: str,
    ) -> ContentRecord:
        """Merge an overlay record onto a base record, applying directives.

        Args:
            base: Accumulated record (owned by the merger)
            overlay: Record from the current layer
            layer_id: Name of the current layer, for error messages
            location: Position of the record inside its layer

        Returns:
            New merged record
        """
        merged = dict(base)

        # Delete first, so an extend in the same record can re-add items
        delete_data = self._directive(overlay, DELETE_KEY, layer_id, location)
        for key, delete_value in delete_data.items():
            if key in merged:
                merged[key] = self._apply_delete(merged[key], delete_value)

        extend_data = self._directive(overlay, EXTEND_KEY, layer_id, location)
        for key, extend_value in extend_data.items():
            if key in merged:
                merged[key] = self._apply_extend(merged[key], extend_value)
            else:
                merged[key] = copy.deepcopy(extend_value)

        for key, value in overlay.items():
            if key in DIRECTIVE_KEYS:
                continue
            merged[key] = self._merge_value(merged.get(key, _MISSING), value, key)

        return merged

    def _directive(
        self, overlay: Mapping[str, Any], key: str, layer_id: str, location: str
    ) -> Mapping[str, Any]:
        value = overlay.get(key)
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            path = f"{location}.{key}" if location else key
            raise SchemaMismatchError(
                layer_id, path, f"'{key}' directive must be a mapping"
            )
        return cast(Mapping[str, Any], value)

    # === VALUE LEVEL ===

    def _merge_value(self, base: Any, value: Any, path: str) -> Any:
        """Merge one field value onto its accumulated counterpart."""
        if base is _MISSING:
            return copy.deepcopy(value)

        if isinstance(base, Mapping) and isinstance(value, Mapping):
            return self._merge_mapping(
                cast(Mapping[str, Any], base), cast(Mapping[str, Any], value), path
            )

        if isinstance(base, list) and isinstance(value, list):
            base_list = cast(List[Any], base)
            value_list = cast(List[Any], value)
            if self._has_ids(base_list) or self._has_ids(value_list):
                return self._merge_keyed_lists(base_list, value_list, path)
            if self.policy.is_additive(path):
                return base_list + copy.deepcopy(value_list)
            return copy.deepcopy(value_list)

        return copy.deepcopy(value)

    def _merge_mapping(
        self, base: Mapping[str, Any], value: Mapping[str, Any], path: str
    ) -> Dict[str, Any]:
        merged = dict(base)
        for key, item in value.items():
            merged[key] = self._merge_value(
                merged.get(key, _MISSING), item, f"{path}.{key}"
            )
        return merged

    def _merge_keyed_lists(
        self, base: List[Any], value: List[Any], path: str
    ) -> List[Any]:
        """Merge two lists of records by ID; entries without IDs go last."""
        keyed: Dict[str, Any] = {}
        loose: List[Any] = []

        for item in base:
            item_id = record_id(item)
            if item_id is None:
                loose.append(item)
            else:
                keyed[item_id] = item

        for item in value:
            item_id = record_id(item)
            if item_id is None:
                loose.append(copy.deepcopy(item))
            elif item_id in keyed:
                keyed[item_id] = self._merge_value(keyed[item_id], item, path)
            else:
                keyed[item_id] = copy.deepcopy(item)

        return list(keyed.values()) + loose

    @staticmethod
    def _has_ids(items: List[Any]) -> bool:
        return any(record_id(item) is not None for item in items)

    # === DIRECTIVES ===

    def _apply_extend(self, parent_value: Any, extend_value: Any) -> Any:
        """Apply an extend directive to an inherited field value.

        Lists concatenate, mappings update, anything else is replaced.
        """
        if isinstance(parent_value, list) and isinstance(extend_value, list):
            return cast(List[Any], parent_value) + copy.deepcopy(cast(List[Any], extend_value))
        elif isinstance(parent_value, dict) and isinstance(extend_value, Mapping):
            result = cast(Dict[str, Any], parent_value).copy()
            result.update(copy.deepcopy(dict(cast(Mapping[str, Any], extend_value))))
            return result
        else:
            return copy.deepcopy(extend_value)

    def _apply_delete(self, parent_value: Any, delete_value: Any) -> Any:
        """Apply a delete directive to an inherited field value.

        List items equal to (or, for mappings, matching) the listed values
        are removed; mapping keys named in a mapping directive are removed.
        Other combinations leave the inherited value unchanged.
        """
        if isinstance(parent_value, list) and isinstance(delete_value, list):
            result: List[Any] = cast(List[Any], parent_value).copy()
            for item_to_delete in cast(List[Any], delete_value):
                if isinstance(item_to_delete, Mapping):
                    pattern = cast(Mapping[str, Any], item_to_delete)
                    result = [item for item in result if not self._dict_matches(item, pattern)]
                else:
                    result = [item for item in result if item != item_to_delete]
            return result
        elif isinstance(parent_value, dict) and isinstance(delete_value, Mapping):
            result_dict = cast(Dict[str, Any], parent_value).copy()
            for key in cast(Mapping[str, Any], delete_value).keys():
                result_dict.pop(key, None)
            return result_dict
        else:
            self.logger.debug(
                f"Ignoring delete directive of {type(delete_value).__name__} "
                f"on {type(parent_value).__name__}"
            )
            return parent_value

    @staticmethod
    def _dict_matches(item: Any, pattern: Mapping[str, Any]) -> bool:
        """Check if a dict item contains every field of the pattern."""
        if not isinstance(item, Mapping):
            return False
        mapping = cast(Mapping[str, Any], item)
        for key, value in pattern.items():
            if key not in mapping or mapping[key] != value:
                return False
        return True

    # === HELPERS ===

    @staticmethod
    def _as_payloads(layers: Sequence[Any]) -> List[LayerPayload]:
        if isinstance(layers, (str, bytes, Mapping)) or not isinstance(layers, Sequence):
            raise SchemaMismatchError(
                "<layers>", "", f"expected an ordered list of layers, got {type(layers).__name__}"
            )
        payloads: List[LayerPayload] = []
        for index, layer in enumerate(cast(Sequence[Any], layers)):
            if isinstance(layer, LayerPayload):
                payloads.append(layer)
            else:
                payloads.append(LayerPayload(layer_id=f"layer[{index}]", data=layer))
        return payloads
