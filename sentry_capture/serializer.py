from collections.abc import Mapping, Sequence, Set
from dataclasses import fields
from datetime import datetime
from enum import Enum

from sentry_capture.event import Event, ExceptionRecord, SdkInfo
from sentry_capture.utils import format_timestamp, safe_repr, safe_str, slim_string

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any
    from typing import Dict
    from typing import List

    from sentry_capture._types import Payload


# Maximum depth and breadth of databags. Excess data will be trimmed.
MAX_DATABAG_DEPTH = 5
MAX_DATABAG_BREADTH = 10
CYCLE_MARKER = "<cyclic>"

serializable_str_types = (str, bytes, bytearray, memoryview)

# Fields whose values are free-form documents rather than part of the schema.
_DATABAG_FIELDS = frozenset(["extra", "vars", "data"])


class Memo:
    __slots__ = ("_ids", "_objs")

    def __init__(self):
        # type: () -> None
        self._ids = {}  # type: Dict[int, Any]
        self._objs = []  # type: List[Any]

    def memoize(self, obj):
        # type: (Any) -> Memo
        self._objs.append(obj)
        return self

    def __enter__(self):
        # type: () -> bool
        obj = self._objs[-1]
        if id(obj) in self._ids:
            return True
        else:
            self._ids[id(obj)] = obj
            return False

    def __exit__(self, ty, value, tb):
        # type: (Any, Any, Any) -> None
        self._ids.pop(id(self._objs.pop()), None)


def serialize_databag(value, max_depth=MAX_DATABAG_DEPTH):
    # type: (Any, int) -> Any
    """Turn an arbitrary value into something `json.dumps` accepts.

    Mappings and sequences are walked recursively; anything deeper than
    `max_depth` or beyond `MAX_DATABAG_BREADTH` items per container is cut
    off. Objects JSON has no representation for are replaced by their `repr`.
    Containers that contain themselves are replaced by `CYCLE_MARKER`.
    """
    memo = Memo()

    def _serialize_node(obj, remaining_depth):
        # type: (Any, int) -> Any
        with memo.memoize(obj) as result:
            if result:
                return CYCLE_MARKER
            return _serialize_node_impl(obj, remaining_depth)

    def _serialize_node_impl(obj, remaining_depth):
        # type: (Any, int) -> Any
        if obj is None or isinstance(obj, (bool, int)):
            return obj

        if isinstance(obj, float):
            if obj != obj or obj in (float("inf"), float("-inf")):
                return safe_repr(obj)
            return obj

        if isinstance(obj, datetime):
            return format_timestamp(obj)

        if isinstance(obj, Enum):
            return safe_str(obj)

        if isinstance(obj, serializable_str_types):
            if isinstance(obj, (bytes, bytearray, memoryview)):
                obj = bytes(obj).decode("utf-8", "replace")
            return slim_string(obj)

        if remaining_depth <= 0:
            return safe_repr(obj)

        if isinstance(obj, Mapping):
            rv_dict = {}  # type: Dict[str, Any]
            for i, (k, v) in enumerate(obj.items()):
                if i >= MAX_DATABAG_BREADTH:
                    break
                rv_dict[safe_str(k)] = _serialize_node(v, remaining_depth - 1)
            return rv_dict

        if isinstance(obj, (Sequence, Set)):
            rv_list = []
            for i, v in enumerate(obj):
                if i >= MAX_DATABAG_BREADTH:
                    break
                rv_list.append(_serialize_node(v, remaining_depth - 1))
            return rv_list

        return safe_repr(obj)

    return _serialize_node(value, max_depth)


def _serialize_field(name, value):
    # type: (str, Any) -> Any
    if name in _DATABAG_FIELDS:
        if isinstance(value, Mapping):
            return {safe_str(k): serialize_databag(v) for k, v in value.items()}
        return serialize_databag(value)

    if name == "params":
        # Parameters are sent in full, without databag trimming.
        return [v if isinstance(v, str) else serialize_databag(v) for v in value]

    if name == "contexts":
        return {
            safe_str(key): {
                safe_str(k): serialize_databag(v) for k, v in context.items()
            }
            for key, context in value.items()
        }

    if isinstance(value, Enum):
        return str(value)

    if isinstance(value, datetime):
        return format_timestamp(value)

    if isinstance(value, SdkInfo):
        return {"name": value.name, "version": value.version}

    if isinstance(value, ExceptionRecord):
        rv = _serialize_record(value)
        rv["stacktrace"] = {"frames": rv.pop("frames", [])}
        return rv

    if hasattr(value, "__dataclass_fields__"):
        return _serialize_record(value)

    if isinstance(value, Mapping):
        return {safe_str(k): safe_str(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [_serialize_field(name, item) for item in value]

    return value


def _serialize_record(record):
    # type: (Any) -> Dict[str, Any]
    rv = {}  # type: Dict[str, Any]
    for f in fields(record):
        value = getattr(record, f.name)
        if value is None:
            continue
        rv[f.name] = _serialize_field(f.name, value)
    return rv


def serialize_event(event):
    # type: (Event) -> Payload
    """Returns the wire representation of an event as a JSON-friendly dict.

    Keys are the snake_case attribute names of the event, unset (`None`)
    values are left out and levels are rendered as lowercase strings.
    """
    return _serialize_record(event)
