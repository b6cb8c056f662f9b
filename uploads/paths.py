"""
Dot-path grafting into the operations document
"""
import enum
from typing import Any, Dict, List, Union

from .errors import MalformedRequest, PathConflict

Container = Union[Dict[str, Any], List[Any]]

# Largest number of null slots a single graft may add to an array
MAX_ARRAY_PADDING = 1000


class NodeKind(enum.Enum):
    OBJECT = "object"
    ARRAY = "array"
    SCALAR = "scalar"
    NULL = "null"


def node_kind(value: Any) -> NodeKind:
    if value is None:
        return NodeKind.NULL
    if isinstance(value, dict):
        return NodeKind.OBJECT
    if isinstance(value, list):
        return NodeKind.ARRAY
    return NodeKind.SCALAR


def is_index(segment: str) -> bool:
    return segment.isdigit() and segment.isascii()


def split_path(path: str) -> List[str]:
    """
    Split a map path into segments

    Raises:
        MalformedRequest: for an empty path or an empty segment ("a..b")
    """
    if not isinstance(path, str) or not path:
        raise MalformedRequest("Variable path must be a non-empty string.")
    segments = path.split('.')
    if not all(segments):
        raise MalformedRequest(f"Variable path '{path}' contains an empty segment.")
    return segments


def graft(document: Dict[str, Any], path: str, value: Any, strict: bool = False) -> None:
    """
    Set `value` at the dot-delimited `path` inside `document`, in place.

    Intermediate slots are created as lists when the following segment is an
    array index and as dicts otherwise. A slot holding the wrong kind of node
    is replaced, unless `strict` is set, in which case PathConflict is raised
    for any non-null slot of the wrong kind. The leaf is always overwritten.

    Example:
        doc = {}
        graft(doc, "a.b.0.c", "x")
        # doc == {"a": {"b": [{"c": "x"}]}}
    """
    segments = split_path(path)
    current: Container = document

    for position, segment in enumerate(segments[:-1]):
        wanted = NodeKind.ARRAY if is_index(segments[position + 1]) else NodeKind.OBJECT
        slot = _get_slot(current, segment)
        found = node_kind(slot)

        if found is not wanted:
            if strict and found is not NodeKind.NULL:
                traversed = '.'.join(segments[:position + 1])
                raise PathConflict(
                    f"Variable path '{path}' expects {wanted.value} at '{traversed}', "
                    f"found {found.value}."
                )
            slot = [] if wanted is NodeKind.ARRAY else {}
            _set_slot(current, segment, slot)
        current = slot

    _set_slot(current, segments[-1], value)


def _index(segment: str) -> int:
    # Bounded before int() so oversized digit strings never reach the conversion
    if len(segment) > 9:
        raise MalformedRequest(f"Array index {segment[:12]}... is out of range.")
    return int(segment)


def _get_slot(container: Container, segment: str) -> Any:
    if isinstance(container, list):
        index = _index(segment)
        return container[index] if index < len(container) else None
    return container.get(segment)


def _set_slot(container: Container, segment: str, value: Any) -> None:
    if isinstance(container, list):
        if not is_index(segment):
            raise PathConflict(f"Segment '{segment}' cannot index an array.")
        index = _index(segment)
        if index - len(container) > MAX_ARRAY_PADDING:
            raise MalformedRequest(
                f"Array index {index} is too far past the end of a {len(container)}-item list."
            )
        # Pad with nulls so the index exists
        if index >= len(container):
            container.extend([None] * (index + 1 - len(container)))
        container[index] = value
    else:
        container[segment] = value
