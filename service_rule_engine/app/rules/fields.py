"""
Field path resolution over ticket data.
"""

import re
from typing import Any, Mapping, Optional, Tuple

_INDEXED_SEGMENT = re.compile(r"^(?P<name>[^\[\]]*)\[(?P<index>\d+)\]$")


def _split_segment(segment: str) -> Tuple[str, Optional[int]]:
    """Split ``tags[0]`` into ``("tags", 0)``; plain segments get no index."""
    match = _INDEXED_SEGMENT.match(segment)
    if match:
        return match.group("name"), int(match.group("index"))
    return segment, None


def _get_attribute(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name)
    return getattr(value, name, None)


def resolve_field_path(field_path: str, record: Any) -> Any:
    """Resolve a dotted path such as ``complainant.department`` or ``tags[0]``.

    Mappings are walked by key and other objects by attribute. A missing key,
    a ``None`` intermediate or an out-of-range index resolves to ``None``.
    """
    value = record

    for segment in field_path.split("."):
        if value is None:
            return None

        name, index = _split_segment(segment)
        value = _get_attribute(value, name)

        if index is not None:
            if not isinstance(value, (list, tuple)) or index >= len(value):
                return None
            value = value[index]

    return value
