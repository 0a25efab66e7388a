from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Sequence


class FieldOrderingStrategy(str, Enum):
    DEFAULT = 'default'
    BY_REQUESTED_FIELDS = 'by_requested_fields'

    @classmethod
    def coerce(cls, value: Any) -> "FieldOrderingStrategy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or cls.DEFAULT.value).strip().lower())
        except ValueError:
            return cls.DEFAULT


def _priority(key: str) -> int:
    if key == '_type':
        return 0
    if key == 'id':
        return 1
    return 3 if key.endswith('_at') else 2


def order_by_default(data: Dict[str, Any], selection: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    """Type marker, then id, then everything else, then ``*_at`` timestamps.

    Keys within a tier keep their position in ``selection`` (keys missing
    from it keep their insertion order, after the selected ones).
    """
    position: Dict[str, int] = {}
    for i, key in enumerate(selection or ()):
        position.setdefault(key, i)
    offset = len(selection or ())
    indexed = list(enumerate(data))
    indexed.sort(key=lambda item: (_priority(item[1]), position.get(item[1], offset + item[0])))
    return {key: data[key] for _, key in indexed}


def order_by_requested_fields(data: Dict[str, Any], requested: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    if not requested:
        return dict(data)
    ordered = {key: data[key] for key in requested if key in data}
    for key, value in data.items():
        ordered.setdefault(key, value)
    return ordered


def order_resolved_fields(
    data: Dict[str, Any],
    strategy: Any = FieldOrderingStrategy.DEFAULT,
    selection: Optional[Sequence[str]] = None,
) -> Dict[str, Any]:
    strategy = FieldOrderingStrategy.coerce(strategy)
    if strategy is FieldOrderingStrategy.BY_REQUESTED_FIELDS:
        return order_by_requested_fields(data, selection)
    return order_by_default(data, selection)


__all__ = ['FieldOrderingStrategy', 'order_resolved_fields', 'order_by_default', 'order_by_requested_fields']
