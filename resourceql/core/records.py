"""Read-only access to records without triggering lazy loads.

Records are usually SQLAlchemy ORM instances, but plain objects and mappings
work too. Everything here inspects already-present state only: an unloaded
relationship or an expired column reads as :data:`MISSING` instead of
emitting SQL (which would fail outright under an ``AsyncSession``).
"""
from __future__ import annotations

import inspect as _pyinspect
from collections.abc import Mapping
from functools import cached_property
from typing import Any, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.ext.hybrid import hybrid_property


class _Missing:
    """Marker for "no value": the key is dropped from the output entirely."""

    _instance: Optional["_Missing"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return 'MISSING'


MISSING = _Missing()


def is_missing(value: Any) -> bool:
    return value is MISSING


def orm_state(record: Any):
    """Return the SQLAlchemy ``InstanceState`` of a mapped instance, else ``None``."""
    if record is None or isinstance(record, (Mapping, str, bytes, int, float, bool, type)):
        return None
    try:
        return sa_inspect(record, raiseerr=False)
    except NoInspectionAvailable:
        return None


def _instance_dict(record: Any) -> Optional[dict]:
    try:
        return vars(record)
    except TypeError:
        return None


def is_relation_loaded(record: Any, name: str) -> bool:
    if record is None:
        return False
    if isinstance(record, Mapping):
        return name in record
    state = orm_state(record)
    if state is not None:
        return name in state.mapper.relationships and name not in state.unloaded
    data = _instance_dict(record)
    return data is not None and name in data


def get_loaded_relation(record: Any, name: str) -> Any:
    """Return an already-loaded relation value (``MISSING`` when not loaded)."""
    if not is_relation_loaded(record, name):
        return MISSING
    if isinstance(record, Mapping):
        return record[name]
    state = orm_state(record)
    if state is not None:
        return state.dict.get(name)
    return vars(record)[name]


def is_relationship(record_or_model: Any, name: str) -> bool:
    try:
        mapper = sa_inspect(record_or_model if isinstance(record_or_model, type) else type(record_or_model))
        return name in mapper.relationships
    except Exception:
        return False


def _is_computed_accessor(owner: type, name: str) -> bool:
    try:
        attr = _pyinspect.getattr_static(owner, name)
    except AttributeError:
        return False
    return isinstance(attr, (property, cached_property, hybrid_property))


def read_attribute(record: Any, name: str) -> Any:
    """Read a same-named value off a record.

    Lookup order: the declared attribute store (loaded ORM columns, or the
    instance ``__dict__`` of plain objects), then declared computed accessors
    (``property``/``hybrid_property`` on the class), then a dynamic fallback
    (any other loaded instance value, including loaded relationships).
    """
    if record is None:
        return MISSING
    if isinstance(record, Mapping):
        return record[name] if name in record else MISSING
    state = orm_state(record)
    data = _instance_dict(record)
    if state is not None:
        if name in state.mapper.column_attrs and name in state.dict:
            return state.dict[name]
    elif data is not None and name in data:
        return data[name]
    if _is_computed_accessor(type(record), name):
        return getattr(record, name)
    if data is not None and name in data and not name.startswith('_'):
        return data[name]
    if state is None and data is None and hasattr(record, name):
        # __slots__ classes, namedtuples and similar
        value = getattr(record, name)
        return MISSING if callable(value) else value
    return MISSING


def read_loaded_value(record: Any, name: str) -> Any:
    """Read a loaded attribute (including ad-hoc ones such as ``posts_count``)."""
    if record is None:
        return None
    if isinstance(record, Mapping):
        return record.get(name)
    data = _instance_dict(record)
    if data is not None and name in data:
        return data[name]
    return None


def data_get(target: Any, path: Any, default: Any = None) -> Any:
    """Dotted-path lookup through mappings, sequences and attributes.

    ``data_get(user, 'organization.name')`` returns ``default`` as soon as a
    segment is absent or would require loading an unloaded relationship.
    """
    if path is None or path == '':
        return target
    segments = path if isinstance(path, (list, tuple)) else str(path).split('.')
    current = target
    for segment in segments:
        if current is None:
            return default
        if isinstance(current, Mapping):
            if segment not in current:
                return default
            current = current[segment]
            continue
        if isinstance(current, (list, tuple)):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                return default
            continue
        state = orm_state(current)
        if state is not None:
            if segment in state.unloaded:
                return default
            value = read_attribute(current, segment)
            if value is MISSING:
                if not hasattr(type(current), segment):
                    return default
                value = getattr(current, segment)
            current = value
            continue
        if not hasattr(current, segment):
            return default
        current = getattr(current, segment)
    return current


__all__ = [
    'MISSING', 'is_missing', 'orm_state', 'is_relation_loaded', 'get_loaded_relation',
    'is_relationship', 'read_attribute', 'read_loaded_value', 'data_get',
]
