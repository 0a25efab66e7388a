from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple


class FieldKind(Enum):
    """How a compiled field produces its value, in resolution precedence order."""

    COMPUTE = 'compute'
    RELATION = 'relation'
    ACCESSOR = 'accessor'
    PROPERTY = 'property'


@dataclass(frozen=True)
class CompiledFieldDefinition:
    """Typed, immutable form of one field declaration.

    Attributes:
        accessor: Dotted path or callable ``fn(resource, request)``. On a
            relation field it is applied to the related value instead.
        compute: Resource method name or callable ``fn(resource, request)``.
        relation: Relationship name on the record.
        resource: Child ``ApiResource`` class used to wrap the related value.
        fields: Explicit child field keys (``None`` when not declared).
        constraint: ``fn(related_model) -> criterion`` applied when preloading.
        extras: Additional relation paths preloaded with this field.
        guards: Visibility predicates ``fn(resource, request)``.
        transformers: Post-processors ``fn(resource, value) -> value``.
    """

    accessor: Any = None
    compute: Any = None
    relation: Optional[str] = None
    resource: Optional[type] = None
    fields: Optional[Tuple[str, ...]] = None
    constraint: Optional[Callable[..., Any]] = None
    extras: Tuple[str, ...] = ()
    guards: Tuple[Callable[..., Any], ...] = ()
    transformers: Tuple[Callable[..., Any], ...] = ()

    @property
    def kind(self) -> FieldKind:
        if self.compute is not None:
            return FieldKind.COMPUTE
        if self.relation is not None:
            return FieldKind.RELATION
        if self.accessor is not None:
            return FieldKind.ACCESSOR
        return FieldKind.PROPERTY


@dataclass(frozen=True)
class CompiledCountDefinition:
    present_key: str
    relation: str
    constraint: Optional[Callable[..., Any]] = None
    is_default: bool = False
    guards: Tuple[Callable[..., Any], ...] = ()


@dataclass(frozen=True)
class CompiledSchema:
    """Field and count definitions of one resource class.

    Instances are built by the schema compiler and shared process-wide, so
    they expose read-only accessors and never change after construction.
    """

    _fields: Tuple[Tuple[str, CompiledFieldDefinition], ...] = ()
    _counts: Tuple[Tuple[str, CompiledCountDefinition], ...] = ()
    _field_index: Dict[str, CompiledFieldDefinition] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def build(
        cls,
        fields: Mapping[str, CompiledFieldDefinition],
        counts: Mapping[str, CompiledCountDefinition],
    ) -> "CompiledSchema":
        return cls(tuple(fields.items()), tuple(counts.items()), dict(fields))

    def get_field(self, key: str) -> Optional[CompiledFieldDefinition]:
        return self._field_index.get(key)

    def get_field_keys(self) -> List[str]:
        return [key for key, _ in self._fields]

    def get_count_definitions(self) -> Dict[str, CompiledCountDefinition]:
        return dict(self._counts)

    def has_field(self, key: str) -> bool:
        return key in self._field_index

    def __iter__(self):
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)


__all__ = ['FieldKind', 'CompiledFieldDefinition', 'CompiledCountDefinition', 'CompiledSchema']
