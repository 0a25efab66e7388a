from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional, Sequence

from .compiled import CompiledCountDefinition, CompiledFieldDefinition, CompiledSchema, FieldKind
from .guards import GuardEvaluator
from .records import MISSING, data_get, get_loaded_relation, read_attribute, read_loaded_value

logger = logging.getLogger(__name__)


def unwrap_resource(value: Any) -> Any:
    """Strip projector layers down to the underlying record."""
    from ..resources import ApiResource

    while isinstance(value, ApiResource):
        value = value.resource
    return value


def should_include_count(present_key: str, requested: Optional[Sequence[str]], definition: CompiledCountDefinition) -> bool:
    """Named counts win; with nothing named only default counts are included."""
    if requested:
        return present_key in requested
    return definition.is_default


class ValueResolver:
    """Produces field values and the counts payload for one projector.

    Resolution is dispatched on :attr:`CompiledFieldDefinition.kind`. The
    resolver only reads what is already present on the record: relations
    that were not preloaded resolve to :data:`MISSING` and counts come from
    precomputed ``<relation>_count`` attributes.
    """

    def __init__(self, guard_evaluator: Optional[GuardEvaluator] = None):
        self.guard_evaluator = guard_evaluator or GuardEvaluator()

    def resolve_field_value(self, key: str, definition: CompiledFieldDefinition, resource: Any, request: Any = None) -> Any:
        if not self.guard_evaluator.passes_guards(definition.guards, resource, request):
            return MISSING
        kind = definition.kind
        if kind is FieldKind.COMPUTE:
            value = self._resolve_computed(definition.compute, resource, request)
        elif kind is FieldKind.RELATION:
            value = self._resolve_relation(definition, resource, request)
        elif kind is FieldKind.ACCESSOR:
            value = self._resolve_accessor(definition.accessor, resource, request)
        else:
            value = read_attribute(unwrap_resource(resource), key)
        if value is not MISSING:
            for transformer in definition.transformers:
                value = transformer(resource, value)
        return value

    def resolve_counts_payload(
        self,
        resource: Any,
        schema: CompiledSchema,
        resource_type: str,
        request: Any = None,
        requested: Optional[Iterable[str]] = None,
    ) -> Dict[str, int]:
        owner = unwrap_resource(resource)
        if owner is None:
            return {}
        requested = list(requested or [])
        payload: Dict[str, int] = {}
        for present_key, definition in schema.get_count_definitions().items():
            if not should_include_count(present_key, requested, definition):
                continue
            if not self.guard_evaluator.passes_guards(definition.guards, resource, request):
                continue
            value = read_loaded_value(owner, f"{definition.relation}_count")
            if value is not None:
                payload[present_key] = int(value)
        return payload

    # ----- strategies -----
    @staticmethod
    def _resolve_computed(compute: Any, resource: Any, request: Any) -> Any:
        if isinstance(compute, str):
            method = getattr(type(resource), compute, None)
            if callable(method):
                return getattr(resource, compute)(request)
            return MISSING
        if callable(compute):
            return compute(resource, request)
        return MISSING

    @staticmethod
    def _resolve_accessor(accessor: Any, resource: Any, request: Any) -> Any:
        if isinstance(accessor, str):
            return data_get(unwrap_resource(resource), accessor)
        if callable(accessor):
            return accessor(resource, request)
        return MISSING

    def _resolve_relation(self, definition: CompiledFieldDefinition, resource: Any, request: Any) -> Any:
        related = get_loaded_relation(unwrap_resource(resource), definition.relation)
        if related is MISSING or related is None:
            return related
        if definition.accessor is not None:
            if isinstance(definition.accessor, str):
                return data_get(related, definition.accessor)
            if callable(definition.accessor):
                return definition.accessor(resource, request)
            return None
        if definition.resource is None:
            return related
        return self._wrap_related(related, definition.resource, definition.fields)

    @staticmethod
    def _wrap_related(related: Any, resource_cls: type, fields: Optional[Sequence[str]]) -> Any:
        if isinstance(related, (list, tuple, set, frozenset)):
            return resource_cls.collection(related, fields=list(fields) if fields is not None else None)
        return resource_cls(related, fields=list(fields) if fields is not None else None)


__all__ = ['ValueResolver', 'unwrap_resource', 'should_include_count']
