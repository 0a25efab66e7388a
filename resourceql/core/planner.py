from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from sqlalchemy.orm.attributes import QueryableAttribute
from sqlalchemy.sql import Select

from ..query import ApiQuery, current_query
from .compiled import CompiledFieldDefinition
from .compiler import compile as compile_schema
from .values import should_include_count

logger = logging.getLogger(__name__)

# path -> constraint (None for a plain preload)
EagerLoadPlan = Dict[str, Optional[Callable[..., Any]]]


def make_prefixed_path(prefix: str, suffix: str) -> str:
    return suffix if not prefix else f"{prefix}.{suffix}"


def _select_entity(statement: Select) -> Any:
    descriptions = statement.column_descriptions
    return descriptions[0].get('entity') if descriptions else None


def wrap_constraint(constraint: Callable[..., Any]) -> Callable[[Any], Any]:
    """Adapt a ``constraint(model) -> criterion`` to whatever the store layer hands over.

    The wrapper accepts:

    - a relationship attribute (``User.posts``): returns ``User.posts.and_(criterion)``
      ready for a loader option,
    - a ``Select``: returns the statement with the criterion added,
    - a mapped class, aliased class or polymorphic entity: returns the bare
      criterion for that entity.
    """

    def scoped(target: Any) -> Any:
        if isinstance(target, QueryableAttribute):
            return target.and_(constraint(target.property.mapper.class_))
        if isinstance(target, Select):
            entity = _select_entity(target)
            return target if entity is None else target.where(constraint(entity))
        return constraint(target)

    scoped.__wrapped__ = constraint
    return scoped


def _is_resource_class(value: Any) -> bool:
    from ..resources import ApiResource

    return isinstance(value, type) and issubclass(value, ApiResource)


class EagerLoadPlanner:
    """Describes the preloads a projection needs without touching the store.

    ``build_eager_load_map`` walks the compiled schemas depth first, joining
    relation names into dotted paths and following child resources. Each
    ``(resource class, path)`` pair is visited once, so two keys aliasing the
    same relation yield one path. A walk never follows the same
    ``(resource class, relation)`` edge twice along one path, which stops
    cycles such as ``users -> posts -> user -> posts``. Plain paths come
    before scoped ones in the returned map.
    """

    def __init__(self, query: Optional[ApiQuery] = None):
        self._query = query

    @property
    def query(self) -> ApiQuery:
        return self._query if self._query is not None else current_query()

    def build_eager_load_map(self, resource_cls: type, fields: Sequence[str]) -> EagerLoadPlan:
        plain: List[str] = []
        scoped: Dict[str, Callable[..., Any]] = {}
        visited: Set[str] = set()
        self._walk_relations(resource_cls, list(fields or []), '', plain, scoped, visited, frozenset())
        plan: EagerLoadPlan = {}
        for path in plain:
            plan.setdefault(path, None)
        for path, constraint in scoped.items():
            plan[path] = constraint
        return plan

    def build_count_map(self, resource_cls: type, requested_aliases: Optional[Sequence[str]] = None) -> EagerLoadPlan:
        schema = compile_schema(resource_cls)
        counts: EagerLoadPlan = {}
        for present_key, definition in schema.get_count_definitions().items():
            if not should_include_count(present_key, requested_aliases, definition):
                continue
            counts[definition.relation] = definition.constraint
        return counts

    # ----- walking -----
    def _walk_relations(self, resource_cls, fields, prefix, plain, scoped, visited, ancestors) -> None:
        schema = compile_schema(resource_cls)
        for key in fields:
            definition = schema.get_field(key)
            if definition is None:
                continue
            for extra in definition.extras:
                plain.append(make_prefixed_path(prefix, extra))
            if not definition.relation:
                continue
            owner = f"{resource_cls.__module__}.{resource_cls.__qualname__}"
            edge = (owner, definition.relation)
            # an edge already taken on this path only repeats the same subtree
            if edge in ancestors:
                continue
            full_path = make_prefixed_path(prefix, definition.relation)
            marker = f"{owner}|{full_path}"
            if marker in visited:
                continue
            visited.add(marker)
            if definition.constraint is not None:
                scoped[full_path] = wrap_constraint(definition.constraint)
            else:
                plain.append(full_path)
            self._recurse_into_child(definition, full_path, plain, scoped, visited, ancestors | {edge})

    def _recurse_into_child(self, definition: CompiledFieldDefinition, full_path, plain, scoped, visited, ancestors) -> None:
        child = definition.resource
        if not _is_resource_class(child):
            return
        child_fields = self.resolve_child_fields(definition, child)
        if child_fields:
            self._walk_relations(child, child_fields, full_path, plain, scoped, visited, ancestors)

    def resolve_child_fields(self, definition: CompiledFieldDefinition, child: type) -> List[str]:
        if definition.fields:
            return [f for f in definition.fields if f]
        requested = self.query.get_fields(child.get_resource_type()) or []
        requested = [f for f in requested if f]
        if ':all' in requested:
            return child.get_all_fields()
        if requested:
            return requested
        return child.get_default_fields() or child.get_all_fields()


def build_eager_load_map(resource_cls: type, fields: Sequence[str], query: Optional[ApiQuery] = None) -> EagerLoadPlan:
    return EagerLoadPlanner(query).build_eager_load_map(resource_cls, fields)


def build_count_map(resource_cls: type, requested_aliases: Optional[Sequence[str]] = None) -> EagerLoadPlan:
    return EagerLoadPlanner().build_count_map(resource_cls, requested_aliases)


__all__ = [
    'EagerLoadPlan', 'EagerLoadPlanner', 'build_eager_load_map', 'build_count_map',
    'wrap_constraint', 'make_prefixed_path',
]
