"""Resource projectors: turn records into ordered, field-selected dicts.

Example:
    class UserResource(ApiResource):
        RESOURCE_TYPE = 'users'
        MODEL = User
        default = ['id', 'name', 'organization']

        @classmethod
        def schema(cls):
            return field_set(
                field('id'),
                field('name'),
                relation('organization', OrganizationResource),
                count('posts').default(),
            )

    with use_query(parse_query({'fields[users]': 'id,name,counts'})):
        UserResource(user).resolve()
"""
from __future__ import annotations

import logging
import math
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Sequence

from .config import get_config
from .core.compiled import CompiledFieldDefinition, CompiledSchema
from .core.compiler import compile as compile_schema
from .core.ordering import order_resolved_fields
from .core.planner import EagerLoadPlan, EagerLoadPlanner
from .core.records import MISSING
from .core.selection import COUNTS_FIELD, FieldResolver
from .core.values import ValueResolver
from .errors import ConfigurationError
from .query import ApiQuery, current_query
from .registry import register_resource, resource_for_model

logger = logging.getLogger(__name__)

TYPE_FIELD = '_type'
_PROPERTY_DEFINITION = CompiledFieldDefinition()


class ApiResource:
    """Projects one record according to the requested fields.

    Subclasses set ``RESOURCE_TYPE`` and implement :meth:`schema`. Setting
    ``MODEL`` registers the resource for that model so criteria and
    polymorphic projections can find it. Attribute access on the projector
    falls through to the record, which keeps compute methods short::

        def full_name(self, request):
            return f"{self.first_name} {self.last_name}"
    """

    RESOURCE_TYPE: ClassVar[Optional[str]] = None
    MODEL: ClassVar[Any] = None
    default: ClassVar[Sequence[str]] = ()
    fixed: ClassVar[Sequence[str]] = ()
    field_ordering_strategy: ClassVar[Optional[str]] = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        model = cls.__dict__.get('MODEL')
        if model is not None:
            register_resource(model, cls)

    def __init__(self, resource: Any, *, fields: Optional[Sequence[str]] = None, query: Optional[ApiQuery] = None):
        self.resource = resource
        self._query = query
        self._field_resolver = FieldResolver(query)
        self._value_resolver = ValueResolver()
        # (resource class, relation) pairs already expanded above this projector
        self._edges: frozenset = frozenset()
        if fields is not None:
            self._field_resolver.with_fields(fields)

    def __getattr__(self, name: str) -> Any:
        if name.startswith('__') or name in ('resource', '_query', '_field_resolver', '_value_resolver', '_edges'):
            raise AttributeError(name)
        record = self.__dict__.get('resource')
        if record is None:
            raise AttributeError(name)
        return getattr(record, name)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.resource!r})"

    # ----- declarations -----
    @classmethod
    def schema(cls) -> Dict[str, Dict[str, Any]]:
        return {}

    @classmethod
    def get_compiled_schema(cls) -> CompiledSchema:
        return compile_schema(cls)

    @classmethod
    def get_resource_type(cls) -> str:
        resource_type = cls.RESOURCE_TYPE
        if not isinstance(resource_type, str) or not resource_type:
            raise ConfigurationError(f"{cls.__name__} must define RESOURCE_TYPE")
        return resource_type.lower()

    @classmethod
    def get_default_fields(cls) -> List[str]:
        return list(cls.default)

    @classmethod
    def get_all_fields(cls) -> List[str]:
        return cls.get_compiled_schema().get_field_keys()

    @classmethod
    def resolve_fields(cls, query: Optional[ApiQuery] = None) -> List[str]:
        """Fields requested for this type, else the defaults."""
        query = query if query is not None else current_query()
        requested = query.get_fields(cls.get_resource_type())
        return list(requested) if requested is not None else cls.get_default_fields()

    @classmethod
    def eager_load_map_for(cls, fields: Sequence[str], query: Optional[ApiQuery] = None) -> EagerLoadPlan:
        return EagerLoadPlanner(query).build_eager_load_map(cls, fields)

    @classmethod
    def eager_load_counts_for(cls, requested_aliases: Optional[Sequence[str]] = None) -> EagerLoadPlan:
        return EagerLoadPlanner().build_count_map(cls, requested_aliases)

    @classmethod
    def collection(cls, records: Iterable[Any], *, fields: Optional[Sequence[str]] = None,
                   query: Optional[ApiQuery] = None, total: Optional[int] = None) -> "ApiResourceCollection":
        return ApiResourceCollection(records, cls, fields=fields, query=query, total=total)

    # ----- selection -----
    @property
    def query(self) -> ApiQuery:
        return self._query if self._query is not None else current_query()

    def with_fields(self, fields: Optional[Sequence[str]]) -> "ApiResource":
        self._field_resolver.with_fields(fields)
        return self

    def without_fields(self, fields: Optional[Sequence[str]]) -> "ApiResource":
        self._field_resolver.without_fields(fields)
        return self

    def with_all(self) -> "ApiResource":
        self._field_resolver.with_all()
        return self

    def get_fields(self) -> List[str]:
        return self._field_resolver.get_fields(
            self.get_compiled_schema(), self.get_resource_type(), self.get_default_fields(), self.fixed,
        )

    def should_include_counts_field(self) -> bool:
        return self._field_resolver.should_include_counts_field(self.get_resource_type(), self.get_default_fields())

    # ----- projection -----
    def resolve(self, request: Any = None) -> Dict[str, Any]:
        resource_type = self.get_resource_type()
        schema = self.get_compiled_schema()
        fields = self.get_fields()
        data: Dict[str, Any] = {TYPE_FIELD: resource_type}
        for key in fields:
            if key in (TYPE_FIELD, COUNTS_FIELD):
                continue
            definition = schema.get_field(key) or _PROPERTY_DEFINITION
            edges = self._edges
            if definition.relation:
                edge = (type(self), definition.relation)
                if edge in edges:
                    continue
                edges = edges | {edge}
            value = self._value_resolver.resolve_field_value(key, definition, self, request)
            if value is MISSING:
                continue
            data[key] = self._to_plain(value, request, edges)
        if self.should_include_counts_field():
            data[COUNTS_FIELD] = self._value_resolver.resolve_counts_payload(
                self, schema, resource_type, request, self.query.get_counts(resource_type),
            )
        strategy = self.field_ordering_strategy or get_config().field_ordering_strategy
        return order_resolved_fields(data, strategy, [TYPE_FIELD, *fields, COUNTS_FIELD])

    def _to_plain(self, value: Any, request: Any, edges: frozenset) -> Any:
        if isinstance(value, (ApiResource, ApiResourceCollection, PolymorphicResource)):
            if value._query is None and self._query is not None:
                value.bind_query(self._query)
            value._edges = edges
            return value.resolve(request)
        if isinstance(value, list):
            return [self._to_plain(item, request, edges) for item in value]
        return value

    def bind_query(self, query: Optional[ApiQuery]) -> "ApiResource":
        self._query = query
        self._field_resolver._query = query
        return self


class ApiResourceCollection:
    """A list of records projected through one resource class."""

    def __init__(self, records: Iterable[Any], resource_cls: type, *, fields: Optional[Sequence[str]] = None,
                 query: Optional[ApiQuery] = None, total: Optional[int] = None):
        self.records = list(records or [])
        self.resource_cls = resource_cls
        self.fields = list(fields) if fields is not None else None
        self.total = total
        self._query = query
        self._edges: frozenset = frozenset()

    def with_fields(self, fields: Optional[Sequence[str]] = None) -> "ApiResourceCollection":
        self.fields = list(fields) if fields is not None else None
        return self

    def bind_query(self, query: Optional[ApiQuery]) -> "ApiResourceCollection":
        self._query = query
        return self

    def __iter__(self):
        for record in self.records:
            item = self.resource_cls(record, fields=self.fields, query=self._query)
            item._edges = self._edges
            yield item

    def __len__(self) -> int:
        return len(self.records)

    def resolve(self, request: Any = None) -> List[Dict[str, Any]]:
        return [item.resolve(request) for item in self]

    def pagination_meta(self) -> Dict[str, Any]:
        """``{total, count, continue}`` when the total row count is known, else ``{}``."""
        if self.total is None:
            return {}
        query = self._query if self._query is not None else current_query()
        limit = query.get_limit()
        page = query.get_page()
        last_page = max(1, math.ceil(self.total / limit)) if limit else 1
        return {
            'total': self.total,
            'count': len(self.records),
            'continue': page < last_page,
        }


class PolymorphicResource:
    """Projects records of mixed model classes through their mapped resources."""

    def __init__(self, resource: Any, *, fields: Optional[Sequence[str]] = None, query: Optional[ApiQuery] = None):
        self.resource = resource
        self.fields = list(fields) if fields is not None else None
        self._query = query
        self._edges: frozenset = frozenset()

    @classmethod
    def collection(cls, records: Iterable[Any], *, fields: Optional[Sequence[str]] = None,
                   query: Optional[ApiQuery] = None, total: Optional[int] = None) -> ApiResourceCollection:
        return ApiResourceCollection(records, cls, fields=fields, query=query, total=total)

    def with_fields(self, fields: Optional[Sequence[str]] = None) -> "PolymorphicResource":
        self.fields = list(fields) if fields is not None else None
        return self

    def bind_query(self, query: Optional[ApiQuery]) -> "PolymorphicResource":
        self._query = query
        return self

    def map_resource(self) -> ApiResource:
        model = type(self.resource)
        resource_cls = resource_for_model(model)
        if resource_cls is None:
            raise ConfigurationError(f"Resource not found for: {model.__module__}.{model.__qualname__}")
        projector = resource_cls(self.resource, fields=self.fields, query=self._query)
        projector._edges = self._edges
        return projector

    def resolve(self, request: Any = None) -> Dict[str, Any]:
        projector = self.map_resource()
        data = projector.resolve(request)
        return {TYPE_FIELD: projector.get_resource_type(), **{k: v for k, v in data.items() if k != TYPE_FIELD}}


__all__ = ['ApiResource', 'ApiResourceCollection', 'PolymorphicResource', 'TYPE_FIELD']
