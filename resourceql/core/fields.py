from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

# Raw declaration keys understood by the schema compiler
DECLARATION_KEYS = (
    'accessor', 'compute', 'relation', 'resource', 'fields', 'constraint',
    'extras', 'guards', 'transformers', 'metric', 'key', 'default',
)

COUNT_PREFIX = '__count__:'


class Definition:
    """Base class for schema declarations placed in ``ApiResource.schema()``.

    Users normally build definitions with the factories :func:`field`,
    :func:`accessor`, :func:`compute`, :func:`relation` and :func:`count`.
    Every definition carries guards (visibility predicates), transformers
    (value post-processors) and extra eager-load paths, and converts itself to
    a normalized ``{key: declaration}`` mapping consumed by the compiler.
    """

    def __init__(self, name: str, alias: Optional[str] = None):
        self.name = name
        self._alias = alias
        self._guards: List[Callable[..., Any]] = []
        self._transformers: List[Callable[..., Any]] = []
        self._extras: List[str] = []

    @property
    def key(self) -> str:
        return self._alias or self.name

    def alias(self, alias: str):
        self._alias = alias
        return self

    def guard(self, guard: Callable[..., Any]):
        """Add a guard ``guard(resource, request)``; returning ``False`` hides the value."""
        self._guards.append(guard)
        return self

    def transform(self, transformer: Callable[..., Any]):
        """Add a transformer ``transformer(resource, value) -> value``."""
        self._transformers.append(transformer)
        return self

    def extras(self, *paths: str):
        """Extra relation paths to preload whenever this field is selected."""
        for path in paths:
            if path and path not in self._extras:
                self._extras.append(path)
        return self

    def _common(self) -> Dict[str, Any]:
        return {
            'extras': list(self._extras) or None,
            'guards': list(self._guards) or None,
            'transformers': list(self._transformers) or None,
        }

    def to_dict(self) -> Dict[str, Dict[str, Any]]:  # pragma: no cover - abstract
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key!r})"


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


class FieldDefinition(Definition):
    def __init__(self, name: str, *, accessor: Any = None, compute: Any = None, alias: Optional[str] = None):
        super().__init__(name, alias)
        self._accessor = accessor
        self._compute = compute

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {self.key: _compact({'accessor': self._accessor, 'compute': self._compute, **self._common()})}


class RelationDefinition(Definition):
    def __init__(self, name: str, target: Any = None, *, alias: Optional[str] = None):
        super().__init__(name, alias)
        self._resource: Any = None
        self._accessor: Any = None
        self._fields: Optional[List[str]] = None
        self._constraint: Optional[Callable[..., Any]] = None
        if isinstance(target, type):
            self._resource = target
        elif target is not None:
            self._accessor = target

    def fields(self, fields: Sequence[str]):
        """Explicit child fields used when projecting and planning the relation."""
        self._fields = list(dict.fromkeys(fields))
        return self

    def constrain(self, constraint: Callable[..., Any]):
        """Scope the preload: ``constraint(related_model) -> SQL criterion``."""
        self._constraint = constraint
        return self

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {self.key: _compact({
            'relation': self.name,
            'resource': self._resource,
            'accessor': self._accessor,
            'fields': self._fields,
            'constraint': self._constraint,
            **self._common(),
        })}


class CountDefinition(Definition):
    def __init__(self, relation: str, *, alias: Optional[str] = None):
        super().__init__(relation, alias)
        self._constraint: Optional[Callable[..., Any]] = None
        self._default = False

    def as_(self, alias: str):
        return self.alias(alias)

    def constrain(self, constraint: Callable[..., Any]):
        self._constraint = constraint
        return self

    def default(self):
        """Include this count when counts are requested without naming any."""
        self._default = True
        return self

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        # prefixed so a count never replaces the relation field it counts
        return {f"{COUNT_PREFIX}{self.key}": _compact({
            'metric': 'count',
            'key': self.key,
            'relation': self.name,
            'constraint': self._constraint,
            'default': True if self._default else None,
            **self._common(),
        })}


def field(name: str, *, alias: Optional[str] = None) -> FieldDefinition:
    """Declare a scalar field read straight off the record.

    Example:
        class UserResource(ApiResource):
            @classmethod
            def schema(cls):
                return field_set(field('id'), field('name'), field('email').guard(is_admin))
    """
    return FieldDefinition(name, alias=alias)


def accessor(name: str, path_or_callable: Union[str, Callable[..., Any]], *, alias: Optional[str] = None) -> FieldDefinition:
    """Declare a field read through a dotted path or a callable.

    Args:
        name: Output key.
        path_or_callable: ``'organization.name'`` style path into the record, or
            ``fn(resource, request)``.
    """
    return FieldDefinition(name, accessor=path_or_callable, alias=alias)


def compute(name: str, method: Union[str, Callable[..., Any]], *, alias: Optional[str] = None) -> FieldDefinition:
    """Declare a computed field.

    ``method`` is either the name of a method on the resource class (called as
    ``resource.method(request)``) or a callable ``fn(resource, request)``.
    """
    return FieldDefinition(name, compute=method, alias=alias)


def relation(name: str, target: Any = None, *, alias: Optional[str] = None) -> RelationDefinition:
    """Declare a relation field.

    Args:
        name: Relationship attribute on the model.
        target: An ``ApiResource`` subclass to wrap the related value with, or a
            string path/callable applied to the related value instead.
        alias: Output key when it differs from the relationship name.

    Examples:
        relation('organization', OrganizationResource)
        relation('organization', 'name', alias='organization_name')
        relation('posts', PostResource).fields(['id', 'title']).constrain(lambda P: P.published.is_(True))
    """
    return RelationDefinition(name, target, alias=alias)


def count(relation_name: str, *, alias: Optional[str] = None) -> CountDefinition:
    """Declare a count metric exposed under the synthetic ``counts`` field."""
    return CountDefinition(relation_name, alias=alias)


def field_set(*definitions: Union[Definition, Mapping[str, Mapping[str, Any]]]) -> Dict[str, Dict[str, Any]]:
    """Merge definitions into one ordered declaration map.

    Later definitions overwrite earlier ones with the same key, which lets
    resources compose shared field sets and override individual entries.
    """
    merged: Dict[str, Dict[str, Any]] = {}
    for definition in definitions:
        data = definition.to_dict() if isinstance(definition, Definition) else definition
        for key, value in (data or {}).items():
            merged[key] = dict(value or {})
    return merged


__all__ = [
    'Definition', 'FieldDefinition', 'RelationDefinition', 'CountDefinition',
    'field', 'accessor', 'compute', 'relation', 'count', 'field_set',
    'COUNT_PREFIX', 'DECLARATION_KEYS',
]
