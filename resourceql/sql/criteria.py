"""Interpret client filter/order/limit parameters as SQLAlchemy criteria.

Filter grammar (JSON)::

    {"name": "Alice"}                              bare value is $eq
    {"name": {"$like": "Ali"}}                     LIKE '%Ali%'
    {"age": {"$between": [18, 30]}}
    {"deleted_at": {"$null": true}}
    {"roles": {"$contains": "admin,editor"}}       any of the members
    {"$or": {"status": "active", "email": {"$like": "@acme"}}}
    {"$has": ["posts"]}   {"$hasnt": {"posts": {"published": true}}}
    {"posts": {"title": {"$like": "News"}}}        implicit $has with conditions

Clauses inside a group are folded left to right: each clause is AND-ed or
OR-ed onto the clauses before it depending on the group's connective, the way
chained ``where``/``orWhere`` calls compose. Unknown or excluded columns,
malformed ``$between`` bounds and unusable ``$contains`` payloads produce no
clause.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from sqlalchemy import and_, inspect as sa_inspect, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.schema import Column

from ..adapters import get_adapter
from ..config import get_config
from ..core import filters as ops
from ..core.selection import FieldResolver
from ..query import ApiQuery, current_query
from ..registry import resource_for_model
from .query import ResourceQuery

logger = logging.getLogger(__name__)

ORDER_BY_RANDOM = 'random'
DIRECTIONS = ('asc', 'desc')

_SEARCHABLE_CACHE: Dict[Tuple[Any, FrozenSet[str]], FrozenSet[str]] = {}


class _Group:
    """Clauses of one where-group, folded left to right."""

    def __init__(self):
        self.clauses: List[Tuple[str, Any]] = []

    def add(self, connective: str, clause: Any) -> None:
        if clause is not None:
            self.clauses.append((connective, clause))

    def compile(self):
        if not self.clauses:
            return None
        _, expr = self.clauses[0]
        for connective, clause in self.clauses[1:]:
            expr = or_(expr, clause) if connective == ops.OR else and_(expr, clause)
        return expr


def _connective(last_logical_operator: Optional[str]) -> str:
    return ops.OR if last_logical_operator == ops.OR else ops.AND


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, (str, Mapping, list, tuple)) and len(value) == 0)


def clear_searchable_cache() -> None:
    _SEARCHABLE_CACHE.clear()


class ApiCriteria:
    """Applies a parsed :class:`ApiQuery` (filters, order, limit, preloads) to a query.

    Example:
        query = ApiCriteria(api_query).apply(User)
        users = await query.all(session)
    """

    def __init__(self, query: Optional[ApiQuery] = None, *, dialect: Optional[str] = None):
        self._query = query
        self.dialect = dialect
        self.adapter = get_adapter(dialect or '')
        self._relations: Dict[Tuple[Any, str], bool] = {}

    @property
    def query(self) -> ApiQuery:
        return self._query if self._query is not None else current_query()

    def apply(self, target: Any, filters: Any = None, order: Any = None, limit: Optional[int] = None,
              fields: Optional[Sequence[str]] = None) -> ResourceQuery:
        query = ResourceQuery.coerce(target, dialect=self.dialect)
        if query.dialect and query.dialect != self.dialect:
            self.adapter = get_adapter(query.dialect)
        api_query = self.query
        self.apply_filters(query, filters if filters is not None else api_query.get_filters())
        if get_config().enable_eager_loading:
            self.apply_eager_loading(query, fields)
        self.apply_limit(query, limit if limit is not None else api_query.get_limit())
        self.apply_order(query, order if order is not None else api_query.get_order())
        return query

    # ----- filters -----
    def apply_filters(self, query: ResourceQuery, filters: Any) -> ResourceQuery:
        group = _Group()
        self._apply_filters(query.model, group, filters, None, None)
        return query.where(group.compile())

    def build_filter_clause(self, model: Any, filters: Any):
        """The criterion ``filters`` describe on ``model`` (``None`` when empty)."""
        group = _Group()
        self._apply_filters(model, group, filters, None, None)
        return group.compile()

    def _apply_filters(self, model, group: _Group, filters: Any, field: Optional[str], last: Optional[str]) -> None:
        if _is_blank(filters):
            return
        if isinstance(filters, (list, tuple)):
            self._apply_condition(model, group, '$in', filters, field, last)
            return
        if not isinstance(filters, Mapping):
            self._apply_simple(model, group, field, filters, last)
            return
        for key, value in filters.items():
            self._apply_entry(model, group, key, value, field, last)

    def _apply_entry(self, model, group: _Group, key: str, value: Any, field: Optional[str], last: Optional[str]) -> None:
        if key in ops.RELATIONAL_OPERATORS:
            self._apply_has(model, group, value, key, last)
        elif ops.is_condition_operator(key):
            self._apply_condition(model, group, key, value, field, last)
        elif ops.is_logical_operator(key):
            self._apply_logical(model, group, key, value, last)
        elif self.is_relation(model, key):
            self._apply_relation_filter(model, group, key, value, last)
        else:
            self._apply_filters(model, group, value, key, last)

    def _apply_logical(self, model, group: _Group, operator: str, value: Any, last: Optional[str]) -> None:
        if not isinstance(value, Mapping):
            logger.debug("Ignoring %s group that is not an object: %r", operator, value)
            return
        inner = _Group()
        for key, sub_value in value.items():
            self._apply_entry(model, inner, key, sub_value, None, operator)
        # an $or group directly inside an $and context is AND-ed as a whole
        connective = ops.AND if (last == ops.AND and operator == ops.OR) else operator
        group.add(connective, inner.compile())

    def _apply_simple(self, model, group: _Group, column: Optional[str], value: Any, last: Optional[str]) -> None:
        col = self._column(model, column)
        if col is not None:
            group.add(_connective(last), col == value)

    def _apply_condition(self, model, group: _Group, operator: str, value: Any, column: Optional[str], last: Optional[str]) -> None:
        col = self._column(model, column)
        if col is None:
            return
        if operator == ops.CONTAINS:
            clause = self._json_contains(col, value)
        else:
            clause = ops.OPERATOR_REGISTRY[operator](col, value)
            if clause is None:
                logger.debug("Dropping %s on %s: unusable value %r", operator, column, value)
        group.add(_connective(last), clause)

    def _json_contains(self, col, value: Any):
        try:
            if isinstance(value, (list, tuple, dict)):
                return self.adapter.json_contains(col, value)
            # JSON arrays, objects and quoted strings are decoded; bare literals stay text
            if isinstance(value, str) and value.strip()[:1] in ('[', '{', '"'):
                return self.adapter.json_contains(col, json.loads(value))
            if isinstance(value, str) and ',' in value:
                items = [item.strip() for item in value.split(',') if item.strip()]
                if not items:
                    return None
                return and_(*[self.adapter.json_contains(col, item) for item in items])
            return self.adapter.json_contains(col, value)
        except (ValueError, TypeError, SQLAlchemyError) as e:
            logger.debug("Dropping $contains on %s: %s", col, e)
            return None

    # ----- relations -----
    def is_relation(self, model: Any, key: Any) -> bool:
        if not isinstance(key, str):
            return False
        cache_key = (model, key)
        if cache_key not in self._relations:
            try:
                self._relations[cache_key] = key in sa_inspect(model).relationships
            except Exception:
                self._relations[cache_key] = False
        return self._relations[cache_key]

    def _apply_relation_filter(self, model, group: _Group, relation: str, filters: Any, last: Optional[str]) -> None:
        group.add(_connective(last), self._exists(model, relation, filters))

    def _apply_has(self, model, group: _Group, relations: Any, operator: str, last: Optional[str]) -> None:
        connective = ops.OR if (last == ops.OR and operator == ops.HAS) else ops.AND
        if isinstance(relations, str):
            entries = [(name.strip(), None) for name in relations.split(',') if name.strip()]
        elif isinstance(relations, Mapping):
            entries = list(relations.items())
        elif isinstance(relations, (list, tuple)):
            entries = [(name, None) for name in relations]
        else:
            return
        for relation, nested in entries:
            if not self.is_relation(model, relation):
                logger.debug("Ignoring %s on %r: not a relation of %s", operator, relation, model.__name__)
                continue
            clause = self._exists(model, relation, nested)
            group.add(connective, ~clause if operator == ops.HAS_NOT else clause)

    def _exists(self, model, relation: str, filters: Any):
        prop = sa_inspect(model).relationships[relation]
        target = prop.mapper.class_
        criterion = self._relation_criteria(target, filters)
        attr = getattr(model, relation)
        if prop.uselist:
            return attr.any(criterion) if criterion is not None else attr.any()
        return attr.has(criterion) if criterion is not None else attr.has()

    def _relation_criteria(self, target, filters: Any):
        if not isinstance(filters, Mapping) or not filters:
            return None
        group = _Group()
        if ops.OR in filters and isinstance(filters[ops.OR], Mapping):
            inner = _Group()
            for key, value in filters[ops.OR].items():
                self._apply_entry(target, inner, key, value, None, ops.OR)
            group.add(ops.AND, inner.compile())
        else:
            for key, value in filters.items():
                self._apply_entry(target, group, key, value, None, None)
        return group.compile()

    # ----- columns -----
    def searchable_columns(self, model: Any) -> FrozenSet[str]:
        exclusions = frozenset(get_config().searchable_exclusions or ())
        cache_key = (model, exclusions)
        cached = _SEARCHABLE_CACHE.get(cache_key)
        if cached is None:
            cached = _SEARCHABLE_CACHE[cache_key] = self._resolve_searchable_columns(model, exclusions)
        return cached

    def _resolve_searchable_columns(self, model: Any, exclusions: FrozenSet[str]) -> FrozenSet[str]:
        mapper = sa_inspect(model)
        columns = {
            prop.key for prop in mapper.column_attrs
            if prop.columns and all(isinstance(c, Column) for c in prop.columns)
        }
        table = getattr(getattr(model, '__table__', None), 'name', None)
        idents = {table, self.adapter.table_ident(model)} - {None, ''}
        excluded = set()
        for exclusion in exclusions:
            owner, dot, column = exclusion.rpartition('.')
            if not dot:
                excluded.add(exclusion)
            elif owner in idents:
                excluded.add(column)
        return frozenset(columns - excluded)

    def _column(self, model: Any, column: Optional[str]):
        if not column or column not in self.searchable_columns(model):
            if column:
                logger.debug("Dropping clause on non-searchable column %r of %s", column, model.__name__)
            return None
        return getattr(model, column)

    # ----- eager loading, limit, order -----
    def apply_eager_loading(self, query: ResourceQuery, fields: Optional[Sequence[str]] = None) -> ResourceQuery:
        resource_cls = resource_for_model(query.model)
        if resource_cls is None:
            return query
        api_query = self.query
        resolver = FieldResolver(api_query)
        if fields is not None:
            resolver.with_fields(fields)
        resource_type = resource_cls.get_resource_type()
        defaults = resource_cls.get_default_fields()
        selected = resolver.get_fields(resource_cls.get_compiled_schema(), resource_type, defaults, resource_cls.fixed)
        query.with_(resource_cls.eager_load_map_for(selected, query=api_query))
        if resolver.should_include_counts_field(resource_type, defaults):
            query.with_count(resource_cls.eager_load_counts_for(api_query.get_counts(resource_type)))
        return query

    def apply_limit(self, query: ResourceQuery, limit: Any) -> ResourceQuery:
        if limit is None:
            return query
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            logger.debug("Ignoring invalid limit %r", limit)
            return query
        return query.limit(limit)

    def apply_order(self, query: ResourceQuery, order: Any) -> ResourceQuery:
        for column, direction in self._order_pairs(order):
            if column == ORDER_BY_RANDOM:
                query.order_by(self.adapter.random())
                continue
            if direction not in DIRECTIONS or column not in self.searchable_columns(query.model):
                logger.debug("Skipping order clause %s:%s", column, direction)
                continue
            col = getattr(query.model, column)
            query.order_by(col.desc() if direction == 'desc' else col.asc())
        return query

    @staticmethod
    def _order_pairs(order: Any) -> List[Tuple[str, str]]:
        if not order:
            return []
        if isinstance(order, Mapping):
            return [(str(c).strip(), str(d or 'asc').strip().lower()) for c, d in order.items()]
        pairs = []
        for part in str(order).split(','):
            column, _, direction = part.strip().partition(':')
            if column.strip():
                pairs.append((column.strip(), (direction.strip() or 'asc').lower()))
        return pairs


__all__ = ['ApiCriteria', 'ORDER_BY_RANDOM', 'clear_searchable_cache']
