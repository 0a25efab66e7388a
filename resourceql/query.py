"""Parsed request parameters (the request context consumed by the core).

An :class:`ApiQuery` holds what a client asked for: field and count
selections per resource type, the filter tree, ordering, limit and page. The
query for the request being served is kept in a context variable so the
projector, planner and criteria can fall back to it without explicit
plumbing (the role a request-scoped facade plays in web frameworks).
"""
from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from .config import get_config


@dataclass
class ApiQuery:
    fields: Dict[str, List[str]] = field(default_factory=dict)
    counts: Dict[str, List[str]] = field(default_factory=dict)
    filters: Dict[str, Any] = field(default_factory=dict)
    order: Dict[str, str] = field(default_factory=dict)
    limit: Optional[int] = None
    page: Optional[int] = None

    def get_fields(self, resource_type: Optional[str] = None) -> Optional[List[str]]:
        """Requested field keys for ``resource_type`` (``None`` when not requested)."""
        if resource_type is None:
            return [f for values in self.fields.values() for f in values]
        requested = self.fields.get(resource_type)
        if requested is None:
            return None
        return [f.strip() for f in requested if isinstance(f, str) and f.strip()]

    def get_counts(self, resource_type: Optional[str] = None) -> Optional[List[str]]:
        if resource_type is None:
            return [c for values in self.counts.values() for c in values]
        requested = self.counts.get(resource_type)
        if requested is None:
            return None
        return [c.strip() for c in requested if isinstance(c, str) and c.strip()]

    def get_filters(self) -> Dict[str, Any]:
        return self.filters or {}

    def get_order(self) -> Dict[str, str]:
        return self.order or {}

    def get_limit(self) -> Optional[int]:
        if self.limit is not None and self.limit >= 0:
            return self.limit
        return get_config().default_limit

    def get_page(self) -> int:
        return self.page if self.page and self.page > 0 else 1


_CURRENT_QUERY: ContextVar[Optional[ApiQuery]] = ContextVar('resourceql_current_query', default=None)


def current_query() -> ApiQuery:
    """Return the query bound to the current context, or an empty one."""
    query = _CURRENT_QUERY.get()
    return query if query is not None else ApiQuery()


def set_current_query(query: Optional[ApiQuery]):
    """Bind ``query`` to the current context and return the reset token."""
    return _CURRENT_QUERY.set(query)


@contextmanager
def use_query(query: ApiQuery) -> Iterator[ApiQuery]:
    """Bind ``query`` for the duration of a ``with`` block.

    Example:
        with use_query(ApiQueryParser().parse(request.query_params)):
            payload = UserResource(user).resolve()
    """
    token = _CURRENT_QUERY.set(query)
    try:
        yield query
    finally:
        _CURRENT_QUERY.reset(token)


__all__ = ['ApiQuery', 'current_query', 'set_current_query', 'use_query']
