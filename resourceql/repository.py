from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Sequence, Tuple

from sqlalchemy import inspect as sa_inspect

from .query import ApiQuery, current_query
from .sql.criteria import ApiCriteria
from .sql.query import ResourceQuery

logger = logging.getLogger(__name__)


class ApiRepository:
    """Async read repository for one model, driven by the request's :class:`ApiQuery`.

    Example:
        repo = ApiRepository(User, session)
        with use_query(parse_query(params)):
            users = await repo.all()
            payload = UserResource.collection(users).resolve()
    """

    def __init__(self, model: Any, session, *, query: Optional[ApiQuery] = None):
        self.model = model
        self.session = session
        self._query = query
        self._scopes: List[Callable[[ResourceQuery], Any]] = []

    @property
    def query(self) -> ApiQuery:
        return self._query if self._query is not None else current_query()

    @property
    def dialect(self) -> Optional[str]:
        bind = getattr(self.session, 'bind', None)
        dialect = getattr(bind, 'dialect', None)
        return getattr(dialect, 'name', None)

    def add_scope(self, scope: Callable[[ResourceQuery], Any]) -> "ApiRepository":
        self._scopes.append(scope)
        return self

    def scope_by_ids(self, ids: Sequence[Any], column: Optional[str] = None) -> "ApiRepository":
        col = getattr(self.model, column) if column else self._primary_key()
        unique = list(dict.fromkeys(ids))
        return self.add_scope(lambda q: q.where(col.in_(unique)))

    def scope_by_id(self, id: Any, column: Optional[str] = None) -> "ApiRepository":
        return self.scope_by_ids([id], column)

    def new_query(self) -> ResourceQuery:
        query = ResourceQuery(self.model, dialect=self.dialect)
        for scope in self._scopes:
            scope(query)
        return query

    def build_query(self, query: Optional[ApiQuery] = None, *, limit: Optional[int] = None) -> ResourceQuery:
        return ApiCriteria(query if query is not None else self.query, dialect=self.dialect).apply(
            self.new_query(), limit=limit,
        )

    async def all(self, query: Optional[ApiQuery] = None) -> List[Any]:
        try:
            return await self.build_query(query).all(self.session)
        finally:
            self._scopes.clear()

    async def paginate(self, query: Optional[ApiQuery] = None) -> Tuple[List[Any], int]:
        """One page of records plus the total row count."""
        api_query = query if query is not None else self.query
        try:
            built = self.build_query(api_query)
            total = await built.count(self.session)
            limit = api_query.get_limit()
            if limit:
                built.offset((api_query.get_page() - 1) * limit)
            return await built.all(self.session), total
        finally:
            self._scopes.clear()

    async def find(self, id: Any, query: Optional[ApiQuery] = None) -> Optional[Any]:
        pk = self._primary_key()
        try:
            built = ApiCriteria(query if query is not None else self.query, dialect=self.dialect).apply(
                self.new_query().where(pk == id), filters={}, order={},
            )
            return await built.first(self.session)
        finally:
            self._scopes.clear()

    def _primary_key(self):
        mapper = sa_inspect(self.model)
        if len(mapper.primary_key) != 1:
            raise TypeError(f"{self.model.__name__} needs exactly one primary key column")
        return getattr(self.model, mapper.get_property_by_column(mapper.primary_key[0]).key)


__all__ = ['ApiRepository']
