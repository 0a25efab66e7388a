from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from sqlalchemy import func, inspect as sa_inspect, select
from sqlalchemy.sql import Select

from .loading import count_columns, loader_options

logger = logging.getLogger(__name__)

Plan = Mapping[str, Optional[Callable[..., Any]]]


def _merge_plan(target: Dict[str, Any], paths: Union[str, Iterable[str], Plan, None]) -> None:
    if not paths:
        return
    if isinstance(paths, str):
        paths = [paths]
    items = paths.items() if isinstance(paths, Mapping) else ((p, None) for p in paths)
    for path, constraint in items:
        if not path:
            continue
        if constraint is not None or path not in target:
            target[path] = constraint


class ResourceQuery:
    """A ``Select`` over one model plus the preloads and counts to attach.

    The criteria interpreter narrows ``statement`` through :meth:`where`,
    :meth:`order_by` and :meth:`limit`, and registers eager-load paths
    (``with_``) and counted relations (``with_count``). :meth:`build` turns
    all of it into a single executable statement; :meth:`all` and
    :meth:`first` run it on an ``AsyncSession`` and copy the counts onto the
    returned records as ``<relation>_count`` attributes.
    """

    def __init__(self, model: Any, statement: Optional[Select] = None, *, dialect: Optional[str] = None):
        self.model = model
        self.statement = statement if statement is not None else select(model)
        self.dialect = dialect
        self._eager: Dict[str, Optional[Callable[..., Any]]] = {}
        self._counts: Dict[str, Optional[Callable[..., Any]]] = {}

    @classmethod
    def coerce(cls, target: Any, *, dialect: Optional[str] = None) -> "ResourceQuery":
        """Accept a ``ResourceQuery``, a mapped class or a ``Select`` over one."""
        if isinstance(target, ResourceQuery):
            if dialect and not target.dialect:
                target.dialect = dialect
            return target
        if isinstance(target, Select):
            descriptions = target.column_descriptions
            entity = descriptions[0].get('entity') if descriptions else None
            if entity is None:
                raise TypeError("Cannot determine the model of a Select without an entity")
            return cls(entity, target, dialect=dialect)
        sa_inspect(target)  # raises NoInspectionAvailable for non-mapped targets
        return cls(target, dialect=dialect)

    # ----- narrowing -----
    def where(self, *criteria: Any) -> "ResourceQuery":
        criteria = [c for c in criteria if c is not None]
        if criteria:
            self.statement = self.statement.where(*criteria)
        return self

    def order_by(self, *clauses: Any) -> "ResourceQuery":
        self.statement = self.statement.order_by(*clauses)
        return self

    def limit(self, limit: Optional[int]) -> "ResourceQuery":
        self.statement = self.statement.limit(limit)
        return self

    def offset(self, offset: Optional[int]) -> "ResourceQuery":
        self.statement = self.statement.offset(offset)
        return self

    # ----- preloads -----
    def with_(self, paths: Union[str, Iterable[str], Plan, None]) -> "ResourceQuery":
        """Register eager-load paths; a scoped entry replaces a plain one."""
        _merge_plan(self._eager, paths)
        return self

    def with_count(self, relations: Union[str, Iterable[str], Plan, None]) -> "ResourceQuery":
        _merge_plan(self._counts, relations)
        return self

    @property
    def eager_loads(self) -> Dict[str, Optional[Callable[..., Any]]]:
        return dict(self._eager)

    @property
    def counts(self) -> Dict[str, Optional[Callable[..., Any]]]:
        return dict(self._counts)

    # ----- execution -----
    def build(self) -> Select:
        sel = self.statement
        options = loader_options(self.model, self._eager)
        if options:
            sel = sel.options(*options)
        for _, column in count_columns(self.model, self._counts):
            sel = sel.add_columns(column)
        return sel

    async def all(self, session) -> List[Any]:
        return await self._execute(session, self.build())

    async def first(self, session) -> Optional[Any]:
        records = await self._execute(session, self.build().limit(1))
        return records[0] if records else None

    async def count(self, session) -> int:
        """Total rows matching the filters, ignoring order and limit."""
        inner = self.statement.order_by(None).limit(None).offset(None).subquery()
        return int((await session.execute(select(func.count()).select_from(inner))).scalar_one())

    async def _execute(self, session, sel: Select) -> List[Any]:
        result = await session.execute(sel)
        relations = [relation for relation, _ in count_columns(self.model, self._counts)]
        if not relations:
            return list(result.scalars().all())
        records = []
        for row in result.all():
            record = row[0]
            for index, relation in enumerate(relations, start=1):
                setattr(record, f"{relation}_count", int(row[index] or 0))
            records.append(record)
        return records


__all__ = ['ResourceQuery']
