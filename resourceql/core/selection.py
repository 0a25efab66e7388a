from __future__ import annotations

from typing import List, Optional, Sequence

from ..config import get_config
from ..query import ApiQuery, current_query
from .compiled import CompiledSchema

ALL_FIELDS_TOKEN = ':all'
COUNTS_FIELD = 'counts'


def _dedupe(keys) -> List[str]:
    return list(dict.fromkeys(k for k in keys if k))


class FieldResolver:
    """Decides which field keys a projection responds with.

    Holds the per-projection selection state: an explicit override
    (``with_fields``), exclusions (``without_fields``) and the all-fields
    flag. Requested fields come from the bound :class:`ApiQuery`, falling back
    to the query of the current context.
    """

    def __init__(self, query: Optional[ApiQuery] = None):
        self.fields: Optional[List[str]] = None
        self.excluded_fields: Optional[List[str]] = None
        self.all = False
        self._query = query

    @property
    def query(self) -> ApiQuery:
        return self._query if self._query is not None else current_query()

    def with_fields(self, fields: Optional[Sequence[str]]) -> None:
        self.fields = list(fields) if fields is not None else None

    def without_fields(self, fields: Optional[Sequence[str]]) -> None:
        self.excluded_fields = list(fields) if fields is not None else None

    def with_all(self) -> None:
        self.all = True

    def get_fields(
        self,
        schema: CompiledSchema,
        resource_type: str,
        default_fields: Sequence[str],
        fixed_fields: Sequence[str] = (),
    ) -> List[str]:
        if self.fields is not None:
            selected = list(self.fields)
        elif self.should_respond_with_all(resource_type):
            selected = schema.get_field_keys()
        else:
            requested = self.query.get_fields(resource_type)
            selected = list(requested) if requested is not None else list(default_fields)
        excluded = set(self.excluded_fields or ())
        selected = [key for key in selected if key not in excluded]
        fixed = list(get_config().fixed_fields) + list(fixed_fields or ())
        return _dedupe(selected + fixed)

    def should_respond_with_all(self, resource_type: str) -> bool:
        return self.all or ALL_FIELDS_TOKEN in (self.query.get_fields(resource_type) or [])

    def should_include_counts_field(self, resource_type: str, default_fields: Sequence[str]) -> bool:
        if COUNTS_FIELD in (self.excluded_fields or ()):
            return False
        requested = self.query.get_fields(resource_type)
        if requested is not None and COUNTS_FIELD in requested:
            return True
        if self.should_respond_with_all(resource_type):
            return True
        return COUNTS_FIELD in default_fields


__all__ = ['FieldResolver', 'ALL_FIELDS_TOKEN', 'COUNTS_FIELD']
