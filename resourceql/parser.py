"""Turn raw query-string parameters into an :class:`ApiQuery`.

Accepted shapes (any ``Mapping``; multi-dicts should be flattened first)::

    fields=id,name                 -> selection without a resource type
    fields[users]=id,name          -> flat bracket keys
    {"fields": {"users": "id,name"}} -> nested mapping
    counts[users]=posts
    filters={"name": {"$like": "Ali"}}
    order=created_at:desc,id
    limit=25&page=2
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from .errors import InvalidQueryError
from .query import ApiQuery

logger = logging.getLogger(__name__)

_BRACKET_KEY = re.compile(r'^(?P<option>[A-Za-z_]+)\[(?P<resource>[^\]]*)\]$')
_SELECTION_OPTIONS = ('fields', 'counts')


class ApiQueryParser:
    """Parse and validate the API query parameters of one request."""

    def parse(self, params: Mapping[str, Any]) -> ApiQuery:
        params = self._collapse_bracket_keys(params or {})
        self._validate(params)
        query = ApiQuery()
        if 'fields' in params:
            query.fields = self._parse_selection(params['fields'])
        if 'counts' in params:
            query.counts = self._parse_selection(params['counts'])
        if 'filters' in params:
            query.filters = self._parse_filters(params['filters'])
        if 'order' in params:
            query.order = self._parse_order(params['order'])
        if params.get('limit') not in (None, ''):
            query.limit = int(str(params['limit']).strip())
        if params.get('page') not in (None, ''):
            query.page = int(str(params['page']).strip())
        return query

    # ----- normalisation -----
    @staticmethod
    def _collapse_bracket_keys(params: Mapping[str, Any]) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, value in params.items():
            m = _BRACKET_KEY.match(str(key))
            if m and m.group('option') in _SELECTION_OPTIONS:
                bucket = out.setdefault(m.group('option'), {})
                if isinstance(bucket, dict):
                    bucket[m.group('resource')] = value
                continue
            out[str(key)] = value
        return out

    def _parse_selection(self, value: Any) -> Dict[str, List[str]]:
        """Normalise a fields/counts selection to ``{resource_type: [keys]}``.

        A selection sent without a resource type is stored under ``""``.
        """
        if isinstance(value, Mapping):
            return {
                str(resource): self._split(v)
                for resource, v in value.items()
                if isinstance(resource, str)
            }
        return {'': self._split(value)}

    @staticmethod
    def _split(value: Any) -> List[str]:
        if isinstance(value, (list, tuple)):
            parts = [str(v) for v in value if isinstance(v, (str, int, float))]
            value = ','.join(parts)
        if not isinstance(value, (str, int, float)):
            return []
        return [part.strip() for part in str(value).split(',') if part.strip()]

    @staticmethod
    def _parse_filters(value: Any) -> Dict[str, Any]:
        if isinstance(value, Mapping):
            return dict(value)
        if not isinstance(value, (str, bytes)):
            return {}
        try:
            parsed = json.loads(value)
        except (TypeError, ValueError) as e:
            logger.warning("Ignoring unparsable filters %r: %s", value, e)
            return {}
        if not isinstance(parsed, dict):
            logger.warning("Ignoring filters that are not a JSON object: %r", value)
            return {}
        return parsed

    @staticmethod
    def _parse_order(value: Any) -> Dict[str, str]:
        if isinstance(value, Mapping):
            return {str(k).strip(): str(v or 'asc').strip().lower() for k, v in value.items() if str(k).strip()}
        order: Dict[str, str] = {}
        for part in str(value or '').split(','):
            part = part.strip()
            if not part:
                continue
            column, _, direction = part.partition(':')
            column = column.strip()
            if column:
                order[column] = (direction.strip() or 'asc').lower()
        return order

    # ----- validation -----
    def _validate(self, params: Mapping[str, Any]) -> None:
        errors: Dict[str, str] = {}
        for key, minimum in (('page', 1), ('limit', 0)):
            raw = params.get(key)
            if raw in (None, ''):
                continue
            if not self._is_int_at_least(raw, minimum):
                errors[key] = f"The {key} must be an integer of at least {minimum}."
        for key in _SELECTION_OPTIONS:
            raw = params.get(key)
            if raw is None:
                continue
            if isinstance(raw, Mapping):
                bad = [r for r, v in raw.items() if not isinstance(v, (str, list, tuple))]
                if bad:
                    errors[key] = f"The {key} selection for {', '.join(map(str, bad))} must be a string."
            elif not isinstance(raw, (str, list, tuple)):
                errors[key] = f"The {key} must be a string."
        order = params.get('order')
        if order is not None and not isinstance(order, (str, Mapping)):
            errors['order'] = "The order must be a string."
        if errors:
            raise InvalidQueryError("Invalid query parameters", errors=errors)

    @staticmethod
    def _is_int_at_least(raw: Any, minimum: int) -> bool:
        if isinstance(raw, bool):
            return False
        try:
            value = int(str(raw).strip())
        except (TypeError, ValueError):
            return False
        return value >= minimum


def parse_query(params: Mapping[str, Any]) -> ApiQuery:
    return ApiQueryParser().parse(params)


__all__ = ['ApiQueryParser', 'parse_query']
