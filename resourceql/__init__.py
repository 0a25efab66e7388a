"""resourceql public API and lightweight lazy exports.

This __init__ avoids importing the SQL layer at import time so that model
modules can import resourceql declarations without pulling in the criteria
interpreter (and, through the registry, the models themselves).

Exposes:
- Declarations: field, accessor, compute, relation, count, field_set
- Projectors: ApiResource, ApiResourceCollection, PolymorphicResource
- Request context: ApiQuery, ApiQueryParser, parse_query, current_query, use_query
- Store layer (lazy): ApiCriteria, ResourceQuery, ApiRepository
- Settings and errors: configure, get_config, reset_config, ResourceQLError, ConfigurationError, InvalidQueryError
"""
from __future__ import annotations

from .config import configure, get_config, reset_config
from .core.fields import accessor, compute, count, field, field_set, relation
from .errors import ConfigurationError, InvalidQueryError, ResourceQLError
from .parser import ApiQueryParser, parse_query
from .query import ApiQuery, current_query, use_query


def __getattr__(name: str):  # PEP 562 lazy exports
    import importlib as _importlib
    if name in {'ApiResource', 'ApiResourceCollection', 'PolymorphicResource'}:
        return getattr(_importlib.import_module(__name__ + '.resources'), name)
    if name == 'ApiCriteria':
        return getattr(_importlib.import_module(__name__ + '.sql.criteria'), name)
    if name == 'ResourceQuery':
        return getattr(_importlib.import_module(__name__ + '.sql.query'), name)
    if name == 'ApiRepository':
        return getattr(_importlib.import_module(__name__ + '.repository'), name)
    if name == 'MISSING':
        return getattr(_importlib.import_module(__name__ + '.core.records'), name)
    raise AttributeError(name)


__all__ = [
    'field', 'accessor', 'compute', 'relation', 'count', 'field_set',
    'ApiResource', 'ApiResourceCollection', 'PolymorphicResource', 'MISSING',
    'ApiQuery', 'ApiQueryParser', 'parse_query', 'current_query', 'use_query',
    'ApiCriteria', 'ResourceQuery', 'ApiRepository',
    'configure', 'get_config', 'reset_config',
    'ResourceQLError', 'ConfigurationError', 'InvalidQueryError',
]
