from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from .compiled import CompiledCountDefinition, CompiledFieldDefinition, CompiledSchema
from .fields import COUNT_PREFIX, DECLARATION_KEYS

logger = logging.getLogger(__name__)


class SchemaCompiler:
    """Compiles raw resource declarations into :class:`CompiledSchema` objects.

    Each resource class is compiled once; the result is cached until
    :meth:`clear_cache` is called. Compilation is deterministic, so two
    threads racing on the first access only waste work and never disagree.
    Pass ``cache=False`` for a compiler that always recompiles.
    """

    def __init__(self, *, cache: bool = True):
        self._cache_enabled = cache
        self._cache: Dict[Any, CompiledSchema] = {}

    def compile(self, resource_cls: Any) -> CompiledSchema:
        cached = self._cache.get(resource_cls)
        if cached is not None:
            return cached
        raw = resource_cls.schema() if hasattr(resource_cls, 'schema') else {}
        compiled = self.build_compiled_schema(raw or {})
        logger.debug("Compiled schema for %s: %d field(s), %d count(s)",
                     getattr(resource_cls, '__name__', resource_cls), len(compiled),
                     len(compiled.get_count_definitions()))
        if self._cache_enabled:
            self._cache[resource_cls] = compiled
        return compiled

    def clear_cache(self) -> None:
        self._cache.clear()

    def is_cached(self, resource_cls: Any) -> bool:
        return resource_cls in self._cache

    # ----- building -----
    @classmethod
    def build_compiled_schema(cls, raw_schema: Mapping[str, Mapping[str, Any]]) -> CompiledSchema:
        fields: Dict[str, CompiledFieldDefinition] = {}
        counts: Dict[str, CompiledCountDefinition] = {}
        for schema_key, definition in raw_schema.items():
            definition = dict(definition or {})
            unknown = set(definition) - set(DECLARATION_KEYS)
            if unknown:
                logger.debug("Ignoring unknown declaration keys %s on %r", sorted(unknown), schema_key)
            if definition.get('metric') == 'count':
                count_def = cls._build_count_definition(schema_key, definition)
                counts[count_def.present_key] = count_def
                continue
            fields[schema_key] = cls._build_field_definition(definition)
        return CompiledSchema.build(fields, counts)

    @staticmethod
    def resolve_count_key(schema_key: str, definition: Mapping[str, Any]) -> str:
        key = definition.get('key')
        if isinstance(key, str):
            return key
        return schema_key[len(COUNT_PREFIX):] if schema_key.startswith(COUNT_PREFIX) else schema_key

    @classmethod
    def _build_count_definition(cls, schema_key: str, definition: Mapping[str, Any]) -> CompiledCountDefinition:
        present_key = cls.resolve_count_key(schema_key, definition)
        relation = definition.get('relation')
        constraint = definition.get('constraint')
        return CompiledCountDefinition(
            present_key=present_key,
            relation=relation if isinstance(relation, str) and relation else present_key,
            constraint=constraint if callable(constraint) else None,
            is_default=bool(definition.get('default', False)),
            guards=_callables(definition.get('guards')),
        )

    @staticmethod
    def _build_field_definition(definition: Mapping[str, Any]) -> CompiledFieldDefinition:
        relations = definition.get('relation')
        if isinstance(relations, (list, tuple)):
            relations = relations[0] if relations else None
        relation = relations if isinstance(relations, str) and relations else None
        resource = definition.get('resource')
        fields = definition.get('fields')
        constraint = definition.get('constraint')
        extras = definition.get('extras') or ()
        if isinstance(extras, str):
            extras = (extras,)
        return CompiledFieldDefinition(
            accessor=definition.get('accessor'),
            compute=definition.get('compute'),
            relation=relation,
            resource=resource if isinstance(resource, type) else None,
            fields=tuple(f for f in fields if isinstance(f, str) and f) if isinstance(fields, (list, tuple)) else None,
            constraint=constraint if callable(constraint) else None,
            extras=tuple(e for e in extras if isinstance(e, str) and e),
            guards=_callables(definition.get('guards')),
            transformers=_callables(definition.get('transformers')),
        )


def _callables(values: Any) -> tuple:
    if not values:
        return ()
    if callable(values):
        return (values,)
    return tuple(v for v in values if callable(v))


_default_compiler = SchemaCompiler()


def get_compiler() -> SchemaCompiler:
    return _default_compiler


def set_compiler(compiler: Optional[SchemaCompiler]) -> SchemaCompiler:
    """Swap the process-wide compiler (``None`` restores a fresh caching one)."""
    global _default_compiler
    _default_compiler = compiler if compiler is not None else SchemaCompiler()
    return _default_compiler


def compile(resource_cls: Any) -> CompiledSchema:  # noqa: A001 - mirrors the public operation name
    return _default_compiler.compile(resource_cls)


def clear_cache() -> None:
    _default_compiler.clear_cache()


__all__ = ['SchemaCompiler', 'compile', 'clear_cache', 'get_compiler', 'set_compiler']
