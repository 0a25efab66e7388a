from __future__ import annotations
from typing import Any, Callable, Dict

# Global condition operator registry (extensible). Each builder takes the
# column and the raw client value and returns a SQL criterion, or None to
# emit nothing.
OPERATOR_REGISTRY: Dict[str, Callable[[Any, Any], Any]] = {
    '$eq': lambda col, v: col == v,
    '$neq': lambda col, v: col != v,
    '$gt': lambda col, v: col > v,
    '$lt': lambda col, v: col < v,
    '$ge': lambda col, v: col >= v,
    '$le': lambda col, v: col <= v,
    '$like': lambda col, v: col.like(f"%{v}%"),
    '$in': lambda col, v: col.in_(list(v) if isinstance(v, (list, tuple, set)) else [v]),
    '$between': lambda col, v: col.between(v[0], v[1]) if isinstance(v, (list, tuple)) and len(v) == 2 else None,
    # $null: {"$null": true} -> IS NULL, {"$null": false} -> IS NOT NULL
    '$null': lambda col, v: col.is_not(None) if v is False else col.is_(None),
    '$notNull': lambda col, v: col.is_(None) if v is False else col.is_not(None),
}

# Operators handled by the interpreter itself rather than a column builder
CONTAINS = '$contains'
HAS = '$has'
HAS_NOT = '$hasnt'
RELATIONAL_OPERATORS = (HAS, HAS_NOT)

AND = '$and'
OR = '$or'
LOGICAL_OPERATORS = (AND, OR)


def is_condition_operator(key: Any) -> bool:
    return key in OPERATOR_REGISTRY or key == CONTAINS or key in RELATIONAL_OPERATORS


def is_logical_operator(key: Any) -> bool:
    return key in LOGICAL_OPERATORS


def register_operator(name: str, fn: Callable[[Any, Any], Any]) -> None:
    """Add or replace a condition operator; `fn(column, value)` returns a criterion or None."""
    OPERATOR_REGISTRY[name] = fn


__all__ = [
    'OPERATOR_REGISTRY', 'register_operator', 'is_condition_operator', 'is_logical_operator',
    'CONTAINS', 'HAS', 'HAS_NOT', 'RELATIONAL_OPERATORS', 'AND', 'OR', 'LOGICAL_OPERATORS',
]
