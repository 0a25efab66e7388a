from __future__ import annotations

from typing import Optional

from .base import BaseAdapter
from .sqlite import SQLiteAdapter
from .postgres import PostgresAdapter
from .mssql import MSSQLAdapter

# dialect name prefix -> adapter class; first match wins
_ADAPTERS = (
    (('postgres',), PostgresAdapter),
    (('mssql',), MSSQLAdapter),
    (('mysql', 'mariadb'), BaseAdapter),
)


def get_adapter(dialect_name: Optional[str]) -> BaseAdapter:
    """Return the JSON/random helpers for a SQLAlchemy dialect name.

    Unknown or missing dialects get the SQLite adapter, which is what the
    test suite runs against.
    """
    dn = (dialect_name or '').lower()
    if 'pyodbc' in dn:
        return MSSQLAdapter()
    for prefixes, adapter_cls in _ADAPTERS:
        if dn.startswith(prefixes):
            return adapter_cls()
    return SQLiteAdapter()


__all__ = [
    'BaseAdapter',
    'SQLiteAdapter',
    'PostgresAdapter',
    'MSSQLAdapter',
    'get_adapter',
]
