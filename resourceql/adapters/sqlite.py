from __future__ import annotations
from typing import Any
from sqlalchemy import exists, func, select
from .base import BaseAdapter

class SQLiteAdapter(BaseAdapter):
    name = 'sqlite'
    def json_contains(self, column, value: Any):
        # SQLite has no JSON containment; check the array members through json_each
        def member(col, item):
            each = func.json_each(col).table_valued('value')
            return exists(select(1).select_from(each).where(each.c.value == item))
        return self._each(column, value, member)
    def random(self):
        return func.random()
