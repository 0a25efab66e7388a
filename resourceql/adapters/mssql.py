from __future__ import annotations
from typing import Any
from sqlalchemy import exists, func, select
from .base import BaseAdapter

class MSSQLAdapter(BaseAdapter):
    name = 'mssql'
    def json_contains(self, column, value: Any):
        # OPENJSON exposes array members as rows with a "value" column
        def member(col, item):
            each = func.openjson(col).table_valued('value')
            return exists(select(1).select_from(each).where(each.c.value == item))
        return self._each(column, value, member)
    def json_path_equals(self, column, key: str, value: Any):
        return func.json_value(column, f'$.{key}') == value
    def random(self):
        return func.newid()
