from __future__ import annotations
from typing import Any
from sqlalchemy import cast, func, literal
from sqlalchemy.dialects.postgresql import JSONB
from .base import BaseAdapter, containment_items

class PostgresAdapter(BaseAdapter):
    name = 'postgres'
    def json_contains(self, column, value: Any):
        # JSONB binds serialize the python value themselves
        payload = value if isinstance(value, dict) else containment_items(value)
        return cast(column, JSONB).op('@>')(literal(payload, type_=JSONB))
    def random(self):
        return func.random()
