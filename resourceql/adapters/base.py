from __future__ import annotations
import json
from typing import Any
from sqlalchemy import and_, func, literal


def containment_items(value: Any) -> list:
    """Normalise a containment payload to the list of members to look for."""
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


class BaseAdapter:
    """Dialect hooks used by the criteria interpreter.

    The base implementation targets MySQL/MariaDB style JSON functions; the
    other adapters override what their dialect spells differently.
    """

    name = 'base'

    def json_contains(self, column, value: Any):
        return func.json_contains(column, literal(json.dumps(value)))

    def random(self):
        return func.rand()

    def _each(self, column, value: Any, member_check):
        if isinstance(value, dict):
            return and_(*[self.json_path_equals(column, key, item) for key, item in value.items()])
        checks = [member_check(column, item) for item in containment_items(value)]
        return checks[0] if len(checks) == 1 else and_(*checks)

    def json_path_equals(self, column, key: str, value: Any):
        return func.json_extract(column, f'$.{key}') == value

    # Table identifier helper; adapters can override for dialect-specific quoting/qualification
    def table_ident(self, model_cls) -> str:
        tbl = getattr(model_cls, '__table__', None)
        if tbl is not None:
            schema = getattr(tbl, 'schema', None)
            name = getattr(tbl, 'name', None) or getattr(model_cls, '__tablename__', None)
            if schema:
                return f"{schema}.{name}"
            return str(name)
        return str(getattr(model_cls, '__tablename__', '') or '')
