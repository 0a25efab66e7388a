"""Process-wide settings for resourceql.

Defaults can be overridden through environment variables (read once, on first
access) or programmatically through :func:`configure`. Tests call
:func:`reset_config` to return to the environment defaults.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

_TRUE = {'1', 'true', 'yes', 'on', 'y', 't'}


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [part.strip() for part in raw.split(',') if part.strip()]


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    return value if value > 0 else None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE


@dataclass
class ResourceQLConfig:
    """Settings consumed by the projector, the criteria interpreter and the parser.

    Attributes:
        fixed_fields: Field keys appended to every resource selection.
        default_limit: Limit used when the client does not send one. ``None``
            means unlimited.
        searchable_exclusions: Columns that may never be filtered or ordered
            on. Plain names apply to every table, ``"table.column"`` entries
            to one table only.
        enable_eager_loading: Whether :class:`ApiCriteria` plans and attaches
            preloads for the resource bound to the query's model.
        field_ordering_strategy: Name of the output ordering strategy
            (``"default"`` or ``"by_requested_fields"``).
        morph_map: Explicit ``model class -> resource class`` mapping used for
            polymorphic records and model to resource lookups.
    """

    fixed_fields: List[str] = field(default_factory=lambda: ['id', '_type'])
    default_limit: Optional[int] = None
    searchable_exclusions: List[str] = field(default_factory=lambda: ['password'])
    enable_eager_loading: bool = True
    field_ordering_strategy: str = 'default'
    morph_map: Dict[Any, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "ResourceQLConfig":
        return cls(
            fixed_fields=_env_list('RESOURCEQL_FIXED_FIELDS', ['id', '_type']),
            default_limit=_env_int('RESOURCEQL_DEFAULT_LIMIT'),
            searchable_exclusions=_env_list('RESOURCEQL_SEARCHABLE_EXCLUSIONS', ['password']),
            enable_eager_loading=_env_bool('RESOURCEQL_ENABLE_EAGER_LOADING', True),
            field_ordering_strategy=(os.getenv('RESOURCEQL_FIELD_ORDERING') or 'default').strip().lower(),
        )


_CONFIG: Optional[ResourceQLConfig] = None


def get_config() -> ResourceQLConfig:
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = ResourceQLConfig.from_env()
    return _CONFIG


def configure(**overrides: Any) -> ResourceQLConfig:
    """Replace selected settings and return the active configuration.

    Example:
        configure(searchable_exclusions=['password', 'users.email'], default_limit=25)
    """
    global _CONFIG
    unknown = [k for k in overrides if k not in ResourceQLConfig.__dataclass_fields__]
    if unknown:
        raise TypeError(f"Unknown resourceql setting(s): {', '.join(sorted(unknown))}")
    _CONFIG = replace(get_config(), **overrides)
    return _CONFIG


def reset_config() -> None:
    global _CONFIG
    _CONFIG = None


__all__ = ['ResourceQLConfig', 'get_config', 'configure', 'reset_config']
