from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy import func, inspect as sa_inspect, select
from sqlalchemy.orm import selectinload

from ..core.planner import wrap_constraint

logger = logging.getLogger(__name__)


def _raw_constraint(constraint: Callable[..., Any]) -> Callable[..., Any]:
    return getattr(constraint, '__wrapped__', constraint)


def _leaf_paths(paths: List[str]) -> List[str]:
    """Drop paths that another path extends; the longer chain loads them too."""
    leaves = []
    for path in paths:
        if not any(other.startswith(path + '.') for other in paths):
            leaves.append(path)
    return leaves


def loader_options(model_cls: Any, plan: Mapping[str, Optional[Callable[..., Any]]]) -> list:
    """Turn an eager-load plan into ``selectinload`` chains.

    ``{'posts': None, 'posts.tags': None, 'organization': scope}`` becomes
    ``selectinload(User.posts).selectinload(Post.tags)`` and
    ``selectinload(User.organization.and_(scope(Organization)))``. A segment
    whose own path is scoped is constrained in every chain passing through it.
    """
    options = []
    attrs: Dict[str, Any] = {}
    for path in _leaf_paths(list(plan)):
        option = None
        owner = model_cls
        prefix = ''
        for segment in path.split('.'):
            prefix = f"{prefix}.{segment}" if prefix else segment
            try:
                prop = sa_inspect(owner).relationships[segment]
            except KeyError:
                logger.warning("Cannot preload %r: %s has no relationship %r", path, owner.__name__, segment)
                option = None
                break
            attr = attrs.get(prefix)
            if attr is None:
                attr = getattr(owner, segment)
                constraint = plan.get(prefix)
                if constraint is not None:
                    attr = wrap_constraint(_raw_constraint(constraint))(attr)
                attrs[prefix] = attr
            option = selectinload(attr) if option is None else option.selectinload(attr)
            owner = prop.mapper.class_
        if option is not None:
            options.append(option)
    return options


def count_subquery(model_cls: Any, relation: str, constraint: Optional[Callable[..., Any]] = None):
    """Correlated ``COUNT(*)`` of a relationship, labelled ``<relation>_count``."""
    prop = sa_inspect(model_cls).relationships[relation]
    target = prop.mapper.class_
    sel = select(func.count()).select_from(target)
    if prop.secondary is not None:
        sel = sel.join(prop.secondary, prop.secondaryjoin)
    sel = sel.where(prop.primaryjoin)
    if constraint is not None:
        sel = sel.where(_raw_constraint(constraint)(target))
    return sel.correlate(model_cls).scalar_subquery().label(f"{relation}_count")


def count_columns(model_cls: Any, counts: Mapping[str, Optional[Callable[..., Any]]]) -> list:
    columns = []
    for relation, constraint in counts.items():
        if relation not in sa_inspect(model_cls).relationships:
            logger.warning("Cannot count %r: %s has no such relationship", relation, model_cls.__name__)
            continue
        columns.append((relation, count_subquery(model_cls, relation, constraint)))
    return columns


__all__ = ['loader_options', 'count_subquery', 'count_columns']
