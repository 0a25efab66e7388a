from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type

from .config import get_config

_logger = logging.getLogger("resourceql")


class ResourceRegistry:
    """Maps model classes to the resource classes that project them.

    Resources declaring ``MODEL`` register themselves on class creation. The
    configured ``morph_map`` takes precedence over registrations, and lookups
    walk the model's MRO so single-table subclasses find their base resource.
    """

    def __init__(self):
        self._resources: Dict[Any, Type[Any]] = {}

    def register(self, model: Any, resource_cls: Type[Any]) -> Type[Any]:
        previous = self._resources.get(model)
        if previous is not None and previous is not resource_cls:
            _logger.debug("Replacing resource %s for %s with %s", previous.__name__, model, resource_cls.__name__)
        self._resources[model] = resource_cls
        return resource_cls

    def unregister(self, model: Any) -> None:
        self._resources.pop(model, None)

    def resource_for(self, model: Any) -> Optional[Type[Any]]:
        if not isinstance(model, type):
            model = type(model)
        morph_map = get_config().morph_map or {}
        for klass in model.__mro__:
            resource_cls = morph_map.get(klass) or self._resources.get(klass)
            if resource_cls is not None:
                return resource_cls
        return None

    def __contains__(self, model: Any) -> bool:
        return self.resource_for(model) is not None


registry = ResourceRegistry()


def register_resource(model: Any, resource_cls: Type[Any]) -> Type[Any]:
    return registry.register(model, resource_cls)


def resource_for_model(model: Any) -> Optional[Type[Any]]:
    """Resource class for a model class (or instance), ``None`` when unmapped."""
    return registry.resource_for(model)


__all__ = ['ResourceRegistry', 'registry', 'register_resource', 'resource_for_model']
