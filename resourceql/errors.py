from __future__ import annotations


class ResourceQLError(Exception):
    """Base class for resourceql errors."""


class ConfigurationError(ResourceQLError, RuntimeError):
    """A resource or the library itself is mis-configured.

    Raised for programming/deployment defects such as a resource class without
    ``RESOURCE_TYPE`` or a polymorphic record whose model has no mapped
    resource. These are never retried or swallowed.
    """


class InvalidQueryError(ResourceQLError, ValueError):
    """Raw query parameters failed validation."""

    def __init__(self, message: str, *, errors: dict[str, str] | None = None):
        super().__init__(message)
        self.errors = dict(errors or {})
