"""Exceptions raised by the WIP analytics engine.

Only ScopeNotFoundError and WipValidationError leave the engine. The other
errors are raised by pluggable backends and recovered where they are caught.
"""


class WipAnalyticsError(Exception):
    """Base error for the WIP analytics engine."""

    pass


class ScopeNotFoundError(WipAnalyticsError):
    """Raised when the requested task, client or group does not exist."""

    def __init__(self, scope: str, identifier: str) -> None:
        self.scope = scope
        self.identifier = identifier
        super().__init__(f"{scope.capitalize()} {identifier} not found")


class WipValidationError(WipAnalyticsError):
    """Raised for malformed window or resolution parameters."""

    pass


class CacheUnavailableError(WipAnalyticsError):
    """Raised by a cache backend when it cannot serve a request."""

    pass


class MappingLoadError(WipAnalyticsError):
    """Raised by a service-line mapping loader when the table cannot be read."""

    pass
