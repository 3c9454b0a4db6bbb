"""Exception types raised by the tracewire SDK.

Under the default configuration nothing here reaches application code:
the writer catches transport failures and containers downgrade invalid ids
to generated ones. ``InvalidIdentifierError`` is the one exception a caller
can observe, and only when ``raise_exceptions`` is enabled.
"""

from __future__ import annotations

from typing import Any


class TracewireError(Exception):
    """Base class for all SDK errors."""


class InvalidIdentifierError(TracewireError, ValueError):
    """Raised when an entity id contains characters outside ``[A-Za-z0-9_-]``.

    Attributes:
        entity: Entity kind the id was given for (e.g. ``"trace"``).
        entity_id: The rejected id.
    """

    def __init__(self, entity: str, entity_id: Any) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"Invalid ID: {entity_id!r} for {entity}. ID must only contain "
            "alphanumeric characters, hyphens, and underscores."
        )


class TracewireAPIError(TracewireError):
    """Raised by the HTTP layer when the backend rejects a request.

    Attributes:
        status_code: HTTP status, or None for network-level failures.
        body: Response body (or error description) for diagnostics.
    """

    def __init__(self, message: str, status_code: int | None = None, body: Any = None) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class ConfigurationError(TracewireError):
    """Raised when a client or logger is built without required settings."""


class LogLineError(TracewireError):
    """Raised for writer operations that a capture-only LogLine cannot perform."""
