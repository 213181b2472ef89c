"""
Exception hierarchy for the maintenance engine.

Services raise these types; the API layer registers one handler per type and
maps them to HTTP status codes:

    NotFoundError       -> 404
    InvalidStatusError  -> 400
    ValidationError     -> 400
    StoreError          -> 500 (generic message, cause only in logs)

Usage:
    from maintenance_engine.core.exceptions import NotFoundError

    raise NotFoundError(resource="MaintenanceRequest", resource_id=42)
"""
from typing import Any, Dict, Optional


class EngineError(Exception):
    """Base class for every error the engine raises on purpose."""


class NotFoundError(EngineError):
    """Raised when a referenced request (or other entity) does not exist.

    Args:
        resource: Human-readable entity name (e.g. "MaintenanceRequest").
        resource_id: The key that was looked up.
    """

    def __init__(self, resource: str, resource_id: Optional[Any] = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class InvalidStatusError(EngineError):
    """Raised when a status value is outside the fixed status enum."""

    def __init__(self, value: Any, allowed: Optional[list] = None) -> None:
        self.value = value
        self.allowed = allowed or []
        msg = f"Invalid status value: {value!r}"
        if self.allowed:
            msg += f" (expected one of: {', '.join(self.allowed)})"
        super().__init__(msg)


class ValidationError(EngineError):
    """Raised when a required field is missing or malformed.

    The HTTP layer validates input first; this is the engine's own guard.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: Optional[Dict[str, str]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ImmutableFieldError(ValidationError):
    """Raised when a caller tries to patch a field that is fixed after creation."""

    def __init__(self, fields: list) -> None:
        self.fields = sorted(fields)
        super().__init__(
            f"IMMUTABILITY VIOLATION: cannot modify {', '.join(self.fields)}",
            details={field: "immutable" for field in self.fields},
        )


class GenerationError(EngineError):
    """Raised when a request number cannot be produced at all.

    The generator falls back to a timestamp-based number on ordinary failures,
    so this only surfaces when even the fallback cannot be built.
    """


class StoreError(EngineError):
    """Wraps an underlying persistence failure.

    The original exception is kept on ``cause`` (and chained with ``from``)
    for logging; callers only ever see the generic message.
    """

    def __init__(
        self,
        operation: str,
        cause: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.operation = operation
        self.cause = cause
        self.context = context or {}
        super().__init__(f"Store failure during {operation}")
