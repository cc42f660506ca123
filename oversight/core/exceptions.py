"""
Platform-wide exception hierarchy.

Services raise these; the application factory registers one handler per
type so every blueprint gets the same HTTP status codes and JSON shape.

Usage:
    from oversight.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Activity", resource_id=42)
    raise ValidationError("Title is required", details={"title": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist (or is soft-deleted).

    Maps to HTTP 404.

    Args:
        resource: Human-readable model/entity name (e.g. "Activity").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Distinct from HTTP 400 (malformed input, caught in blueprint) — this
    exception signals that the data was well-formed but violated a business
    rule (e.g. annual estimates not summing to the total).

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class StateConflictError(Exception):
    """Raised when the current state of a record forbids the operation.

    Covers invalid approval transitions, edit locks held by another user
    and stale optimistic-lock versions.  Maps to HTTP 409.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class PermissionDeniedError(Exception):
    """Raised when the caller's role or ownership does not allow the action.

    Route-level role checks live in decorators; this covers the rules that
    depend on record state (comment authorship, approval stage).
    Maps to HTTP 403.
    """


class AuthenticationError(Exception):
    """Raised when credentials or a refresh token are rejected.

    Maps to HTTP 401.  Messages are deliberately generic on login so
    unknown, inactive and wrong-password accounts look the same.
    """
