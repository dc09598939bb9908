"""
Platform-wide exception hierarchy.

Services raise these types; the handlers registered in ``create_app``
translate them into the standard ``api_error`` body once, so every
blueprint returns the same status codes for the same failures.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Ticket", resource_id=ticket_id)
    raise ValidationError("Invalid ticket data", details={"errors": [...]})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the caller's organization.

    Used for BOTH genuinely missing records AND cross-organization access
    attempts. A 403 would confirm the resource exists; a 404 does not.

    Args:
        resource: Human-readable model name (e.g. "Ticket", "Permit").
        resource_id: The PK that was looked up. Logged, not returned to the client.
        organization_id: Optional, the scope that was enforced. Logged only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: str | None = None,
        organization_id: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.organization_id = organization_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if organization_id is not None:
            msg += f" (organization={organization_id})"
        super().__init__(msg)

    @property
    def public_message(self) -> str:
        return f"{self.resource} not found"


class ValidationError(Exception):
    """Raised when input fails validation in the service layer.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional structured breakdown (field errors, error lists).
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


class AuthenticationError(Exception):
    """Raised when credentials are missing or wrong. Maps to HTTP 401."""


class PermissionDeniedError(Exception):
    """Raised when the caller is authenticated but not allowed. Maps to HTTP 403."""
