"""
Application-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Usage:
    from qa_evidence.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Ticket", resource_id="3f1c...")
    raise ValidationError("Required fields missing", details={"missing": ["Sprint"]})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Ticket", "BugReport").
        resource_id: The id that was looked up. Included in logs.
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
    """Raised when input fails a business rule in the service layer.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional structured breakdown, e.g. ``{"missing": [...labels]}``.
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


class PermissionDenied(Exception):
    """Raised when the acting user may not touch a resource.

    Only the creator of an archived ticket may reopen it for editing.
    Maps to HTTP 403.
    """

    def __init__(self, action: str, actor: str | None = None, owner: str | None = None) -> None:
        self.action = action
        self.actor = actor
        self.owner = owner
        msg = f"Not allowed to {action}"
        if owner:
            msg += f" (owned by {owner})"
        super().__init__(msg)
