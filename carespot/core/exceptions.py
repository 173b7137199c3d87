"""
Error taxonomy shared by every Carespot service.

Services raise these; ``carespot.main`` renders them as
``{"error", "message", "details"}`` JSON bodies with ``http_status``.
Only ``Unavailable`` is worth retrying on the caller side.
"""

from typing import Any, Dict, List, Optional


class CarespotError(Exception):
    """Base class for business and infrastructure errors."""

    http_status: int = 400
    default_code: str = "CARESPOT_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationFailed(CarespotError):
    """One or more fields are invalid."""

    http_status = 422
    default_code = "VALIDATION_FAILED"

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None) -> None:
        self.errors = errors or []
        super().__init__(message, details={"errors": self.errors})


class MissingRequiredField(ValidationFailed):
    """A field required by the record's role is absent."""

    default_code = "MISSING_REQUIRED_FIELD"

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        self.field = field
        super().__init__(
            message or f"{field} is required",
            [{"field": field, "message": "field required"}],
        )
        self.details["field"] = field


class Conflict(CarespotError):
    """A uniqueness rule was violated."""

    http_status = 409
    default_code = "CONFLICT"

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None) -> None:
        self.field = field
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value
        super().__init__(message, details=details)


class Unauthenticated(CarespotError):
    http_status = 401
    default_code = "UNAUTHENTICATED"

    def __init__(self, message: str = "Could not validate credentials") -> None:
        super().__init__(message)


class TokenInvalid(Unauthenticated):
    """Malformed, badly signed or revoked token; the client must log in again."""

    default_code = "TOKEN_INVALID"

    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)


class TokenExpired(Unauthenticated):
    default_code = "TOKEN_EXPIRED"

    def __init__(self, message: str = "Token expired") -> None:
        super().__init__(message)


class Forbidden(CarespotError):
    http_status = 403
    default_code = "FORBIDDEN"

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(message)


class NotFound(CarespotError):
    http_status = 404
    default_code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: Any = None) -> None:
        details = {"resource": resource}
        if resource_id is not None:
            details["id"] = str(resource_id)
        super().__init__(f"{resource} not found", details=details)


class FieldLocked(CarespotError):
    """
    Locked fields were part of an update.

    The rest of the update has already been applied; ``applied`` lists those
    fields and ``resource`` carries the stored record after the update.
    """

    http_status = 423
    default_code = "FIELD_LOCKED"

    def __init__(
        self,
        fields: List[str],
        applied: Optional[List[str]] = None,
        resource: Any = None,
    ) -> None:
        self.fields = fields
        self.applied = applied or []
        self.resource = resource
        super().__init__(
            f"Fields locked after approval: {', '.join(fields)}",
            details={"fields": fields, "applied": self.applied},
        )


class StateTransitionInvalid(CarespotError):
    http_status = 409
    default_code = "STATE_TRANSITION_INVALID"

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move from '{current}' to '{target}'",
            details={"current": current, "target": target},
        )


class Unavailable(CarespotError):
    """Storage, cache or notification infrastructure failed."""

    http_status = 503
    default_code = "UNAVAILABLE"

    def __init__(self, service: str, message: str = "temporarily unavailable") -> None:
        self.service = service
        super().__init__(f"{service} {message}", details={"service": service})
