"""Custom application exceptions."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception.

    Rendered as ``{"error": detail}`` plus any ``extra`` keys.
    """

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.extra = extra or {}
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Malformed input, bad reference format or missing field."""

    def __init__(self, detail: str = "Validation failed", extra: dict[str, Any] | None = None) -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail, extra=extra)


class InvalidTransition(AppException):
    """Requested status change is not an edge of the transition table."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot transition from {current} to {target}",
        )


class InvalidStateError(AppException):
    """Operation is not allowed in the entity's current state."""

    def __init__(self, detail: str = "This operation is not allowed in the current state") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class IncompleteListing(AppException):
    """Listing cannot be activated; carries every violated rule."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot activate incomplete listing",
            extra={"details": violations, "missingFields": len(violations)},
        )


class NotFoundError(AppException):
    """Resource not found exception."""

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AuthenticationError(AppException):
    """No resolved caller identity."""

    def __init__(self, detail: str = "Authentication required") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(AppException):
    """Caller is identified but does not own the resource."""

    def __init__(self, detail: str = "You don't have permission to access this resource") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ConflictError(AppException):
    """Write conflicts with the entity's current state."""

    def __init__(self, detail: str = "The resource was modified by another request") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class CancellationAlreadyRequested(ConflictError):
    """A cancellation request is already pending for the booking."""

    def __init__(self, detail: str = "Cancellation request already submitted for this booking") -> None:
        super().__init__(detail=detail)


class StorageError(AppException):
    """Primary write to the persistence store failed."""

    def __init__(self, detail: str = "Failed to write to the database") -> None:
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


class RateLimitExceeded(AppException):
    """Rate limit exceeded exception."""

    def __init__(self, detail: str = "Too many requests. Please try again later.") -> None:
        super().__init__(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=detail)


class ExternalServiceError(AppException):
    """External service error."""

    def __init__(self, service: str, detail: str | None = None) -> None:
        message = f"External service '{service}' is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)
