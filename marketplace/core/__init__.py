"""Core utilities: exceptions, security and side-effect handling."""

from marketplace.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    CancellationAlreadyRequested,
    ConflictError,
    IncompleteListing,
    InvalidStateError,
    InvalidTransition,
    NotFoundError,
    StorageError,
    ValidationError,
)
from marketplace.core.security import create_access_token, verify_token
from marketplace.core.side_effects import best_effort

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "CancellationAlreadyRequested",
    "ConflictError",
    "IncompleteListing",
    "InvalidStateError",
    "InvalidTransition",
    "NotFoundError",
    "StorageError",
    "ValidationError",
    "best_effort",
    "create_access_token",
    "verify_token",
]
