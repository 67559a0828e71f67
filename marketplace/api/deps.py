"""API dependencies for authentication and common operations."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.exceptions import AuthenticationError, NotFoundError
from marketplace.core.security import verify_token
from marketplace.database import get_db
from marketplace.models.profile import Profile

# Security scheme; a missing header is not an error for public endpoints
security = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]
Credentials = Annotated[HTTPAuthorizationCredentials | None, Depends(security)]


async def _load_profile(credentials: HTTPAuthorizationCredentials, db: AsyncSession) -> Profile | None:
    payload = verify_token(credentials.credentials)
    subject = payload.get("sub")
    if not subject:
        raise AuthenticationError("Invalid token payload")
    try:
        auth_user_id = UUID(subject)
    except ValueError:
        raise AuthenticationError("Invalid token subject")

    result = await db.execute(select(Profile).where(Profile.auth_user_id == auth_user_id))
    return result.scalar_one_or_none()


async def get_optional_profile(credentials: Credentials, db: DbSession) -> Profile | None:
    """Resolve the caller's profile from the bearer token, if any.

    A token that verifies but has no matching profile resolves to None;
    an invalid token is rejected.
    """
    if not credentials:
        return None
    return await _load_profile(credentials, db)


async def get_current_profile(credentials: Credentials, db: DbSession) -> Profile:
    """Require an authenticated caller with a profile.

    Raises:
        AuthenticationError: no bearer token, or the token is invalid
        NotFoundError: the token is valid but no profile matches it
    """
    if not credentials:
        raise AuthenticationError()
    profile = await _load_profile(credentials, db)
    if profile is None:
        raise NotFoundError("Profile")
    return profile


OptionalProfile = Annotated[Profile | None, Depends(get_optional_profile)]
CurrentProfile = Annotated[Profile, Depends(get_current_profile)]
