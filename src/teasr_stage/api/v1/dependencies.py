"""Shared API dependencies for authentication and service access."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from teasr_stage.core.security import decode_subject
from teasr_stage.db.session import get_db
from teasr_stage.models import User
from teasr_stage.services.errors import (
    MonetizationError,
    PaymentValidationError,
    PostNotFoundError,
    SettlementError,
    SlotsFullError,
)
from teasr_stage.services.registry import ServiceRegistry, get_services

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()
optional_bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_db)]
ServicesDep = Annotated[ServiceRegistry, Depends(get_services)]


async def _load_user(db: AsyncSession, token: str) -> User | None:
    subject = decode_subject(token)
    if subject is None:
        return None
    return await db.get(User, subject)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    Raises:
        HTTPException: If token is invalid or user not found
    """
    user = await _load_user(db, credentials.credentials)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return user


async def get_optional_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(optional_bearer_scheme)
    ],
    db: SessionDep,
) -> User | None:
    """Return the authenticated user, or None for anonymous viewers."""
    if credentials is None:
        return None
    return await _load_user(db, credentials.credentials)


# Type aliases for user dependencies
CurrentUserDep = Annotated[User, Depends(get_current_user)]
OptionalUserDep = Annotated[User | None, Depends(get_optional_user)]


def http_error(err: MonetizationError) -> HTTPException:
    """Translate a core exception into the HTTP error a client should see."""
    if isinstance(err, PostNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    if isinstance(err, SlotsFullError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(err))
    if isinstance(err, PaymentValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err))
    if isinstance(err, SettlementError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment could not be completed, please retry",
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal error",
    )
