"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from petcare.core.clock import Clock, utcnow
from petcare.core.exceptions import AuthenticationException
from petcare.core.identity import ActingUser, resolve_acting_user
from petcare.core.redis_client import CacheManager
from petcare.core.security import decode_access_token
from petcare.database import get_db
from petcare.models.profiles import profiles
from petcare.services.payment_service import PaymentReconciler

# Security
security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> UUID:
    """
    Extract and validate user ID from JWT token.

    Raises:
        AuthenticationException: If token is missing, invalid or expired
    """
    if credentials is None:
        raise AuthenticationException("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise AuthenticationException()

    user_id_str = payload.get("sub")
    if user_id_str is None or not isinstance(user_id_str, str):
        raise AuthenticationException()

    try:
        return UUID(user_id_str)
    except ValueError:
        raise AuthenticationException("Invalid user ID format") from None


async def get_acting_user(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ActingUser:
    """
    Resolve the caller's profile into an ActingUser once per request.

    Raises:
        AuthenticationException: If no profile exists for the token subject
    """
    result = await db.execute(select(profiles.c.role).where(profiles.c.id == user_id))
    role = result.scalar_one_or_none()

    if role is None:
        raise AuthenticationException("User not found")

    return resolve_acting_user(user_id, role)


def get_cache(request: Request) -> CacheManager | None:
    """Cache manager created at startup, or None when caching is off."""
    return getattr(request.app.state, "cache", None)


def get_clock() -> Clock:
    """Time source for services."""
    return utcnow


def get_payment_reconciler(request: Request) -> PaymentReconciler:
    """Reconciler built during startup."""
    return request.app.state.payment_reconciler


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[ActingUser, Depends(get_acting_user)]
Cache = Annotated[CacheManager | None, Depends(get_cache)]
ServiceClock = Annotated[Clock, Depends(get_clock)]
Reconciler = Annotated[PaymentReconciler, Depends(get_payment_reconciler)]
