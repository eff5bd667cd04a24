"""
API dependencies for authentication and authorization.

The caller's role and status are read from the database on every request and
passed to services as a ``Principal``; nothing the client sends can grant
admin rights.
"""
from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from townsquare.core.errors import ForbiddenError, UnauthorizedError
from townsquare.core.principal import Principal
from townsquare.db.session import get_db
from townsquare.services.auth import decode_access_token, get_user_by_id
from townsquare.services.hooks import LoggingHook, MutationHook

# Security scheme for JWT bearer tokens
security = HTTPBearer(auto_error=False)

_hook: MutationHook = LoggingHook()


async def get_current_user_id(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> int:
    """
    Resolve the authenticated subject id from the bearer token.

    Raises UnauthorizedError if the token is missing or invalid.
    """
    if not credentials:
        raise UnauthorizedError()

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise UnauthorizedError("Invalid or expired token")

    try:
        return int(payload.sub)
    except (ValueError, TypeError):
        raise UnauthorizedError("Invalid token payload")


async def get_current_principal(
    db: Annotated[AsyncSession, Depends(get_db)],
    user_id: Annotated[int, Depends(get_current_user_id)],
) -> Principal:
    """
    Load the caller's account and build the principal for this request.

    Expelled accounts are refused outright.
    """
    user = await get_user_by_id(db, user_id)
    if not user:
        raise UnauthorizedError("User not found")

    principal = Principal.from_user(user)
    if principal.is_expelled:
        raise ForbiddenError("Account expelled")
    return principal


async def get_admin_principal(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """
    Get the current principal and verify they are an admin.

    Raises ForbiddenError if not.
    """
    principal.require_admin()
    return principal


def get_mutation_hook() -> MutationHook:
    """Post-commit notification hook shared by all services."""
    return _hook


# Type aliases for cleaner dependency injection
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
AdminPrincipal = Annotated[Principal, Depends(get_admin_principal)]
Hook = Annotated[MutationHook, Depends(get_mutation_hook)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
