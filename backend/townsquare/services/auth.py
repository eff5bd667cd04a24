"""
Bearer token handling.

Accounts are authenticated by the identity provider; this service only
verifies the signed access token it issues and resolves the subject to a
local user row.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from jose import JWTError, jwt
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from townsquare.core.config import settings
from townsquare.models.user import User
from townsquare.schemas.auth import TokenPayload

logger = structlog.get_logger(__name__)


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token (used by tooling and tests)."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes))

    payload = {
        "sub": str(user_id),
        "exp": expire,
        "iat": now,
        "type": "access",
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[TokenPayload]:
    """
    Decode and validate a JWT access token.

    Validates:
    - Token signature
    - Token expiration
    - Token type (must be "access")
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
        token_data = TokenPayload(**payload)
    except (JWTError, ValidationError) as e:
        logger.warning("JWT decode error", error=str(e))
        return None

    if token_data.type != "access":
        logger.warning("Invalid token type", token_type=token_data.type)
        return None
    return token_data


async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    """Get a user by ID."""
    return await db.get(User, user_id)
