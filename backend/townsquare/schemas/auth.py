"""
Authentication schemas.
"""
from datetime import datetime

from pydantic import BaseModel


class TokenPayload(BaseModel):
    """Schema for JWT token payload issued by the identity provider."""

    sub: str  # user id
    exp: datetime
    iat: datetime
    type: str = "access"
