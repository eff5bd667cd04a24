"""
Core module containing configuration and shared utilities.
"""
from townsquare.core.config import settings
from townsquare.core.errors import (
    BlockedError,
    ConflictError,
    DomainError,
    ForbiddenError,
    InvalidInputError,
    InvalidTargetError,
    NotActiveError,
    NotFoundError,
    UnauthorizedError,
)
from townsquare.core.principal import Principal

__all__ = [
    "settings",
    "Principal",
    "DomainError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "BlockedError",
    "NotActiveError",
    "InvalidInputError",
    "InvalidTargetError",
    "ConflictError",
]
