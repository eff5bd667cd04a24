"""
User model: identity plus the role and account status consulted by the
messaging and moderation services.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from townsquare.db.base import Base


class UserRole(str, Enum):
    """Privilege level. Only ADMIN may moderate or bypass message gating."""

    USER = "user"
    ADMIN = "admin"


class UserStatus(str, Enum):
    """Account standing. Mutated only through the moderation ledger."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    EXPELLED = "expelled"


class User(Base):
    """
    Platform account.

    Authentication is delegated to the identity provider; the row only stores
    what moderation and messaging need.
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True
    )
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    role: Mapped[str] = mapped_column(
        String(10),
        default=UserRole.USER.value,
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(12),
        default=UserStatus.ACTIVE.value,
        nullable=False,
        index=True,
    )
    # None while suspended means indefinite
    suspended_until: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
    expelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self) -> str:
        return f"<User {self.id} {self.username} ({self.role}/{self.status})>"
