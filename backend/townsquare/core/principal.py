"""
Resolved caller identity passed explicitly into every service operation.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from townsquare.core.errors import ForbiddenError

if TYPE_CHECKING:
    from townsquare.models.user import User


@dataclass(frozen=True)
class Principal:
    """
    The authenticated caller as read from the store for this request.

    Role and status are never taken from the client; ``from_user`` is the only
    constructor used outside tests.
    """

    id: int
    role: str = "user"
    status: str = "active"
    suspended_until: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: "User") -> "Principal":
        return cls(
            id=user.id,
            role=user.role,
            status=user.status,
            suspended_until=user.suspended_until,
        )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_expelled(self) -> bool:
        return self.status == "expelled"

    @property
    def is_suspended(self) -> bool:
        """Suspended and the suspension (if it has an end) has not lapsed."""
        if self.status != "suspended":
            return False
        if self.suspended_until is None:
            return True
        until = self.suspended_until
        if until.tzinfo is None:
            until = until.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) < until

    def require_admin(self) -> None:
        if not self.is_admin:
            raise ForbiddenError("Admin access required")

    def require_in_good_standing(self) -> None:
        """Raise if the account may not start or continue conversations."""
        if self.is_expelled:
            raise ForbiddenError("Account expelled")
        if self.is_suspended:
            raise ForbiddenError("Account suspended")
