"""
Admin user directory: searching accounts, changing roles and the moderation
overview counts.

Role changes are not moderation actions and leave no ledger row; they are
logged as ``user_role_changed``.
"""
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from townsquare.core.config import settings
from townsquare.core.errors import InvalidInputError, InvalidTargetError, NotFoundError
from townsquare.core.principal import Principal
from townsquare.db.transaction import atomic
from townsquare.models import Comment, Post, Report, ReportStatus, User, UserRole, UserStatus
from townsquare.services.hooks import MutationHook, notify

logger = structlog.get_logger(__name__)


@dataclass
class UserPage:
    items: list[User]
    total: int
    page: int
    page_size: int


@dataclass
class ModerationSummary:
    users_total: int
    users_suspended: int
    users_expelled: int
    posts_total: int
    posts_hidden: int
    comments_total: int
    comments_hidden: int
    reports_open: int


def _parse_enum(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidInputError(f"Unknown {label}: {value}")


class UserDirectoryService:
    """Admin-only account listing and role management."""

    def __init__(self, db: AsyncSession, hook: MutationHook | None = None):
        self.db = db
        self.hook = hook

    async def list_users(
        self,
        principal: Principal,
        role: str | UserRole | None = None,
        status: str | UserStatus | None = None,
        q: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> UserPage:
        """
        Accounts, newest first.

        ``q`` matches username or display name case-insensitively. Paging is
        clamped the same way as the report queue.
        """
        principal.require_admin()
        page = max(1, page)
        page_size = min(
            max(page_size, settings.report_page_size_min),
            settings.report_page_size_max,
        )

        filters = []
        if role is not None:
            filters.append(User.role == _parse_enum(UserRole, role, "role").value)
        if status is not None:
            filters.append(User.status == _parse_enum(UserStatus, status, "status").value)
        term = (q or "").strip().lower()
        if term:
            pattern = f"%{term}%"
            filters.append(
                or_(
                    func.lower(User.username).like(pattern),
                    func.lower(User.display_name).like(pattern),
                )
            )

        total = (
            await self.db.execute(select(func.count(User.id)).where(*filters))
        ).scalar_one()
        result = await self.db.execute(
            select(User)
            .where(*filters)
            .order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return UserPage(
            items=list(result.scalars().all()),
            total=total,
            page=page,
            page_size=page_size,
        )

    async def set_role(
        self,
        principal: Principal,
        user_id: int,
        role: str | UserRole,
    ) -> User:
        """
        Promote an account to admin or demote it to a regular user.

        Raises:
            ForbiddenError: Caller is not an admin
            InvalidInputError: Unknown role
            InvalidTargetError: Caller targets their own account
            NotFoundError: User does not exist
        """
        principal.require_admin()
        role = _parse_enum(UserRole, role, "role")
        if user_id == principal.id:
            raise InvalidTargetError("Cannot change your own role")

        async with atomic(self.db):
            user = await self.db.get(User, user_id)
            if user is None:
                raise NotFoundError("User not found")
            previous = user.role
            user.role = role.value
            await self.db.flush()

        logger.info(
            "user_role_changed",
            moderator_id=principal.id,
            user_id=user_id,
            from_role=previous,
            to_role=role.value,
        )
        await notify(self.hook, "moderation.user_role", user_id=user_id, role=role.value)
        return user

    async def summary(self, principal: Principal) -> ModerationSummary:
        """Headline counts for the moderation overview."""
        principal.require_admin()

        async def count(column, *filters) -> int:
            result = await self.db.execute(select(func.count(column)).where(*filters))
            return result.scalar_one()

        return ModerationSummary(
            users_total=await count(User.id),
            users_suspended=await count(User.id, User.status == UserStatus.SUSPENDED.value),
            users_expelled=await count(User.id, User.status == UserStatus.EXPELLED.value),
            posts_total=await count(Post.id),
            posts_hidden=await count(Post.id, Post.hidden_at.is_not(None)),
            comments_total=await count(Comment.id),
            comments_hidden=await count(Comment.id, Comment.hidden_at.is_not(None)),
            reports_open=await count(Report.id, Report.status == ReportStatus.OPEN.value),
        )
