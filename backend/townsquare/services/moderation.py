"""
Moderation ledger.

Every hide/unhide and every account status change is written together with
exactly one ``ModerationAction`` row in the same transaction. If either write
fails, both are rolled back.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

import structlog
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from townsquare.core.errors import InvalidInputError, NotFoundError
from townsquare.core.principal import Principal
from townsquare.db.base import utcnow
from townsquare.db.transaction import atomic
from townsquare.models import (
    ModerationAction,
    ModerationActionType,
    TargetType,
    User,
    UserStatus,
)
from townsquare.services.hooks import MutationHook, notify
from townsquare.services.targets import load_target, parse_target_type

logger = structlog.get_logger(__name__)


class UserStatusAction(str, Enum):
    """Account actions a moderator can take."""

    SUSPEND = "suspend"
    REINSTATE = "reinstate"
    EXPEL = "expel"


_LEDGER_ACTION = {
    UserStatusAction.SUSPEND: ModerationActionType.SUSPEND_USER,
    UserStatusAction.REINSTATE: ModerationActionType.REINSTATE_USER,
    UserStatusAction.EXPEL: ModerationActionType.EXPEL_USER,
}


def visible_to(query: Select, model, viewer: Optional[Principal]) -> Select:
    """Restrict ``query`` on a hideable ``model`` to what ``viewer`` may read."""
    if viewer is not None and viewer.is_admin:
        return query
    return query.where(model.hidden_at.is_(None))


class ModerationService:
    """Privileged content and account actions, recorded in the ledger."""

    def __init__(self, db: AsyncSession, hook: MutationHook | None = None):
        self.db = db
        self.hook = hook

    async def set_content_hidden(
        self,
        principal: Principal,
        target_type: str | TargetType,
        target_id: int,
        hidden: bool,
        reason: Optional[str] = None,
    ) -> ModerationAction:
        """
        Hide or unhide a post, comment or message.

        Re-hiding already hidden content re-stamps the markers and still adds
        a ledger row; the ledger records actions, not net changes.

        Raises:
            ForbiddenError: Caller is not an admin
            InvalidTargetError: Target kind cannot be hidden
            NotFoundError: Target does not exist
        """
        principal.require_admin()
        kind = parse_target_type(target_type)

        async with atomic(self.db):
            row = await load_target(self.db, kind, target_id, hideable_only=True)
            if hidden:
                row.hidden_at = utcnow()
                row.hidden_by_id = principal.id
            else:
                row.hidden_at = None
                row.hidden_by_id = None

            action = self._record(
                principal,
                kind,
                target_id,
                ModerationActionType.HIDE_CONTENT if hidden else ModerationActionType.UNHIDE_CONTENT,
                reason,
            )
            await self.db.flush()

        logger.info(
            "content_hidden" if hidden else "content_unhidden",
            moderator_id=principal.id,
            target_type=kind.value,
            target_id=target_id,
            action_id=action.id,
        )
        await notify(
            self.hook,
            "moderation.content_visibility",
            target_type=kind.value,
            target_id=target_id,
            hidden=hidden,
        )
        return action

    async def set_user_status(
        self,
        principal: Principal,
        user_id: int,
        action: str | UserStatusAction,
        reason: Optional[str] = None,
        suspended_until: Optional[datetime] = None,
    ) -> ModerationAction:
        """
        Suspend, reinstate or expel an account.

        Transitions are unguarded: any action may follow any status, and each
        call appends its own ledger row.

        Raises:
            ForbiddenError: Caller is not an admin
            InvalidInputError: Unknown action
            NotFoundError: User does not exist
        """
        principal.require_admin()
        try:
            action = UserStatusAction(action)
        except ValueError:
            raise InvalidInputError(f"Unknown user action: {action}")

        async with atomic(self.db):
            user = await self.db.get(User, user_id)
            if user is None:
                raise NotFoundError("User not found")

            previous = user.status
            if action is UserStatusAction.SUSPEND:
                user.status = UserStatus.SUSPENDED.value
                user.suspended_until = suspended_until
            elif action is UserStatusAction.EXPEL:
                user.status = UserStatus.EXPELLED.value
                user.expelled_at = utcnow()
            else:
                user.status = UserStatus.ACTIVE.value
                user.suspended_until = None
                user.expelled_at = None

            entry = self._record(principal, TargetType.USER, user_id, _LEDGER_ACTION[action], reason)
            await self.db.flush()

        logger.info(
            "user_status_changed",
            moderator_id=principal.id,
            user_id=user_id,
            action=action.value,
            from_status=previous,
            to_status=user.status,
            action_id=entry.id,
        )
        await notify(
            self.hook,
            "moderation.user_status",
            user_id=user_id,
            status=user.status,
        )
        return entry

    async def list_actions(
        self,
        principal: Principal,
        target_type: str | TargetType | None = None,
        target_id: Optional[int] = None,
        limit: int = 50,
    ) -> list[ModerationAction]:
        """Ledger rows, newest first, optionally for one target."""
        principal.require_admin()
        query = select(ModerationAction).order_by(ModerationAction.id.desc()).limit(limit)
        if target_type is not None:
            query = query.where(ModerationAction.target_type == parse_target_type(target_type).value)
        if target_id is not None:
            query = query.where(ModerationAction.target_id == target_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    def _record(
        self,
        principal: Principal,
        target_type: TargetType,
        target_id: int,
        action: ModerationActionType,
        reason: Optional[str],
    ) -> ModerationAction:
        entry = ModerationAction(
            moderator_id=principal.id,
            target_type=target_type.value,
            target_id=target_id,
            action=action.value,
            reason=(reason or "").strip() or None,
        )
        self.db.add(entry)
        return entry
