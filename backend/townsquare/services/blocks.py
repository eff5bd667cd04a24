"""
Block registry.

Blocks are stored per direction but gate messaging in both directions; every
messaging path must consult ``is_blocked_either`` at the time of the call.
"""
import structlog
from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from townsquare.core.errors import InvalidTargetError, NotFoundError
from townsquare.db.transaction import atomic
from townsquare.db.utils import get_or_insert
from townsquare.models import Block, User
from townsquare.services.hooks import MutationHook, notify

logger = structlog.get_logger(__name__)


class BlockService:
    """Create, remove and query block edges."""

    def __init__(self, db: AsyncSession, hook: MutationHook | None = None):
        self.db = db
        self.hook = hook

    async def block(self, blocker_id: int, blocked_id: int) -> Block:
        """
        Record that ``blocker_id`` blocks ``blocked_id``. Idempotent.

        Raises:
            InvalidTargetError: Blocking yourself
            NotFoundError: Target user does not exist
        """
        if blocker_id == blocked_id:
            raise InvalidTargetError("Cannot block yourself")

        async with atomic(self.db):
            if await self.db.get(User, blocked_id) is None:
                raise NotFoundError("User not found")
            edge, created = await get_or_insert(
                self.db, Block, blocker_id=blocker_id, blocked_id=blocked_id
            )

        if created:
            logger.info("user_blocked", blocker_id=blocker_id, blocked_id=blocked_id)
            await notify(self.hook, "block.created", blocker_id=blocker_id, blocked_id=blocked_id)
        return edge

    async def unblock(self, blocker_id: int, blocked_id: int) -> bool:
        """
        Remove the ``blocker_id -> blocked_id`` edge if present.

        The reverse edge, if any, is untouched. Returns whether a row was removed.
        """
        async with atomic(self.db):
            result = await self.db.execute(
                delete(Block).where(
                    Block.blocker_id == blocker_id,
                    Block.blocked_id == blocked_id,
                )
            )
        removed = (result.rowcount or 0) > 0
        if removed:
            logger.info("user_unblocked", blocker_id=blocker_id, blocked_id=blocked_id)
            await notify(self.hook, "block.removed", blocker_id=blocker_id, blocked_id=blocked_id)
        return removed

    async def is_blocked_either(self, user_a: int, user_b: int) -> bool:
        """True if either user has blocked the other."""
        result = await self.db.execute(
            select(Block.id).where(
                or_(
                    and_(Block.blocker_id == user_a, Block.blocked_id == user_b),
                    and_(Block.blocker_id == user_b, Block.blocked_id == user_a),
                )
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def has_blocked(self, blocker_id: int, blocked_id: int) -> bool:
        """True if ``blocker_id`` has blocked ``blocked_id`` (one direction)."""
        result = await self.db.execute(
            select(Block.id).where(
                Block.blocker_id == blocker_id,
                Block.blocked_id == blocked_id,
            )
        )
        return result.scalar_one_or_none() is not None

    async def list_blocked(self, blocker_id: int) -> list[Block]:
        """Blocks placed by ``blocker_id``, newest first."""
        result = await self.db.execute(
            select(Block)
            .where(Block.blocker_id == blocker_id)
            .order_by(Block.created_at.desc(), Block.id.desc())
        )
        return list(result.scalars().all())
