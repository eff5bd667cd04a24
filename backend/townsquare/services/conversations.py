"""
Conversation store.

Owns the two-party conversation rows and their lifecycle state. Does not
flush-commit on its own; callers wrap it in their transaction.
"""
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from townsquare.core.errors import InvalidTargetError
from townsquare.db.base import utcnow
from townsquare.db.utils import get_or_insert
from townsquare.models import (
    Conversation,
    ConversationParticipant,
    ConversationState,
    pair_key,
)

logger = structlog.get_logger(__name__)


class ConversationStore:
    """Lookup, creation and state changes for 1:1 conversations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, conversation_id: int) -> Optional[Conversation]:
        return await self.db.get(Conversation, conversation_id)

    async def find_by_pair(self, user_a: int, user_b: int) -> Optional[Conversation]:
        """Return the single conversation between the two users, if any."""
        result = await self.db.execute(
            select(Conversation).where(Conversation.pair_key == pair_key(user_a, user_b))
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        user_a: int,
        user_b: int,
        initial_state: ConversationState = ConversationState.PENDING,
    ) -> Conversation:
        """
        Insert a conversation for a pair known to have none.

        A concurrent insert for the same pair surfaces as an IntegrityError on
        flush; use ``get_or_create`` when that race is possible.
        """
        conversation = Conversation(
            state=ConversationState(initial_state).value,
            **self._new_pair(user_a, user_b),
        )
        self.db.add(conversation)
        await self.db.flush()
        logger.info(
            "conversation_created",
            conversation_id=conversation.id,
            pair=conversation.pair_key,
            state=conversation.state,
        )
        return conversation

    async def get_or_create(
        self,
        user_a: int,
        user_b: int,
        initial_state: ConversationState = ConversationState.PENDING,
    ) -> tuple[Conversation, bool]:
        """
        Find the pair's conversation or create it in ``initial_state``.

        Race-safe: two callers creating the same pair concurrently both end up
        with the one row that won the unique ``pair_key`` insert.
        """
        conversation, created = await get_or_insert(
            self.db,
            Conversation,
            defaults={
                "state": ConversationState(initial_state).value,
                "participants": self._new_pair(user_a, user_b)["participants"],
            },
            pair_key=pair_key(user_a, user_b),
        )
        if created:
            logger.info(
                "conversation_created",
                conversation_id=conversation.id,
                pair=conversation.pair_key,
                state=conversation.state,
            )
        return conversation, created

    async def set_state(self, conversation: Conversation, state: ConversationState) -> Conversation:
        state = ConversationState(state)
        if conversation.state != state.value:
            logger.info(
                "conversation_state_changed",
                conversation_id=conversation.id,
                from_state=conversation.state,
                to_state=state.value,
            )
            conversation.state = state.value
            await self.db.flush()
        return conversation

    async def touch(self, conversation: Conversation) -> None:
        """Bump ``updated_at`` so inbox ordering follows the latest message."""
        conversation.updated_at = utcnow()
        await self.db.flush()

    @staticmethod
    def _new_pair(user_a: int, user_b: int) -> dict:
        if user_a == user_b:
            raise InvalidTargetError("A conversation needs two different users")
        return {
            "pair_key": pair_key(user_a, user_b),
            "participants": [
                ConversationParticipant(user_id=user_a),
                ConversationParticipant(user_id=user_b),
            ],
        }
