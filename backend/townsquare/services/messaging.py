"""
Messaging gateway: posting into ACTIVE conversations and the pull-based
inbox and thread reads.
"""
from dataclasses import dataclass, field
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from townsquare.core.config import settings
from townsquare.core.errors import (
    BlockedError,
    ForbiddenError,
    InvalidInputError,
    NotActiveError,
    NotFoundError,
)
from townsquare.core.principal import Principal
from townsquare.db.transaction import atomic
from townsquare.models import (
    Conversation,
    ConversationParticipant,
    ConversationState,
    Message,
)
from townsquare.services.blocks import BlockService
from townsquare.services.conversations import ConversationStore
from townsquare.services.hooks import MutationHook, notify
from townsquare.services.moderation import visible_to

logger = structlog.get_logger(__name__)


@dataclass
class InboxEntry:
    conversation: Conversation
    other_user_id: Optional[int]
    last_message: Optional[Message]


@dataclass
class ThreadView:
    conversation: Conversation
    messages: list[Message] = field(default_factory=list)
    has_more: bool = False
    blocked_by_me: bool = False
    blocked_me: bool = False


class MessagingService:
    """Send messages and read conversations."""

    def __init__(self, db: AsyncSession, hook: MutationHook | None = None):
        self.db = db
        self.hook = hook
        self.blocks = BlockService(db)
        self.conversations = ConversationStore(db)

    async def send(self, conversation_id: int, principal: Principal, body: str) -> Message:
        """
        Post ``body`` into a conversation the caller belongs to.

        Raises:
            InvalidInputError: Body empty after trimming, or too long
            NotFoundError: No such conversation
            ForbiddenError: Caller is not a participant, or is suspended/expelled
            NotActiveError: Conversation not accepted yet
            BlockedError: Either participant blocks the other right now
        """
        text = (body or "").strip()
        if not text:
            raise InvalidInputError("Message body is empty")
        if len(text) > settings.message_max_length:
            raise InvalidInputError(
                f"Message body exceeds {settings.message_max_length} characters"
            )
        principal.require_in_good_standing()

        async with atomic(self.db):
            conversation = await self.conversations.get(conversation_id)
            if conversation is None:
                raise NotFoundError("Conversation not found")
            if principal.id not in conversation.participant_ids:
                raise ForbiddenError("Not a participant of this conversation")
            if conversation.state != ConversationState.ACTIVE.value:
                raise NotActiveError()

            other_id = conversation.other_participant(principal.id)
            if other_id is not None and await self.blocks.is_blocked_either(principal.id, other_id):
                raise BlockedError()

            message = Message(
                conversation_id=conversation.id,
                sender_id=principal.id,
                body=text,
            )
            self.db.add(message)
            await self.db.flush()
            await self.conversations.touch(conversation)

        logger.info(
            "message_sent",
            conversation_id=conversation.id,
            message_id=message.id,
            sender_id=principal.id,
        )
        await notify(
            self.hook,
            "message.sent",
            conversation_id=conversation.id,
            message_id=message.id,
            sender_id=principal.id,
            recipient_id=other_id,
        )
        return message

    async def inbox(self, principal: Principal) -> list[InboxEntry]:
        """ACTIVE conversations of the caller, most recently active first."""
        result = await self.db.execute(
            select(Conversation)
            .join(
                ConversationParticipant,
                ConversationParticipant.conversation_id == Conversation.id,
            )
            .where(
                ConversationParticipant.user_id == principal.id,
                Conversation.state == ConversationState.ACTIVE.value,
            )
            .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
        )
        conversations = list(result.scalars().unique().all())

        entries = []
        for conversation in conversations:
            entries.append(
                InboxEntry(
                    conversation=conversation,
                    other_user_id=conversation.other_participant(principal.id),
                    last_message=await self._last_visible_message(conversation.id, principal),
                )
            )
        return entries

    async def thread(
        self,
        conversation_id: int,
        principal: Principal,
        limit: Optional[int] = None,
        before_id: Optional[int] = None,
    ) -> ThreadView:
        """
        Messages of one conversation, oldest first.

        Hidden messages are left out unless the viewer is an admin. Admins may
        read any conversation.
        """
        conversation = await self.conversations.get(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        is_member = principal.id in conversation.participant_ids
        if not is_member and not principal.is_admin:
            raise ForbiddenError("Not a participant of this conversation")

        limit = limit or settings.thread_page_size
        query = (
            select(Message)
            .where(Message.conversation_id == conversation.id)
            .order_by(Message.id.desc())
            .limit(limit + 1)
        )
        query = visible_to(query, Message, principal)
        if before_id:
            query = query.where(Message.id < before_id)

        result = await self.db.execute(query)
        messages = list(result.scalars().all())
        has_more = len(messages) > limit
        messages = list(reversed(messages[:limit]))

        view = ThreadView(conversation=conversation, messages=messages, has_more=has_more)
        other_id = conversation.other_participant(principal.id) if is_member else None
        if other_id is not None:
            view.blocked_by_me = await self.blocks.has_blocked(principal.id, other_id)
            view.blocked_me = await self.blocks.has_blocked(other_id, principal.id)
        return view

    async def _last_visible_message(
        self,
        conversation_id: int,
        principal: Principal,
    ) -> Optional[Message]:
        query = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.id.desc())
            .limit(1)
        )
        query = visible_to(query, Message, principal)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()
