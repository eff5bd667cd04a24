"""
Message request service.

State machine per directed pair (from -> to):

    NONE -> PENDING -> ACCEPTED | DECLINED
    ACCEPTED | DECLINED -> PENDING      (only via a fresh ``request``)

Repeating the response a request already has is a no-op; answering it the
other way is rejected.

A request always points at the pair's single conversation. Accepting flips
that conversation to ACTIVE; declining leaves it as it was. Admin callers
skip the block check, get an ACTIVE conversation immediately and leave no
request row behind.
"""
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from townsquare.core.config import settings
from townsquare.core.errors import (
    BlockedError,
    InvalidInputError,
    InvalidTargetError,
    NotFoundError,
)
from townsquare.core.principal import Principal
from townsquare.db.base import utcnow
from townsquare.db.transaction import atomic
from townsquare.db.utils import get_or_insert
from townsquare.models import (
    ConversationState,
    Message,
    MessageRequest,
    MessageRequestStatus,
    User,
)
from townsquare.services.blocks import BlockService
from townsquare.services.conversations import ConversationStore
from townsquare.services.hooks import MutationHook, notify

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RequestOutcome:
    """Result of ``MessageRequestService.request``."""

    conversation_id: int
    state: str
    request_id: Optional[int] = None
    message_id: Optional[int] = None


class MessageRequestService:
    """Opens, accepts and declines message requests."""

    def __init__(self, db: AsyncSession, hook: MutationHook | None = None):
        self.db = db
        self.hook = hook
        self.blocks = BlockService(db)
        self.conversations = ConversationStore(db)

    async def request(
        self,
        principal: Principal,
        to_user_id: int,
        note: Optional[str] = None,
    ) -> RequestOutcome:
        """
        Ask ``to_user_id`` to start a conversation, optionally with a first note.

        Re-requesting while PENDING reuses the same conversation and request
        row; only an explicitly re-submitted note adds another message.

        Raises:
            InvalidTargetError: Requesting yourself
            InvalidInputError: Note longer than the message limit
            ForbiddenError: Caller is suspended or expelled
            NotFoundError: Target user does not exist
            BlockedError: Either side blocks the other (regular callers only)
        """
        from_user_id = principal.id
        if from_user_id == to_user_id:
            raise InvalidTargetError("Cannot message yourself")
        principal.require_in_good_standing()

        bypass = principal.is_admin
        note_body = (note or "").strip()
        if len(note_body) > settings.message_max_length:
            raise InvalidInputError(
                f"Message body exceeds {settings.message_max_length} characters"
            )
        request_row: Optional[MessageRequest] = None
        message: Optional[Message] = None

        async with atomic(self.db):
            if await self.db.get(User, to_user_id) is None:
                raise NotFoundError("User not found")

            if not bypass and await self.blocks.is_blocked_either(from_user_id, to_user_id):
                raise BlockedError()

            initial = ConversationState.ACTIVE if bypass else ConversationState.PENDING
            conversation, _ = await self.conversations.get_or_create(
                from_user_id, to_user_id, initial
            )
            if bypass:
                await self.conversations.set_state(conversation, ConversationState.ACTIVE)
            else:
                request_row = await self._upsert_pending(
                    from_user_id, to_user_id, conversation.id
                )

            if note_body:
                message = Message(
                    conversation_id=conversation.id,
                    sender_id=from_user_id,
                    body=note_body,
                )
                self.db.add(message)
                await self.db.flush()
                await self.conversations.touch(conversation)

        logger.info(
            "message_request_sent",
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            conversation_id=conversation.id,
            state=conversation.state,
            admin_bypass=bypass,
            with_note=message is not None,
        )
        await notify(
            self.hook,
            "message_request.sent",
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            conversation_id=conversation.id,
        )

        return RequestOutcome(
            conversation_id=conversation.id,
            state=conversation.state,
            request_id=request_row.id if request_row else None,
            message_id=message.id if message else None,
        )

    async def _upsert_pending(
        self,
        from_user_id: int,
        to_user_id: int,
        conversation_id: int,
    ) -> MessageRequest:
        """Get-or-insert the directed request, then (re)stamp it PENDING."""
        row, created = await get_or_insert(
            self.db,
            MessageRequest,
            defaults={
                "status": MessageRequestStatus.PENDING.value,
                "conversation_id": conversation_id,
            },
            from_user_id=from_user_id,
            to_user_id=to_user_id,
        )
        if not created:
            if row.status != MessageRequestStatus.PENDING.value:
                logger.info(
                    "message_request_reopened",
                    request_id=row.id,
                    previous_status=row.status,
                )
            row.status = MessageRequestStatus.PENDING.value
            row.conversation_id = conversation_id
            row.responded_at = None
            await self.db.flush()
        return row

    async def _get_addressed(self, request_id: int, acting_user_id: int) -> MessageRequest:
        row = await self.db.get(MessageRequest, request_id)
        # Same error for "missing" and "not yours"
        if row is None or row.to_user_id != acting_user_id:
            raise NotFoundError("Request not found")
        return row

    @staticmethod
    def _ensure_answerable(row: MessageRequest, answer: MessageRequestStatus) -> bool:
        """
        True when ``row`` still needs an answer; False when it already has ``answer``.

        Raises:
            InvalidInputError: The request was already answered the other way
        """
        if row.status == MessageRequestStatus.PENDING.value:
            return True
        if row.status == answer.value:
            return False
        raise InvalidInputError(f"Request already {row.status}")

    async def accept(self, request_id: int, principal: Principal) -> int:
        """
        Accept a request addressed to the caller; returns the conversation id.

        Creates the conversation if the request has none, flips it ACTIVE and
        marks the request ACCEPTED in one transaction.
        Accepting twice returns the same conversation; accepting a declined
        request raises InvalidInputError.
        """
        async with atomic(self.db):
            row = await self._get_addressed(request_id, principal.id)
            if not self._ensure_answerable(row, MessageRequestStatus.ACCEPTED):
                return row.conversation_id

            conversation = None
            if row.conversation_id is not None:
                conversation = await self.conversations.get(row.conversation_id)
            if conversation is None:
                conversation, _ = await self.conversations.get_or_create(
                    row.from_user_id, row.to_user_id, ConversationState.PENDING
                )

            await self.conversations.set_state(conversation, ConversationState.ACTIVE)
            row.status = MessageRequestStatus.ACCEPTED.value
            row.conversation_id = conversation.id
            row.responded_at = utcnow()
            await self.db.flush()

        logger.info(
            "message_request_accepted",
            request_id=row.id,
            conversation_id=conversation.id,
        )
        await notify(
            self.hook,
            "message_request.accepted",
            request_id=row.id,
            from_user_id=row.from_user_id,
            conversation_id=conversation.id,
        )
        return conversation.id

    async def decline(self, request_id: int, principal: Principal) -> None:
        """
        Decline a request addressed to the caller. The conversation is untouched.

        Declining twice is a no-op; declining an accepted request raises
        InvalidInputError.
        """
        async with atomic(self.db):
            row = await self._get_addressed(request_id, principal.id)
            if not self._ensure_answerable(row, MessageRequestStatus.DECLINED):
                return
            row.status = MessageRequestStatus.DECLINED.value
            row.responded_at = utcnow()
            await self.db.flush()

        logger.info("message_request_declined", request_id=row.id)
        await notify(
            self.hook,
            "message_request.declined",
            request_id=row.id,
            from_user_id=row.from_user_id,
        )

    async def list_incoming(self, principal: Principal) -> list[MessageRequest]:
        """Pending requests addressed to the caller, newest first."""
        result = await self.db.execute(
            select(MessageRequest)
            .where(
                MessageRequest.to_user_id == principal.id,
                MessageRequest.status == MessageRequestStatus.PENDING.value,
            )
            .order_by(MessageRequest.updated_at.desc(), MessageRequest.id.desc())
        )
        return list(result.scalars().all())
