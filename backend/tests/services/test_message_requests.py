"""
Tests for the message request state machine.
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from townsquare.core.config import settings
from townsquare.core.errors import (
    BlockedError,
    ForbiddenError,
    InvalidInputError,
    InvalidTargetError,
    NotFoundError,
)
from townsquare.models import (
    Conversation,
    ConversationState,
    Message,
    MessageRequest,
    MessageRequestStatus,
    UserStatus,
)
from townsquare.services.blocks import BlockService
from townsquare.services.hooks import MutationHook
from townsquare.services.message_requests import MessageRequestService


class RecordingHook(MutationHook):
    def __init__(self):
        self.events = []

    async def emit(self, event, payload):
        self.events.append((event, payload))


class ExplodingHook(MutationHook):
    async def emit(self, event, payload):
        raise RuntimeError("notification backend down")


async def _count(db_session, model) -> int:
    result = await db_session.execute(select(func.count(model.id)))
    return result.scalar_one()


async def _request_row(db_session, from_id, to_id) -> MessageRequest:
    result = await db_session.execute(
        select(MessageRequest).where(
            MessageRequest.from_user_id == from_id,
            MessageRequest.to_user_id == to_id,
        )
    )
    return result.scalar_one()


@pytest.mark.asyncio
class TestRequest:
    async def test_request_creates_pending_conversation(self, db_session, alice, bob):
        outcome = await MessageRequestService(db_session).request(alice, bob.id)

        assert outcome.state == ConversationState.PENDING.value
        conversation = await db_session.get(Conversation, outcome.conversation_id)
        assert conversation.participant_ids == {alice.id, bob.id}

        row = await _request_row(db_session, alice.id, bob.id)
        assert row.status == MessageRequestStatus.PENDING.value
        assert row.conversation_id == outcome.conversation_id
        assert outcome.request_id == row.id

    async def test_note_becomes_first_message(self, db_session, alice, bob):
        outcome = await MessageRequestService(db_session).request(alice, bob.id, "  hi there  ")

        messages = (await db_session.execute(select(Message))).scalars().all()
        assert len(messages) == 1
        assert messages[0].body == "hi there"
        assert messages[0].sender_id == alice.id
        assert messages[0].conversation_id == outcome.conversation_id
        assert outcome.message_id == messages[0].id

    async def test_blank_note_adds_no_message(self, db_session, alice, bob):
        await MessageRequestService(db_session).request(alice, bob.id, "   ")
        assert await _count(db_session, Message) == 0

    async def test_overlong_note_rejected(self, db_session, alice, bob):
        with pytest.raises(InvalidInputError):
            await MessageRequestService(db_session).request(
                alice, bob.id, "x" * (settings.message_max_length + 1)
            )

        assert await _count(db_session, Conversation) == 0
        assert await _count(db_session, MessageRequest) == 0

    async def test_repeat_request_is_idempotent(self, db_session, alice, bob):
        service = MessageRequestService(db_session)

        first = await service.request(alice, bob.id)
        second = await service.request(alice, bob.id)

        assert first.conversation_id == second.conversation_id
        assert first.request_id == second.request_id
        assert await _count(db_session, Conversation) == 1
        assert await _count(db_session, MessageRequest) == 1

    async def test_reverse_request_shares_conversation(self, db_session, alice, bob):
        service = MessageRequestService(db_session)

        first = await service.request(alice, bob.id)
        second = await service.request(bob, alice.id)

        assert first.conversation_id == second.conversation_id
        assert await _count(db_session, Conversation) == 1
        assert await _count(db_session, MessageRequest) == 2

    async def test_self_request_rejected(self, db_session, alice):
        with pytest.raises(InvalidTargetError):
            await MessageRequestService(db_session).request(alice, alice.id)

    async def test_unknown_recipient(self, db_session, alice):
        with pytest.raises(NotFoundError):
            await MessageRequestService(db_session).request(alice, 9999)

    @pytest.mark.parametrize("blocker", ["sender", "recipient"])
    async def test_block_in_either_direction_rejects(self, db_session, alice, bob, blocker):
        if blocker == "sender":
            await BlockService(db_session).block(alice.id, bob.id)
        else:
            await BlockService(db_session).block(bob.id, alice.id)

        with pytest.raises(BlockedError):
            await MessageRequestService(db_session).request(alice, bob.id, "hello")

        assert await _count(db_session, Conversation) == 0
        assert await _count(db_session, MessageRequest) == 0
        assert await _count(db_session, Message) == 0

    async def test_suspended_sender_rejected(self, db_session, make_user, bob):
        suspended = await make_user("sam", status=UserStatus.SUSPENDED.value)

        with pytest.raises(ForbiddenError):
            await MessageRequestService(db_session).request(suspended, bob.id)

    async def test_lapsed_suspension_may_request(self, db_session, make_user, bob):
        lapsed = await make_user(
            "lapsed",
            status=UserStatus.SUSPENDED.value,
            suspended_until=datetime.now(timezone.utc) - timedelta(days=1),
        )

        outcome = await MessageRequestService(db_session).request(lapsed, bob.id)
        assert outcome.state == ConversationState.PENDING.value

    async def test_rerequest_after_decline_reopens(self, db_session, alice, bob):
        service = MessageRequestService(db_session)
        first = await service.request(alice, bob.id)
        await service.decline(first.request_id, bob)

        second = await service.request(alice, bob.id)

        assert second.request_id == first.request_id
        row = await _request_row(db_session, alice.id, bob.id)
        assert row.status == MessageRequestStatus.PENDING.value
        assert row.responded_at is None

    async def test_hook_receives_event(self, db_session, alice, bob):
        hook = RecordingHook()

        await MessageRequestService(db_session, hook).request(alice, bob.id)

        assert [event for event, _ in hook.events] == ["message_request.sent"]

    async def test_failing_hook_does_not_fail_request(self, db_session, alice, bob):
        outcome = await MessageRequestService(db_session, ExplodingHook()).request(alice, bob.id)

        assert await db_session.get(Conversation, outcome.conversation_id) is not None


@pytest.mark.asyncio
class TestAdminBypass:
    async def test_admin_gets_active_conversation_without_request(self, db_session, admin, bob):
        outcome = await MessageRequestService(db_session).request(admin, bob.id, "Please read the rules")

        assert outcome.state == ConversationState.ACTIVE.value
        assert outcome.request_id is None
        assert await _count(db_session, MessageRequest) == 0
        assert await _count(db_session, Message) == 1

    async def test_admin_ignores_blocks(self, db_session, admin, bob):
        await BlockService(db_session).block(bob.id, admin.id)

        outcome = await MessageRequestService(db_session).request(admin, bob.id)

        assert outcome.state == ConversationState.ACTIVE.value

    async def test_admin_activates_existing_pending_conversation(self, db_session, admin, bob):
        service = MessageRequestService(db_session)
        pending = await service.request(bob, admin.id)

        outcome = await service.request(admin, bob.id)

        assert outcome.conversation_id == pending.conversation_id
        conversation = await db_session.get(Conversation, outcome.conversation_id)
        assert conversation.state == ConversationState.ACTIVE.value


@pytest.mark.asyncio
class TestRespond:
    async def test_accept_activates_conversation(self, db_session, alice, bob):
        service = MessageRequestService(db_session)
        outcome = await service.request(alice, bob.id)

        conversation_id = await service.accept(outcome.request_id, bob)

        assert conversation_id == outcome.conversation_id
        conversation = await db_session.get(Conversation, conversation_id)
        assert conversation.state == ConversationState.ACTIVE.value
        row = await _request_row(db_session, alice.id, bob.id)
        assert row.status == MessageRequestStatus.ACCEPTED.value
        assert row.responded_at is not None

    async def test_accept_by_sender_is_not_found(self, db_session, alice, bob):
        service = MessageRequestService(db_session)
        outcome = await service.request(alice, bob.id)

        with pytest.raises(NotFoundError):
            await service.accept(outcome.request_id, alice)

    async def test_accept_by_third_party_is_not_found(self, db_session, alice, bob, carol):
        service = MessageRequestService(db_session)
        outcome = await service.request(alice, bob.id)

        with pytest.raises(NotFoundError):
            await service.accept(outcome.request_id, carol)

        conversation = await db_session.get(Conversation, outcome.conversation_id)
        await db_session.refresh(conversation)
        assert conversation.state == ConversationState.PENDING.value

    async def test_accept_unknown_request(self, db_session, bob):
        with pytest.raises(NotFoundError):
            await MessageRequestService(db_session).accept(9999, bob)

    async def test_accept_without_conversation_creates_one(self, db_session, alice, bob):
        row = MessageRequest(
            from_user_id=alice.id,
            to_user_id=bob.id,
            status=MessageRequestStatus.PENDING.value,
        )
        db_session.add(row)
        await db_session.commit()

        conversation_id = await MessageRequestService(db_session).accept(row.id, bob)

        conversation = await db_session.get(Conversation, conversation_id)
        assert conversation.state == ConversationState.ACTIVE.value
        assert conversation.participant_ids == {alice.id, bob.id}

    async def test_decline_leaves_conversation_pending(self, db_session, alice, bob):
        service = MessageRequestService(db_session)
        outcome = await service.request(alice, bob.id)

        await service.decline(outcome.request_id, bob)

        row = await _request_row(db_session, alice.id, bob.id)
        assert row.status == MessageRequestStatus.DECLINED.value
        conversation = await db_session.get(Conversation, outcome.conversation_id)
        assert conversation.state == ConversationState.PENDING.value

    async def test_decline_by_non_recipient_is_not_found(self, db_session, alice, bob, carol):
        service = MessageRequestService(db_session)
        outcome = await service.request(alice, bob.id)

        with pytest.raises(NotFoundError):
            await service.decline(outcome.request_id, carol)


@pytest.mark.asyncio
class TestListIncoming:
    async def test_lists_only_pending_to_me(self, db_session, alice, bob, carol):
        service = MessageRequestService(db_session)
        from_alice = await service.request(alice, bob.id)
        from_carol = await service.request(carol, bob.id)
        await service.request(bob, alice.id)
        await service.decline(from_alice.request_id, bob)

        incoming = await service.list_incoming(bob)

        assert [r.id for r in incoming] == [from_carol.request_id]


@pytest.mark.asyncio
class TestStateMachineProperties:
    async def test_unblock_allows_request_again(self, db_session, alice, bob):
        blocks = BlockService(db_session)
        service = MessageRequestService(db_session)
        await blocks.block(alice.id, bob.id)

        with pytest.raises(BlockedError):
            await service.request(alice, bob.id)
        with pytest.raises(BlockedError):
            await service.request(bob, alice.id)

        await blocks.unblock(alice.id, bob.id)
        outcome = await service.request(alice, bob.id)

        assert outcome.state == ConversationState.PENDING.value

    async def test_declining_later_request_keeps_conversation_active(self, db_session, alice, bob):
        service = MessageRequestService(db_session)
        first = await service.request(alice, bob.id)
        conversation_id = await service.accept(first.request_id, bob)

        reverse = await service.request(bob, alice.id)
        await service.decline(reverse.request_id, alice)

        assert reverse.conversation_id == conversation_id
        conversation = await db_session.get(Conversation, conversation_id)
        await db_session.refresh(conversation)
        assert conversation.state == ConversationState.ACTIVE.value


@pytest.mark.asyncio
class TestAnsweredRequests:
    async def test_accept_twice_returns_same_conversation(self, db_session, alice, bob):
        service = MessageRequestService(db_session)
        outcome = await service.request(alice, bob.id)

        first = await service.accept(outcome.request_id, bob)
        second = await service.accept(outcome.request_id, bob)

        assert first == second == outcome.conversation_id
        row = await _request_row(db_session, alice.id, bob.id)
        assert row.status == MessageRequestStatus.ACCEPTED.value

    async def test_decline_twice_is_noop(self, db_session, alice, bob):
        hook = RecordingHook()
        service = MessageRequestService(db_session, hook)
        outcome = await service.request(alice, bob.id)

        await service.decline(outcome.request_id, bob)
        await service.decline(outcome.request_id, bob)

        assert [event for event, _ in hook.events].count("message_request.declined") == 1

    async def test_declined_request_cannot_be_accepted(self, db_session, alice, bob):
        service = MessageRequestService(db_session)
        outcome = await service.request(alice, bob.id)
        await service.decline(outcome.request_id, bob)

        with pytest.raises(InvalidInputError):
            await service.accept(outcome.request_id, bob)

        row = await _request_row(db_session, alice.id, bob.id)
        await db_session.refresh(row)
        assert row.status == MessageRequestStatus.DECLINED.value
        conversation = await db_session.get(Conversation, outcome.conversation_id)
        await db_session.refresh(conversation)
        assert conversation.state == ConversationState.PENDING.value

    async def test_accepted_request_cannot_be_declined(self, db_session, alice, bob):
        service = MessageRequestService(db_session)
        outcome = await service.request(alice, bob.id)
        conversation_id = await service.accept(outcome.request_id, bob)

        with pytest.raises(InvalidInputError):
            await service.decline(outcome.request_id, bob)

        row = await _request_row(db_session, alice.id, bob.id)
        await db_session.refresh(row)
        assert row.status == MessageRequestStatus.ACCEPTED.value
        conversation = await db_session.get(Conversation, conversation_id)
        await db_session.refresh(conversation)
        assert conversation.state == ConversationState.ACTIVE.value

    async def test_rerequest_after_decline_can_be_accepted(self, db_session, alice, bob):
        service = MessageRequestService(db_session)
        first = await service.request(alice, bob.id)
        await service.decline(first.request_id, bob)

        again = await service.request(alice, bob.id)
        conversation_id = await service.accept(again.request_id, bob)

        conversation = await db_session.get(Conversation, conversation_id)
        assert conversation.state == ConversationState.ACTIVE.value
