"""
Tests for the conversation store, including the concurrent-create path.
"""
import pytest
from sqlalchemy import func, select

from townsquare.core.errors import InvalidTargetError
from townsquare.db import utils as db_utils
from townsquare.models import Conversation, ConversationParticipant, ConversationState, pair_key
from townsquare.services.conversations import ConversationStore


async def _count(db_session, model) -> int:
    result = await db_session.execute(select(func.count(model.id)))
    return result.scalar_one()


def test_pair_key_is_order_independent():
    assert pair_key(3, 11) == pair_key(11, 3) == "3:11"


@pytest.mark.asyncio
class TestConversationStore:
    async def test_create_has_two_participants(self, db_session, alice, bob):
        store = ConversationStore(db_session)

        conversation = await store.create(alice.id, bob.id, ConversationState.PENDING)
        await db_session.commit()

        assert conversation.state == ConversationState.PENDING.value
        assert conversation.participant_ids == {alice.id, bob.id}
        assert await _count(db_session, ConversationParticipant) == 2

    async def test_find_by_pair_either_order(self, db_session, alice, bob):
        store = ConversationStore(db_session)
        created = await store.create(alice.id, bob.id)
        await db_session.commit()

        assert (await store.find_by_pair(alice.id, bob.id)).id == created.id
        assert (await store.find_by_pair(bob.id, alice.id)).id == created.id

    async def test_find_by_pair_missing(self, db_session, alice, bob):
        assert await ConversationStore(db_session).find_by_pair(alice.id, bob.id) is None

    async def test_create_rejects_self_pair(self, db_session, alice):
        with pytest.raises(InvalidTargetError):
            await ConversationStore(db_session).create(alice.id, alice.id)

    async def test_get_or_create_reuses_existing(self, db_session, alice, bob):
        store = ConversationStore(db_session)

        first, created_first = await store.get_or_create(alice.id, bob.id)
        second, created_second = await store.get_or_create(bob.id, alice.id, ConversationState.ACTIVE)
        await db_session.commit()

        assert created_first is True
        assert created_second is False
        assert first.id == second.id
        # Existing row keeps its state
        assert second.state == ConversationState.PENDING.value
        assert await _count(db_session, Conversation) == 1

    async def test_get_or_create_resolves_concurrent_insert(self, db_session, alice, bob, monkeypatch):
        """A pair inserted by another writer after our lookup resolves to that row."""
        store = ConversationStore(db_session)
        winner = await store.create(alice.id, bob.id, ConversationState.PENDING)
        await db_session.commit()
        winner_id = winner.id

        real_find = db_utils._find
        calls = []

        async def stale_find(db, model, **kwargs):
            calls.append(kwargs)
            if len(calls) == 1:
                return None
            return await real_find(db, model, **kwargs)

        monkeypatch.setattr(db_utils, "_find", stale_find)

        conversation, created = await store.get_or_create(bob.id, alice.id, ConversationState.PENDING)
        await db_session.commit()

        assert created is False
        assert conversation.id == winner_id
        assert len(calls) == 2
        assert await _count(db_session, Conversation) == 1
        assert await _count(db_session, ConversationParticipant) == 2

    async def test_set_state_and_touch(self, db_session, alice, bob):
        store = ConversationStore(db_session)
        conversation = await store.create(alice.id, bob.id)
        await db_session.commit()
        before = conversation.updated_at

        await store.set_state(conversation, ConversationState.ACTIVE)
        await store.touch(conversation)
        await db_session.commit()

        reloaded = await store.get(conversation.id)
        assert reloaded.state == ConversationState.ACTIVE.value
        assert reloaded.is_active
        assert reloaded.updated_at >= before

    async def test_other_participant(self, db_session, alice, bob):
        conversation = await ConversationStore(db_session).create(alice.id, bob.id)

        assert conversation.other_participant(alice.id) == bob.id
        assert conversation.other_participant(bob.id) == alice.id
