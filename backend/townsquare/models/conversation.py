"""
Conversation, participant, message request and message models.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from townsquare.db.base import Base, HiddenMixin


class ConversationState(str, Enum):
    """Lifecycle of a 1:1 conversation."""

    PENDING = "pending"  # Requested, not accepted yet
    ACTIVE = "active"    # Both sides may send


class MessageRequestStatus(str, Enum):
    """Status of a directed message request."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


def pair_key(user_a: int, user_b: int) -> str:
    """Canonical key for an unordered pair of user ids."""
    low, high = sorted((user_a, user_b))
    return f"{low}:{high}"


class Conversation(Base):
    """
    A two-party messaging channel.

    ``pair_key`` is unique, so at most one conversation exists per unordered
    participant pair regardless of who created it.
    """

    __tablename__ = "conversations"

    state: Mapped[str] = mapped_column(
        String(10),
        default=ConversationState.PENDING.value,
        nullable=False,
        index=True,
    )
    pair_key: Mapped[str] = mapped_column(String(64), nullable=False)

    participants: Mapped[list["ConversationParticipant"]] = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("uq_conversations_pair_key", "pair_key", unique=True),
        Index("ix_conversations_state_updated", "state", "updated_at"),
    )

    @property
    def participant_ids(self) -> set[int]:
        return {p.user_id for p in self.participants}

    @property
    def is_active(self) -> bool:
        return self.state == ConversationState.ACTIVE.value

    def other_participant(self, user_id: int) -> Optional[int]:
        for p in self.participants:
            if p.user_id != user_id:
                return p.user_id
        return None

    def __repr__(self) -> str:
        return f"<Conversation {self.id} {self.pair_key} ({self.state})>"


class ConversationParticipant(Base):
    """Membership row; every conversation has exactly two."""

    __tablename__ = "conversation_participants"

    conversation_id: Mapped[int] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    conversation: Mapped["Conversation"] = relationship(
        "Conversation",
        back_populates="participants",
    )

    __table_args__ = (
        Index(
            "uq_conversation_participant",
            "conversation_id",
            "user_id",
            unique=True,
        ),
    )


class MessageRequest(Base):
    """
    Directed solicitation ``from_user -> to_user`` to start messaging.

    One row per ordered pair. Re-requesting resets the row to PENDING instead
    of inserting another.
    """

    __tablename__ = "message_requests"

    from_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    to_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(10),
        default=MessageRequestStatus.PENDING.value,
        nullable=False,
    )
    conversation_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("conversations.id", ondelete="SET NULL"),
        nullable=True,
    )
    responded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index("uq_message_requests_from_to", "from_user_id", "to_user_id", unique=True),
        Index("ix_message_requests_to_status", "to_user_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<MessageRequest {self.from_user_id} -> {self.to_user_id} ({self.status})>"


class Message(Base, HiddenMixin):
    """
    A message inside a conversation.

    Immutable once written apart from the moderation hidden markers.
    """

    __tablename__ = "messages"

    conversation_id: Mapped[int] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Message {self.id} in {self.conversation_id} from {self.sender_id}>"
