"""
Moderation models: the append-only action ledger and user reports.

Both address their target polymorphically as ``(target_type, target_id)``;
``townsquare.services.targets`` maps each type to its table.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from townsquare.db.base import Base


class TargetType(str, Enum):
    """Kinds of entity a report or moderation action can point at."""

    POST = "post"
    COMMENT = "comment"
    MESSAGE = "message"
    USER = "user"


class ModerationActionType(str, Enum):
    """What a moderator did."""

    HIDE_CONTENT = "hide_content"
    UNHIDE_CONTENT = "unhide_content"
    SUSPEND_USER = "suspend_user"
    REINSTATE_USER = "reinstate_user"
    EXPEL_USER = "expel_user"


class ReportReason(str, Enum):
    """Closed set of reasons a user can report something for."""

    SPAM = "spam"
    HARASSMENT = "harassment"
    HATE = "hate"
    NUDITY = "nudity"
    VIOLENCE = "violence"
    SELF_HARM = "self_harm"
    COPYRIGHT = "copyright"
    OTHER = "other"


class ReportStatus(str, Enum):
    """Review state of a report."""

    OPEN = "open"
    ACTION_TAKEN = "action_taken"
    REJECTED = "rejected"


class ModerationAction(Base):
    """
    Ledger row recording one privileged state change.

    Written in the same transaction as the change it records and never
    updated or deleted afterwards.
    """

    __tablename__ = "moderation_actions"

    moderator_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    target_type: Mapped[str] = mapped_column(String(10), nullable=False)
    target_id: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_moderation_actions_target", "target_type", "target_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ModerationAction id={self.id} {self.action} {self.target_type}:{self.target_id}>"


class Report(Base):
    """
    A user-filed flag against a post, comment, message or user.

    One row per (reporter, target); filing again updates the row and reopens it.
    """

    __tablename__ = "reports"

    reporter_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    target_type: Mapped[str] = mapped_column(String(10), nullable=False)
    target_id: Mapped[int] = mapped_column(Integer, nullable=False)

    reason: Mapped[str] = mapped_column(String(20), nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(15),
        default=ReportStatus.OPEN.value,
        nullable=False,
        index=True,
    )
    resolution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolved_by_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index(
            "uq_reports_reporter_target",
            "reporter_id",
            "target_type",
            "target_id",
            unique=True,
        ),
        Index("ix_reports_target", "target_type", "target_id"),
    )

    def __repr__(self) -> str:
        return f"<Report {self.id} {self.reporter_id} -> {self.target_type}:{self.target_id} ({self.status})>"
