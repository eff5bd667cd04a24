"""
Block edges between users.
"""
from sqlalchemy import ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from townsquare.db.base import Base


class Block(Base):
    """
    Directed suppression edge ``blocker -> blocked``.

    Storage is one row per ordered pair; the effect on messaging is symmetric
    (see ``BlockService.is_blocked_either``).
    """

    __tablename__ = "blocks"

    blocker_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    blocked_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("uq_blocks_pair", "blocker_id", "blocked_id", unique=True),
    )

    def __repr__(self) -> str:
        return f"<Block {self.blocker_id} blocked {self.blocked_id}>"
