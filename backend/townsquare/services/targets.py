"""
Dispatch table for polymorphic moderation targets.

Reports and ledger rows refer to ``(TargetType, id)``. This module is the one
place that knows which table backs each kind and whether it can be hidden.
"""
from dataclasses import dataclass
from typing import Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession

from townsquare.core.errors import InvalidTargetError, NotFoundError
from townsquare.db.base import Base
from townsquare.models import Comment, Message, Post, TargetType, User


@dataclass(frozen=True)
class TargetKind:
    model: Type[Base]
    hideable: bool
    label: str


TARGETS: dict[TargetType, TargetKind] = {
    TargetType.POST: TargetKind(Post, hideable=True, label="Post"),
    TargetType.COMMENT: TargetKind(Comment, hideable=True, label="Comment"),
    TargetType.MESSAGE: TargetKind(Message, hideable=True, label="Message"),
    TargetType.USER: TargetKind(User, hideable=False, label="User"),
}


def parse_target_type(value: str | TargetType) -> TargetType:
    try:
        return TargetType(value)
    except ValueError:
        raise InvalidTargetError(f"Unsupported target type: {value}")


async def load_target(
    db: AsyncSession,
    target_type: str | TargetType,
    target_id: int,
    hideable_only: bool = False,
) -> Base:
    """
    Fetch the row behind a target reference.

    Raises:
        InvalidTargetError: Unknown kind, or a non-hideable kind when ``hideable_only``
        NotFoundError: No such row
    """
    kind = TARGETS[parse_target_type(target_type)]
    if hideable_only and not kind.hideable:
        raise InvalidTargetError(f"{kind.label} cannot be hidden")

    row: Optional[Base] = await db.get(kind.model, target_id)
    if row is None:
        raise NotFoundError(f"{kind.label} not found")
    return row
