"""
Database utility functions for safe operations.

Provides the get-or-insert primitive used by every upsert-shaped state
transition (blocks, message requests, reports, conversation pairs).
"""
from typing import Optional, Type, TypeVar

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase

from townsquare.core.errors import ConflictError
from townsquare.db.transaction import savepoint

T = TypeVar('T', bound=DeclarativeBase)

logger = structlog.get_logger(__name__)


async def _find(db: AsyncSession, model: Type[T], **kwargs) -> Optional[T]:
    result = await db.execute(select(model).filter_by(**kwargs))
    return result.scalar_one_or_none()


async def get_or_insert(
    db: AsyncSession,
    model: Type[T],
    defaults: Optional[dict] = None,
    **kwargs
) -> tuple[T, bool]:
    """
    Get an existing instance or insert a new one (idempotent).

    ``kwargs`` must name a unique key of ``model``. The insert runs inside a
    savepoint; if a concurrent writer inserted the same key first, the unique
    violation rolls back only the savepoint and the winning row is returned.
    The caller's transaction is left intact and nothing is committed.

    Args:
        db: Database session
        model: SQLAlchemy model class
        defaults: Extra values used only when inserting
        **kwargs: Unique-key filter criteria

    Returns:
        Tuple of (instance, created) where created is True if a new row was inserted

    Raises:
        ConflictError: The insert conflicted but the existing row could not be read back

    Example:
        block, created = await get_or_insert(
            db, Block, blocker_id=1, blocked_id=2
        )
    """
    instance = await _find(db, model, **kwargs)
    if instance is not None:
        return instance, False

    create_kwargs = {**kwargs}
    if defaults:
        create_kwargs.update(defaults)

    try:
        async with savepoint(db, f"insert_{model.__tablename__}"):
            instance = model(**create_kwargs)
            db.add(instance)
            await db.flush()
        return instance, True
    except IntegrityError:
        logger.info(
            "Concurrent insert resolved to existing row",
            model=model.__name__,
            key=kwargs,
        )

    instance = await _find(db, model, **kwargs)
    if instance is None:
        raise ConflictError(f"Could not resolve concurrent {model.__name__} insert")
    return instance, False
