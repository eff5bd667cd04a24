"""
User blocking endpoints.
"""
from fastapi import APIRouter

from townsquare.api.deps import CurrentPrincipal, DbSession, Hook
from townsquare.schemas.messaging import (
    BlockCreate,
    BlockedUserResponse,
    BlockListResponse,
    OkResponse,
)
from townsquare.services.blocks import BlockService

router = APIRouter(prefix="/blocks", tags=["blocks"])


@router.post("", response_model=OkResponse)
async def block_user(
    payload: BlockCreate,
    db: DbSession,
    principal: CurrentPrincipal,
    hook: Hook,
):
    """Block a user. Blocking twice is a no-op."""
    await BlockService(db, hook).block(principal.id, payload.target_id)
    return OkResponse()


@router.delete("/{target_id}", response_model=OkResponse)
async def unblock_user(
    target_id: int,
    db: DbSession,
    principal: CurrentPrincipal,
    hook: Hook,
):
    """Remove your block on a user, if any."""
    await BlockService(db, hook).unblock(principal.id, target_id)
    return OkResponse()


@router.get("", response_model=BlockListResponse)
async def list_blocks(
    db: DbSession,
    principal: CurrentPrincipal,
):
    """Users the current user has blocked."""
    blocks = await BlockService(db).list_blocked(principal.id)
    return BlockListResponse(blocks=[BlockedUserResponse.model_validate(b) for b in blocks])
