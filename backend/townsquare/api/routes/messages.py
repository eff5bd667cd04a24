"""
Direct messaging API endpoints.

Message requests, the inbox, threads and sending. Reads are pull-based.
"""
from typing import Optional

import structlog
from fastapi import APIRouter, Query

from townsquare.api.deps import CurrentPrincipal, DbSession, Hook
from townsquare.models import Message
from townsquare.schemas.messaging import (
    AcceptResponse,
    ConversationListResponse,
    ConversationSummary,
    MessageCreate,
    MessageCreated,
    MessageRequestCreate,
    MessageRequestCreated,
    MessageRequestListResponse,
    MessageRequestResponse,
    MessageResponse,
    OkResponse,
    ThreadResponse,
)
from townsquare.services.message_requests import MessageRequestService
from townsquare.services.messaging import MessagingService

router = APIRouter(prefix="/messages", tags=["messages"])
logger = structlog.get_logger(__name__)


def _message_to_response(msg: Message) -> MessageResponse:
    return MessageResponse.model_validate(msg)


@router.post("/requests", response_model=MessageRequestCreated, status_code=201)
async def send_message_request(
    payload: MessageRequestCreate,
    db: DbSession,
    principal: CurrentPrincipal,
    hook: Hook,
):
    """
    Ask another user to start a conversation.

    Admins skip block gating and get an active conversation straight away.
    """
    outcome = await MessageRequestService(db, hook).request(
        principal, payload.to_user_id, payload.body
    )
    return MessageRequestCreated(conversation_id=outcome.conversation_id, status=outcome.state)


@router.get("/requests", response_model=MessageRequestListResponse)
async def list_message_requests(
    db: DbSession,
    principal: CurrentPrincipal,
):
    """Pending requests addressed to the current user."""
    requests = await MessageRequestService(db).list_incoming(principal)
    return MessageRequestListResponse(
        requests=[MessageRequestResponse.model_validate(r) for r in requests],
        total=len(requests),
    )


@router.post("/requests/{request_id}/accept", response_model=AcceptResponse)
async def accept_message_request(
    request_id: int,
    db: DbSession,
    principal: CurrentPrincipal,
    hook: Hook,
):
    """Accept a request addressed to the current user."""
    conversation_id = await MessageRequestService(db, hook).accept(request_id, principal)
    return AcceptResponse(conversation_id=conversation_id)


@router.post("/requests/{request_id}/decline", response_model=OkResponse)
async def decline_message_request(
    request_id: int,
    db: DbSession,
    principal: CurrentPrincipal,
    hook: Hook,
):
    """Decline a request addressed to the current user."""
    await MessageRequestService(db, hook).decline(request_id, principal)
    return OkResponse()


@router.get("/conversations", response_model=ConversationListResponse)
async def get_conversations(
    db: DbSession,
    principal: CurrentPrincipal,
):
    """Active conversations, most recent first."""
    entries = await MessagingService(db).inbox(principal)
    return ConversationListResponse(
        conversations=[
            ConversationSummary(
                id=entry.conversation.id,
                state=entry.conversation.state,
                other_user_id=entry.other_user_id,
                updated_at=entry.conversation.updated_at,
                last_message=_message_to_response(entry.last_message) if entry.last_message else None,
            )
            for entry in entries
        ]
    )


@router.get("/conversations/{conversation_id}", response_model=ThreadResponse)
async def get_conversation(
    conversation_id: int,
    db: DbSession,
    principal: CurrentPrincipal,
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    before_id: Optional[int] = None,
):
    """
    Messages in a conversation, oldest first.

    Use before_id for pagination. Without limit the configured page size applies.
    """
    view = await MessagingService(db).thread(conversation_id, principal, limit, before_id)
    return ThreadResponse(
        id=view.conversation.id,
        state=view.conversation.state,
        participant_ids=sorted(view.conversation.participant_ids),
        messages=[_message_to_response(m) for m in view.messages],
        has_more=view.has_more,
        blocked_by_me=view.blocked_by_me,
        blocked_me=view.blocked_me,
    )


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageCreated,
    status_code=201,
)
async def send_message(
    conversation_id: int,
    payload: MessageCreate,
    db: DbSession,
    principal: CurrentPrincipal,
    hook: Hook,
):
    """Send a message into an active conversation."""
    message = await MessagingService(db, hook).send(conversation_id, principal, payload.body)
    return MessageCreated(message_id=message.id)
