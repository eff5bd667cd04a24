"""
Messaging, request and block schemas for API request/response validation.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ============ Message Request Schemas ============

class MessageRequestCreate(BaseModel):
    """Schema for asking another user to start a conversation."""
    to_user_id: int
    body: Optional[str] = Field(
        default=None,
        max_length=4000,
        description="Optional note delivered as the first message"
    )


class MessageRequestCreated(BaseModel):
    """Outcome of a message request."""
    conversation_id: int
    status: str = Field(..., description="Resulting conversation state: pending or active")


class MessageRequestResponse(BaseModel):
    """A directed message request."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    from_user_id: int
    to_user_id: int
    status: str
    conversation_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    responded_at: Optional[datetime] = None


class MessageRequestListResponse(BaseModel):
    """Pending requests addressed to the caller."""
    requests: list[MessageRequestResponse]
    total: int


class AcceptResponse(BaseModel):
    conversation_id: int


class OkResponse(BaseModel):
    ok: bool = True


# ============ Message Schemas ============

class MessageCreate(BaseModel):
    """Schema for posting into a conversation."""
    body: str = Field(..., max_length=4000)


class MessageCreated(BaseModel):
    message_id: int


class MessageResponse(BaseModel):
    """A message as shown in a thread."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    sender_id: int
    body: str
    created_at: datetime
    hidden_at: Optional[datetime] = None


class ConversationSummary(BaseModel):
    """Inbox row."""
    id: int
    state: str
    other_user_id: Optional[int] = None
    updated_at: datetime
    last_message: Optional[MessageResponse] = None


class ConversationListResponse(BaseModel):
    conversations: list[ConversationSummary]


class ThreadResponse(BaseModel):
    """One conversation with a page of its messages."""
    id: int
    state: str
    participant_ids: list[int]
    messages: list[MessageResponse]
    has_more: bool
    blocked_by_me: bool = False
    blocked_me: bool = False


# ============ Block Schemas ============

class BlockCreate(BaseModel):
    target_id: int


class BlockedUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    blocked_id: int
    created_at: datetime


class BlockListResponse(BaseModel):
    blocks: list[BlockedUserResponse]
