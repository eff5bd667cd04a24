"""
SQLAlchemy models for the Townsquare messaging and moderation service.
"""
from townsquare.models.user import User, UserRole, UserStatus
from townsquare.models.content import Post, Comment
from townsquare.models.block import Block
from townsquare.models.conversation import (
    Conversation,
    ConversationParticipant,
    ConversationState,
    Message,
    MessageRequest,
    MessageRequestStatus,
    pair_key,
)
from townsquare.models.moderation import (
    ModerationAction,
    ModerationActionType,
    Report,
    ReportReason,
    ReportStatus,
    TargetType,
)

__all__ = [
    "User",
    "UserRole",
    "UserStatus",
    "Post",
    "Comment",
    "Block",
    "Conversation",
    "ConversationParticipant",
    "ConversationState",
    "Message",
    "MessageRequest",
    "MessageRequestStatus",
    "pair_key",
    "ModerationAction",
    "ModerationActionType",
    "Report",
    "ReportReason",
    "ReportStatus",
    "TargetType",
]
