"""
Service layer: the messaging and moderation components.

Each service wraps an ``AsyncSession`` and takes the caller as an explicit
``Principal``.
"""
from townsquare.services.blocks import BlockService
from townsquare.services.conversations import ConversationStore
from townsquare.services.hooks import LoggingHook, MutationHook
from townsquare.services.message_requests import MessageRequestService, RequestOutcome
from townsquare.services.messaging import MessagingService
from townsquare.services.moderation import ModerationService, UserStatusAction
from townsquare.services.reports import ReportService
from townsquare.services.users import UserDirectoryService

__all__ = [
    "BlockService",
    "ConversationStore",
    "LoggingHook",
    "MutationHook",
    "MessageRequestService",
    "RequestOutcome",
    "MessagingService",
    "ModerationService",
    "UserStatusAction",
    "ReportService",
    "UserDirectoryService",
]
