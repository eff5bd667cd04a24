"""
Report and moderation schemas.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from townsquare.models import ReportReason, ReportStatus, TargetType, UserRole


class ReportCreate(BaseModel):
    """Schema for filing a report."""
    target_type: TargetType
    target_id: int
    reason: ReportReason
    details: Optional[str] = Field(
        default=None,
        description="Free text; truncated to the configured maximum"
    )


class ReportCreated(BaseModel):
    report_id: int


class ReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    reporter_id: int
    target_type: str
    target_id: int
    reason: str
    details: Optional[str] = None
    status: str
    resolution: Optional[str] = None
    resolved_by_id: Optional[int] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ReportListResponse(BaseModel):
    reports: list[ReportResponse]
    total: int
    page: int
    page_size: int


class ResolveReportRequest(BaseModel):
    status: ReportStatus = Field(..., description="action_taken or rejected")
    resolution: Optional[str] = Field(default=None, max_length=2000)


class ContentModerationRequest(BaseModel):
    """Hide or unhide a post, comment or message."""
    target_type: TargetType
    target_id: int
    reason: Optional[str] = Field(default=None, max_length=2000)


class UserModerationRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=2000)
    suspended_until: Optional[datetime] = Field(
        default=None,
        description="Only used by suspend; omitted means indefinite"
    )


class ModerationActionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    moderator_id: Optional[int] = None
    target_type: str
    target_id: int
    action: str
    reason: Optional[str] = None
    created_at: datetime


class ModerationActionListResponse(BaseModel):
    actions: list[ModerationActionResponse]


class UserRoleRequest(BaseModel):
    role: UserRole


class AdminUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    display_name: Optional[str] = None
    role: str
    status: str
    suspended_until: Optional[datetime] = None
    expelled_at: Optional[datetime] = None
    created_at: datetime


class AdminUserListResponse(BaseModel):
    users: list[AdminUserResponse]
    total: int
    page: int
    page_size: int


class ModerationSummaryResponse(BaseModel):
    """Headline counts for the moderation overview."""
    model_config = ConfigDict(from_attributes=True)

    users_total: int
    users_suspended: int
    users_expelled: int
    posts_total: int
    posts_hidden: int
    comments_total: int
    comments_hidden: int
    reports_open: int
