"""
Admin moderation endpoints.

Every route depends on ``AdminPrincipal``, which re-reads the caller's role
from the database on each call.
"""
from typing import Optional

from fastapi import APIRouter, Query

from townsquare.api.deps import AdminPrincipal, DbSession, Hook
from townsquare.models import ReportReason, ReportStatus, TargetType, UserRole, UserStatus
from townsquare.schemas.messaging import OkResponse
from townsquare.schemas.moderation import (
    AdminUserListResponse,
    AdminUserResponse,
    ContentModerationRequest,
    ModerationActionListResponse,
    ModerationActionResponse,
    ModerationSummaryResponse,
    ReportListResponse,
    ReportResponse,
    ResolveReportRequest,
    UserModerationRequest,
    UserRoleRequest,
)
from townsquare.services.moderation import ModerationService, UserStatusAction
from townsquare.services.reports import ReportService
from townsquare.services.users import UserDirectoryService

router = APIRouter(prefix="/moderation", tags=["moderation"])


@router.post("/content/hide", response_model=OkResponse)
async def hide_content(
    payload: ContentModerationRequest,
    db: DbSession,
    principal: AdminPrincipal,
    hook: Hook,
):
    """Hide a post, comment or message from non-moderators."""
    await ModerationService(db, hook).set_content_hidden(
        principal, payload.target_type, payload.target_id, True, payload.reason
    )
    return OkResponse()


@router.post("/content/unhide", response_model=OkResponse)
async def unhide_content(
    payload: ContentModerationRequest,
    db: DbSession,
    principal: AdminPrincipal,
    hook: Hook,
):
    """Make previously hidden content visible again."""
    await ModerationService(db, hook).set_content_hidden(
        principal, payload.target_type, payload.target_id, False, payload.reason
    )
    return OkResponse()


@router.get("/summary", response_model=ModerationSummaryResponse)
async def moderation_summary(db: DbSession, principal: AdminPrincipal):
    """Counts of sanctioned users, hidden content and open reports."""
    summary = await UserDirectoryService(db).summary(principal)
    return ModerationSummaryResponse.model_validate(summary)


@router.get("/users", response_model=AdminUserListResponse)
async def list_users(
    db: DbSession,
    principal: AdminPrincipal,
    role: Optional[UserRole] = None,
    status: Optional[UserStatus] = None,
    q: Optional[str] = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20),
):
    """User directory with role, status and name filters."""
    result = await UserDirectoryService(db).list_users(
        principal, role=role, status=status, q=q, page=page, page_size=page_size
    )
    return AdminUserListResponse(
        users=[AdminUserResponse.model_validate(u) for u in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.put("/users/{user_id}/role", response_model=AdminUserResponse)
async def change_user_role(
    user_id: int,
    payload: UserRoleRequest,
    db: DbSession,
    principal: AdminPrincipal,
    hook: Hook,
):
    """Promote a user to admin or demote an admin."""
    user = await UserDirectoryService(db, hook).set_role(principal, user_id, payload.role)
    return AdminUserResponse.model_validate(user)


@router.post("/users/{user_id}/{action}", response_model=OkResponse)
async def moderate_user(
    user_id: int,
    action: UserStatusAction,
    db: DbSession,
    principal: AdminPrincipal,
    hook: Hook,
    payload: Optional[UserModerationRequest] = None,
):
    """Suspend, reinstate or expel a user."""
    payload = payload or UserModerationRequest()
    await ModerationService(db, hook).set_user_status(
        principal,
        user_id,
        action,
        reason=payload.reason,
        suspended_until=payload.suspended_until,
    )
    return OkResponse()


@router.get("/actions", response_model=ModerationActionListResponse)
async def list_moderation_actions(
    db: DbSession,
    principal: AdminPrincipal,
    target_type: Optional[TargetType] = None,
    target_id: Optional[int] = None,
    limit: int = Query(default=50, ge=1, le=200),
):
    """The moderation ledger, newest first."""
    actions = await ModerationService(db).list_actions(principal, target_type, target_id, limit)
    return ModerationActionListResponse(
        actions=[ModerationActionResponse.model_validate(a) for a in actions]
    )


@router.get("/reports", response_model=ReportListResponse)
async def list_reports(
    db: DbSession,
    principal: AdminPrincipal,
    target_type: Optional[TargetType] = None,
    reason: Optional[ReportReason] = None,
    status: Optional[str] = Query(default=ReportStatus.OPEN.value, description="A report status, or 'all'"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20),
):
    """Report queue with filters. Defaults to open reports."""
    result = await ReportService(db).list_reports(
        principal,
        target_type=target_type,
        reason=reason,
        status=None if status in (None, "all") else status,
        page=page,
        page_size=page_size,
    )
    return ReportListResponse(
        reports=[ReportResponse.model_validate(r) for r in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.post("/reports/{report_id}/resolve", response_model=ReportResponse)
async def resolve_report(
    report_id: int,
    payload: ResolveReportRequest,
    db: DbSession,
    principal: AdminPrincipal,
    hook: Hook,
):
    """Mark a report as action_taken or rejected. Takes no moderation action by itself."""
    report = await ReportService(db, hook).resolve(
        principal, report_id, payload.status, payload.resolution
    )
    return ReportResponse.model_validate(report)
