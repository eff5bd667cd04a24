"""
Report filing endpoint.
"""
from fastapi import APIRouter

from townsquare.api.deps import CurrentPrincipal, DbSession, Hook
from townsquare.schemas.moderation import ReportCreate, ReportCreated
from townsquare.services.reports import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("", response_model=ReportCreated)
async def file_report(
    payload: ReportCreate,
    db: DbSession,
    principal: CurrentPrincipal,
    hook: Hook,
):
    """
    Report a post, comment, message or user.

    Reporting the same target again updates your existing report and reopens it.
    """
    report = await ReportService(db, hook).file(
        principal,
        payload.target_type,
        payload.target_id,
        payload.reason,
        payload.details,
    )
    return ReportCreated(report_id=report.id)
