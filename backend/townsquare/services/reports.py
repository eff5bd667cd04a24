"""
Report intake and review.

Filing is an upsert on (reporter, target): a second report from the same
reporter replaces reason/details and reopens the row. Resolving only records
the outcome; hiding content or sanctioning the account are separate ledger
calls.
"""
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from townsquare.core.config import settings
from townsquare.core.errors import InvalidInputError, NotFoundError
from townsquare.core.principal import Principal
from townsquare.db.base import utcnow
from townsquare.db.transaction import atomic
from townsquare.db.utils import get_or_insert
from townsquare.models import Report, ReportReason, ReportStatus, TargetType
from townsquare.services.hooks import MutationHook, notify
from townsquare.services.targets import load_target, parse_target_type

logger = structlog.get_logger(__name__)

TERMINAL_STATUSES = (ReportStatus.ACTION_TAKEN, ReportStatus.REJECTED)


@dataclass
class ReportPage:
    items: list[Report]
    total: int
    page: int
    page_size: int


def _parse_reason(value: str | ReportReason) -> ReportReason:
    try:
        return ReportReason(value)
    except ValueError:
        raise InvalidInputError(f"Unknown report reason: {value}")


class ReportService:
    """File, resolve and list reports."""

    def __init__(self, db: AsyncSession, hook: MutationHook | None = None):
        self.db = db
        self.hook = hook

    async def file(
        self,
        principal: Principal,
        target_type: str | TargetType,
        target_id: int,
        reason: str | ReportReason,
        details: Optional[str] = None,
    ) -> Report:
        """
        Report a post, comment, message or user.

        Raises:
            InvalidTargetError: Unknown target kind
            InvalidInputError: Unknown reason
            NotFoundError: Target does not exist
        """
        kind = parse_target_type(target_type)
        reason = _parse_reason(reason)
        details = (details or "")[: settings.report_details_max_length]

        async with atomic(self.db):
            await load_target(self.db, kind, target_id)
            report, created = await get_or_insert(
                self.db,
                Report,
                defaults={
                    "reason": reason.value,
                    "details": details,
                    "status": ReportStatus.OPEN.value,
                },
                reporter_id=principal.id,
                target_type=kind.value,
                target_id=target_id,
            )
            if not created:
                report.reason = reason.value
                report.details = details
                report.status = ReportStatus.OPEN.value
                report.resolution = None
                report.resolved_by_id = None
                report.resolved_at = None
                await self.db.flush()

        logger.info(
            "report_filed" if created else "report_refiled",
            report_id=report.id,
            reporter_id=principal.id,
            target_type=kind.value,
            target_id=target_id,
            reason=reason.value,
        )
        await notify(
            self.hook,
            "report.filed",
            report_id=report.id,
            target_type=kind.value,
            target_id=target_id,
        )
        return report

    async def resolve(
        self,
        principal: Principal,
        report_id: int,
        status: str | ReportStatus,
        resolution: Optional[str] = None,
    ) -> Report:
        """
        Close a report as ACTION_TAKEN or REJECTED.

        Raises:
            ForbiddenError: Caller is not an admin
            InvalidInputError: Status is not a terminal status
            NotFoundError: No such report
        """
        principal.require_admin()
        try:
            status = ReportStatus(status)
        except ValueError:
            raise InvalidInputError(f"Unknown report status: {status}")
        if status not in TERMINAL_STATUSES:
            raise InvalidInputError("Reports can only be resolved as action_taken or rejected")

        async with atomic(self.db):
            report = await self.db.get(Report, report_id)
            if report is None:
                raise NotFoundError("Report not found")
            report.status = status.value
            report.resolution = (resolution or "").strip() or None
            report.resolved_by_id = principal.id
            report.resolved_at = utcnow()
            await self.db.flush()

        logger.info(
            "report_resolved",
            report_id=report.id,
            moderator_id=principal.id,
            status=status.value,
        )
        await notify(self.hook, "report.resolved", report_id=report.id, status=status.value)
        return report

    async def list_reports(
        self,
        principal: Principal,
        target_type: str | TargetType | None = None,
        reason: str | ReportReason | None = None,
        status: str | ReportStatus | None = ReportStatus.OPEN,
        page: int = 1,
        page_size: int = 20,
    ) -> ReportPage:
        """
        Moderation queue, newest first.

        ``status=None`` lists every status. ``page_size`` is clamped to the
        configured bounds and ``page`` to at least 1.
        """
        principal.require_admin()
        page = max(1, page)
        page_size = min(
            max(page_size, settings.report_page_size_min),
            settings.report_page_size_max,
        )

        filters = []
        if target_type is not None:
            filters.append(Report.target_type == parse_target_type(target_type).value)
        if reason is not None:
            filters.append(Report.reason == _parse_reason(reason).value)
        if status is not None:
            try:
                filters.append(Report.status == ReportStatus(status).value)
            except ValueError:
                raise InvalidInputError(f"Unknown report status: {status}")

        total = (
            await self.db.execute(select(func.count(Report.id)).where(*filters))
        ).scalar_one()
        result = await self.db.execute(
            select(Report)
            .where(*filters)
            .order_by(Report.updated_at.desc(), Report.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return ReportPage(
            items=list(result.scalars().all()),
            total=total,
            page=page,
            page_size=page_size,
        )
