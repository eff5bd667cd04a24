"""
Tests for report intake and the review queue.
"""
import pytest
from sqlalchemy import func, select

from townsquare.core.config import settings
from townsquare.core.errors import ForbiddenError, InvalidInputError, NotFoundError
from townsquare.models import ModerationAction, Report, ReportReason, ReportStatus, TargetType
from townsquare.services.reports import ReportService


async def _count(db_session, model) -> int:
    result = await db_session.execute(select(func.count(model.id)))
    return result.scalar_one()


@pytest.mark.asyncio
class TestFile:
    async def test_file_report_against_post(self, db_session, alice, post_id):
        report = await ReportService(db_session).file(
            alice, TargetType.POST, post_id, ReportReason.SPAM, "buy now"
        )

        assert report.reporter_id == alice.id
        assert report.target_type == TargetType.POST.value
        assert report.target_id == post_id
        assert report.reason == ReportReason.SPAM.value
        assert report.details == "buy now"
        assert report.status == ReportStatus.OPEN.value

    async def test_every_target_kind(self, db_session, alice, bob, post_id, comment_id):
        service = ReportService(db_session)

        await service.file(alice, "post", post_id, "spam")
        await service.file(alice, "comment", comment_id, "hate")
        await service.file(alice, "user", bob.id, "harassment")

        assert await _count(db_session, Report) == 3

    async def test_details_truncated(self, db_session, alice, post_id):
        report = await ReportService(db_session).file(
            alice, TargetType.POST, post_id, ReportReason.OTHER,
            "x" * (settings.report_details_max_length + 500),
        )

        assert len(report.details) == settings.report_details_max_length

    async def test_refile_updates_and_reopens(self, db_session, alice, admin, post_id):
        service = ReportService(db_session)
        first = await service.file(alice, TargetType.POST, post_id, ReportReason.SPAM, "first")
        await service.resolve(admin, first.id, ReportStatus.REJECTED, "not spam")

        second = await service.file(alice, TargetType.POST, post_id, ReportReason.HATE, "second")

        assert second.id == first.id
        assert second.reason == ReportReason.HATE.value
        assert second.details == "second"
        assert second.status == ReportStatus.OPEN.value
        assert second.resolution is None
        assert second.resolved_by_id is None
        assert second.resolved_at is None
        assert await _count(db_session, Report) == 1

    async def test_two_reporters_two_rows(self, db_session, alice, carol, post_id):
        service = ReportService(db_session)
        await service.file(alice, TargetType.POST, post_id, ReportReason.SPAM)
        await service.file(carol, TargetType.POST, post_id, ReportReason.SPAM)

        assert await _count(db_session, Report) == 2

    async def test_missing_target(self, db_session, alice):
        with pytest.raises(NotFoundError):
            await ReportService(db_session).file(alice, TargetType.COMMENT, 9999, ReportReason.SPAM)
        assert await _count(db_session, Report) == 0

    async def test_unknown_reason(self, db_session, alice, post_id):
        with pytest.raises(InvalidInputError):
            await ReportService(db_session).file(alice, TargetType.POST, post_id, "boring")

    async def test_unknown_target_type(self, db_session, alice):
        with pytest.raises(InvalidInputError):
            await ReportService(db_session).file(alice, "video", 1, ReportReason.SPAM)


@pytest.mark.asyncio
class TestResolve:
    async def test_resolve_records_outcome(self, db_session, alice, admin, post_id):
        service = ReportService(db_session)
        report = await service.file(alice, TargetType.POST, post_id, ReportReason.SPAM)

        resolved = await service.resolve(admin, report.id, "action_taken", "  removed  ")

        assert resolved.status == ReportStatus.ACTION_TAKEN.value
        assert resolved.resolution == "removed"
        assert resolved.resolved_by_id == admin.id
        assert resolved.resolved_at is not None

    async def test_resolve_has_no_ledger_side_effect(self, db_session, alice, admin, post_id):
        service = ReportService(db_session)
        report = await service.file(alice, TargetType.POST, post_id, ReportReason.SPAM)

        await service.resolve(admin, report.id, ReportStatus.ACTION_TAKEN)

        assert await _count(db_session, ModerationAction) == 0

    async def test_resolve_requires_admin(self, db_session, alice, post_id):
        service = ReportService(db_session)
        report = await service.file(alice, TargetType.POST, post_id, ReportReason.SPAM)
        report_id = report.id

        with pytest.raises(ForbiddenError):
            await service.resolve(alice, report_id, ReportStatus.REJECTED)

    async def test_resolve_to_open_rejected(self, db_session, alice, admin, post_id):
        service = ReportService(db_session)
        report = await service.file(alice, TargetType.POST, post_id, ReportReason.SPAM)

        with pytest.raises(InvalidInputError):
            await service.resolve(admin, report.id, ReportStatus.OPEN)

    async def test_resolve_unknown_report(self, db_session, admin):
        with pytest.raises(NotFoundError):
            await ReportService(db_session).resolve(admin, 9999, ReportStatus.REJECTED)


@pytest.mark.asyncio
class TestListReports:
    async def test_defaults_to_open(self, db_session, alice, carol, admin, post_id, comment_id):
        service = ReportService(db_session)
        open_report = await service.file(alice, TargetType.POST, post_id, ReportReason.SPAM)
        closed = await service.file(carol, TargetType.POST, post_id, ReportReason.HATE)
        await service.resolve(admin, closed.id, ReportStatus.REJECTED)

        page = await service.list_reports(admin)

        assert [r.id for r in page.items] == [open_report.id]
        assert page.total == 1

    async def test_all_statuses_and_filters(self, db_session, alice, carol, admin, post_id, comment_id):
        service = ReportService(db_session)
        await service.file(alice, TargetType.POST, post_id, ReportReason.SPAM)
        on_comment = await service.file(alice, TargetType.COMMENT, comment_id, ReportReason.HATE)
        closed = await service.file(carol, TargetType.POST, post_id, ReportReason.SPAM)
        await service.resolve(admin, closed.id, ReportStatus.ACTION_TAKEN)

        everything = await service.list_reports(admin, status=None)
        comments = await service.list_reports(admin, target_type=TargetType.COMMENT)
        spam = await service.list_reports(admin, reason=ReportReason.SPAM, status=None)

        assert everything.total == 3
        assert [r.id for r in comments.items] == [on_comment.id]
        assert spam.total == 2

    async def test_page_size_clamped(self, db_session, alice, admin, post_id):
        await ReportService(db_session).file(alice, TargetType.POST, post_id, ReportReason.SPAM)
        service = ReportService(db_session)

        small = await service.list_reports(admin, page_size=1)
        large = await service.list_reports(admin, page_size=1000)
        first_page = await service.list_reports(admin, page=0)

        assert small.page_size == settings.report_page_size_min
        assert large.page_size == settings.report_page_size_max
        assert first_page.page == 1

    async def test_paging(self, db_session, make_user, admin, post_id):
        service = ReportService(db_session)
        for i in range(7):
            reporter = await make_user(f"reporter{i}")
            await service.file(reporter, TargetType.POST, post_id, ReportReason.SPAM)

        first = await service.list_reports(admin, page=1, page_size=5)
        second = await service.list_reports(admin, page=2, page_size=5)

        assert first.total == 7
        assert len(first.items) == 5
        assert len(second.items) == 2
        assert not {r.id for r in first.items} & {r.id for r in second.items}

    async def test_requires_admin(self, db_session, alice):
        with pytest.raises(ForbiddenError):
            await ReportService(db_session).list_reports(alice)
