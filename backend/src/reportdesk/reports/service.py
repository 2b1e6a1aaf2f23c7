"""Report commands and queries.

Every route that touches a report, including the ``/admin`` aliases, goes
through ``ReportService``. Status and edit rules come from
``reports.lifecycle``; this module only loads, scopes and persists.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterator
from uuid import UUID, uuid4

from fastapi import Depends
from sqlalchemy import false, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..api.pagination import PaginationParams, paginate_query
from ..db import get_db
from ..exceptions import NotFound, PermissionDenied
from ..logging import get_context_logger, log_report_transition
from ..models import (
    REVIEWER_ROLES,
    CategoryAnalytics,
    NotificationType,
    OverviewResponse,
    ReportCategory,
    ReportResponse,
    ReportStatus,
    Role,
    SummaryUpdateRequest,
    Urgency,
)
from ..notifications.fanout import NotificationService
from ..notifications.realtime import RealtimeHub, get_realtime_hub
from ..storage import StorageBackend, get_storage, guess_content_type, validate_upload
from ..tables import Report, User
from . import lifecycle

logger = get_context_logger(__name__, component="reports")

# ``adminSummary`` keys as stored on the row
SUMMARY_KEYS = {
    "revenue": "revenue",
    "profit": "profit",
    "inventory_value": "inventoryValue",
    "notes": "notes",
}

EDITABLE_FIELDS = ("title", "description", "category", "urgency")


@dataclass
class Upload:
    """An attachment received with a new report."""

    filename: str
    data: bytes
    content_type: str | None = None


class ReportService:
    """Authorized report operations for one request."""

    def __init__(
        self,
        session: AsyncSession,
        storage: StorageBackend | None = None,
        notifier: NotificationService | None = None,
        hub: RealtimeHub | None = None,
    ):
        self.session = session
        self.storage = storage or get_storage()
        self.hub = hub or get_realtime_hub()
        self.notifier = notifier or NotificationService(session, self.hub)

    # =========================
    # Loading & scoping
    # =========================

    async def _load(self, report_id: UUID, for_update: bool = False) -> Report:
        query = select(Report).options(selectinload(Report.owner)).where(Report.id == report_id)
        if for_update:
            query = query.with_for_update(of=Report)
        report = (await self.session.execute(query)).scalar_one_or_none()
        if report is None:
            raise NotFound("Report", report_id)
        return report

    @staticmethod
    def _scope(query, actor: User):
        """Restrict a report query to what ``actor`` may see."""
        if actor.role == Role.SUPERADMIN.value:
            return query
        if actor.role == Role.ADMIN.value:
            if not actor.department:
                return query.where(false())
            return query.where(Report.category == actor.department)
        return query.where(Report.user_id == actor.id)

    async def _publish(self, action: str, report: Report) -> None:
        payload = ReportResponse.from_row(report, report.owner).model_dump(
            mode="json", by_alias=True
        )
        await self.hub.report_updated(action, payload)

    # =========================
    # Commands
    # =========================

    async def create(
        self,
        owner: User,
        title: str,
        description: str,
        category: ReportCategory | str,
        urgency: Urgency | str = Urgency.NORMAL,
        upload: Upload | None = None,
    ) -> Report:
        """Submit a report, store its attachment and tell the reviewers."""
        category = ReportCategory(category).value
        report = Report(
            id=uuid4(),
            title=title,
            description=description,
            category=category,
            urgency=Urgency(urgency).value,
            user_id=owner.id,
            status=ReportStatus.PENDING.value,
            admin_summary={},
        )

        if upload is not None:
            validate_upload(upload.filename, len(upload.data))
            content_type = upload.content_type or guess_content_type(upload.filename)
            report.attachment_locator = await asyncio.to_thread(
                self.storage.put, upload.data, upload.filename, content_type
            )
            report.attachment_name = upload.filename
            report.attachment_content_type = content_type
            report.attachment_size = len(upload.data)

        report.owner = owner
        self.session.add(report)
        await self.session.commit()

        logger.info(
            f"Report submitted: {report.id}",
            extra={"report_id": str(report.id), "category": category, "user_id": str(owner.id)},
        )

        await self.notifier.notify_reviewers(
            category, f'New {category} submitted by {owner.name}: "{title}"'
        )
        await self._publish("new_report", report)
        return report

    async def update(self, actor: User, report_id: UUID, changes: dict[str, Any]) -> Report:
        """Owner edit of a pending report.

        Raises:
            PermissionDenied: If ``actor`` does not own the report
            ReportStateError: If the report has been reviewed
        """
        report = await self._load(report_id, for_update=True)
        if report.user_id != actor.id:
            raise PermissionDenied("Only the owner can edit this report")
        lifecycle.ensure_editable(report.status)

        for field in EDITABLE_FIELDS:
            value = changes.get(field)
            if value is not None:
                setattr(report, field, getattr(value, "value", value))

        await self.session.commit()
        await self._publish("report_updated", report)
        return report

    async def delete(self, actor: User, report_id: UUID) -> None:
        """Delete a pending report and its attachment.

        Raises:
            PermissionDenied: Unless ``actor`` owns the report or is a superadmin
            ReportStateError: If the report has been reviewed
        """
        report = await self._load(report_id, for_update=True)
        if report.user_id != actor.id and actor.role != Role.SUPERADMIN.value:
            raise PermissionDenied("Only the owner can delete this report")
        lifecycle.ensure_editable(report.status)

        locator = report.attachment_locator
        await self.session.delete(report)
        await self.session.commit()

        if locator:
            await asyncio.to_thread(self.storage.delete, locator)

        logger.info(f"Report deleted: {report_id}", extra={"report_id": str(report_id)})
        await self.hub.report_updated("report_deleted", {"id": str(report_id)})

    async def change_status(self, reviewer: User, report_id: UUID, status: str) -> Report:
        """Move a pending report to Approved or Rejected.

        The pending check and the write happen in one transaction.

        Raises:
            InvalidStatusError: If ``status`` is not a known status
            ReviewPermissionError: If the reviewer may not act on the report
            ReportStateError: If the report has already been reviewed
        """
        target = lifecycle.parse_status(status)
        report = await self._load(report_id, for_update=True)
        lifecycle.ensure_reviewer(reviewer.role, reviewer.department, report.category)

        previous = report.status
        lifecycle.ensure_transition(previous, target)

        report.status = target.value
        report.reviewed_by = reviewer.id
        report.reviewed_at = datetime.utcnow()
        await self.session.commit()

        log_report_transition(str(report.id), previous, target.value, str(reviewer.id))

        approved = target is ReportStatus.APPROVED
        await self.notifier.notify_user(
            report.user_id,
            f'Your report "{report.title}" has been {target.value.lower()}',
            NotificationType.SUCCESS if approved else NotificationType.WARNING,
        )
        await self._publish("status_updated", report)
        return report

    async def update_summary(
        self, reviewer: User, report_id: UUID, changes: SummaryUpdateRequest
    ) -> Report:
        """Record reviewer analytics on a report without touching its status.

        Raises:
            ReviewPermissionError: If the reviewer may not act on the report
            ReportStateError: If the report was rejected
        """
        report = await self._load(report_id, for_update=True)
        lifecycle.ensure_reviewer(reviewer.role, reviewer.department, report.category)
        lifecycle.ensure_annotatable(report.status)

        summary = dict(report.admin_summary or {})
        for field, value in changes.model_dump(exclude_none=True).items():
            summary[SUMMARY_KEYS[field]] = value
        summary["updatedBy"] = str(reviewer.id)
        summary["updatedAt"] = datetime.utcnow().isoformat()
        # Reassign so the JSON column is flagged dirty
        report.admin_summary = summary

        await self.session.commit()
        await self._publish("summary_updated", report)
        return report

    # =========================
    # Queries
    # =========================

    async def list_for(
        self,
        actor: User,
        params: PaginationParams,
        category: ReportCategory | str | None = None,
        status: str | None = None,
    ) -> tuple[list[Report], int]:
        """List reports visible to ``actor``, newest first.

        Users see their own, admins their department, superadmins everything.
        """
        query = self._scope(select(Report), actor).order_by(Report.created_at.desc())
        if category is not None:
            query = query.where(Report.category == ReportCategory(category).value)
        if status is not None:
            query = query.where(Report.status == lifecycle.parse_status(status).value)

        return await paginate_query(self.session, query, params, selectinload(Report.owner))

    async def get_for(self, actor: User, report_id: UUID) -> Report:
        """Load one report if ``actor`` may read it."""
        report = await self._load(report_id)
        if not lifecycle.can_view(actor.role, actor.department, actor.id, report):
            raise PermissionDenied("You do not have access to this report")
        return report

    async def open_attachment(self, actor: User, report_id: UUID) -> tuple[Report, Iterator[bytes]]:
        """Return a report and a chunk iterator over its attachment."""
        report = await self.get_for(actor, report_id)
        if not report.attachment_locator:
            raise NotFound("Attachment for report", report_id)
        chunks = await asyncio.to_thread(self.storage.stream, report.attachment_locator)
        return report, chunks

    async def overview(self, actor: User) -> OverviewResponse:
        """Dashboard counts; report figures are department-scoped for admins."""
        users = await self.session.scalar(
            select(func.count()).select_from(User).where(User.role == Role.USER.value)
        )
        admins = await self.session.scalar(
            select(func.count()).select_from(User).where(User.role.in_(REVIEWER_ROLES))
        )

        by_status = self._scope(
            select(Report.status, func.count()).group_by(Report.status), actor
        )
        report_stats = {status.value: 0 for status in ReportStatus}
        for status, count in (await self.session.execute(by_status)).all():
            report_stats[status] = count

        return OverviewResponse(
            users=users or 0,
            admins=admins or 0,
            reports=sum(report_stats.values()),
            report_stats=report_stats,
        )

    async def analytics(self, actor: User) -> list[CategoryAnalytics]:
        """Per-category totals of the reviewer summaries."""
        if actor.role == Role.ADMIN.value:
            categories = [actor.department] if actor.department else []
        else:
            categories = [category.value for category in ReportCategory]

        totals = {
            category: {"reports": 0, "revenue": 0.0, "profit": 0.0, "inventory_value": 0.0}
            for category in categories
        }
        rows = await self.session.execute(
            self._scope(select(Report.category, Report.admin_summary), actor)
        )
        for category, summary in rows.all():
            bucket = totals.get(category)
            if bucket is None:
                continue
            summary = summary or {}
            bucket["reports"] += 1
            bucket["revenue"] += float(summary.get("revenue") or 0)
            bucket["profit"] += float(summary.get("profit") or 0)
            bucket["inventory_value"] += float(summary.get("inventoryValue") or 0)

        return [
            CategoryAnalytics(category=category, **bucket)
            for category, bucket in totals.items()
        ]


async def get_report_service(
    db: AsyncSession = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
    hub: RealtimeHub = Depends(get_realtime_hub),
) -> ReportService:
    """FastAPI dependency for the report service."""
    return ReportService(db, storage, NotificationService(db, hub), hub)
