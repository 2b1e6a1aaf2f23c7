"""Report endpoints for owners and reviewers.

Owners submit, edit and delete their pending reports; reviewers change
status and record summaries. Listing is scoped by role.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from fastapi.responses import StreamingResponse

from ..models import (
    ReportCategory,
    ReportResponse,
    ReportUpdateRequest,
    StatusUpdateRequest,
    SummaryUpdateRequest,
    Urgency,
)
from ..reports.service import ReportService, Upload, get_report_service
from .auth import Account, Reviewer
from .pagination import PaginatedResult, PaginationParams

router = APIRouter(prefix="/reports", tags=["reports"])


def to_page(rows, total: int, params: PaginationParams) -> PaginatedResult[ReportResponse]:
    return PaginatedResult[ReportResponse].create(
        results=[ReportResponse.from_row(row, row.owner) for row in rows],
        total=total,
        limit=params.limit,
        offset=params.offset,
    )


@router.post("", response_model=ReportResponse, status_code=201)
async def create_report(
    user: Account,
    title: str = Form(..., min_length=1, max_length=200),
    description: str = Form(..., min_length=1),
    category: ReportCategory = Form(...),
    urgency: Urgency = Form(Urgency.NORMAL),
    attachment: UploadFile | None = File(None),
    service: ReportService = Depends(get_report_service),
) -> ReportResponse:
    """Submit a report with an optional attachment (multipart form)."""
    upload = None
    if attachment is not None and attachment.filename:
        upload = Upload(
            filename=attachment.filename,
            data=await attachment.read(),
            content_type=attachment.content_type,
        )

    report = await service.create(user, title, description, category, urgency, upload)
    return ReportResponse.from_row(report, user)


@router.get("", response_model=PaginatedResult[ReportResponse])
async def list_reports(
    user: Account,
    category: ReportCategory | None = None,
    status: str | None = Query(None, description="Pending, Approved or Rejected"),
    pagination: PaginationParams = Depends(),
    service: ReportService = Depends(get_report_service),
) -> PaginatedResult[ReportResponse]:
    """List reports visible to the caller, newest first."""
    rows, total = await service.list_for(user, pagination, category=category, status=status)
    return to_page(rows, total, pagination)


@router.get("/{report_id}", response_model=ReportResponse)
async def get_report(
    report_id: UUID,
    user: Account,
    service: ReportService = Depends(get_report_service),
) -> ReportResponse:
    report = await service.get_for(user, report_id)
    return ReportResponse.from_row(report, report.owner)


@router.put("/{report_id}", response_model=ReportResponse)
async def update_report(
    report_id: UUID,
    request: ReportUpdateRequest,
    user: Account,
    service: ReportService = Depends(get_report_service),
) -> ReportResponse:
    """Edit a report while it is still pending."""
    report = await service.update(user, report_id, request.model_dump(exclude_none=True))
    return ReportResponse.from_row(report, report.owner)


@router.delete("/{report_id}", status_code=204)
async def delete_report(
    report_id: UUID,
    user: Account,
    service: ReportService = Depends(get_report_service),
) -> Response:
    """Delete a pending report and its attachment."""
    await service.delete(user, report_id)
    return Response(status_code=204)


@router.get("/{report_id}/attachment")
async def download_attachment(
    report_id: UUID,
    user: Account,
    service: ReportService = Depends(get_report_service),
) -> StreamingResponse:
    report, chunks = await service.open_attachment(user, report_id)
    return StreamingResponse(
        chunks,
        media_type=report.attachment_content_type or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{report.attachment_name}"'},
    )


@router.put("/{report_id}/status", response_model=ReportResponse)
async def update_status(
    report_id: UUID,
    request: StatusUpdateRequest,
    reviewer: Reviewer,
    service: ReportService = Depends(get_report_service),
) -> ReportResponse:
    """Approve or reject a pending report."""
    report = await service.change_status(reviewer, report_id, request.status)
    return ReportResponse.from_row(report, report.owner)


@router.put("/{report_id}/summary", response_model=ReportResponse)
async def update_summary(
    report_id: UUID,
    request: SummaryUpdateRequest,
    reviewer: Reviewer,
    service: ReportService = Depends(get_report_service),
) -> ReportResponse:
    """Record revenue, profit, inventory value and notes on a report."""
    report = await service.update_summary(reviewer, report_id, request)
    return ReportResponse.from_row(report, report.owner)
