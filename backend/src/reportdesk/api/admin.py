"""Admin dashboard endpoints.

Report routes here are aliases of ``/reports`` for the admin dashboard and
share the same service calls. User management, promotion decisions and
system notifications are superadmin only.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from ..models import (
    AdminRequestDecision,
    CategoryAnalytics,
    OverviewResponse,
    ReportCategory,
    ReportResponse,
    Role,
    RoleUpdateRequest,
    SendNotificationRequest,
    SendNotificationResponse,
    StatusUpdateRequest,
    SummaryUpdateRequest,
    SystemNotificationResponse,
    UserResponse,
)
from ..notifications.fanout import NotificationService, get_notification_service
from ..reports.service import ReportService, get_report_service
from ..users.service import UserService, get_user_service
from .auth import Reviewer, Superadmin
from .pagination import PaginatedResult, PaginationParams
from .reports import to_page

router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# Dashboard
# =============================================================================


@router.get("/overview", response_model=OverviewResponse)
async def overview(
    reviewer: Reviewer,
    service: ReportService = Depends(get_report_service),
) -> OverviewResponse:
    return await service.overview(reviewer)


@router.get("/analytics", response_model=list[CategoryAnalytics])
async def analytics(
    reviewer: Reviewer,
    service: ReportService = Depends(get_report_service),
) -> list[CategoryAnalytics]:
    """Summary totals per category."""
    return await service.analytics(reviewer)


# =============================================================================
# Reports
# =============================================================================


@router.get("/reports", response_model=PaginatedResult[ReportResponse])
async def list_reports(
    reviewer: Reviewer,
    category: ReportCategory | None = None,
    status: str | None = None,
    pagination: PaginationParams = Depends(),
    service: ReportService = Depends(get_report_service),
) -> PaginatedResult[ReportResponse]:
    """Reports in the reviewer's department (all of them for superadmins)."""
    rows, total = await service.list_for(reviewer, pagination, category=category, status=status)
    return to_page(rows, total, pagination)


@router.put("/reports/{report_id}", response_model=ReportResponse)
async def review_report(
    report_id: UUID,
    request: StatusUpdateRequest,
    reviewer: Reviewer,
    service: ReportService = Depends(get_report_service),
) -> ReportResponse:
    report = await service.change_status(reviewer, report_id, request.status)
    return ReportResponse.from_row(report, report.owner)


@router.put("/reports/{report_id}/summary", response_model=ReportResponse)
async def summarize_report(
    report_id: UUID,
    request: SummaryUpdateRequest,
    reviewer: Reviewer,
    service: ReportService = Depends(get_report_service),
) -> ReportResponse:
    report = await service.update_summary(reviewer, report_id, request)
    return ReportResponse.from_row(report, report.owner)


# =============================================================================
# Users & promotion
# =============================================================================


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    superadmin: Superadmin,
    role: Role | None = None,
    service: UserService = Depends(get_user_service),
) -> list[UserResponse]:
    return [UserResponse.model_validate(user) for user in await service.list_users(role)]


@router.put("/users/{user_id}/role", response_model=UserResponse)
async def update_role(
    user_id: UUID,
    request: RoleUpdateRequest,
    superadmin: Superadmin,
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Change a user's role and department."""
    user = await service.update_role(superadmin, user_id, request.role, request.department)
    return UserResponse.model_validate(user)


@router.delete("/users/{user_id}", status_code=204)
async def delete_user(
    user_id: UUID,
    superadmin: Superadmin,
    service: UserService = Depends(get_user_service),
) -> Response:
    """Delete an account and everything it owns. Superadmins cannot be deleted."""
    await service.delete_user(superadmin, user_id)
    return Response(status_code=204)


@router.get("/admin-requests/pending", response_model=list[UserResponse])
async def pending_admin_requests(
    superadmin: Superadmin,
    service: UserService = Depends(get_user_service),
) -> list[UserResponse]:
    return [UserResponse.model_validate(user) for user in await service.pending_requests()]


@router.post("/admin-requests/{user_id}", response_model=UserResponse)
async def decide_admin_request(
    user_id: UUID,
    request: AdminRequestDecision,
    superadmin: Superadmin,
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Approve or reject a pending admin request."""
    user = await service.decide_request(superadmin, user_id, request.action, request.department)
    return UserResponse.model_validate(user)


# =============================================================================
# System notifications
# =============================================================================


@router.post("/notifications", response_model=SendNotificationResponse)
async def send_notification(
    request: SendNotificationRequest,
    superadmin: Superadmin,
    service: NotificationService = Depends(get_notification_service),
) -> SendNotificationResponse:
    recipients = await service.send(request, sent_by=superadmin.id)
    return SendNotificationResponse(
        message=f"Notification sent to {recipients} recipient(s)",
        recipients=recipients,
    )


@router.get("/notifications/all", response_model=list[SystemNotificationResponse])
async def system_notifications(
    superadmin: Superadmin,
    limit: int = Query(100, ge=1, le=500),
    service: NotificationService = Depends(get_notification_service),
) -> list[SystemNotificationResponse]:
    """Log of system notifications, newest first."""
    return [
        SystemNotificationResponse.model_validate(row)
        for row in await service.system_log(limit)
    ]
