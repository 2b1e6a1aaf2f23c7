"""Domain enums and Pydantic models for ReportDesk.

API payloads use camelCase field names on the wire (``adminSummary``,
``reviewedAt``) and accept either spelling on input.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# Enumerations
# =============================================================================


class Role(str, Enum):
    """Account roles, lowest to highest privilege."""

    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


REVIEWER_ROLES = (Role.ADMIN.value, Role.SUPERADMIN.value)


class AdminRequestStatus(str, Enum):
    """State of a user's request to become an admin."""

    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReportStatus(str, Enum):
    """Review status of a report."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ReportCategory(str, Enum):
    """Report categories; an admin's department is one of these."""

    FINANCE = "Finance Report"
    SALES = "Sales Report"
    INVENTORY = "Inventory Report"
    RESOURCES = "Resources Report"


class Urgency(str, Enum):
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class BroadcastTarget(str, Enum):
    """Recipients of a system-wide notification."""

    ALL = "all"
    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


# =============================================================================
# Base
# =============================================================================


class APIModel(BaseModel):
    """Base for API payloads: camelCase aliases, ORM attribute loading."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# Auth & Users
# =============================================================================


class RegisterRequest(APIModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=128)


class LoginRequest(APIModel):
    email: str
    password: str


class TokenResponse(APIModel):
    """Issued on login and registration."""

    message: str
    token: str
    role: Role
    name: str


class UserResponse(APIModel):
    id: UUID
    name: str
    email: str
    role: Role
    department: str | None = None
    admin_request: AdminRequestStatus = AdminRequestStatus.NONE
    requested_department: str | None = None
    created_at: datetime


class RoleUpdateRequest(APIModel):
    role: Role | None = None
    department: ReportCategory | None = None


class AdminAccessRequest(APIModel):
    department: ReportCategory | None = None


class AdminRequestDecision(APIModel):
    action: Literal["approve", "reject"]
    department: ReportCategory | None = None


# =============================================================================
# Reports
# =============================================================================


class OwnerSummary(APIModel):
    id: UUID
    name: str
    email: str


class AttachmentInfo(APIModel):
    name: str
    content_type: str
    size: int


class AdminSummary(APIModel):
    """Reviewer analytics attached to a report."""

    revenue: float = 0
    profit: float = 0
    inventory_value: float = 0
    notes: str = ""
    updated_by: UUID | None = None
    updated_at: datetime | None = None


class ReportResponse(APIModel):
    id: UUID
    title: str
    description: str
    category: ReportCategory
    urgency: Urgency
    status: ReportStatus
    user_id: UUID
    user: OwnerSummary | None = None
    attachment: AttachmentInfo | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    admin_summary: AdminSummary = Field(default_factory=AdminSummary)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, report: Any, owner: Any = None) -> "ReportResponse":
        """Build a response from a ``tables.Report`` row."""
        attachment = None
        if report.attachment_locator:
            attachment = AttachmentInfo(
                name=report.attachment_name or "attachment",
                content_type=report.attachment_content_type or "application/octet-stream",
                size=report.attachment_size or 0,
            )
        return cls(
            id=report.id,
            title=report.title,
            description=report.description,
            category=report.category,
            urgency=report.urgency,
            status=report.status,
            user_id=report.user_id,
            user=OwnerSummary.model_validate(owner) if owner is not None else None,
            attachment=attachment,
            reviewed_by=report.reviewed_by,
            reviewed_at=report.reviewed_at,
            admin_summary=AdminSummary.model_validate(report.admin_summary or {}),
            created_at=report.created_at,
            updated_at=report.updated_at,
        )


class ReportUpdateRequest(APIModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1)
    category: ReportCategory | None = None
    urgency: Urgency | None = None


class StatusUpdateRequest(APIModel):
    # Validated by the lifecycle so bad values give 400, not 422
    status: str


class SummaryUpdateRequest(APIModel):
    revenue: float | None = None
    profit: float | None = None
    inventory_value: float | None = None
    notes: str | None = None


# =============================================================================
# Notifications
# =============================================================================


class NotificationResponse(APIModel):
    id: UUID
    message: str
    type: NotificationType
    read: bool
    created_at: datetime


class UserNotificationView(NotificationResponse):
    """Notification with its recipient, for admin views."""

    user_id: UUID
    user_name: str
    user_email: str
    user_role: Role


class MarkReadResponse(APIModel):
    success: bool = True
    changed: bool
    message: str


class SendNotificationRequest(APIModel):
    message: str = Field(..., min_length=1, max_length=2000)
    target: BroadcastTarget = BroadcastTarget.ALL
    user_id: UUID | None = None
    department: ReportCategory | None = None
    type: NotificationType = NotificationType.INFO


class SendNotificationResponse(APIModel):
    success: bool = True
    message: str
    recipients: int


class SystemNotificationResponse(APIModel):
    id: UUID
    message: str
    target: BroadcastTarget
    sent_by: UUID | None = None
    recipients: int
    created_at: datetime


# =============================================================================
# Dashboard
# =============================================================================


class OverviewResponse(APIModel):
    users: int
    admins: int
    reports: int
    report_stats: dict[str, int]


class CategoryAnalytics(APIModel):
    category: ReportCategory
    reports: int
    revenue: float
    profit: float
    inventory_value: float


class StatCreateRequest(APIModel):
    total_revenue: float
    total_profit: float
    total_inventory: float


class StatResponse(APIModel):
    id: UUID
    total_revenue: float
    total_profit: float
    total_inventory: float
    submitted_by: UUID | None = None
    created_at: datetime
