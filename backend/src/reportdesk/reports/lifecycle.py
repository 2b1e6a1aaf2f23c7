"""Report review state machine.

Every write to a report goes through one of the ``ensure_*`` guards below.
A report starts ``Pending`` and moves exactly once, to ``Approved`` or
``Rejected``; after that the owner can no longer edit or delete it.
"""

from ..exceptions import Conflict, InvalidInput, PermissionDenied
from ..models import REVIEWER_ROLES, ReportStatus, Role

TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.PENDING: frozenset({ReportStatus.APPROVED, ReportStatus.REJECTED}),
    ReportStatus.APPROVED: frozenset(),
    ReportStatus.REJECTED: frozenset(),
}

# Statuses on which reviewers may still record summary analytics
ANNOTATABLE = frozenset({ReportStatus.PENDING, ReportStatus.APPROVED})


class ReportStateError(Conflict):
    """A write was refused because of the report's current status."""

    code = "INVALID_TRANSITION"


class InvalidStatusError(InvalidInput):
    """The requested status is not a known report status."""

    code = "INVALID_STATUS"


class ReviewPermissionError(PermissionDenied):
    """The actor may not act on this report."""


def parse_status(value: str) -> ReportStatus:
    """Parse a status value, accepting any letter case.

    Raises:
        InvalidStatusError: If the value is not a known status
    """
    for status in ReportStatus:
        if status.value.lower() == str(value).strip().lower():
            return status
    allowed = ", ".join(s.value for s in ReportStatus)
    raise InvalidStatusError(f"Invalid status '{value}'. Allowed: {allowed}")


def can_transition(current: ReportStatus | str, target: ReportStatus | str) -> bool:
    """Check whether ``current -> target`` is an allowed transition."""
    return ReportStatus(target) in TRANSITIONS[ReportStatus(current)]


def ensure_transition(current: ReportStatus | str, target: ReportStatus | str) -> ReportStatus:
    """Validate a review transition and return the target status.

    Raises:
        ReportStateError: If the transition is not allowed
    """
    current = ReportStatus(current)
    target = ReportStatus(target)
    if target not in TRANSITIONS[current]:
        if current is not ReportStatus.PENDING:
            message = f"Report has already been reviewed ({current.value})"
        else:
            message = f"Cannot move a report from {current.value} to {target.value}"
        raise ReportStateError(message, code="INVALID_TRANSITION")
    return target


def ensure_editable(current: ReportStatus | str) -> None:
    """Owner edits and deletes are only allowed while pending.

    Raises:
        ReportStateError: If the report has been reviewed
    """
    if ReportStatus(current) is not ReportStatus.PENDING:
        raise ReportStateError(
            "Cannot modify a report that has already been reviewed",
            code="REPORT_LOCKED",
        )


def ensure_annotatable(current: ReportStatus | str) -> None:
    """Summary analytics may be recorded on pending or approved reports.

    Raises:
        ReportStateError: If the report was rejected
    """
    if ReportStatus(current) not in ANNOTATABLE:
        raise ReportStateError(
            "Cannot annotate a rejected report",
            code="REPORT_LOCKED",
        )


def can_review(role: str, department: str | None, category: str) -> bool:
    """Check whether a reviewer may act on a report in ``category``.

    Superadmins review everything; admins only their own department.
    """
    if role == Role.SUPERADMIN.value:
        return True
    if role == Role.ADMIN.value:
        return department is not None and department == category
    return False


def ensure_reviewer(role: str, department: str | None, category: str) -> None:
    """Raise ``ReviewPermissionError`` unless ``can_review`` allows it."""
    if role not in REVIEWER_ROLES:
        raise ReviewPermissionError("Reviewer role required")
    if not can_review(role, department, category):
        raise ReviewPermissionError("You cannot modify reports outside your department")


def can_view(role: str, department: str | None, user_id, report) -> bool:
    """Owners, matching-department admins and superadmins may read a report."""
    if report.user_id == user_id:
        return True
    return can_review(role, department, report.category)
