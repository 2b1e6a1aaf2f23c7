"""Domain exceptions raised by ReportDesk services.

Services stay free of HTTP concerns; ``reportdesk.api`` maps each class
to a status code.
"""


class DomainError(Exception):
    """Base class for service-level failures."""

    code = "DOMAIN_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class NotFound(DomainError):
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: object = None):
        message = f"{resource} not found" if identifier is None else f"{resource} not found: {identifier}"
        super().__init__(message)


class PermissionDenied(DomainError):
    code = "ACCESS_DENIED"


class InvalidInput(DomainError):
    code = "BAD_REQUEST"


class Conflict(DomainError):
    code = "CONFLICT"


class PromotionError(Conflict):
    code = "PROMOTION_CONFLICT"


class InvalidCredentials(DomainError):
    code = "INVALID_CREDENTIALS"
