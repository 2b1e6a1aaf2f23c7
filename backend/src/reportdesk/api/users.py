"""Self-service account endpoints."""

from fastapi import APIRouter, Depends

from ..models import AdminAccessRequest, UserResponse
from ..users.service import UserService, get_user_service
from .auth import Account

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/request-admin", response_model=UserResponse)
async def request_admin(
    user: Account,
    request: AdminAccessRequest | None = None,
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Ask a superadmin for admin access, optionally naming a department."""
    department = request.department if request is not None else None
    user = await service.request_admin(user, department)
    return UserResponse.model_validate(user)
