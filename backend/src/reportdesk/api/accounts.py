"""Registration, login and profile endpoints."""

from fastapi import APIRouter, Depends

from ..models import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from ..users.service import UserService, get_user_service
from .auth import Account, create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    request: RegisterRequest,
    service: UserService = Depends(get_user_service),
) -> TokenResponse:
    """Create a ``user`` account and sign it in."""
    user = await service.register(request.name, request.email, request.password)
    return TokenResponse(
        message="User registered successfully",
        token=create_access_token(user.id, user.role),
        role=user.role,
        name=user.name,
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    service: UserService = Depends(get_user_service),
) -> TokenResponse:
    user = await service.authenticate(request.email, request.password)
    return TokenResponse(
        message="Login successful",
        token=create_access_token(user.id, user.role),
        role=user.role,
        name=user.name,
    )


@router.get("/me", response_model=UserResponse)
async def me(user: Account) -> UserResponse:
    """Current account profile."""
    return UserResponse.model_validate(user)
