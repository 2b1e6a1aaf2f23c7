"""Authentication and authorization for ReportDesk.

Provides bcrypt password hashing, JWT bearer tokens carrying
``{id, role}``, and role-gated FastAPI dependencies (401 for a missing or
bad token, 403 for a role outside the route's allowed set).
"""

from datetime import datetime, timedelta
from typing import Annotated
from uuid import UUID

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..db import get_db
from ..models import REVIEWER_ROLES, Role
from ..tables import User as UserRow
from . import AuthenticationError, AuthorizationError

# Security scheme
security = HTTPBearer(auto_error=False)


# =========================
# User Models
# =========================


class CurrentUser(BaseModel):
    """Identity decoded from a bearer token."""

    id: UUID
    role: Role

    def has_role(self, *roles: str) -> bool:
        """Check if user has one of the given roles."""
        return self.role.value in roles

    def is_reviewer(self) -> bool:
        """Check if user is an admin or superadmin."""
        return self.has_role(*REVIEWER_ROLES)

    def is_superadmin(self) -> bool:
        return self.role is Role.SUPERADMIN


class TokenPayload(BaseModel):
    """JWT token payload."""

    id: UUID
    role: Role
    exp: datetime  # Expiration time
    iat: datetime  # Issued at time


# =========================
# Passwords
# =========================


def hash_password(raw: str) -> str:
    return bcrypt.hashpw(raw.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(raw: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(raw.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Stored hash is not a bcrypt hash
        return False


# =========================
# JWT Functions
# =========================


def create_access_token(user_id: UUID, role: Role | str) -> str:
    """Create a JWT access token.

    Args:
        user_id: Subject user id
        role: Role at issue time

    Returns:
        Encoded JWT token
    """
    settings = get_settings()

    now = datetime.utcnow()
    payload = {
        "id": str(user_id),
        "role": Role(role).value,
        "exp": now + timedelta(hours=settings.jwt_expiration_hours),
        "iat": now,
    }

    return jwt.encode(
        payload,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> TokenPayload:
    """Decode and validate a JWT access token.

    Args:
        token: JWT token to decode

    Returns:
        Token payload

    Raises:
        AuthenticationError: If token is invalid or expired
    """
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Invalid or expired token")
    except jwt.InvalidTokenError as e:
        raise AuthenticationError(f"Invalid token: {e}")

    try:
        return TokenPayload(**payload)
    except ValueError:
        raise AuthenticationError("Invalid token: malformed claims")


# =========================
# Dependency Injection
# =========================


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> CurrentUser:
    """Get the current authenticated user.

    Raises:
        AuthenticationError: If not authenticated
    """
    if not credentials or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Access denied: No token provided")

    payload = decode_access_token(credentials.credentials)
    return CurrentUser(id=payload.id, role=payload.role)


def require_roles(*roles: Role | str):
    """Create a dependency that requires one of ``roles``.

    Usage:
        @router.get("/overview", dependencies=[Depends(require_roles("admin", "superadmin"))])
        async def overview():
            ...
    """
    allowed = {Role(role).value for role in roles}

    async def role_checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role.value not in allowed:
            raise AuthorizationError(f"Access denied: {user.role.value} is not allowed")
        return user

    return role_checker


def require_reviewer():
    """Dependency that requires admin or superadmin role."""
    return require_roles(*REVIEWER_ROLES)


def require_superadmin():
    """Dependency that requires superadmin role."""
    return require_roles(Role.SUPERADMIN)


async def get_account(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserRow:
    """Load the account behind the token.

    Role and department come from the stored row so a change applies
    without re-login.

    Raises:
        AuthenticationError: If the account no longer exists
    """
    row = await db.get(UserRow, user.id)
    if row is None:
        raise AuthenticationError("Account no longer exists")
    return row


async def get_reviewer(
    user: CurrentUser = Depends(require_reviewer()),
    db: AsyncSession = Depends(get_db),
) -> UserRow:
    """Load a reviewer's account, re-checking the stored role."""
    row = await get_account(user, db)
    if row.role not in REVIEWER_ROLES:
        raise AuthorizationError("Access denied: Admin role required")
    return row


async def get_superadmin(
    user: CurrentUser = Depends(require_superadmin()),
    db: AsyncSession = Depends(get_db),
) -> UserRow:
    """Load a superadmin's account, re-checking the stored role."""
    row = await get_account(user, db)
    if row.role != Role.SUPERADMIN.value:
        raise AuthorizationError("Access denied: Superadmin role required")
    return row


# Type aliases for cleaner dependency injection
Authenticated = Annotated[CurrentUser, Depends(get_current_user)]
Account = Annotated[UserRow, Depends(get_account)]
Reviewer = Annotated[UserRow, Depends(get_reviewer)]
Superadmin = Annotated[UserRow, Depends(get_superadmin)]
