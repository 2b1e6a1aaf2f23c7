"""Unit tests for passwords, JWT tokens and role dependencies."""

from datetime import datetime, timedelta
from uuid import uuid4

import jwt
import pytest
from fastapi.security import HTTPAuthorizationCredentials

from reportdesk.api import AuthenticationError, AuthorizationError
from reportdesk.api.auth import (
    CurrentUser,
    create_access_token,
    decode_access_token,
    get_current_user,
    hash_password,
    require_roles,
    verify_password,
)
from reportdesk.config import get_settings
from reportdesk.models import Role


def _encode(payload: dict, secret: str | None = None) -> str:
    settings = get_settings()
    return jwt.encode(payload, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)


class TestPasswords:
    def test_hash_verifies(self):
        hashed = hash_password("s3cret!")

        assert hashed != "s3cret!"
        assert verify_password("s3cret!", hashed)
        assert not verify_password("wrong", hashed)

    def test_non_bcrypt_hash_does_not_verify(self):
        assert not verify_password("anything", "plain-text")


class TestTokens:
    def test_token_carries_id_and_role(self):
        user_id = uuid4()
        payload = decode_access_token(create_access_token(user_id, Role.ADMIN))

        assert payload.id == user_id
        assert payload.role is Role.ADMIN
        assert payload.exp > payload.iat

    def test_expiry_follows_settings(self):
        payload = decode_access_token(create_access_token(uuid4(), "user"))
        hours = (payload.exp - payload.iat).total_seconds() / 3600

        assert hours == pytest.approx(get_settings().jwt_expiration_hours)

    def test_expired_token_is_rejected(self):
        now = datetime.utcnow()
        token = _encode(
            {"id": str(uuid4()), "role": "user", "iat": now - timedelta(hours=2), "exp": now - timedelta(hours=1)}
        )

        with pytest.raises(AuthenticationError) as exc:
            decode_access_token(token)
        assert exc.value.status_code == 401

    def test_bad_signature_is_rejected(self):
        now = datetime.utcnow()
        token = _encode(
            {"id": str(uuid4()), "role": "user", "iat": now, "exp": now + timedelta(hours=1)},
            secret="another-secret",
        )

        with pytest.raises(AuthenticationError):
            decode_access_token(token)

    def test_unknown_role_is_rejected(self):
        now = datetime.utcnow()
        token = _encode(
            {"id": str(uuid4()), "role": "root", "iat": now, "exp": now + timedelta(hours=1)}
        )

        with pytest.raises(AuthenticationError):
            decode_access_token(token)

    def test_garbage_is_rejected(self):
        with pytest.raises(AuthenticationError):
            decode_access_token("not.a.token")


class TestDependencies:
    @pytest.mark.asyncio
    async def test_missing_credentials_is_401(self):
        with pytest.raises(AuthenticationError):
            await get_current_user(None)

    @pytest.mark.asyncio
    async def test_valid_credentials_yield_current_user(self):
        user_id = uuid4()
        credentials = HTTPAuthorizationCredentials(
            scheme="Bearer", credentials=create_access_token(user_id, Role.SUPERADMIN)
        )

        user = await get_current_user(credentials)

        assert user.id == user_id
        assert user.is_superadmin()
        assert user.is_reviewer()

    @pytest.mark.asyncio
    async def test_require_roles_allows_listed_roles(self):
        checker = require_roles(Role.ADMIN, Role.SUPERADMIN)
        admin = CurrentUser(id=uuid4(), role=Role.ADMIN)

        assert await checker(admin) is admin

    @pytest.mark.asyncio
    async def test_require_roles_refuses_others_with_403(self):
        checker = require_roles("admin", "superadmin")

        with pytest.raises(AuthorizationError) as exc:
            await checker(CurrentUser(id=uuid4(), role=Role.USER))
        assert exc.value.status_code == 403
