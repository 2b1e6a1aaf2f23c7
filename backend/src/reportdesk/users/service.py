"""Accounts, role changes and the admin promotion workflow.

A ``user`` asks to become an admin; a superadmin approves or rejects.
Approval sets ``role``, ``department`` and clears ``admin_request`` in a
single UPDATE.
"""

import asyncio
from datetime import datetime
from uuid import UUID, uuid4

from fastapi import Depends
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..api.auth import hash_password, verify_password
from ..db import get_db
from ..exceptions import (
    Conflict,
    InvalidCredentials,
    InvalidInput,
    NotFound,
    PermissionDenied,
    PromotionError,
)
from ..logging import get_context_logger, log_role_change
from ..models import AdminRequestStatus, NotificationType, ReportCategory, Role
from ..notifications.fanout import NotificationService
from ..notifications.realtime import RealtimeHub, get_realtime_hub
from ..storage import StorageBackend, get_storage
from ..tables import Notification, Report, User

logger = get_context_logger(__name__, component="users")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    def __init__(
        self,
        session: AsyncSession,
        notifier: NotificationService | None = None,
        storage: StorageBackend | None = None,
    ):
        self.session = session
        self.notifier = notifier or NotificationService(session)
        self._storage = storage

    @property
    def storage(self) -> StorageBackend:
        if self._storage is None:
            self._storage = get_storage()
        return self._storage

    # =========================
    # Accounts
    # =========================

    async def get(self, user_id: UUID) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFound("User", user_id)
        return user

    async def find_by_email(self, email: str) -> User | None:
        return await self.session.scalar(
            select(User).where(User.email == normalize_email(email))
        )

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        role: Role | str = Role.USER,
        department: str | None = None,
    ) -> User:
        """Create an account.

        Raises:
            Conflict: If the email is already registered
        """
        if await self.find_by_email(email) is not None:
            raise Conflict("Email already registered", code="EMAIL_TAKEN")

        now = datetime.utcnow()
        user = User(
            id=uuid4(),
            name=name.strip(),
            email=normalize_email(email),
            password_hash=hash_password(password),
            role=Role(role).value,
            department=department,
            admin_request=AdminRequestStatus.NONE.value,
            created_at=now,
            updated_at=now,
        )
        self.session.add(user)
        await self.session.commit()

        logger.info(f"User registered: {user.email}", extra={"user_id": str(user.id)})
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """Check credentials.

        Raises:
            InvalidCredentials: If the email is unknown or the password is wrong
        """
        user = await self.find_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Failed login", extra={"email": normalize_email(email)})
            raise InvalidCredentials("Invalid email or password")
        return user

    async def list_users(self, role: Role | str | None = None) -> list[User]:
        query = select(User).order_by(User.created_at.desc())
        if role is not None:
            query = query.where(User.role == Role(role).value)
        return list((await self.session.execute(query)).scalars().all())

    async def _superadmin_count(self) -> int:
        return await self.session.scalar(
            select(func.count()).select_from(User).where(User.role == Role.SUPERADMIN.value)
        ) or 0

    async def update_role(
        self,
        actor: User,
        user_id: UUID,
        role: Role | str | None = None,
        department: ReportCategory | str | None = None,
    ) -> User:
        """Change a user's role and/or department.

        Raises:
            PromotionError: If this would remove the last superadmin
            InvalidInput: If an admin would be left without a department
        """
        user = await self.get(user_id)
        old_role = user.role
        new_role = Role(role).value if role is not None else user.role
        department = ReportCategory(department).value if department is not None else None

        if old_role == Role.SUPERADMIN.value and new_role != Role.SUPERADMIN.value:
            if await self._superadmin_count() <= 1:
                raise PromotionError("Cannot demote the last superadmin", code="LAST_SUPERADMIN")

        if new_role == Role.ADMIN.value:
            department = department or user.department
            if not department:
                raise InvalidInput("An admin must be assigned a department")
        else:
            department = None

        user.role = new_role
        user.department = department
        if new_role != Role.USER.value:
            user.admin_request = AdminRequestStatus.NONE.value
            user.requested_department = None
        await self.session.commit()

        log_role_change(str(user.id), old_role, new_role, str(actor.id), department)
        if new_role != old_role:
            await self.notifier.notify_user(
                user.id, f"Your role has been changed to {new_role}", NotificationType.INFO
            )
        return user

    async def delete_user(self, actor: User, user_id: UUID) -> None:
        """Delete an account with its reports, attachments and notifications.

        Raises:
            PermissionDenied: If the account is a superadmin
        """
        user = await self.get(user_id)
        if user.role == Role.SUPERADMIN.value:
            raise PermissionDenied("Superadmin accounts cannot be deleted")

        locators = list(
            (
                await self.session.execute(
                    select(Report.attachment_locator).where(
                        Report.user_id == user.id, Report.attachment_locator.is_not(None)
                    )
                )
            ).scalars()
        )
        await self.session.execute(delete(Report).where(Report.user_id == user.id))
        await self.session.execute(delete(Notification).where(Notification.user_id == user.id))
        await self.session.execute(delete(User).where(User.id == user.id))
        await self.session.commit()

        for locator in locators:
            await asyncio.to_thread(self.storage.delete, locator)

        logger.info(
            f"User deleted: {user.email}",
            extra={"user_id": str(user.id), "deleted_by": str(actor.id), "reports": len(locators)},
        )

    # =========================
    # Promotion workflow
    # =========================

    async def request_admin(self, user: User, department: ReportCategory | str | None = None) -> User:
        """File a request to become an admin.

        Raises:
            InvalidInput: If the account is already an admin or superadmin
            PromotionError: If a request is already pending
        """
        if user.role != Role.USER.value:
            raise InvalidInput("Only regular users can request admin access")
        if user.admin_request == AdminRequestStatus.PENDING.value:
            raise PromotionError("An admin request is already pending", code="REQUEST_PENDING")

        requested = ReportCategory(department).value if department is not None else None
        user.admin_request = AdminRequestStatus.PENDING.value
        user.requested_department = requested
        await self.session.commit()

        logger.info(
            f"Admin access requested by {user.email}",
            extra={"user_id": str(user.id), "department": requested},
        )
        suffix = f" for {requested}" if requested else ""
        await self.notifier.notify_role(
            Role.SUPERADMIN, f"{user.name} requested admin access{suffix}", NotificationType.INFO
        )
        return user

    async def pending_requests(self) -> list[User]:
        result = await self.session.execute(
            select(User)
            .where(User.admin_request == AdminRequestStatus.PENDING.value)
            .order_by(User.updated_at)
        )
        return list(result.scalars().all())

    async def decide_request(
        self,
        actor: User,
        user_id: UUID,
        action: str,
        department: ReportCategory | str | None = None,
    ) -> User:
        """Approve or reject a pending admin request.

        Raises:
            PromotionError: If the user has no pending request
            InvalidInput: If approving without any department to assign
        """
        user = await self.get(user_id)
        if user.admin_request != AdminRequestStatus.PENDING.value:
            raise PromotionError("No pending admin request for this user", code="NO_PENDING_REQUEST")

        pending = (User.id == user.id) & (User.admin_request == AdminRequestStatus.PENDING.value)
        now = datetime.utcnow()

        if action == "approve":
            assigned = ReportCategory(department).value if department else user.requested_department
            if not assigned:
                raise InvalidInput("A department is required to approve an admin request")
            values = {
                "role": Role.ADMIN.value,
                "admin_request": AdminRequestStatus.NONE.value,
                "department": assigned,
                "requested_department": None,
                "updated_at": now,
            }
        elif action == "reject":
            assigned = None
            values = {"admin_request": AdminRequestStatus.REJECTED.value, "updated_at": now}
        else:
            raise InvalidInput(f"Unknown action '{action}'")

        old_role = user.role
        result = await self.session.execute(
            update(User).where(pending).values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.session.rollback()
            raise PromotionError("Admin request was already handled", code="NO_PENDING_REQUEST")
        await self.session.commit()
        await self.session.refresh(user)

        if action == "approve":
            log_role_change(str(user.id), old_role, user.role, str(actor.id), assigned)
            await self.notifier.notify_user(
                user.id,
                f"Your admin request was approved. You now manage {assigned}",
                NotificationType.SUCCESS,
            )
        else:
            logger.info(
                f"Admin request rejected for {user.email}",
                extra={"user_id": str(user.id), "decided_by": str(actor.id)},
            )
            await self.notifier.notify_user(
                user.id, "Your admin request was rejected", NotificationType.WARNING
            )
        return user

    # =========================
    # Bootstrap
    # =========================

    async def make_superadmin(
        self, email: str, password: str, name: str = "Super Admin"
    ) -> tuple[User, bool]:
        """Promote the account with ``email`` to superadmin, registering it if missing.

        Returns:
            The account and whether it was created
        """
        user = await self.find_by_email(email)
        if user is None:
            return await self.register(name, email, password, role=Role.SUPERADMIN), True

        old_role = user.role
        user.role = Role.SUPERADMIN.value
        user.department = None
        user.admin_request = AdminRequestStatus.NONE.value
        user.requested_department = None
        await self.session.commit()
        log_role_change(str(user.id), old_role, user.role, "system", None)
        return user, False

    async def ensure_initial_superadmin(
        self, email: str | None, password: str | None, name: str = "Super Admin"
    ) -> User | None:
        """Create or promote the configured superadmin when none exists.

        Returns:
            The superadmin account, or None if nothing was done
        """
        if await self._superadmin_count() > 0:
            return None
        if not email or not password:
            logger.warning("No superadmin exists and no initial superadmin is configured")
            return None

        user, _ = await self.make_superadmin(email, password, name)
        logger.info(f"Initial superadmin ready: {user.email}", extra={"user_id": str(user.id)})
        return user


async def get_user_service(
    db: AsyncSession = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
    hub: RealtimeHub = Depends(get_realtime_hub),
) -> UserService:
    """FastAPI dependency for the user service."""
    return UserService(db, NotificationService(db, hub), storage)
