"""Notification fanout.

Each user has a notification list; a message addressed to a role is copied
into the list of every matching user with one bulk INSERT. Recipients with a
live socket session also get the message pushed immediately, the rest see
it on their next poll.
"""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from fastapi import Depends
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db
from ..exceptions import NotFound
from ..logging import get_context_logger, log_notification_fanout
from ..models import (
    BroadcastTarget,
    NotificationResponse,
    NotificationType,
    Role,
    SendNotificationRequest,
    UserNotificationView,
)
from ..tables import Notification, SystemNotification, User
from .realtime import RealtimeHub, get_realtime_hub

logger = get_context_logger(__name__, component="fanout")


def _payload(row: dict[str, Any] | Notification) -> dict[str, Any]:
    return NotificationResponse.model_validate(row).model_dump(mode="json", by_alias=True)


class NotificationService:
    """Writes, reads and pushes user notifications."""

    def __init__(self, session: AsyncSession, hub: RealtimeHub | None = None):
        self.session = session
        self.hub = hub or get_realtime_hub()

    # =========================
    # Writes
    # =========================

    async def notify_user(
        self,
        user_id: UUID,
        message: str,
        type: NotificationType | str = NotificationType.INFO,
    ) -> Notification:
        """Append a notification to one user's list and push it if online."""
        row = Notification(
            id=uuid4(),
            user_id=user_id,
            message=message,
            type=NotificationType(type).value,
            read=False,
            created_at=datetime.utcnow(),
        )
        self.session.add(row)
        await self.session.commit()

        delivered = await self.hub.notify(user_id, _payload(row))
        log_notification_fanout(str(user_id), 1, int(delivered))
        return row

    async def notify_users(
        self,
        user_ids: list[UUID],
        message: str,
        type: NotificationType | str = NotificationType.INFO,
        target: str = "users",
    ) -> int:
        """Copy one message into several users' lists.

        Returns:
            Number of notifications written
        """
        rows = await self._insert_rows(user_ids, message, type)
        if rows:
            await self.session.commit()
        await self._push(rows, target)
        return len(rows)

    async def _insert_rows(
        self, user_ids: list[UUID], message: str, type: NotificationType | str
    ) -> list[dict[str, Any]]:
        """Bulk insert one notification per user without committing."""
        if not user_ids:
            return []
        now = datetime.utcnow()
        rows = [
            {
                "id": uuid4(),
                "user_id": user_id,
                "message": message,
                "type": NotificationType(type).value,
                "read": False,
                "created_at": now,
            }
            for user_id in user_ids
        ]
        await self.session.execute(insert(Notification), rows)
        return rows

    async def _push(self, rows: list[dict[str, Any]], target: str) -> None:
        delivered = 0
        for row in rows:
            if await self.hub.notify(row["user_id"], _payload(row)):
                delivered += 1
        log_notification_fanout(target, len(rows), delivered)

    async def notify_role(
        self,
        role: Role | str,
        message: str,
        type: NotificationType | str = NotificationType.INFO,
        department: str | None = None,
    ) -> int:
        """Notify every user holding ``role``, optionally within one department."""
        role = Role(role).value
        query = select(User.id).where(User.role == role)
        if department is not None:
            query = query.where(User.department == department)

        user_ids = list((await self.session.execute(query)).scalars().all())
        target = role if department is None else f"{role}:{department}"
        return await self.notify_users(user_ids, message, type, target=target)

    async def notify_reviewers(
        self,
        category: str,
        message: str,
        type: NotificationType | str = NotificationType.INFO,
    ) -> int:
        """Notify the admins of ``category`` and every superadmin."""
        query = select(User.id).where(
            (User.role == Role.SUPERADMIN.value)
            | ((User.role == Role.ADMIN.value) & (User.department == category))
        )
        user_ids = list((await self.session.execute(query)).scalars().all())
        return await self.notify_users(user_ids, message, type, target=f"reviewers:{category}")

    async def broadcast(
        self,
        message: str,
        target: BroadcastTarget | str = BroadcastTarget.ALL,
        sent_by: UUID | None = None,
        type: NotificationType | str = NotificationType.INFO,
        department: str | None = None,
    ) -> int:
        """Send a system notification to a role target and log it.

        ``all`` reaches every account; the other targets reach one role.
        ``department`` narrows an ``admin`` target to one department.

        Returns:
            Number of recipients
        """
        target = BroadcastTarget(target)
        query = select(User.id)
        if target is not BroadcastTarget.ALL:
            query = query.where(User.role == target.value)
            if target is BroadcastTarget.ADMIN and department is not None:
                query = query.where(User.department == department)

        user_ids = list((await self.session.execute(query)).scalars().all())
        rows = await self._insert_rows(user_ids, message, type)
        recipients = len(rows)
        self.session.add(
            SystemNotification(
                id=uuid4(),
                message=message,
                target=target.value,
                sent_by=sent_by,
                recipients=recipients,
                created_at=datetime.utcnow(),
            )
        )
        await self.session.commit()
        await self._push(rows, target.value)
        return recipients

    async def send(self, request: SendNotificationRequest, sent_by: UUID | None = None) -> int:
        """Send to one account when ``user_id`` is given, otherwise broadcast."""
        if request.user_id is not None:
            if await self.session.get(User, request.user_id) is None:
                raise NotFound("User", request.user_id)
            await self.notify_user(request.user_id, request.message, request.type)
            return 1
        return await self.broadcast(
            request.message,
            request.target,
            sent_by=sent_by,
            type=request.type,
            department=request.department.value if request.department else None,
        )

    # =========================
    # Read state
    # =========================

    async def mark_read(self, user_id: UUID, notification_id: UUID) -> bool:
        """Mark one notification read.

        Idempotent: a second call finds nothing to change.

        Returns:
            True if the notification changed from unread to read

        Raises:
            NotFound: If the notification does not exist in the user's list
        """
        result = await self.session.execute(
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
                Notification.read.is_(False),
            )
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            await self.session.commit()
            return True

        exists = await self.session.scalar(
            select(Notification.id).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        if exists is None:
            raise NotFound("Notification", notification_id)
        return False

    async def mark_all_read(self, user_id: UUID) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount or 0

    async def clear_all(self, user_id: UUID) -> int:
        result = await self.session.execute(
            delete(Notification).where(Notification.user_id == user_id)
        )
        await self.session.commit()
        return result.rowcount or 0

    # =========================
    # Queries
    # =========================

    async def list_for_user(self, user_id: UUID, limit: int | None = None) -> list[Notification]:
        """Return a user's notifications, newest first."""
        query = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return list((await self.session.execute(query)).scalars().all())

    async def unread_count(self, user_id: UUID) -> int:
        return await self.session.scalar(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
        ) or 0

    async def all_for_admin(self, limit: int = 200) -> list[UserNotificationView]:
        """Every user's notifications with the recipient attached, newest first."""
        result = await self.session.execute(
            select(Notification, User)
            .join(User, Notification.user_id == User.id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        return [_view(notification, user) for notification, user in result.all()]

    async def for_user(self, user_id: UUID) -> list[UserNotificationView]:
        """One user's notifications, for admin inspection."""
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFound("User", user_id)
        return [_view(row, user) for row in await self.list_for_user(user_id)]

    async def system_log(self, limit: int = 100) -> list[SystemNotification]:
        result = await self.session.execute(
            select(SystemNotification)
            .order_by(SystemNotification.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


def _view(notification: Notification, user: User) -> UserNotificationView:
    return UserNotificationView(
        id=notification.id,
        message=notification.message,
        type=notification.type,
        read=notification.read,
        created_at=notification.created_at,
        user_id=user.id,
        user_name=user.name,
        user_email=user.email,
        user_role=user.role,
    )


async def get_notification_service(
    db: AsyncSession = Depends(get_db),
    hub: RealtimeHub = Depends(get_realtime_hub),
) -> NotificationService:
    """FastAPI dependency for the notification service."""
    return NotificationService(db, hub)
