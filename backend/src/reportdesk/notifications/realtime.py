"""Live update channel for dashboard clients.

A python-socketio ``AsyncServer`` shares the ASGI app with FastAPI. Clients
authenticate with ``auth={"token": ...}`` in the handshake. The account must
still exist; its stored role decides the rooms, ``user:{id}`` and
``role:{role}``.

Events emitted:
- ``connectionStatus`` to a session right after it connects
- ``reportUpdated`` to every connected client
- ``notification`` to one user's room
"""

from typing import Any
from uuid import UUID

import socketio
from socketio.exceptions import ConnectionRefusedError

from ..api import AuthenticationError
from ..api.auth import decode_access_token
from ..config import Settings, get_settings
from ..db import get_session_factory
from ..logging import get_context_logger
from ..tables import User

logger = get_context_logger(__name__, component="realtime")


def user_room(user_id: UUID | str) -> str:
    return f"user:{user_id}"


def role_room(role: str) -> str:
    return f"role:{role}"


class RealtimeHub:
    """Socket.IO server plus a registry of live sessions per user."""

    def __init__(
        self,
        settings: Settings | None = None,
        client_manager=None,
        session_factory=None,
    ):
        settings = settings or get_settings()
        if client_manager is None and settings.socketio_redis_url:
            client_manager = socketio.AsyncRedisManager(settings.socketio_redis_url)

        # With a shared manager other processes hold sessions we cannot see
        self._shared = client_manager is not None
        self.sio = socketio.AsyncServer(
            async_mode="asgi",
            cors_allowed_origins=settings.cors_origins_list or "*",
            client_manager=client_manager,
            logger=False,
            engineio_logger=False,
        )
        self._session_factory = session_factory
        self._sessions: dict[str, set[str]] = {}
        self._owners: dict[str, str] = {}

        self.sio.on("connect", self.on_connect)
        self.sio.on("disconnect", self.on_disconnect)

    # =========================
    # Connection lifecycle
    # =========================

    async def on_connect(self, sid: str, environ: dict, auth: Any = None) -> None:
        token = auth.get("token") if isinstance(auth, dict) else None
        if not token:
            logger.info("Socket connection refused: no token", extra={"sid": sid})
            raise ConnectionRefusedError("Authentication required")

        try:
            payload = decode_access_token(token)
        except AuthenticationError as e:
            logger.info("Socket connection refused", extra={"sid": sid, "reason": e.message})
            raise ConnectionRefusedError("Invalid or expired token")

        factory = self._session_factory or get_session_factory()
        async with factory() as session:
            account = await session.get(User, payload.id)
        if account is None:
            logger.info("Socket connection refused: unknown account", extra={"sid": sid})
            raise ConnectionRefusedError("Account no longer exists")

        user_id = str(account.id)
        role = account.role

        await self.sio.enter_room(sid, user_room(user_id))
        await self.sio.enter_room(sid, role_room(role))
        self._sessions.setdefault(user_id, set()).add(sid)
        self._owners[sid] = user_id

        logger.info("Client connected", extra={"sid": sid, "user_id": user_id, "role": role})
        await self.sio.emit(
            "connectionStatus",
            {"connected": True, "userId": user_id, "role": role},
            to=sid,
        )

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        user_id = self._owners.pop(sid, None)
        if user_id is None:
            return
        sids = self._sessions.get(user_id)
        if sids is not None:
            sids.discard(sid)
            if not sids:
                del self._sessions[user_id]
        logger.info("Client disconnected", extra={"sid": sid, "user_id": user_id})

    # =========================
    # Registry
    # =========================

    def is_online(self, user_id: UUID | str) -> bool:
        return bool(self._sessions.get(str(user_id)))

    def session_count(self, user_id: UUID | str | None = None) -> int:
        if user_id is None:
            return len(self._owners)
        return len(self._sessions.get(str(user_id), ()))

    # =========================
    # Emits
    # =========================

    async def notify(self, user_id: UUID | str, payload: dict[str, Any]) -> bool:
        """Push a ``notification`` event to one user.

        Returns:
            True if the user had a live session to deliver to
        """
        online = self.is_online(user_id)
        if not (online or self._shared):
            return False
        await self._emit("notification", payload, to=user_room(user_id))
        return online

    async def report_updated(self, action: str, report: dict[str, Any]) -> None:
        """Broadcast a ``reportUpdated`` event to every client."""
        await self._emit("reportUpdated", {"action": action, "report": report})

    async def _emit(self, event: str, data: dict[str, Any], to: str | None = None) -> None:
        # Best effort delivery
        try:
            await self.sio.emit(event, data, to=to)
        except Exception as e:
            logger.warning(f"Socket emit failed: {event}: {e}", extra={"room": to})


_hub: RealtimeHub | None = None


def get_realtime_hub() -> RealtimeHub:
    """Get the process-wide hub (FastAPI dependency)."""
    global _hub
    if _hub is None:
        _hub = RealtimeHub()
    return _hub
