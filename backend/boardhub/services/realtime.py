"""Realtime change feed.

Committed ORM changes are turned into refresh signals for websocket
subscribers. Board-scoped tables are coalesced per board over a short
debounce window, so a burst of writes (a drag that re-stripes a whole list)
produces a single refresh. Notification rows are pushed straight to the
recipient's inbox channel.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from fastapi import WebSocket
from sqlalchemy import event
from sqlalchemy.orm import Session

from boardhub.config import get_settings

logger = structlog.get_logger()
settings = get_settings()

BOARD_TABLES = {
    "boards",
    "board_members",
    "invitations",
    "lists",
    "tasks",
    "comments",
    "task_activity",
}
INBOX_TABLE = "notification_events"
_CHANGES_KEY = "realtime_changes"


class ConnectionManager:
    """Manages WebSocket connections for board and inbox channels."""

    def __init__(self):
        # Map of board_id -> set of websocket connections
        self.board_connections: dict[str, set[WebSocket]] = {}
        # Map of user_id -> set of websocket connections (one per open tab)
        self.user_connections: dict[str, set[WebSocket]] = {}

    async def connect(
        self,
        websocket: WebSocket,
        user_id: str,
        board_id: str | None = None,
    ) -> None:
        """Accept and register a websocket connection."""
        await websocket.accept()
        if board_id:
            self.board_connections.setdefault(board_id, set()).add(websocket)
        else:
            self.user_connections.setdefault(user_id, set()).add(websocket)

    def disconnect(
        self,
        websocket: WebSocket,
        user_id: str,
        board_id: str | None = None,
    ) -> None:
        """Unregister a websocket connection."""
        channels, key = (
            (self.board_connections, board_id) if board_id else (self.user_connections, user_id)
        )
        connections = channels.get(key)
        if connections is None:
            return
        connections.discard(websocket)
        if not connections:
            del channels[key]

    def has_board_subscribers(self, board_id: str) -> bool:
        return bool(self.board_connections.get(board_id))

    def has_user_subscribers(self, user_id: str) -> bool:
        return bool(self.user_connections.get(user_id))

    async def broadcast_to_board(self, board_id: str, message: dict) -> None:
        """Broadcast message to everyone watching a board."""
        await self._send_all(self.board_connections, board_id, message)

    async def send_to_user(self, user_id: str, message: dict) -> None:
        """Send message to every inbox connection of a user."""
        await self._send_all(self.user_connections, user_id, message)

    async def _send_all(self, channels: dict[str, set[WebSocket]], key: str, message: dict) -> None:
        for connection in list(channels.get(key, ())):
            try:
                await connection.send_json(message)
            except Exception as exc:
                logger.warning("websocket_send_failed", channel=key, error=str(exc))
                connections = channels.get(key)
                if connections is not None:
                    connections.discard(connection)
                    if not connections:
                        del channels[key]


class RefreshDebouncer:
    """Coalesce refresh signals per key over a fixed delay."""

    def __init__(
        self,
        delay: float,
        callback: Callable[[str, set[str]], Awaitable[None]],
    ):
        self.delay = delay
        self.callback = callback
        self._pending: dict[str, set[str]] = {}
        self._handles: dict[str, tuple[asyncio.AbstractEventLoop, asyncio.TimerHandle]] = {}
        self._tasks: set[asyncio.Task] = set()

    def schedule(self, key: str, tables: set[str]) -> None:
        """Record changed tables for a key and start the timer if idle."""
        loop = asyncio.get_running_loop()
        self._pending.setdefault(key, set()).update(tables)
        current = self._handles.get(key)
        # A timer whose loop has closed will never fire
        if current is None or current[0].is_closed():
            self._handles[key] = (loop, loop.call_later(self.delay, self._fire, key))

    def pending(self, key: str) -> set[str]:
        return set(self._pending.get(key, ()))

    def _fire(self, key: str) -> None:
        self._handles.pop(key, None)
        tables = self._pending.pop(key, set())
        task = asyncio.get_running_loop().create_task(self.callback(key, tables))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def cancel_all(self) -> None:
        for _, handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
        self._pending.clear()


# Global connection manager instance
manager = ConnectionManager()


async def _send_board_refresh(board_id: str, tables: set[str]) -> None:
    await manager.broadcast_to_board(
        board_id,
        {"type": "refresh", "board_id": board_id, "tables": sorted(tables)},
    )


debouncer = RefreshDebouncer(settings.realtime_debounce_ms / 1000, _send_board_refresh)
_inbox_tasks: set[asyncio.Task] = set()


def _channel_for(obj: Any) -> tuple[str, str, str] | None:
    table = getattr(obj, "__tablename__", None)
    if table == INBOX_TABLE:
        return ("user", str(obj.user_id), table)
    if table == "boards":
        return ("board", str(obj.id), table)
    if table in BOARD_TABLES:
        board_id = getattr(obj, "board_id", None)
        if board_id is not None:
            return ("board", str(board_id), table)
    return None


def _record_changes(session: Session, flush_context: Any) -> None:
    changes = session.info.setdefault(_CHANGES_KEY, set())
    for obj in (*session.new, *session.dirty, *session.deleted):
        channel = _channel_for(obj)
        if channel:
            changes.add(channel)


def _discard_changes(session: Session) -> None:
    session.info.pop(_CHANGES_KEY, None)


def _publish_changes(session: Session) -> None:
    changes = session.info.pop(_CHANGES_KEY, None)
    if changes:
        publish(changes)


def publish(changes: set[tuple[str, str, str]]) -> None:
    """Dispatch committed changes to any subscribed websocket channels."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return

    by_board: dict[str, set[str]] = {}
    inbox_users: set[str] = set()
    for kind, key, table in changes:
        if kind == "board":
            by_board.setdefault(key, set()).add(table)
        else:
            inbox_users.add(key)

    for board_id, tables in by_board.items():
        if manager.has_board_subscribers(board_id):
            debouncer.schedule(board_id, tables)

    for user_id in inbox_users:
        if manager.has_user_subscribers(user_id):
            task = loop.create_task(manager.send_to_user(user_id, {"type": "inbox_refresh"}))
            _inbox_tasks.add(task)
            task.add_done_callback(_inbox_tasks.discard)


def install_change_feed() -> None:
    """Attach the change feed hooks to every ORM session."""
    if event.contains(Session, "after_flush", _record_changes):
        return
    event.listen(Session, "after_flush", _record_changes)
    event.listen(Session, "after_commit", _publish_changes)
    event.listen(Session, "after_rollback", _discard_changes)
    logger.debug("realtime_change_feed_installed")
