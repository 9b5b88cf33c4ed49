"""Connection management helpers for notification websockets."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, DefaultDict, Iterable, Set
from uuid import uuid4

from fastapi import WebSocket, status

from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)

EVENT_CONNECTED = "connected"
EVENT_NOTIFICATION = "notification"
EVENT_TASK_NOTIFICATION = "task-notification"
EVENT_BROADCAST = "broadcast-notification"
EVENT_JOINED_TASK_ROOM = "joined-task-room"
EVENT_LEFT_TASK_ROOM = "left-task-room"
EVENT_ERROR = "error"


def task_room(task_id: str) -> str:
    return f"task:{task_id}"


@dataclass
class LiveConnection:
    """A single open websocket and the rooms it joined."""

    handle_id: str
    user_id: str
    username: str | None
    websocket: WebSocket
    rooms: Set[str] = field(default_factory=set)


class NotificationsGateway:
    """Manage active websocket connections and push events to them.

    Per-user delivery goes through the :class:`ConnectionRegistry`; task rooms
    are an independent channel that clients join and leave explicitly.
    """

    def __init__(self, registry: ConnectionRegistry | None = None) -> None:
        self.registry = registry or ConnectionRegistry()
        self._lock = threading.Lock()
        self._connections: dict[str, LiveConnection] = {}
        self._rooms: DefaultDict[str, Set[str]] = defaultdict(set)

    async def connect(
        self, websocket: WebSocket, user_id: str | None, username: str | None = None
    ) -> str | None:
        """Accept ``websocket`` for ``user_id`` and return its handle id.

        Connections without a user identity are closed straight away and
        ``None`` is returned.
        """

        if not user_id:
            logger.warning("Rejected websocket connection without user identity")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return None

        await websocket.accept()
        handle_id = uuid4().hex
        connection = LiveConnection(
            handle_id=handle_id, user_id=user_id, username=username, websocket=websocket
        )
        with self._lock:
            self._connections[handle_id] = connection
        self.registry.register(user_id, handle_id)
        logger.info("User %s (%s) connected with handle %s", username, user_id, handle_id)

        await self._send(
            connection,
            EVENT_CONNECTED,
            {
                "message": "Successfully connected to notifications",
                "user_id": user_id,
                "username": username,
            },
        )
        return handle_id

    def disconnect(self, handle_id: str) -> None:
        """Forget ``handle_id`` and every room it joined."""

        with self._lock:
            connection = self._connections.pop(handle_id, None)
            if connection is None:
                return
            for room in connection.rooms:
                members = self._rooms.get(room)
                if members is None:
                    continue
                members.discard(handle_id)
                if not members:
                    del self._rooms[room]
        self.registry.unregister(connection.user_id, handle_id)
        logger.info("User %s (%s) disconnected", connection.username, connection.user_id)

    def get_connection(self, handle_id: str) -> LiveConnection | None:
        with self._lock:
            return self._connections.get(handle_id)

    async def join_task_room(self, handle_id: str, task_id: str) -> bool:
        connection = self.get_connection(handle_id)
        if connection is None:
            return False
        room = task_room(task_id)
        with self._lock:
            connection.rooms.add(room)
            self._rooms[room].add(handle_id)
        logger.info("User %s joined task room %s", connection.user_id, task_id)
        await self._send(connection, EVENT_JOINED_TASK_ROOM, {"task_id": task_id})
        return True

    async def leave_task_room(self, handle_id: str, task_id: str) -> bool:
        connection = self.get_connection(handle_id)
        if connection is None:
            return False
        room = task_room(task_id)
        with self._lock:
            connection.rooms.discard(room)
            members = self._rooms.get(room)
            if members is not None:
                members.discard(handle_id)
                if not members:
                    del self._rooms[room]
        logger.info("User %s left task room %s", connection.user_id, task_id)
        await self._send(connection, EVENT_LEFT_TASK_ROOM, {"task_id": task_id})
        return True

    def room_members(self, task_id: str) -> frozenset[str]:
        with self._lock:
            return frozenset(self._rooms.get(task_room(task_id), ()))

    async def send_to_user(self, user_id: str, event: str, data: Any) -> int:
        """Push ``event`` to every open connection of ``user_id``.

        Returns how many connections received it. Connections that fail are
        dropped and the error is not propagated.
        """

        delivered = await self._send_many(self.registry.handles_for(user_id), event, data)
        if delivered:
            logger.info("Event %s sent to user %s on %s connection(s)", event, user_id, delivered)
        return delivered

    async def send_to_task_room(
        self,
        task_id: str,
        event: str,
        data: Any,
        *,
        exclude_user_id: str | None = None,
    ) -> int:
        handles = self.room_members(task_id)
        if exclude_user_id:
            excluded = self.registry.handles_for(exclude_user_id)
            handles = handles - excluded
        delivered = await self._send_many(handles, event, data)
        logger.info("Event %s sent to task room %s (%s connection(s))", event, task_id, delivered)
        return delivered

    async def broadcast(self, event: str, data: Any) -> int:
        with self._lock:
            handles = list(self._connections)
        delivered = await self._send_many(handles, event, data)
        logger.info("Broadcast %s sent to %s connection(s)", event, delivered)
        return delivered

    async def send_to_handle(self, handle_id: str, event: str, data: Any) -> bool:
        connection = self.get_connection(handle_id)
        if connection is None:
            return False
        return await self._send(connection, event, data)

    async def send_error(self, handle_id: str, message: str) -> bool:
        return await self.send_to_handle(handle_id, EVENT_ERROR, {"message": message})

    def stats(self) -> dict[str, Any]:
        online = self.registry.all_online_users()
        return {
            "connected_users": len(online),
            "total_connections": self.registry.total_connections(),
            "users": sorted(online),
        }

    async def _send_many(self, handle_ids: Iterable[str], event: str, data: Any) -> int:
        delivered = 0
        for handle_id in list(handle_ids):
            connection = self.get_connection(handle_id)
            if connection is None:
                continue
            if await self._send(connection, event, data):
                delivered += 1
        return delivered

    async def _send(self, connection: LiveConnection, event: str, data: Any) -> bool:
        try:
            await connection.websocket.send_json({"type": event, "data": data})
        except Exception as exc:
            logger.debug(
                "Dropping handle %s of user %s after send failure: %s",
                connection.handle_id,
                connection.user_id,
                exc,
            )
            self.disconnect(connection.handle_id)
            return False
        return True


notifications_gateway = NotificationsGateway(ConnectionRegistry())


__all__ = [
    "EVENT_BROADCAST",
    "EVENT_CONNECTED",
    "EVENT_ERROR",
    "EVENT_JOINED_TASK_ROOM",
    "EVENT_LEFT_TASK_ROOM",
    "EVENT_NOTIFICATION",
    "EVENT_TASK_NOTIFICATION",
    "LiveConnection",
    "NotificationsGateway",
    "notifications_gateway",
    "task_room",
]
