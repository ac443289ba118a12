"""Room-based publish/subscribe over FastAPI WebSocket connections."""

import logging
from dataclasses import dataclass, field
from uuid import uuid4

from fastapi import WebSocket

from coffee_vending.services.realtime import Transport

_logger = logging.getLogger(__name__)


@dataclass
class WebSocketHub(Transport):
    """Tracks live connections and their room memberships."""

    connections: dict[str, WebSocket] = field(default_factory=dict)
    rooms: dict[str, set[str]] = field(default_factory=dict)

    def register(self, websocket: WebSocket) -> str:
        connection_id = uuid4().hex
        self.connections[connection_id] = websocket
        return connection_id

    def unregister(self, connection_id: str) -> None:
        """Drop a connection and remove it from every room."""
        self.connections.pop(connection_id, None)
        for room in list(self.rooms):
            members = self.rooms[room]
            members.discard(connection_id)
            if not members:
                del self.rooms[room]

    def members(self, room: str) -> set[str]:
        return set(self.rooms.get(room, ()))

    async def join_room(self, connection_id: str, room: str) -> None:
        self.rooms.setdefault(room, set()).add(connection_id)

    async def leave_room(self, connection_id: str, room: str) -> None:
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self.rooms[room]

    async def emit_to(self, connection_id: str, event: str, data: object) -> None:
        websocket = self.connections.get(connection_id)
        if websocket is None:
            return
        try:
            await websocket.send_json({"event": event, "data": data})
        except Exception:
            _logger.warning(
                "Dropping connection after failed send",
                extra={"connection_id": connection_id, "event": event},
            )
            self.unregister(connection_id)

    async def emit_to_room(self, room: str, event: str, data: object) -> None:
        for connection_id in self.members(room):
            await self.emit_to(connection_id, event, data)

    async def broadcast(self, event: str, data: object) -> None:
        for connection_id in list(self.connections):
            await self.emit_to(connection_id, event, data)
