"""Broadcast engine — fan a message out to every open socket in a room.

Learn: A message is serialized once, then sent to each connection
concurrently. Every send is isolated: a socket that is closing, closed or
raising on send is skipped or logged, and the rest still receive the
message. Broadcast is best-effort; the caller never sees a transport error.
"""

import asyncio
import json
from typing import Union

import structlog
from starlette.websockets import WebSocketState

from livecast.clock import now_ms
from livecast.events.types import CLIENT_COUNT
from livecast.realtime.registry import Connection, ConnectionRegistry

logger = structlog.get_logger()

Message = Union[str, dict]


def _is_open(transport) -> bool:
    return (
        getattr(transport, "client_state", None) == WebSocketState.CONNECTED
        and getattr(transport, "application_state", None) == WebSocketState.CONNECTED
    )


def _serialize(message: Message) -> str:
    if isinstance(message, str):
        return message
    return json.dumps(message, default=str)


class Broadcaster:
    """Delivers messages to rooms held in a ConnectionRegistry."""

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    async def _send(self, conn: Connection, text: str) -> bool:
        if not _is_open(conn.transport):
            return False
        try:
            await conn.transport.send_text(text)
            return True
        except Exception as e:
            logger.warning(
                "broadcast.send_failed",
                connection_id=conn.id,
                room_id=conn.room_id,
                error=str(e),
            )
            return False

    async def _deliver(self, connections: list[Connection], text: str) -> int:
        if not connections:
            return 0
        results = await asyncio.gather(*(self._send(c, text) for c in connections))
        return sum(1 for ok in results if ok)

    async def broadcast_to_room(self, room_id: int, message: Message) -> int:
        """Send to every open connection in ``room_id``. Returns deliveries."""
        return await self._deliver(self.registry.connections(room_id), _serialize(message))

    async def broadcast_client_count(self, room_id: int) -> int:
        """Tell a room how many viewers it currently has."""
        message = {
            "type": CLIENT_COUNT,
            "data": {"count": self.registry.room_size(room_id)},
            "timestamp": now_ms(),
        }
        return await self.broadcast_to_room(room_id, message)

    async def broadcast_legacy(self, message: Message) -> int:
        """Send to every connection in every room (events without a campaign)."""
        text = _serialize(message)
        connections = [
            conn
            for room_id in self.registry.rooms()
            for conn in self.registry.connections(room_id)
        ]
        return await self._deliver(connections, text)
