"""Connection registry — which viewer socket is in which room.

Learn: Rooms are keyed by campaign id; room 0 is the legacy ungrouped room
for viewers that connect to plain ``/ws``. The registry keeps two indexes:

  connection id → room id
  room id       → {connection id → Connection}

A room with no connections is deleted immediately, so ``rooms()`` only ever
lists rooms someone is watching. All mutation happens on the event loop
that runs the WebSocket handlers, so no locking is needed.
"""

import itertools
from dataclasses import dataclass, field
from typing import Any, Optional

LEGACY_ROOM = 0


@dataclass(eq=False)
class Connection:
    """One open viewer channel. ``room_id`` is fixed at connect time."""

    id: int
    room_id: int
    transport: Any = field(repr=False)


class ConnectionRegistry:
    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._room_of: dict[int, int] = {}
        self._rooms: dict[int, dict[int, Connection]] = {}

    def assign(self, transport: Any, room_id: int) -> Connection:
        """Register a transport under ``room_id``; visible to broadcasts at once."""
        conn = Connection(id=next(self._ids), room_id=room_id, transport=transport)
        self._room_of[conn.id] = room_id
        self._rooms.setdefault(room_id, {})[conn.id] = conn
        return conn

    def release(self, conn: Connection) -> bool:
        """Remove a connection. Safe to call twice; returns False if it was not registered."""
        room_id = self._room_of.pop(conn.id, None)
        if room_id is None:
            return False
        members = self._rooms.get(room_id)
        if members is not None:
            members.pop(conn.id, None)
            if not members:
                del self._rooms[room_id]
        return True

    def room_size(self, room_id: int) -> int:
        return len(self._rooms.get(room_id, ()))

    def room_of(self, conn: Connection) -> Optional[int]:
        return self._room_of.get(conn.id)

    def connections(self, room_id: int) -> list[Connection]:
        """Snapshot of a room's connections, safe to iterate across awaits."""
        return list(self._rooms.get(room_id, {}).values())

    def rooms(self) -> dict[int, int]:
        """Room id → connection count for every non-empty room."""
        return {room_id: len(members) for room_id, members in self._rooms.items()}

    def total(self) -> int:
        return len(self._room_of)
