"""Tests for the connection registry — rooms, counts, release."""

from livecast.realtime.registry import LEGACY_ROOM, Connection, ConnectionRegistry


def test_assign_puts_connection_in_room():
    registry = ConnectionRegistry()
    conn = registry.assign(object(), 7)
    assert conn.room_id == 7
    assert registry.room_size(7) == 1
    assert registry.room_of(conn) == 7
    assert registry.connections(7) == [conn]


def test_connection_ids_are_unique():
    registry = ConnectionRegistry()
    ids = {registry.assign(object(), room).id for room in (1, 1, 2, LEGACY_ROOM)}
    assert len(ids) == 4


def test_rooms_are_isolated():
    registry = ConnectionRegistry()
    a = registry.assign(object(), 1)
    registry.assign(object(), 2)
    registry.assign(object(), 2)
    assert registry.connections(1) == [a]
    assert registry.room_size(2) == 2
    assert registry.rooms() == {1: 1, 2: 2}
    assert registry.total() == 3


def test_release_removes_empty_room():
    registry = ConnectionRegistry()
    conn = registry.assign(object(), 5)
    assert registry.release(conn) is True
    assert registry.room_size(5) == 0
    assert 5 not in registry.rooms()
    assert registry.room_of(conn) is None


def test_release_is_idempotent():
    registry = ConnectionRegistry()
    keep = registry.assign(object(), 3)
    gone = registry.assign(object(), 3)
    registry.release(gone)
    assert registry.release(gone) is False
    assert registry.room_size(3) == 1
    assert registry.connections(3) == [keep]


def test_release_unknown_connection_is_noop():
    registry = ConnectionRegistry()
    registry.assign(object(), 1)
    other = Connection(id=999, room_id=1, transport=object())
    assert registry.release(other) is False
    assert registry.room_size(1) == 1


def test_absent_room_has_size_zero():
    registry = ConnectionRegistry()
    assert registry.room_size(42) == 0
    assert registry.connections(42) == []


def test_connections_snapshot_is_independent():
    registry = ConnectionRegistry()
    conn = registry.assign(object(), 1)
    snapshot = registry.connections(1)
    registry.release(conn)
    assert snapshot == [conn]
    assert registry.connections(1) == []
