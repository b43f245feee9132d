"""Tests for the broadcast engine — room fan-out, isolation, client counts."""

import pytest
from starlette.websockets import WebSocketState

from livecast.realtime.registry import LEGACY_ROOM


@pytest.mark.asyncio
async def test_broadcast_reaches_only_its_room(registry, broadcaster, make_socket):
    inside, outside = make_socket(), make_socket()
    registry.assign(inside, 7)
    registry.assign(outside, LEGACY_ROOM)

    delivered = await broadcaster.broadcast_to_room(7, {"type": "product", "data": {"id": "p1"}})

    assert delivered == 1
    assert inside.sent == [{"type": "product", "data": {"id": "p1"}}]
    assert outside.sent == []


@pytest.mark.asyncio
async def test_broadcast_to_empty_room(broadcaster):
    assert await broadcaster.broadcast_to_room(99, {"type": "poll"}) == 0


@pytest.mark.asyncio
async def test_failing_socket_does_not_block_others(registry, broadcaster, make_socket):
    broken, healthy = make_socket(fail=True), make_socket()
    registry.assign(broken, 1)
    registry.assign(healthy, 1)

    delivered = await broadcaster.broadcast_to_room(1, {"type": "contest"})

    assert delivered == 1
    assert healthy.sent == [{"type": "contest"}]


@pytest.mark.asyncio
async def test_closing_sockets_are_skipped(registry, broadcaster, make_socket):
    closing = make_socket(state=WebSocketState.DISCONNECTED)
    half_open = make_socket()
    half_open.application_state = WebSocketState.CONNECTING
    open_ = make_socket()
    for socket in (closing, half_open, open_):
        registry.assign(socket, 3)

    delivered = await broadcaster.broadcast_to_room(3, {"type": "poll"})

    assert delivered == 1
    assert closing.sent == [] and half_open.sent == []
    assert open_.sent == [{"type": "poll"}]


@pytest.mark.asyncio
async def test_client_count_message(registry, broadcaster, make_socket):
    a, b = make_socket(), make_socket()
    registry.assign(a, 4)
    registry.assign(b, 4)

    await broadcaster.broadcast_client_count(4)

    for socket in (a, b):
        [message] = socket.sent
        assert message["type"] == "client_count"
        assert message["data"] == {"count": 2}
        assert isinstance(message["timestamp"], int)


@pytest.mark.asyncio
async def test_legacy_broadcast_reaches_every_room(registry, broadcaster, make_socket):
    sockets = [make_socket() for _ in range(3)]
    for room_id, socket in zip((LEGACY_ROOM, 1, 2), sockets):
        registry.assign(socket, room_id)

    delivered = await broadcaster.broadcast_legacy({"type": "product"})

    assert delivered == 3
    assert all(s.sent == [{"type": "product"}] for s in sockets)


@pytest.mark.asyncio
async def test_released_connection_gets_nothing(registry, broadcaster, make_socket):
    socket = make_socket()
    conn = registry.assign(socket, 2)
    registry.release(conn)

    assert await broadcaster.broadcast_to_room(2, {"type": "poll"}) == 0
    assert socket.sent == []
