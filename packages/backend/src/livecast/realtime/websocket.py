"""WebSocket endpoints — viewers join a campaign room and receive its events.

Learn: Viewer apps connect to /ws/{campaign_id}; older clients connect to
plain /ws and land in the legacy room 0. The handler:
1. Rejects any malformed path before the handshake (no accept)
2. Accepts, registers the socket in its room
3. Tells the room its new viewer count
4. Answers {"type": "ping"} with {"type": "pong"}, ignores everything else
5. On disconnect or error: unregisters and tells the room the new count

Outbound traffic (events, component changes) never comes from here; it is
pushed by the Broadcaster from HTTP handlers and the scheduler.
"""

import asyncio
import json
import re

import structlog
from fastapi import APIRouter, WebSocket, status
from starlette.websockets import WebSocketState

from livecast.events.types import PONG
from livecast.realtime.registry import LEGACY_ROOM

logger = structlog.get_logger()
router = APIRouter()

_CAMPAIGN_ID = re.compile(r"[0-9]+")


@router.websocket("/ws")
async def legacy_websocket(websocket: WebSocket):
    """Ungrouped viewers: they only receive events sent without a campaign."""
    await _serve(websocket, LEGACY_ROOM)


@router.websocket("/ws/{campaign_id}")
async def campaign_websocket(websocket: WebSocket, campaign_id: str):
    if not _CAMPAIGN_ID.fullmatch(campaign_id):
        await _reject(websocket)
        return
    await _serve(websocket, int(campaign_id))


@router.websocket("/ws/{rest:path}")
async def unknown_websocket(websocket: WebSocket, rest: str):
    await _reject(websocket)


async def _reject(websocket: WebSocket) -> None:
    # Closing before accept() refuses the upgrade handshake.
    logger.info("ws.rejected", path=websocket.url.path)
    await websocket.close(code=status.WS_1008_POLICY_VIOLATION)


async def _serve(websocket: WebSocket, room_id: int) -> None:
    registry = websocket.app.state.registry
    broadcaster = websocket.app.state.broadcaster

    await websocket.accept()
    conn = registry.assign(websocket, room_id)
    log = logger.bind(connection_id=conn.id, room_id=room_id)
    log.info("ws.connected", room_size=registry.room_size(room_id))

    try:
        await broadcaster.broadcast_client_count(room_id)
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            if not text:
                continue
            try:
                payload = json.loads(text)
            except json.JSONDecodeError:
                continue
            if isinstance(payload, dict) and payload.get("type") == "ping":
                await websocket.send_text(json.dumps({"type": PONG}))
    except Exception as e:
        log.warning("ws.error", error=str(e))
    finally:
        registry.release(conn)
        log.info("ws.disconnected", room_size=registry.room_size(room_id))
        # Shielded: the remaining viewers get the new count even when this
        # handler is being cancelled (server shutdown).
        await asyncio.shield(broadcaster.broadcast_client_count(room_id))
        if (
            websocket.client_state == WebSocketState.CONNECTED
            and websocket.application_state == WebSocketState.CONNECTED
        ):
            try:
                await websocket.close()
            except Exception as e:
                log.debug("ws.close_failed", error=str(e))
