from __future__ import annotations

"""WebSocket endpoint for the DevSync room relay."""

import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..services.relay import get_relay

logger = logging.getLogger("ganadash.api.realtime")

router = APIRouter(tags=["devsync"])


@router.websocket("/ws/devsync")
async def devsync_socket(websocket: WebSocket) -> None:
    await websocket.accept()
    socket_id = uuid.uuid4().hex
    relay = get_relay()
    await relay.connect(socket_id, websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            await relay.handle_raw(socket_id, raw)
    except WebSocketDisconnect as exc:
        logger.debug("Socket %s closed (code=%s)", socket_id, exc.code)
    finally:
        await relay.disconnect(socket_id)
