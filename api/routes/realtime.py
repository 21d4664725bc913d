"""
api/routes/realtime.py -- WebSocket endpoint for the broadcast channel.

  WS /ws -- join the channel; receive product_created / product_updated /
            product_deleted events and chat frames (see realtime/hub.py).

When REALTIME_ENABLED is false there is no hub and the socket is closed with
1008 (policy violation) before it is accepted.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from realtime.hub import BroadcastHub

router = APIRouter()


@router.websocket("/ws")
async def realtime_channel(websocket: WebSocket) -> None:
    hub: BroadcastHub | None = websocket.app.state.hub
    if hub is None:
        await websocket.close(code=1008)
        return

    await hub.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await hub.send(websocket, "error", {"message": "Frames must be valid JSON"})
                continue
            await hub.handle(websocket, message)
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(websocket)
