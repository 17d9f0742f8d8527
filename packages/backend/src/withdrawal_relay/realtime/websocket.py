"""WebSocket endpoint — real-time event delivery to dashboards and phones.

Learn: Each client connects to /ws?type=mobile&deviceId=..&deviceName=..
(dashboards may omit everything). The handler:
1. Registers the socket with the connection hub
2. Greets the client with its connection id
3. Answers heartbeat/ping frames until the client goes away
4. Unregisters on disconnect

Outbound events don't flow through this handler at all — services call
publish_event(), which reaches the socket through the hub.
"""

import json

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from withdrawal_relay.realtime.hub import CLIENT_KINDS, hub

logger = structlog.get_logger()
router = APIRouter()

# Custom close code: query params don't describe a known client type
CLOSE_BAD_CLIENT_TYPE = 4400


@router.websocket("/ws")
async def client_websocket(websocket: WebSocket):
    kind = websocket.query_params.get("type", "dashboard")
    await websocket.accept()
    if kind not in CLIENT_KINDS:
        # Closing before accept() would reach the client as a bare HTTP 403
        await websocket.close(code=CLOSE_BAD_CLIENT_TYPE, reason="Unknown client type")
        return

    client = hub.register(
        websocket,
        kind=kind,
        device_id=websocket.query_params.get("deviceId"),
        device_name=websocket.query_params.get("deviceName"),
    )

    try:
        await client.send(json.dumps({"type": "connected", "client_id": client.client_id}))

        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            # Binary frames carry nothing we understand
            data = message.get("text")
            if data is None:
                continue
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if not isinstance(msg, dict):
                continue

            msg_type = msg.get("type")
            if msg_type == "heartbeat":
                hub.touch(client.client_id)
                await client.send(json.dumps({"type": "heartbeat_ack"}))
            elif msg_type == "ping":
                await client.send(json.dumps({"type": "pong"}))
    except WebSocketDisconnect:
        pass
    finally:
        hub.unregister(client.client_id)
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
