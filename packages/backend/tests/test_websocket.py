"""WebSocket endpoint tests — real sockets through Starlette's TestClient.

Learn: TestClient runs the app (including lifespan) on its own event loop
in a background thread, so these tests are synchronous. The database is
a NullPool SQLite file: no connection outlives the loop that opened it,
which lets the schema be created with asyncio.run() before the app starts.
"""

import asyncio

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from conftest import PushRecorder, WorkerRecorder, withdrawal_payload
from withdrawal_relay.api.deps import get_push_gateway, get_worker_client
from withdrawal_relay.db.engine import get_db
from withdrawal_relay.db.models import Base
from withdrawal_relay.main import app


async def _create_schema(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture()
def tc(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ws.db'}", poolclass=NullPool
    )
    asyncio.run(_create_schema(engine))
    factory = async_sessionmaker(engine, expire_on_commit=False)

    async def override_get_db():
        async with factory() as session:
            yield session

    push, worker = PushRecorder(), WorkerRecorder()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_push_gateway] = lambda: push.gateway()
    app.dependency_overrides[get_worker_client] = lambda: worker.client()

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


def test_connect_greets_and_registers(tc):
    with tc.websocket_connect("/ws?type=mobile&deviceId=TEST_DEVICE_001&deviceName=Test%20Mobile%20Client") as ws:
        hello = ws.receive_json()
        assert hello["type"] == "connected"

        clients = tc.get("/api/v1/clients").json()
        assert len(clients) == 1
        assert clients[0]["client_id"] == hello["client_id"]
        assert clients[0]["kind"] == "mobile"
        assert clients[0]["device_id"] == "TEST_DEVICE_001"
        assert clients[0]["device_name"] == "Test Mobile Client"


def test_dashboard_is_default_type(tc):
    with tc.websocket_connect("/ws") as ws:
        ws.receive_json()
        assert tc.get("/api/v1/clients").json()[0]["kind"] == "dashboard"


def test_unknown_type_is_refused(tc):
    with tc.websocket_connect("/ws?type=fridge") as ws:
        with pytest.raises(WebSocketDisconnect) as exc:
            ws.receive_json()
    assert exc.value.code == 4400
    assert tc.get("/api/v1/clients").json() == []


def test_heartbeat_and_ping(tc):
    with tc.websocket_connect("/ws?type=mobile&deviceId=d1") as ws:
        ws.receive_json()

        ws.send_json({"type": "heartbeat", "ts": 1})
        assert ws.receive_json() == {"type": "heartbeat_ack"}

        ws.send_text("not json at all")
        ws.send_json(["not", "an", "object"])
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_binary_frames_are_ignored(tc):
    with tc.websocket_connect("/ws?type=mobile&deviceId=d3") as ws:
        ws.receive_json()

        ws.send_bytes(b"\x00\x01")
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}
        assert len(tc.get("/api/v1/clients").json()) == 1


def test_withdrawal_reaches_connected_clients(tc):
    with tc.websocket_connect("/ws?type=dashboard") as dash, \
            tc.websocket_connect("/ws?type=mobile&deviceId=d2") as phone:
        dash.receive_json()
        phone.receive_json()

        r = tc.post("/api/v1/withdrawals/new", json=withdrawal_payload("ws-1", amount=300))
        assert r.status_code == 201

        expected = {
            "type": "new_withdrawal",
            "id": "ws-1",
            "username": "rahim",
            "amount": 300.0,
            "method": "bkash",
        }
        assert dash.receive_json() == expected
        assert phone.receive_json() == expected

        r = tc.post("/api/v1/withdrawals/verify", json={"id": "ws-1", "status": "completed"})
        assert r.status_code == 200
        assert dash.receive_json() == {"type": "status_updated", "id": "ws-1", "status": "completed"}
        assert phone.receive_json() == {"type": "status_updated", "id": "ws-1", "status": "completed"}
