"""Test fixtures — throwaway SQLite databases and fake outbound services.

Learn: The relay talks to four things outside the process. Tests replace
each one:

1. PostgreSQL → a fresh SQLite file per test (aiosqlite), schema from models
2. Redis → disabled (WRELAY_REDIS_URL=""), so broadcasts hit the local hub
3. Expo push API → httpx.MockTransport recording every request
4. Payment worker → httpx.MockTransport recording every callback

Connected clients are FakeSocket objects registered straight into the hub;
they capture every frame a real WebSocket would receive.
"""

import json
import os
import tempfile

# Must be set before withdrawal_relay.config is imported anywhere
_tmp = tempfile.mkdtemp(prefix="wrelay-tests-")
os.environ["WRELAY_DATABASE_URL"] = f"sqlite+aiosqlite:///{_tmp}/app.db"
os.environ["WRELAY_REDIS_URL"] = ""
os.environ["WRELAY_WORKER_URL"] = ""
os.environ["WRELAY_STATIC_DIR"] = os.path.join(_tmp, "public")

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from withdrawal_relay.api.deps import get_push_gateway, get_worker_client
from withdrawal_relay.db.engine import get_db
from withdrawal_relay.db.models import Base
from withdrawal_relay.main import app
from withdrawal_relay.push.expo import ExpoPushGateway
from withdrawal_relay.realtime.hub import hub
from withdrawal_relay.services.stats import stats
from withdrawal_relay.services.worker_client import WorkerClient

PUSH_URL = "https://push.test/--/api/v2/push/send"
WORKER_URL = "http://worker.test"


# ═══════════════════════════════════════════════════════════
# Fakes
# ═══════════════════════════════════════════════════════════


class FakeSocket:
    """Stands in for a WebSocket inside the hub."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.frames: list[dict] = []

    async def send_text(self, message: str) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.frames.append(json.loads(message))

    def of_type(self, event_type: str) -> list[dict]:
        return [f for f in self.frames if f.get("type") == event_type]


class PushRecorder:
    """Fake Expo push endpoint. Answers one ticket per message."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.unregistered: set[str] = set()

    @property
    def messages(self) -> list[dict]:
        return [m for r in self.requests for m in json.loads(r.content)]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"errors": [{"code": "INTERNAL"}]})

        tickets = []
        for message in json.loads(request.content):
            if message["to"] in self.unregistered:
                tickets.append({
                    "status": "error",
                    "message": "not a registered push notification recipient",
                    "details": {"error": "DeviceNotRegistered"},
                })
            else:
                tickets.append({"status": "ok", "id": f"ticket-{len(tickets)}"})
        return httpx.Response(200, json={"data": tickets})

    def gateway(self, chunk_size: int = 100, access_token: str = "") -> ExpoPushGateway:
        return ExpoPushGateway(
            PUSH_URL,
            access_token=access_token,
            chunk_size=chunk_size,
            transport=httpx.MockTransport(self.handle),
        )


class WorkerRecorder:
    """Fake payment worker receiving status callbacks."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 200

    @property
    def calls(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"ok": self.status_code == 200})

    def client(self, base_url: str = WORKER_URL) -> WorkerClient:
        return WorkerClient(base_url, transport=httpx.MockTransport(self.handle))


def withdrawal_payload(withdrawal_id: str = "wd-0001", **overrides) -> dict:
    """Body the worker posts to /api/v1/withdrawals/new."""
    payload = {
        "id": withdrawal_id,
        "transactionId": f"txn-{withdrawal_id}",
        "uid": "user-42",
        "amount": 500,
        "paymentMethod": "bkash",
        "paymentNumber": "01700000000",
        "username": "rahim",
    }
    payload.update(overrides)
    return payload


# ═══════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════


@pytest.fixture(autouse=True)
def reset_realtime_state():
    """The hub and counters are process singletons; start every test clean."""
    hub.clear()
    stats.reset()
    yield
    hub.clear()
    stats.reset()


@pytest_asyncio.fixture()
async def db_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(db_engine):
    factory = async_sessionmaker(db_engine, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture()
def push_recorder():
    return PushRecorder()


@pytest.fixture()
def worker_recorder():
    return WorkerRecorder()


@pytest.fixture()
def dashboard():
    """A dashboard socket connected to the hub."""
    socket = FakeSocket()
    hub.register(socket, kind="dashboard")
    return socket


@pytest_asyncio.fixture()
async def client(db_session, push_recorder, worker_recorder):
    """HTTP client with the database and outbound services overridden."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_push_gateway] = lambda: push_recorder.gateway()
    app.dependency_overrides[get_worker_client] = lambda: worker_recorder.client()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
