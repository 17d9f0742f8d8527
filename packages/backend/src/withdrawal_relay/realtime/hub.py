"""Connection hub — registry of every WebSocket client on this process.

Learn: The hub is the fan-out point. The WebSocket endpoint registers a
client on connect and unregisters it on disconnect; everything else only
calls broadcast(). Sends run concurrently so one slow phone on a bad
network can't hold up the dashboards.

A client whose send fails is dropped from the registry on the spot. Its
own receive loop will notice the dead socket and call unregister() too,
which is a no-op by then.

All methods run on the event loop thread, so the registry dict needs no
lock. Each client does carry a send lock: the broadcast path and the
client's own heartbeat replies may try to write to the same socket at
the same time.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

logger = structlog.get_logger()

CLIENT_KINDS = ("mobile", "dashboard")


@dataclass
class ConnectedClient:
    client_id: str
    kind: str
    socket: Any = field(repr=False)
    device_id: Optional[str] = None
    device_name: Optional[str] = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_seen: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def send(self, message: str) -> None:
        async with self.send_lock:
            await self.socket.send_text(message)

    def as_dict(self) -> dict:
        return {
            "client_id": self.client_id,
            "kind": self.kind,
            "device_id": self.device_id,
            "device_name": self.device_name,
            "connected_at": self.connected_at,
            "last_seen": self.last_seen,
        }


class ConnectionHub:
    """In-process registry of connected mobile devices and dashboards."""

    def __init__(self):
        self._clients: dict[str, ConnectedClient] = {}

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, client_id: str) -> bool:
        return client_id in self._clients

    def register(
        self,
        socket: Any,
        kind: str = "dashboard",
        device_id: Optional[str] = None,
        device_name: Optional[str] = None,
    ) -> ConnectedClient:
        if kind not in CLIENT_KINDS:
            raise ValueError(f"Unknown client kind: {kind}")

        client = ConnectedClient(
            client_id=uuid.uuid4().hex,
            kind=kind,
            socket=socket,
            device_id=device_id,
            device_name=device_name,
        )
        self._clients[client.client_id] = client
        logger.info(
            "wrelay.client_connected",
            client_id=client.client_id,
            kind=kind,
            device_id=device_id,
            device_name=device_name,
            connected=len(self._clients),
        )
        return client

    def unregister(self, client_id: str) -> Optional[ConnectedClient]:
        client = self._clients.pop(client_id, None)
        if client:
            logger.info(
                "wrelay.client_disconnected",
                client_id=client_id,
                kind=client.kind,
                device_id=client.device_id,
                connected=len(self._clients),
            )
        return client

    def touch(self, client_id: str) -> bool:
        """Record a heartbeat. Returns False for unknown clients."""
        client = self._clients.get(client_id)
        if not client:
            return False
        client.last_seen = datetime.now(timezone.utc)
        return True

    def get(self, client_id: str) -> Optional[ConnectedClient]:
        return self._clients.get(client_id)

    def list_clients(self, kind: Optional[str] = None) -> list[ConnectedClient]:
        clients = sorted(self._clients.values(), key=lambda c: c.connected_at)
        if kind:
            clients = [c for c in clients if c.kind == kind]
        return clients

    def counts(self) -> dict[str, int]:
        counts = {k: 0 for k in CLIENT_KINDS}
        for client in self._clients.values():
            counts[client.kind] += 1
        return counts

    async def send_to(self, client_id: str, message: str) -> bool:
        client = self._clients.get(client_id)
        if not client:
            return False
        try:
            await client.send(message)
        except Exception as e:
            logger.warning("wrelay.send_failed", client_id=client_id, error=str(e))
            self.unregister(client_id)
            return False
        return True

    async def broadcast(self, message: str) -> int:
        """Send a text frame to every client. Returns successful deliveries."""
        clients = list(self._clients.values())
        if not clients:
            return 0

        results = await asyncio.gather(
            *(client.send(message) for client in clients),
            return_exceptions=True,
        )

        delivered = 0
        for client, result in zip(clients, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "wrelay.broadcast_dropped_client",
                    client_id=client.client_id,
                    kind=client.kind,
                    error=str(result) or type(result).__name__,
                )
                self.unregister(client.client_id)
            else:
                delivered += 1
        return delivered

    def clear(self) -> None:
        self._clients.clear()


# One registry per process
hub = ConnectionHub()
