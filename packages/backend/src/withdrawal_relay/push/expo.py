"""Expo push gateway client.

Learn: Expo's push service takes a JSON array of messages per request
(at most 100) and answers with one "ticket" per message, in order:

    {"data": [{"status": "ok", "id": "..."},
              {"status": "error", "message": "...",
               "details": {"error": "DeviceNotRegistered"}}]}

Delivery here is best effort. A chunk that fails to send is logged and
skipped, and the remaining chunks still go out. Nothing in this module
raises into the caller; the caller gets a PushReport instead.

DeviceNotRegistered means the app was uninstalled or the token rotated.
Those tokens are reported back so the caller can stop sending to them.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

import httpx
import structlog

logger = structlog.get_logger()

_EXPO_TOKEN_RE = re.compile(r"^(ExponentPushToken|ExpoPushToken)\[.+\]$")
_BARE_TOKEN_RE = re.compile(
    r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$",
    re.IGNORECASE,
)

DEVICE_NOT_REGISTERED = "DeviceNotRegistered"


def is_expo_push_token(token: Any) -> bool:
    """Return True if token looks like an Expo push token."""
    if not isinstance(token, str):
        return False
    return bool(_EXPO_TOKEN_RE.match(token) or _BARE_TOKEN_RE.match(token))


@dataclass
class PushMessage:
    to: str
    title: str
    body: str
    data: dict = field(default_factory=dict)
    sound: Optional[str] = "default"

    def as_payload(self) -> dict:
        payload = {
            "to": self.to,
            "title": self.title,
            "body": self.body,
            "data": self.data,
        }
        if self.sound:
            payload["sound"] = self.sound
        return payload


@dataclass
class PushReport:
    """Outcome of one send() call."""

    sent: int = 0
    failed_chunks: int = 0
    ticket_errors: int = 0
    unregistered: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "sent": self.sent,
            "failed_chunks": self.failed_chunks,
            "ticket_errors": self.ticket_errors,
            "unregistered": len(self.unregistered),
        }


class ExpoPushGateway:
    """Sends push notifications through the Expo push service."""

    def __init__(
        self,
        url: str,
        *,
        access_token: str = "",
        chunk_size: int = 100,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.access_token = access_token
        self.chunk_size = chunk_size
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def chunk_messages(self, messages: Iterable[PushMessage]) -> list[list[PushMessage]]:
        messages = list(messages)
        return [
            messages[i:i + self.chunk_size]
            for i in range(0, len(messages), self.chunk_size)
        ]

    async def send(self, messages: Iterable[PushMessage]) -> PushReport:
        report = PushReport()
        chunks = self.chunk_messages(messages)
        if not chunks:
            return report

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self.timeout,
            headers=self._headers(),
        ) as client:
            for chunk in chunks:
                await self._send_chunk(client, chunk, report)

        logger.info("wrelay.push_sent", **report.as_dict())
        return report

    async def _send_chunk(
        self,
        client: httpx.AsyncClient,
        chunk: list[PushMessage],
        report: PushReport,
    ) -> None:
        try:
            resp = await client.post(self.url, json=[m.as_payload() for m in chunk])
            resp.raise_for_status()
            tickets = resp.json().get("data", [])
        except (httpx.HTTPError, ValueError) as e:
            report.failed_chunks += 1
            logger.error(
                "wrelay.push_chunk_failed",
                size=len(chunk),
                error=str(e),
            )
            return

        report.sent += len(chunk)
        for message, ticket in zip(chunk, tickets):
            if ticket.get("status") != "error":
                continue
            report.ticket_errors += 1
            error = (ticket.get("details") or {}).get("error")
            logger.warning(
                "wrelay.push_ticket_error",
                token=message.to,
                error=error,
                message=ticket.get("message"),
            )
            if error == DEVICE_NOT_REGISTERED:
                report.unregistered.append(message.to)
