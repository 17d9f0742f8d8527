"""Event store — append-only audit log.

Learn: Every state change on a withdrawal is written twice: once to the
withdrawals row (current state) and once here as an immutable event.
The row answers "what is pending right now", the events answer
"who decided what, and when".

Streams:
  withdrawal:<id>            received, push dispatched, decided, callback failures
  admin_token:<prefix>       registered, removed, pruned by the push service

Both readers page by event id: pass the last id seen as ``after_id``.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from withdrawal_relay.db.models import Event


def withdrawal_stream(withdrawal_id: str) -> str:
    return f"withdrawal:{withdrawal_id}"


def token_stream(token: str) -> str:
    # Tokens are long; the prefix is enough to tell devices apart in the log
    return f"admin_token:{token[:32]}"


class EventStore:
    """Audit log writer/reader sharing the caller's session.

    Writes only flush; the caller commits together with its own row changes.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        stream_id: str,
        event_type: str,
        data: dict,
        metadata: dict | None = None,
    ) -> Event:
        event = Event(stream_id=stream_id, type=event_type, data=data, meta=metadata or {})
        self.db.add(event)
        await self.db.flush()
        return event

    async def for_withdrawal(self, withdrawal_id: str, event_type: str, data: dict) -> Event:
        return await self.append(withdrawal_stream(withdrawal_id), event_type, data)

    async def for_token(self, token: str, event_type: str, data: dict) -> Event:
        return await self.append(token_stream(token), event_type, data)

    async def read_stream(
        self,
        stream_id: str,
        after_id: int = 0,
        limit: int = 100,
    ) -> list[Event]:
        """One stream in the order it happened."""
        result = await self.db.execute(
            select(Event)
            .where(Event.stream_id == stream_id, Event.id > after_id)
            .order_by(Event.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def read_all(
        self,
        after_id: int = 0,
        event_types: list[str] | None = None,
        limit: int = 100,
    ) -> list[Event]:
        """Events across every stream, oldest first. Dashboards poll this."""
        query = select(Event).where(Event.id > after_id)
        if event_types:
            query = query.where(Event.type.in_(event_types))
        result = await self.db.execute(query.order_by(Event.id).limit(limit))
        return list(result.scalars().all())
