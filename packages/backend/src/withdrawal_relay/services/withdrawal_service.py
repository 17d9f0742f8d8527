"""Withdrawal service — the relay's business logic.

Learn: Two flows drive everything:

  worker  ──record_new──▶ row (pending) ─▶ broadcast new_withdrawal ─▶ push to admins
  admin   ──verify─────▶ row (completed|rejected) ─▶ broadcast status_updated ─▶ worker callback

Order matters: the database commit comes first. Broadcast, push and the
worker callback are best effort and only run once the row is safe, so a
flaky push gateway can never lose a withdrawal.

Status machine (a decision happens once):
  pending → completed
  pending → rejected
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from withdrawal_relay.config import settings
from withdrawal_relay.db.models import AdminToken, Event, Withdrawal
from withdrawal_relay.events.store import EventStore, withdrawal_stream
from withdrawal_relay.events.types import (
    ADMIN_TOKEN_PRUNED,
    ADMIN_TOKEN_REGISTERED,
    ADMIN_TOKEN_REMOVED,
    NEW_WITHDRAWAL,
    PUSH_DISPATCHED,
    STATUS_UPDATED,
    WITHDRAWAL_RECEIVED,
    WITHDRAWAL_STATUS_CHANGED,
    WORKER_CALLBACK_FAILED,
)
from withdrawal_relay.push.expo import ExpoPushGateway, PushMessage, is_expo_push_token
from withdrawal_relay.realtime.pubsub import publish_event
from withdrawal_relay.schemas.withdrawal import WithdrawalCreate
from withdrawal_relay.services.stats import StatsTracker
from withdrawal_relay.services.worker_client import WorkerClient

logger = structlog.get_logger()

PUSH_TITLE = "New Withdrawal Request! 💰"


class WithdrawalExistsError(Exception):
    """Raised when the worker replays a withdrawal id we already stored."""
    pass


class WithdrawalNotFoundError(Exception):
    pass


class InvalidStatusTransitionError(Exception):
    """Raised when a decision is made on a withdrawal that isn't pending."""
    pass


class AdminTokenNotFoundError(Exception):
    pass


def format_amount(amount: Decimal) -> str:
    """500.00 → "500", 500.50 → "500.5" (what admins see in the push body)."""
    amount = Decimal(amount)
    if amount == amount.to_integral_value():
        return str(amount.quantize(Decimal(1)))
    return str(amount.normalize())


def _as_utc(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def count_by_status(db: AsyncSession) -> tuple[int, int, int]:
    """(total, pending, completed) straight from the table."""
    result = await db.execute(
        select(Withdrawal.status, func.count()).group_by(Withdrawal.status)
    )
    by_status = {status: count for status, count in result.all()}
    return (
        sum(by_status.values()),
        by_status.get("pending", 0),
        by_status.get("completed", 0),
    )


class WithdrawalService:
    """Records, lists and decides withdrawals; fans out every change."""

    def __init__(
        self,
        db: AsyncSession,
        *,
        push: ExpoPushGateway,
        worker: WorkerClient,
        tracker: StatsTracker,
    ):
        self.db = db
        self.events = EventStore(db)
        self.push = push
        self.worker = worker
        self.tracker = tracker

    # ─── Ingest ──────────────────────────────────────────

    async def record_new(self, body: WithdrawalCreate) -> Withdrawal:
        """Store a withdrawal from the worker, then notify everyone."""
        if await self.db.get(Withdrawal, body.id):
            raise WithdrawalExistsError(f"Withdrawal {body.id} already recorded")

        withdrawal = Withdrawal(
            id=body.id,
            txn_id=body.transaction_id,
            uid=body.uid,
            amount=body.amount,
            payment_method=body.payment_method,
            payment_number=body.payment_number,
            username=body.username,
            status="pending",
            created_at=_as_utc(body.created_at),
        )
        self.db.add(withdrawal)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise WithdrawalExistsError(f"Withdrawal {body.id} already recorded") from e

        await self.events.for_withdrawal(
            withdrawal.id,
            WITHDRAWAL_RECEIVED,
            {
                "uid": withdrawal.uid,
                "amount": str(withdrawal.amount),
                "payment_method": withdrawal.payment_method,
                "username": withdrawal.username,
            },
        )
        await self.db.commit()

        self.tracker.record_new()
        logger.info(
            "wrelay.withdrawal_recorded",
            withdrawal_id=withdrawal.id,
            username=withdrawal.username,
            amount=str(withdrawal.amount),
            method=withdrawal.payment_method,
        )

        await publish_event(
            NEW_WITHDRAWAL,
            {
                "id": withdrawal.id,
                "username": withdrawal.username,
                "amount": float(withdrawal.amount),
                "method": withdrawal.payment_method,
            },
        )

        try:
            await self._notify_admins(withdrawal)
        except Exception as e:
            logger.error(
                "wrelay.push_notify_failed",
                withdrawal_id=withdrawal.id,
                error=str(e),
            )

        return withdrawal

    async def _notify_admins(self, withdrawal: Withdrawal) -> None:
        """Push a notification to every registered admin device."""
        tokens = await self.list_admin_tokens()
        if not tokens:
            return

        messages = []
        for token in tokens:
            if not is_expo_push_token(token):
                logger.error("wrelay.invalid_push_token", token=token)
                continue
            messages.append(
                PushMessage(
                    to=token,
                    title=PUSH_TITLE,
                    body=(
                        f"{withdrawal.username} requested "
                        f"{settings.currency_symbol}{format_amount(withdrawal.amount)} "
                        f"via {withdrawal.payment_method}"
                    ),
                    data={"type": "withdrawal", "id": withdrawal.id},
                )
            )
        if not messages:
            return

        report = await self.push.send(messages)

        for token in report.unregistered:
            await self.db.execute(delete(AdminToken).where(AdminToken.token == token))
            await self.events.for_token(
                token, ADMIN_TOKEN_PRUNED, {"reason": "device_not_registered"}
            )

        await self.events.for_withdrawal(withdrawal.id, PUSH_DISPATCHED, report.as_dict())
        await self.db.commit()

    # ─── Read ────────────────────────────────────────────

    async def get(self, withdrawal_id: str) -> Optional[Withdrawal]:
        return await self.db.get(Withdrawal, withdrawal_id)

    async def list_pending(self, limit: int = 200) -> list[Withdrawal]:
        """Pending withdrawals, newest first."""
        result = await self.db.execute(
            select(Withdrawal)
            .where(Withdrawal.status == "pending")
            .order_by(Withdrawal.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def history(self, withdrawal_id: str) -> list[Event]:
        if not await self.get(withdrawal_id):
            raise WithdrawalNotFoundError(f"Withdrawal {withdrawal_id} not found")
        return await self.events.read_stream(withdrawal_stream(withdrawal_id), limit=1000)

    async def recent_events(
        self, after_id: int = 0, limit: int = 100
    ) -> list[Event]:
        return await self.events.read_all(after_id=after_id, limit=limit)

    async def counts(self) -> tuple[int, int, int]:
        return await count_by_status(self.db)

    # ─── Decide ──────────────────────────────────────────

    async def verify(self, withdrawal_id: str, status: str) -> Withdrawal:
        """Apply an admin decision, broadcast it, and tell the worker.

        The status flip is a conditional UPDATE (... WHERE status = 'pending'),
        so when two admins decide the same withdrawal at once exactly one
        write lands. The loser gets InvalidStatusTransitionError and causes
        no broadcast, stats change or worker callback.
        """
        withdrawal = await self.get(withdrawal_id)
        if not withdrawal:
            raise WithdrawalNotFoundError(f"Withdrawal {withdrawal_id} not found")
        if withdrawal.status != "pending":
            raise InvalidStatusTransitionError(
                f"Withdrawal {withdrawal_id} is already {withdrawal.status}"
            )

        result = await self.db.execute(
            update(Withdrawal)
            .where(Withdrawal.id == withdrawal_id, Withdrawal.status == "pending")
            .values(status=status, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            await self.db.refresh(withdrawal)
            logger.warning(
                "wrelay.verify_conflict",
                withdrawal_id=withdrawal_id,
                requested=status,
                current=withdrawal.status,
            )
            raise InvalidStatusTransitionError(
                f"Withdrawal {withdrawal_id} is already {withdrawal.status}"
            )

        await self.events.for_withdrawal(
            withdrawal_id, WITHDRAWAL_STATUS_CHANGED, {"from": "pending", "to": status}
        )
        await self.db.commit()
        await self.db.refresh(withdrawal)

        self.tracker.record_status(status)
        logger.info("wrelay.withdrawal_verified", withdrawal_id=withdrawal_id, status=status)

        await publish_event(STATUS_UPDATED, {"id": withdrawal_id, "status": status})

        if self.worker.enabled and not await self.worker.notify_status(withdrawal_id, status):
            await self.events.for_withdrawal(
                withdrawal_id, WORKER_CALLBACK_FAILED, {"status": status}
            )
            await self.db.commit()

        return withdrawal

    # ─── Admin tokens ────────────────────────────────────

    async def list_admin_tokens(self) -> list[str]:
        result = await self.db.execute(select(AdminToken.token).order_by(AdminToken.id))
        return list(result.scalars().all())

    async def register_admin_token(self, token: str) -> bool:
        """Idempotent upsert. Returns True if the token is new."""
        existing = await self.db.execute(
            select(AdminToken).where(AdminToken.token == token)
        )
        if existing.scalars().first():
            return False

        self.db.add(AdminToken(token=token))
        try:
            await self.db.flush()
        except IntegrityError:
            # Registered concurrently by another request
            await self.db.rollback()
            return False

        await self.events.for_token(
            token, ADMIN_TOKEN_REGISTERED, {"valid": is_expo_push_token(token)}
        )
        await self.db.commit()
        logger.info("wrelay.admin_token_registered", token_prefix=token[:24])
        return True

    async def unregister_admin_token(self, token: str) -> None:
        result = await self.db.execute(
            select(AdminToken).where(AdminToken.token == token)
        )
        admin_token = result.scalars().first()
        if not admin_token:
            raise AdminTokenNotFoundError("Token not registered")

        await self.db.delete(admin_token)
        await self.events.for_token(token, ADMIN_TOKEN_REMOVED, {"reason": "unregistered"})
        await self.db.commit()
