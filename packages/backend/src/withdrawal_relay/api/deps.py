"""Shared FastAPI dependencies for outbound integrations.

Learn: The push gateway and worker client are built per request from
settings. Tests swap them through app.dependency_overrides for versions
backed by httpx.MockTransport, so no request ever leaves the process.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from withdrawal_relay.config import settings
from withdrawal_relay.db.engine import get_db
from withdrawal_relay.push.expo import ExpoPushGateway
from withdrawal_relay.services.stats import stats
from withdrawal_relay.services.withdrawal_service import WithdrawalService
from withdrawal_relay.services.worker_client import WorkerClient


def get_push_gateway() -> ExpoPushGateway:
    return ExpoPushGateway(
        settings.expo_push_url,
        access_token=settings.expo_access_token,
        chunk_size=settings.push_chunk_size,
        timeout=settings.push_timeout_seconds,
    )


def get_worker_client() -> WorkerClient:
    return WorkerClient(settings.worker_url, timeout=settings.worker_timeout_seconds)


def get_withdrawal_service(
    db: AsyncSession = Depends(get_db),
    push: ExpoPushGateway = Depends(get_push_gateway),
    worker: WorkerClient = Depends(get_worker_client),
) -> WithdrawalService:
    return WithdrawalService(db, push=push, worker=worker, tracker=stats)
