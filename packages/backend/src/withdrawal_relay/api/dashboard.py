"""Dashboard API — live stats, connected clients, activity feed.

Learn: /dashboard/stats reads only in-memory counters and psutil, so the
dashboard can poll it every few seconds without loading the database.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from withdrawal_relay.api.deps import get_withdrawal_service
from withdrawal_relay.realtime.hub import hub
from withdrawal_relay.schemas.withdrawal import ClientRead, EventRead
from withdrawal_relay.services.stats import stats, system_snapshot
from withdrawal_relay.services.withdrawal_service import WithdrawalService

router = APIRouter()


@router.get("/dashboard/stats")
async def dashboard_stats():
    return {
        "system": await system_snapshot(),
        "app": stats.snapshot(),
        "clients": hub.counts(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/clients", response_model=list[ClientRead])
async def list_clients(
    kind: Optional[str] = Query(None, pattern=r"^(mobile|dashboard)$"),
):
    """Clients connected to this process."""
    return [c.as_dict() for c in hub.list_clients(kind)]


@router.get("/events", response_model=list[EventRead])
async def activity_feed(
    after_id: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    svc: WithdrawalService = Depends(get_withdrawal_service),
):
    return await svc.recent_events(after_id=after_id, limit=limit)
