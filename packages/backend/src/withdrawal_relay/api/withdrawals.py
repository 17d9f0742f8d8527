"""Withdrawal API routes.

Learn: Routes handle HTTP concerns (status codes, error responses),
WithdrawalService handles the business logic. The ingest route is what
the payment worker calls; list/verify are what the admin app calls.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from withdrawal_relay.api.deps import get_withdrawal_service
from withdrawal_relay.schemas.withdrawal import (
    EventRead,
    MessageResponse,
    WithdrawalCreate,
    WithdrawalRead,
    WithdrawalVerify,
)
from withdrawal_relay.services.withdrawal_service import (
    InvalidStatusTransitionError,
    WithdrawalExistsError,
    WithdrawalNotFoundError,
    WithdrawalService,
)

router = APIRouter(prefix="/withdrawals")


@router.post("/new", response_model=MessageResponse, status_code=201)
async def record_withdrawal(
    body: WithdrawalCreate,
    svc: WithdrawalService = Depends(get_withdrawal_service),
):
    """Receive a withdrawal from the worker, store it, fan it out."""
    try:
        await svc.record_new(body)
    except WithdrawalExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"message": "Withdrawal recorded and notification sent"}


@router.get("", response_model=list[WithdrawalRead])
async def list_pending_withdrawals(
    limit: int = Query(200, ge=1, le=1000),
    svc: WithdrawalService = Depends(get_withdrawal_service),
):
    return await svc.list_pending(limit=limit)


@router.post("/verify", response_model=MessageResponse)
async def verify_withdrawal(
    body: WithdrawalVerify,
    svc: WithdrawalService = Depends(get_withdrawal_service),
):
    """Complete or reject a pending withdrawal."""
    try:
        await svc.verify(body.id, body.status)
    except WithdrawalNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStatusTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"message": f"Withdrawal {body.status}"}


@router.get("/{withdrawal_id}", response_model=WithdrawalRead)
async def get_withdrawal(
    withdrawal_id: str,
    svc: WithdrawalService = Depends(get_withdrawal_service),
):
    withdrawal = await svc.get(withdrawal_id)
    if not withdrawal:
        raise HTTPException(status_code=404, detail="Withdrawal not found")
    return withdrawal


@router.get("/{withdrawal_id}/events", response_model=list[EventRead])
async def get_withdrawal_events(
    withdrawal_id: str,
    svc: WithdrawalService = Depends(get_withdrawal_service),
):
    """Audit trail for one withdrawal, oldest first."""
    try:
        return await svc.history(withdrawal_id)
    except WithdrawalNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
