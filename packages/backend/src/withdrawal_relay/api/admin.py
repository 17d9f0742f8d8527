"""Admin device registration — where push notifications go."""

from fastapi import APIRouter, Depends, HTTPException

from withdrawal_relay.api.deps import get_withdrawal_service
from withdrawal_relay.schemas.withdrawal import AdminTokenRegister, MessageResponse
from withdrawal_relay.services.withdrawal_service import (
    AdminTokenNotFoundError,
    WithdrawalService,
)

router = APIRouter(prefix="/admin")


@router.post("/register-token", response_model=MessageResponse)
async def register_token(
    body: AdminTokenRegister,
    svc: WithdrawalService = Depends(get_withdrawal_service),
):
    token = (body.token or "").strip()
    if not token:
        raise HTTPException(status_code=400, detail="Token is required")
    await svc.register_admin_token(token)
    return {"message": "Token registered successfully"}


@router.delete("/tokens/{token}", status_code=204)
async def unregister_token(
    token: str,
    svc: WithdrawalService = Depends(get_withdrawal_service),
):
    """Stop pushing to a device (admin logged out)."""
    try:
        await svc.unregister_admin_token(token)
    except AdminTokenNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
