"""Pydantic schemas for withdrawals, admin tokens, and the client registry.

Learn: The ingest body comes from the worker in camelCase
(transactionId, paymentMethod, ...). Aliases keep the Python side
snake_case; populate_by_name lets tests and the CLI use either form.
Read schemas mirror the table columns, so they stay snake_case.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


# ─── Withdrawals ────────────────────────────────────────

class WithdrawalCreate(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    transaction_id: Optional[str] = Field(default=None, alias="transactionId", max_length=128)
    uid: str = Field(..., min_length=1, max_length=128)
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    payment_method: str = Field(..., alias="paymentMethod", min_length=1, max_length=50)
    payment_number: str = Field(..., alias="paymentNumber", min_length=1, max_length=50)
    username: str = Field(..., min_length=1, max_length=100)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True, "coerce_numbers_to_str": True}


class WithdrawalRead(BaseModel):
    id: str
    txn_id: Optional[str] = None
    uid: str
    amount: float
    payment_method: str
    payment_number: str
    username: str
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class WithdrawalVerify(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    status: str = Field(..., pattern=r"^(completed|rejected)$")


# ─── Admin tokens ───────────────────────────────────────

class AdminTokenRegister(BaseModel):
    # Optional so a missing token is a 400 like a blank one, not a 422
    token: Optional[str] = None


# ─── Audit + registry ───────────────────────────────────

class EventRead(BaseModel):
    id: int
    stream_id: str
    type: str
    data: dict
    created_at: datetime

    model_config = {"from_attributes": True}


class ClientRead(BaseModel):
    client_id: str
    kind: str
    device_id: Optional[str] = None
    device_name: Optional[str] = None
    connected_at: datetime
    last_seen: datetime


class MessageResponse(BaseModel):
    message: str
