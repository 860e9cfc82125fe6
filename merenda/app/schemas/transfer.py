from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class LineCreate(BaseModel):
    product_id: int = Field(gt=0)
    quantity: Decimal = Field(gt=0, decimal_places=3)


class TransferCreate(BaseModel):
    school_id: int = Field(gt=0)
    items: list[LineCreate] = Field(min_length=1)


class ReceiptConfirm(BaseModel):
    transfer_ids: list[int] = Field(min_length=1)
    school_id: int | None = None


class TransferItemRead(BaseModel):
    product_id: int
    product_name: str
    unit: str
    quantity_sent: Decimal


class TransferRead(BaseModel):
    id: int
    school_id: int
    school_name: str
    sent_at: datetime
    confirmed_at: datetime | None
    sender_username: str
    confirmer_username: str | None
    items: list[TransferItemRead]
