from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from merenda.app.schemas.transfer import LineCreate


class WithdrawalCreate(BaseModel):
    items: list[LineCreate] = Field(min_length=1)


class ReturnCreate(BaseModel):
    message: str | None = Field(default=None, max_length=500)
    items: list[LineCreate] = Field(min_length=1)


class WithdrawalRead(BaseModel):
    id: int
    product_id: int
    product_name: str
    unit: str
    quantity: Decimal
    withdrawn_at: datetime
    username: str
