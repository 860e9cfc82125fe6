from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from merenda.app.db.models.core_types import StockStatus


class ProductStockRead(BaseModel):
    id: int
    name: str
    unit: str
    category: str

    quantity: Decimal  # stock central
    alert_threshold: Decimal
    expiry: date | None
    modified_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StockCheckRead(BaseModel):
    ok: bool
    available: Decimal
    product_name: str


class SchoolStockRow(BaseModel):
    """READ ONLY: dérivé des transferts confirmés, retraits et retours."""

    product_id: int
    name: str
    unit: str
    received: Decimal
    withdrawn: Decimal
    returned: Decimal
    available: Decimal


class SchoolStatusRead(BaseModel):
    id: int
    name: str
    address: str | None
    responsible: str | None
    stock_status: StockStatus
