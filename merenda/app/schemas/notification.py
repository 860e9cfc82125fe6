from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Iterable

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StrictInt, TypeAdapter


def _numeric_only(v: Any) -> Any:
    # payload figé en JSON: une quantité en string est une donnée corrompue
    if isinstance(v, (bool, str)):
        raise ValueError("quantity must be a JSON number")
    return v


class ReturnItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: StrictInt = Field(gt=0)
    quantity: Annotated[Decimal, BeforeValidator(_numeric_only), Field(gt=0, decimal_places=3)]


ReturnPayload = TypeAdapter(Annotated[list[ReturnItem], Field(min_length=1)])


def parse_return_payload(raw: str | None) -> list[ReturnItem]:
    """Lève pydantic.ValidationError si JSON invalide, vide ou mal typé."""
    return ReturnPayload.validate_json(raw if raw is not None else "null")


def _json_number(q: Decimal) -> int | float:
    return int(q) if q == q.to_integral_value() else float(q)


def dump_return_payload(items: Iterable[Any]) -> str:
    return json.dumps(
        [{"product_id": int(it.product_id), "quantity": _json_number(Decimal(it.quantity))} for it in items]
    )


class NotificationRead(BaseModel):
    id: int
    message: str
    type: str
    read: bool
    school_id: int | None
    context_data: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


class NotificationPage(BaseModel):
    data: list[NotificationRead]
    pagination: Pagination
    total_unread_count: int
