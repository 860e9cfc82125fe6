from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from merenda.app.api.deps import get_actor, get_db
from merenda.app.schemas.stock import ProductStockRead, StockCheckRead
from merenda.services.access import Actor
from merenda.services.inventory import below_alert_threshold, check_central, list_central_stock

router = APIRouter(prefix="/stock")


@router.get(
    "",
    response_model=list[ProductStockRead],
)
def get_stock(
    category: str | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """
    Stock central (READ ONLY)
    - quantity n'est modifiée que par les envois et les retours
    """
    return list_central_stock(db, category=category)


@router.get("/alerts", response_model=list[ProductStockRead])
def get_alerts(db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return below_alert_threshold(db)


@router.get("/{product_id}/check", response_model=StockCheckRead)
def check(
    product_id: int,
    quantity: Decimal = Query(gt=0),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    result = check_central(db, product_id, quantity)
    return {"ok": result.ok, "available": result.available, "product_name": result.product_name}
