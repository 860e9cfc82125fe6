from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from merenda.app.api.deps import get_actor, get_db
from merenda.app.config import settings
from merenda.app.schemas.history import HistoryPage, HistoryRead
from merenda.services.access import Actor, ensure_central
from merenda.services.history import list_history, product_history

router = APIRouter(prefix="/history")


@router.get("/products", response_model=HistoryPage)
def all_products(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.page_size, ge=1, le=100),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    ensure_central(actor, "read the product history")
    items, pagination = list_history(db, page=page, limit=limit)
    return {"items": items, "pagination": pagination}


@router.get("/products/{product_id}", response_model=list[HistoryRead])
def one_product(product_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    ensure_central(actor, "read the product history")
    return product_history(db, product_id)
