from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from merenda.app.api.deps import get_actor, get_db
from merenda.app.schemas.stock import SchoolStatusRead, SchoolStockRow
from merenda.app.schemas.withdrawal import ReturnCreate, WithdrawalCreate, WithdrawalRead
from merenda.services.access import Actor, ensure_central, ensure_school_access
from merenda.services.notifications import request_return
from merenda.services.school_stock import consolidated_stock, school_stock_status
from merenda.services.withdrawals import list_withdrawals, record_withdrawal

router = APIRouter(prefix="/schools")


@router.get("/stock-status", response_model=list[SchoolStatusRead])
def stock_status(db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    ensure_central(actor, "list every school's stock status")
    return school_stock_status(db)


@router.get("/{school_id}/stock", response_model=list[SchoolStockRow])
def school_stock(school_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    ensure_school_access(actor, school_id)
    return consolidated_stock(db, school_id)


@router.get("/{school_id}/withdrawals", response_model=list[WithdrawalRead])
def withdrawals(school_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    ensure_school_access(actor, school_id)
    return [
        {
            "id": w.id,
            "product_id": w.product_id,
            "product_name": w.product.name,
            "unit": w.product.unit,
            "quantity": w.quantity,
            "withdrawn_at": w.withdrawn_at,
            "username": w.user.username,
        }
        for w in list_withdrawals(db, school_id)
    ]


@router.post("/{school_id}/withdrawals", status_code=201)
def withdraw(
    school_id: int,
    payload: WithdrawalCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    ids = record_withdrawal(db, actor=actor, school_id=school_id, items=payload.items)
    return {"ids": ids}


@router.post("/{school_id}/returns", status_code=201)
def create_return(
    school_id: int,
    payload: ReturnCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    notification_id = request_return(
        db,
        actor=actor,
        school_id=school_id,
        items=payload.items,
        message=payload.message,
    )
    return {"notification_id": notification_id}
