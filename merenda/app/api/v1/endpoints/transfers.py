from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from merenda.app.api.deps import get_actor, get_db
from merenda.app.db.models.models_v1 import Transfer
from merenda.app.schemas.transfer import ReceiptConfirm, TransferCreate, TransferRead
from merenda.services.access import Actor, ensure_central, ensure_school_access
from merenda.services import transfers as svc
from merenda.services.errors import TransferNotFound

router = APIRouter(prefix="/transfers")


def _transfer_out(t: Transfer) -> dict:
    return {
        "id": t.id,
        "school_id": t.school_id,
        "school_name": t.school.name,
        "sent_at": t.sent_at,
        "confirmed_at": t.confirmed_at,
        "sender_username": t.sender.username,
        "confirmer_username": t.confirmer.username if t.confirmer else None,
        "items": [
            {
                "product_id": it.product_id,
                "product_name": it.product.name,
                "unit": it.product.unit,
                "quantity_sent": it.quantity_sent,
            }
            for it in t.items
        ],
    }


@router.post("", status_code=201)
def send_transfer(
    payload: TransferCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    transfer_id = svc.send_transfer(db, actor=actor, school_id=payload.school_id, items=payload.items)
    return {"id": transfer_id}


@router.post("/confirm-receipt")
def confirm_receipt(
    payload: ReceiptConfirm,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    confirmed = svc.confirm_receipt(
        db,
        actor=actor,
        transfer_ids=payload.transfer_ids,
        school_id=payload.school_id,
    )
    return {"confirmed": confirmed}


@router.get("/pending/by-school/{school_id}", response_model=list[TransferRead])
def list_pending(school_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    ensure_school_access(actor, school_id)
    return [_transfer_out(t) for t in svc.list_pending_transfers(db, school_id)]


@router.get("/confirmed/by-school/{school_id}", response_model=list[TransferRead])
def list_confirmed(school_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    ensure_school_access(actor, school_id)
    return [_transfer_out(t) for t in svc.list_confirmed_transfers(db, school_id)]


@router.get("/history", response_model=list[TransferRead])
def sent_history(
    school_name: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    ensure_central(actor, "read the central shipment history")
    rows = svc.list_sent_transfers(db, school_name=school_name, date_from=date_from, date_to=date_to)
    return [_transfer_out(t) for t in rows]


@router.get("/{transfer_id}", response_model=TransferRead)
def get_transfer(transfer_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    t = svc.get_transfer(db, transfer_id)
    if not t:
        raise TransferNotFound(transfer_id)
    ensure_school_access(actor, t.school_id)
    return _transfer_out(t)
