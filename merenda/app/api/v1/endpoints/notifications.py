from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from merenda.app.api.deps import get_actor, get_db
from merenda.app.schemas.notification import NotificationPage
from merenda.services.access import Actor, ensure_central
from merenda.services.notifications import list_notifications, mark_notification_read
from merenda.services.restock import confirm_return

router = APIRouter(prefix="/notifications")


class ReturnConfirm(BaseModel):
    notification_id: int = Field(gt=0)


@router.get("", response_model=NotificationPage)
def list_all(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1, le=100),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    ensure_central(actor, "read notifications")
    return list_notifications(db, page=page, limit=limit)


@router.post("/confirm-return")
def approve_return(
    payload: ReturnConfirm,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    restocked = confirm_return(db, actor=actor, notification_id=payload.notification_id)
    return {"ok": True, "restocked_items": restocked}


@router.put("/{notification_id}/read")
def mark_read(notification_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    ensure_central(actor, "acknowledge notifications")
    mark_notification_read(db, notification_id)
    return {"ok": True}
