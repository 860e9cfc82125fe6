from __future__ import annotations

import logging
import math
from typing import Any, Iterable

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from merenda.app.config import settings
from merenda.app.db.models.core_types import NotificationType
from merenda.app.db.models.models_v1 import Notification
from merenda.app.schemas.notification import dump_return_payload
from merenda.services.access import Actor, ensure_school_access
from merenda.services.errors import InvalidInput, NotificationNotFound
from merenda.services.stock_guard import (
    coerce_lines,
    ensure_products_exist,
    ensure_school_sufficient,
    positive_id,
)
from merenda.services.uow import atomic
from merenda.services.withdrawals import lock_school

logger = logging.getLogger("merenda.notifications")


def request_return(
    db: Session,
    *,
    actor: Actor,
    school_id: int,
    items: Iterable[Any],
    message: str | None = None,
) -> int:
    """
    Une école demande le retour de marchandises au stock central.
    Crée une notification "devolucao" en attente d'approbation (confirm_return).
    """
    school_id = positive_id(school_id, "school_id")
    lines = coerce_lines(items, label="return items")
    ensure_school_access(actor, school_id)

    with atomic(db, "request_return"):
        school = lock_school(db, school_id)

        ensure_products_exist(db, (ln.product_id for ln in lines))

        if settings.enforce_school_stock:
            ensure_school_sufficient(db, school_id, lines)

        n = Notification(
            message=message or f"A escola {school.name} solicitou a devolucao de {len(lines)} item(ns).",
            type=NotificationType.devolucao.value,
            read=False,
            context_data=dump_return_payload(lines),
            school_id=school_id,
        )
        db.add(n)
        db.flush()
        notification_id = int(n.id)

    logger.info("Return requested by school %s (notification %s, user %s)", school_id, notification_id, actor.id)
    return notification_id


def list_notifications(db: Session, *, page: int = 1, limit: int | None = None) -> dict:
    if limit is None:
        limit = settings.page_size
    if page < 1 or limit < 1:
        raise InvalidInput("page and limit must be positive", page=page, limit=limit)

    total = db.scalar(select(func.count()).select_from(Notification)) or 0
    unread = db.scalar(select(func.count()).select_from(Notification).where(Notification.read.is_(False))) or 0
    rows = (
        db.execute(
            select(Notification)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        .scalars()
        .all()
    )
    return {
        "data": list(rows),
        "pagination": {
            "current_page": page,
            "total_pages": math.ceil(total / limit),
            "total_items": total,
            "items_per_page": limit,
        },
        "total_unread_count": unread,
    }


def mark_notification_read(db: Session, notification_id: int) -> None:
    """
    Accusé de lecture simple. Une devolucao ne se résout QUE via confirm_return,
    sinon le retour serait clos sans recréditer le stock.
    """
    notification_id = positive_id(notification_id, "notification id")

    with atomic(db, "mark_notification_read"):
        n = db.get(Notification, notification_id)
        if not n:
            raise NotificationNotFound(notification_id)
        if n.type == NotificationType.devolucao.value:
            raise InvalidInput(
                "Return notifications must be resolved through the return confirmation",
                notification_id=notification_id,
            )
        n.read = True

    logger.info("Notification %s marked as read", notification_id)
