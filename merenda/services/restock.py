"""
Return/Restock Reconciler.

Confirme une notification "devolucao": recrédite le stock central item par item
puis marque la notification lue, dans la même transaction.

Préconditions (dans cet ordre): existe -> non lue -> type devolucao + payload valide.
Si un produit du payload n'existe plus, rien n'est crédité et la notification
reste non lue (l'opération peut être rejouée).
"""

from __future__ import annotations

import logging

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from merenda.app.db.models.core_types import HistoryAction, NotificationType
from merenda.app.db.models.models_v1 import Notification, Product
from merenda.app.schemas.notification import ReturnItem, parse_return_payload
from merenda.services.access import Actor, ensure_central
from merenda.services.errors import (
    AlreadyResolved,
    InvalidPayload,
    NotificationNotFound,
    ProductNotFound,
)
from merenda.services.history import record_product_action
from merenda.services.stock_guard import positive_id
from merenda.services.uow import atomic

logger = logging.getLogger("merenda.restock")


def _load_for_update(db: Session, notification_id: int) -> Notification:
    n = (
        db.execute(select(Notification).where(Notification.id == notification_id).with_for_update())
        .scalar_one_or_none()
    )
    if not n:
        raise NotificationNotFound(notification_id)
    return n


def _return_items(n: Notification) -> list[ReturnItem]:
    if n.type != NotificationType.devolucao.value or not n.context_data:
        raise InvalidPayload(
            f"Notification {n.id} is not a return or carries no payload",
            notification_id=n.id,
        )
    try:
        return parse_return_payload(n.context_data)
    except ValidationError as exc:
        logger.error("Corrupt return payload on notification %s: %s", n.id, exc)
        raise InvalidPayload(
            f"Return payload of notification {n.id} is corrupt",
            notification_id=n.id,
        ) from exc


def _credit(db: Session, item: ReturnItem) -> None:
    changed = db.execute(
        update(Product)
        .where(Product.id == item.product_id)
        .values(quantity=Product.quantity + item.quantity)
        .execution_options(synchronize_session=False)
    ).rowcount
    if not changed:
        raise ProductNotFound(item.product_id)


def confirm_return(db: Session, *, actor: Actor, notification_id: int) -> int:
    """Retourne le nombre d'items recrédités."""
    notification_id = positive_id(notification_id, "notification id")
    ensure_central(actor, "approve stock returns")

    with atomic(db, "confirm_return"):
        n = _load_for_update(db, notification_id)
        if n.read:
            raise AlreadyResolved(
                f"Return notification {notification_id} was already confirmed",
                notification_id=notification_id,
            )

        items = _return_items(n)

        for it in items:
            _credit(db, it)
            product = db.get(Product, it.product_id)
            record_product_action(
                db,
                product,
                HistoryAction.reabastecimento,
                f"Devolucao de {it.quantity} {product.unit} (notificacao #{notification_id})",
                actor,
            )

        n.read = True

    logger.info(
        "Return notification %s confirmed by user %s (%d item(s) restocked)",
        notification_id,
        actor.id,
        len(items),
    )
    return len(items)
