"""
Historique produit (append-only).

Les snapshots (nom produit, username) figent l'état au moment de l'action:
un produit renommé ou supprimé garde un historique lisible.
"""

from __future__ import annotations

import logging
import math

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from merenda.app.config import settings
from merenda.app.db.models.core_types import HistoryAction
from merenda.app.db.models.models_v1 import HistoryEntry, Product
from merenda.services.access import Actor
from merenda.services.errors import InvalidInput

logger = logging.getLogger("merenda.history")


def record_product_action(
    db: Session,
    product: Product,
    action: HistoryAction | str,
    detail: str | None,
    actor: Actor | None,
) -> HistoryEntry:
    """
    Ajoute une entrée dans la transaction de l'appelant (pas de commit ici):
    l'historique est validé ou annulé avec la mutation qu'il décrit.
    """
    entry = HistoryEntry(
        product_id=product.id,
        product_name_snapshot=product.name,
        action=HistoryAction(action).value,
        detail=detail,
        user_id=actor.id if actor else None,
        username_snapshot=actor.username if actor else None,
    )
    db.add(entry)
    logger.debug("history %s product=%s user=%s", entry.action, product.id, entry.username_snapshot)
    return entry


def list_history(db: Session, *, page: int = 1, limit: int | None = None) -> tuple[list[HistoryEntry], dict]:
    if limit is None:
        limit = settings.page_size
    if page < 1 or limit < 1:
        raise InvalidInput("page and limit must be positive", page=page, limit=limit)

    total = db.scalar(select(func.count()).select_from(HistoryEntry)) or 0
    rows = (
        db.execute(
            select(HistoryEntry)
            .order_by(HistoryEntry.occurred_at.desc(), HistoryEntry.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        .scalars()
        .all()
    )
    pagination = {
        "current_page": page,
        "total_pages": math.ceil(total / limit),
        "total_items": total,
        "items_per_page": limit,
    }
    return list(rows), pagination


def product_history(db: Session, product_id: int) -> list[HistoryEntry]:
    return list(
        db.execute(
            select(HistoryEntry)
            .where(HistoryEntry.product_id == product_id)
            .order_by(HistoryEntry.occurred_at.desc(), HistoryEntry.id.desc())
        )
        .scalars()
        .all()
    )
