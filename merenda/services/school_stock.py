"""
Vues de stock école (lecture seule, toujours recalculées).

- consolidated_stock: solde par produit d'une école
- school_stock_status: ok / baixo / zerado pour chaque école, à partir du solde
  courant comparé au pic historique de chaque produit
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from merenda.app.config import settings
from merenda.app.db.models.core_types import NotificationType, StockStatus
from merenda.app.db.models.models_v1 import (
    Notification,
    Product,
    School,
    Transfer,
    TransferItem,
    WithdrawalItem,
)
from merenda.app.schemas.notification import parse_return_payload
from merenda.services.errors import SchoolNotFound
from merenda.services.stock_guard import ZERO, consolidated_balances

logger = logging.getLogger("merenda.school_stock")


def consolidated_stock(db: Session, school_id: int) -> list[dict]:
    if not db.get(School, school_id):
        raise SchoolNotFound(school_id)

    balances = consolidated_balances(db, school_id)
    if not balances:
        return []

    products = {
        int(p.id): p
        for p in db.execute(select(Product).where(Product.id.in_(list(balances)))).scalars().all()
    }

    rows = []
    for pid, bal in balances.items():
        p = products.get(pid)
        if p is None:
            # produit supprimé du catalogue: plus rien à afficher
            continue
        rows.append(
            {
                "product_id": pid,
                "name": p.name,
                "unit": p.unit,
                "received": bal.received,
                "withdrawn": bal.withdrawn,
                "returned": bal.returned,
                "available": bal.available,
            }
        )
    rows.sort(key=lambda r: r["name"].lower())
    return rows


# ---------- Statut ----------
def _movements(db: Session) -> dict[int, dict[int, list[tuple[datetime, Decimal]]]]:
    """school_id -> product_id -> [(instant, delta signé)]"""
    moves: dict[int, dict[int, list[tuple[datetime, Decimal]]]] = defaultdict(lambda: defaultdict(list))

    received = db.execute(
        select(Transfer.school_id, TransferItem.product_id, TransferItem.quantity_sent, Transfer.confirmed_at)
        .join(Transfer, Transfer.id == TransferItem.transfer_id)
        .join(Product, Product.id == TransferItem.product_id)
        .where(Transfer.confirmed_at.is_not(None))
    ).all()
    for school_id, pid, qty, at in received:
        moves[int(school_id)][int(pid)].append((at, Decimal(str(qty))))

    withdrawn = db.execute(
        select(WithdrawalItem.school_id, WithdrawalItem.product_id, WithdrawalItem.quantity, WithdrawalItem.withdrawn_at)
        .join(Product, Product.id == WithdrawalItem.product_id)
    ).all()
    for school_id, pid, qty, at in withdrawn:
        moves[int(school_id)][int(pid)].append((at, -Decimal(str(qty))))

    returns = db.execute(
        select(Notification.id, Notification.school_id, Notification.context_data, Notification.created_at)
        .where(Notification.type == NotificationType.devolucao.value)
        .where(Notification.school_id.is_not(None))
    ).all()
    existing = set(db.execute(select(Product.id)).scalars().all())
    for notification_id, school_id, raw, at in returns:
        try:
            items = parse_return_payload(raw)
        except ValidationError:
            logger.warning("Skipping corrupt return payload on notification %s", notification_id)
            continue
        for it in items:
            if it.product_id in existing:
                moves[int(school_id)][it.product_id].append((at, -it.quantity))

    return moves


def _status_for(per_product: dict[int, list[tuple[datetime, Decimal]]], ratio: Decimal) -> StockStatus:
    has_low = False
    for events in per_product.values():
        current = ZERO
        peak = ZERO
        for _, delta in sorted(events, key=lambda e: e[0]):
            current += delta
            if current > peak:
                peak = current
        if current <= 0:
            return StockStatus.zerado
        if peak > 0 and current <= peak * ratio:
            has_low = True
    return StockStatus.baixo if has_low else StockStatus.ok


def school_stock_status(db: Session, *, ratio: Decimal | None = None) -> list[dict]:
    ratio = settings.low_stock_ratio if ratio is None else ratio
    moves = _movements(db)
    schools = db.execute(select(School).order_by(School.name.asc())).scalars().all()
    return [
        {
            "id": s.id,
            "name": s.name,
            "address": s.address,
            "responsible": s.responsible,
            "stock_status": _status_for(moves.get(int(s.id), {}), ratio),
        }
        for s in schools
    ]
