"""
Withdrawal Ledger: consommation sur le stock déjà reçu par une école.

Ne touche JAMAIS Product.quantity (le stock central n'est pas concerné).
Le lot est inséré d'un bloc; avec le contrôle actif (défaut), il est rejeté
en entier si un produit passerait sous zéro dans le solde consolidé de l'école.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from merenda.app.config import settings
from merenda.app.db.models.models_v1 import School, WithdrawalItem, utcnow
from merenda.services.access import Actor, ensure_school_access
from merenda.services.errors import SchoolNotFound
from merenda.services.stock_guard import (
    coerce_lines,
    ensure_products_exist,
    ensure_school_sufficient,
    positive_id,
)
from merenda.services.uow import atomic

logger = logging.getLogger("merenda.withdrawals")


def lock_school(db: Session, school_id: int) -> School:
    """
    Verrou sur la ligne école: deux retraits de la même école sont sérialisés,
    le solde consolidé lu ensuite ne peut pas être consommé deux fois.
    """
    school = (
        db.execute(select(School).where(School.id == school_id).with_for_update())
        .scalar_one_or_none()
    )
    if not school:
        raise SchoolNotFound(school_id)
    return school


def record_withdrawal(
    db: Session,
    *,
    actor: Actor,
    school_id: int,
    items: Iterable[Any],
    enforce_balance: bool | None = None,
) -> list[int]:
    school_id = positive_id(school_id, "school_id")
    lines = coerce_lines(items, label="withdrawal items")
    ensure_school_access(actor, school_id)

    if enforce_balance is None:
        enforce_balance = settings.enforce_school_stock

    with atomic(db, "record_withdrawal"):
        lock_school(db, school_id)
        ensure_products_exist(db, (ln.product_id for ln in lines))

        if enforce_balance:
            ensure_school_sufficient(db, school_id, lines)

        now = utcnow()
        rows = [
            WithdrawalItem(
                school_id=school_id,
                product_id=ln.product_id,
                quantity=ln.quantity,
                user_id=actor.id,
                withdrawn_at=now,
            )
            for ln in lines
        ]
        db.add_all(rows)
        db.flush()
        ids = [int(r.id) for r in rows]

    logger.info(
        "Withdrawal recorded for school %s by user %s (%d item(s))",
        school_id,
        actor.id,
        len(ids),
    )
    return ids


def list_withdrawals(db: Session, school_id: int) -> list[WithdrawalItem]:
    """Plus récents d'abord; nom produit / username lus au moment de la requête."""
    return list(
        db.execute(
            select(WithdrawalItem)
            .where(WithdrawalItem.school_id == school_id)
            .options(selectinload(WithdrawalItem.product), selectinload(WithdrawalItem.user))
            .order_by(WithdrawalItem.withdrawn_at.desc(), WithdrawalItem.id.desc())
        )
        .scalars()
        .all()
    )
