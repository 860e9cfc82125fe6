"""
Transfer Engine + Receipt Protocol.

Envoi (send_transfer), en une seule transaction:
    1) vérification de TOUS les items (Stock Guard) avant le moindre débit
    2) en-tête Transfer (confirmed_at = NULL)
    3) débit Product.quantity + TransferItem + historique ENVIO, item par item
    4) commit: toute erreur après 1) annule l'ensemble

Réception (confirm_receipt): un seul UPDATE ... WHERE confirmed_at IS NULL,
donc rejouer une confirmation ne touche plus la ligne (exactly-once).
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable

from sqlalchemy import select, update, func
from sqlalchemy.orm import Session, selectinload

from merenda.app.db.models.core_types import HistoryAction
from merenda.app.db.models.models_v1 import (
    Product,
    School,
    Transfer,
    TransferItem,
    utcnow,
)
from merenda.services.access import Actor, ensure_central, ensure_school_access
from merenda.services.errors import (
    Forbidden,
    InvalidInput,
    NothingToConfirm,
    SchoolNotFound,
)
from merenda.services.history import record_product_action
from merenda.services.stock_guard import (
    StockLine,
    coerce_lines,
    ensure_sufficient,
    lock_products,
    positive_id,
    requested_by_product,
)
from merenda.services.uow import atomic

logger = logging.getLogger("merenda.transfers")


def _debit_and_record(
    db: Session,
    transfer: Transfer,
    product: Product,
    line: StockLine,
    school: School,
    actor: Actor,
) -> TransferItem:
    product.quantity = product.quantity - line.quantity

    item = TransferItem(
        transfer_id=transfer.id,
        product_id=line.product_id,
        quantity_sent=line.quantity,
    )
    db.add(item)

    record_product_action(
        db,
        product,
        HistoryAction.envio,
        f"Envio de {line.quantity} {product.unit} para a escola {school.name} (transferencia #{transfer.id})",
        actor,
    )
    return item


# ---------- Envoi ----------
def send_transfer(
    db: Session,
    *,
    actor: Actor,
    school_id: int,
    items: Iterable[Any],
) -> int:
    school_id = positive_id(school_id, "school_id")
    lines = coerce_lines(items, label="transfer items")

    ensure_school_access(actor, school_id)
    ensure_central(actor, "send stock from the central inventory")

    with atomic(db, "send_transfer"):
        school = db.get(School, school_id)
        if not school:
            raise SchoolNotFound(school_id)

        products = lock_products(db, (ln.product_id for ln in lines))

        # tout ou rien: aucun débit tant qu'un seul item échoue
        for pid, requested in requested_by_product(lines).items():
            ensure_sufficient(products.get(pid), pid, requested)

        transfer = Transfer(school_id=school_id, user_id=actor.id, sent_at=utcnow())
        db.add(transfer)
        db.flush()  # get transfer.id
        transfer_id = int(transfer.id)

        for ln in lines:
            _debit_and_record(db, transfer, products[ln.product_id], ln, school, actor)

        db.flush()

    logger.info(
        "Transfer %s sent to school %s by user %s (%d item(s))",
        transfer_id,
        school_id,
        actor.id,
        len(lines),
    )
    return transfer_id


# ---------- Réception ----------
def confirm_receipt(
    db: Session,
    *,
    actor: Actor,
    transfer_ids: Iterable[Any],
    school_id: int | None = None,
) -> int:
    if transfer_ids is None or isinstance(transfer_ids, (str, bytes)):
        raise InvalidInput("No transfer ids were provided")
    ids = list(dict.fromkeys(positive_id(tid, "transfer id") for tid in transfer_ids))
    if not ids:
        raise InvalidInput("No transfer ids were provided")
    if school_id is not None:
        school_id = positive_id(school_id, "school_id")

    scope = school_id
    if actor.is_school_scoped:
        if school_id is not None and school_id != actor.school_id:
            raise Forbidden(
                "School user cannot confirm receipt for another school",
                school_id=school_id,
            )
        scope = actor.school_id

    stmt = (
        update(Transfer)
        .where(Transfer.id.in_(ids))
        .where(Transfer.confirmed_at.is_(None))
    )
    if scope is not None:
        stmt = stmt.where(Transfer.school_id == scope)
    stmt = stmt.values(confirmed_at=utcnow(), confirmed_by=actor.id).execution_options(
        synchronize_session=False
    )

    with atomic(db, "confirm_receipt"):
        changed = db.execute(stmt).rowcount or 0
        if changed == 0:
            # déjà confirmés / inexistants / autre école: rapporté globalement
            raise NothingToConfirm(
                "No pending transfer found for the given ids "
                "(already confirmed, unknown, or belonging to another school)",
                transfer_ids=ids,
                school_id=scope,
            )

    logger.info("%d transfer(s) confirmed by user %s (requested=%s)", changed, actor.id, ids)
    return changed


# ---------- Lectures ----------
def _with_details(stmt):
    return stmt.options(
        selectinload(Transfer.items).selectinload(TransferItem.product),
        selectinload(Transfer.sender),
        selectinload(Transfer.confirmer),
        selectinload(Transfer.school),
    )


def get_transfer(db: Session, transfer_id: int) -> Transfer | None:
    return db.execute(_with_details(select(Transfer).where(Transfer.id == transfer_id))).scalar_one_or_none()


def list_pending_transfers(db: Session, school_id: int) -> list[Transfer]:
    """File FIFO: les plus anciens d'abord, à confirmer en priorité."""
    stmt = (
        select(Transfer)
        .where(Transfer.school_id == school_id)
        .where(Transfer.confirmed_at.is_(None))
        .order_by(Transfer.sent_at.asc(), Transfer.id.asc())
    )
    return list(db.execute(_with_details(stmt)).scalars().all())


def list_confirmed_transfers(db: Session, school_id: int) -> list[Transfer]:
    stmt = (
        select(Transfer)
        .where(Transfer.school_id == school_id)
        .where(Transfer.confirmed_at.is_not(None))
        .order_by(Transfer.confirmed_at.desc(), Transfer.id.desc())
    )
    return list(db.execute(_with_details(stmt)).scalars().all())


def list_sent_transfers(
    db: Session,
    *,
    school_name: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[Transfer]:
    """Historique des envois du stock central, toutes écoles confondues."""
    stmt = select(Transfer).join(School, School.id == Transfer.school_id)

    if school_name:
        stmt = stmt.where(func.lower(School.name).contains(school_name.strip().lower()))
    if date_from is not None:
        stmt = stmt.where(Transfer.sent_at >= datetime.combine(date_from, time.min, tzinfo=timezone.utc))
    if date_to is not None:
        end = datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=timezone.utc)
        stmt = stmt.where(Transfer.sent_at < end)

    stmt = stmt.order_by(Transfer.sent_at.desc(), Transfer.id.desc())
    return list(db.execute(_with_details(stmt)).scalars().all())
