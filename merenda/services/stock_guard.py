"""
Stock Guard.

Deux soldes distincts:
- stock central = Product.quantity (colonne, mutée uniquement par envoi / réapprovisionnement)
- stock consolidé d'une école = dérivé, jamais stocké:

    reçu (transferts CONFIRMÉS) - retiré (withdrawal_items) - rendu (notifications devolucao)

Lecture pure, aucun effet de bord.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from pydantic import ValidationError
from sqlalchemy import select, func
from sqlalchemy.orm import Session

from merenda.app.db.models.core_types import NotificationType
from merenda.app.db.models.models_v1 import (
    Notification,
    Product,
    Transfer,
    TransferItem,
    WithdrawalItem,
)
from merenda.app.schemas.notification import parse_return_payload
from merenda.services.errors import (
    InsufficientSchoolStock,
    InsufficientStock,
    InvalidInput,
    ProductNotFound,
)

logger = logging.getLogger("merenda.stock_guard")

ZERO = Decimal("0")
# échelle des colonnes Numeric(14, 3)
QTY_STEP = Decimal("0.001")


@dataclass(frozen=True)
class StockLine:
    product_id: int
    quantity: Decimal


@dataclass(frozen=True)
class StockCheck:
    ok: bool
    available: Decimal
    product_name: str


@dataclass
class SchoolBalance:
    product_id: int
    received: Decimal = ZERO
    withdrawn: Decimal = ZERO
    returned: Decimal = ZERO

    @property
    def available(self) -> Decimal:
        return self.received - self.withdrawn - self.returned


# ---------- Validation des lignes ----------
def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _as_quantity(raw: Any) -> Decimal | None:
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, Decimal):
        qty = raw
    elif isinstance(raw, (int, float)):
        try:
            qty = Decimal(str(raw))
        except InvalidOperation:
            return None
    else:
        return None
    if not qty.is_finite():
        return None
    try:
        if qty != qty.quantize(QTY_STEP):
            return None
    except InvalidOperation:
        return None
    return qty


def positive_id(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidInput(f"Invalid {label}: {value!r}")
    return value


def coerce_lines(items: Iterable[Any] | None, *, label: str = "items") -> list[StockLine]:
    """
    Normalise une liste [{product_id, quantity}] (dicts ou objets).
    Rejette: liste vide, id non entier / <= 0, quantité non numérique / <= 0.
    """
    if items is None or isinstance(items, (str, bytes, Mapping)):
        raise InvalidInput(f"The {label} list is missing or malformed")

    lines: list[StockLine] = []
    for item in items:
        product_id = _field(item, "product_id")
        quantity = _as_quantity(_field(item, "quantity"))

        if isinstance(product_id, bool) or not isinstance(product_id, int) or product_id <= 0:
            raise InvalidInput(f"Invalid product_id in {label}: {product_id!r}", item=repr(item))
        if quantity is None or quantity <= 0:
            raise InvalidInput(
                f"Invalid quantity for product {product_id} in {label} (positive, at most 3 decimals)",
                product_id=product_id,
            )
        lines.append(StockLine(product_id=product_id, quantity=quantity))

    if not lines:
        raise InvalidInput(f"The {label} list is empty")
    return lines


def requested_by_product(lines: Iterable[StockLine]) -> dict[int, Decimal]:
    """Somme des quantités par produit, dans l'ordre de première apparition."""
    totals: dict[int, Decimal] = {}
    for ln in lines:
        totals[ln.product_id] = totals.get(ln.product_id, ZERO) + ln.quantity
    return totals


# ---------- Stock central ----------
def ensure_sufficient(product: Product | None, product_id: int, requested: Decimal) -> StockCheck:
    if product is None:
        raise ProductNotFound(product_id)

    available = product.quantity
    if available is None or available < requested:
        raise InsufficientStock(
            product_id=product_id,
            product_name=product.name,
            available=available if available is not None else ZERO,
            requested=requested,
        )
    return StockCheck(ok=True, available=available, product_name=product.name)


def ensure_products_exist(db: Session, product_ids: Iterable[int]) -> None:
    ids = {int(pid) for pid in product_ids}
    found = set(db.execute(select(Product.id).where(Product.id.in_(ids))).scalars().all())
    missing = sorted(ids - found)
    if missing:
        raise ProductNotFound(missing[0])


def check_sufficient(db: Session, product_id: int, requested: Decimal) -> StockCheck:
    return ensure_sufficient(db.get(Product, product_id), product_id, requested)


def lock_products(db: Session, product_ids: Iterable[int]) -> dict[int, Product]:
    """
    Verrouille (FOR UPDATE) les lignes produit, toujours dans l'ordre des ids
    pour que deux envois concurrents ne se bloquent pas mutuellement.
    """
    ids = sorted({int(pid) for pid in product_ids})
    if not ids:
        return {}
    rows = (
        db.execute(
            select(Product)
            .where(Product.id.in_(ids))
            .order_by(Product.id.asc())
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .all()
    )
    return {int(p.id): p for p in rows}


# ---------- Stock consolidé école ----------
def _returned_by_product(db: Session, school_id: int) -> dict[int, Decimal]:
    payloads = (
        db.execute(
            select(Notification.id, Notification.context_data)
            .where(Notification.school_id == school_id)
            .where(Notification.type == NotificationType.devolucao.value)
        )
        .all()
    )
    returned: dict[int, Decimal] = {}
    for notification_id, raw in payloads:
        try:
            items = parse_return_payload(raw)
        except ValidationError:
            logger.warning("Skipping corrupt return payload on notification %s", notification_id)
            continue
        for it in items:
            returned[it.product_id] = returned.get(it.product_id, ZERO) + it.quantity
    return returned


def consolidated_balances(db: Session, school_id: int) -> dict[int, SchoolBalance]:
    received_rows = db.execute(
        select(
            TransferItem.product_id,
            func.coalesce(func.sum(TransferItem.quantity_sent), 0).label("received_qty"),
        )
        .join(Transfer, Transfer.id == TransferItem.transfer_id)
        .where(Transfer.school_id == school_id)
        .where(Transfer.confirmed_at.is_not(None))
        .group_by(TransferItem.product_id)
    ).all()

    withdrawn_rows = db.execute(
        select(
            WithdrawalItem.product_id,
            func.coalesce(func.sum(WithdrawalItem.quantity), 0).label("withdrawn_qty"),
        )
        .where(WithdrawalItem.school_id == school_id)
        .group_by(WithdrawalItem.product_id)
    ).all()

    balances: dict[int, SchoolBalance] = {}

    def _get(pid: int) -> SchoolBalance:
        pid = int(pid)
        if pid not in balances:
            balances[pid] = SchoolBalance(product_id=pid)
        return balances[pid]

    for pid, qty in received_rows:
        _get(pid).received = Decimal(str(qty))
    for pid, qty in withdrawn_rows:
        _get(pid).withdrawn = Decimal(str(qty))
    for pid, qty in _returned_by_product(db, school_id).items():
        _get(pid).returned = qty

    return balances


def school_available(db: Session, school_id: int, product_id: int) -> Decimal:
    bal = consolidated_balances(db, school_id).get(int(product_id))
    return bal.available if bal else ZERO


def ensure_school_sufficient(db: Session, school_id: int, lines: Iterable[StockLine]) -> None:
    """Rejette tout le lot si un seul produit passerait sous zéro."""
    balances = consolidated_balances(db, school_id)
    for pid, requested in requested_by_product(lines).items():
        bal = balances.get(pid)
        available = bal.available if bal else ZERO
        if available < requested:
            product = db.get(Product, pid)
            if product is None:
                raise ProductNotFound(pid)
            raise InsufficientSchoolStock(
                school_id=school_id,
                product_id=pid,
                product_name=product.name,
                available=available,
                requested=requested,
            )
