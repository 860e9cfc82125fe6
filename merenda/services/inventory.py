"""
Lectures du stock central.

Le catalogue (création / édition / suppression de produits) est un service
externe: ici on ne fait que lire quantity / name / unit.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from merenda.app.db.models.models_v1 import Product
from merenda.services.stock_guard import StockCheck, check_sufficient, positive_id
from merenda.services.errors import InvalidInput


def list_central_stock(db: Session, *, category: str | None = None) -> list[Product]:
    stmt = select(Product).order_by(Product.category, Product.name)
    if category:
        stmt = stmt.where(Product.category == category)
    return list(db.execute(stmt).scalars().all())


def below_alert_threshold(db: Session) -> list[Product]:
    return list(
        db.execute(
            select(Product)
            .where(Product.quantity <= Product.alert_threshold)
            .order_by(Product.quantity.asc(), Product.name)
        )
        .scalars()
        .all()
    )


def check_central(db: Session, product_id: int, requested: Decimal) -> StockCheck:
    product_id = positive_id(product_id, "product_id")
    if requested is None or requested <= 0:
        raise InvalidInput("Requested quantity must be positive", product_id=product_id)
    return check_sufficient(db, product_id, requested)
