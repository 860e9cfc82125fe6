from __future__ import annotations

from datetime import datetime, date, timezone
from decimal import Decimal

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Numeric,
    Text,
    Enum,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from merenda.app.db.base import Base, BigIntId
from merenda.app.db.models.core_types import Role

QTY = Numeric(14, 3)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- MASTER DATA (catalogue externe) ----------
class School(Base):
    __tablename__ = "schools"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    address: Mapped[str | None] = mapped_column(String(255))
    responsible: Mapped[str | None] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Product(Base):
    __tablename__ = "products"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    unit: Mapped[str] = mapped_column(String(32), default="kg", nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False)

    # stock central
    quantity: Mapped[Decimal] = mapped_column(QTY, default=0, nullable=False)
    alert_threshold: Mapped[Decimal] = mapped_column(QTY, default=0, nullable=False)
    value: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    expiry: Mapped[date | None] = mapped_column(Date)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_product_quantity_nonneg"),
    )


# ---------- AUTH (contexte d'identité externe) ----------
class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Role] = mapped_column(Enum(Role, name="role"), default=Role.user, nullable=False)
    school_id: Mapped[int | None] = mapped_column(ForeignKey("schools.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    school: Mapped[School | None] = relationship()


# ---------- TRANSFERTS ----------
class Transfer(Base):
    """
    En-tête d'envoi stock central -> école.
    confirmed_at NULL = en attente, sinon confirmé (état dérivé, pas de colonne status).
    """

    __tablename__ = "transfers"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    school_id: Mapped[int] = mapped_column(
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    confirmed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    school: Mapped[School] = relationship()
    sender: Mapped[User] = relationship(foreign_keys=[user_id])
    confirmer: Mapped[User | None] = relationship(foreign_keys=[confirmed_by])
    items: Mapped[list["TransferItem"]] = relationship(
        back_populates="transfer",
        cascade="all, delete-orphan",
        order_by="TransferItem.id",
    )

    __table_args__ = (Index("ix_transfers_school_confirmed", "school_id", "confirmed_at"),)

    @property
    def is_pending(self) -> bool:
        return self.confirmed_at is None


class TransferItem(Base):
    __tablename__ = "transfer_items"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    transfer_id: Mapped[int] = mapped_column(
        ForeignKey("transfers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    quantity_sent: Mapped[Decimal] = mapped_column(QTY, nullable=False)

    transfer: Mapped[Transfer] = relationship(back_populates="items")
    product: Mapped[Product] = relationship()

    __table_args__ = (CheckConstraint("quantity_sent > 0", name="ck_transfer_item_qty_pos"),)


# ---------- CONSOMMATION ÉCOLE ----------
class WithdrawalItem(Base):
    __tablename__ = "withdrawal_items"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id", ondelete="CASCADE"), nullable=False)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(QTY, nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    withdrawn_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    product: Mapped[Product] = relationship()
    user: Mapped[User] = relationship()

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_withdrawal_item_qty_pos"),
        Index("ix_withdrawal_items_school_time", "school_id", "withdrawn_at"),
    )


# ---------- NOTIFICATIONS ----------
class Notification(Base):
    __tablename__ = "notifications"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # payload JSON figé à la création: [{"product_id": .., "quantity": ..}, ...]
    context_data: Mapped[str | None] = mapped_column(Text)
    school_id: Mapped[int | None] = mapped_column(ForeignKey("schools.id", ondelete="SET NULL"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


# ---------- AUDIT ----------
class HistoryEntry(Base):
    """Journal append-only. Les snapshots ne sont jamais resynchronisés."""

    __tablename__ = "product_history"
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    product_id: Mapped[int | None] = mapped_column(BigIntId, index=True)
    product_name_snapshot: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    detail: Mapped[str | None] = mapped_column(Text)
    user_id: Mapped[int | None] = mapped_column(BigIntId)
    username_snapshot: Mapped[str | None] = mapped_column(String(100))
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (Index("ix_product_history_time", "occurred_at"),)
