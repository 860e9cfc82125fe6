"""initial ledger schema

Revision ID: 4b1e7c9a2d30
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "4b1e7c9a2d30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BIG_ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
QTY = sa.Numeric(14, 3)
TS = sa.DateTime(timezone=True)

ROLE = sa.Enum("admin", "user", "school", name="role")


def upgrade() -> None:
    op.create_table(
        "schools",
        sa.Column("id", BIG_ID, primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("address", sa.String(255)),
        sa.Column("responsible", sa.String(200)),
        sa.Column("created_at", TS, nullable=False),
    )

    op.create_table(
        "products",
        sa.Column("id", BIG_ID, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("unit", sa.String(32), nullable=False),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("quantity", QTY, nullable=False),
        sa.Column("alert_threshold", QTY, nullable=False),
        sa.Column("value", sa.Numeric(14, 2)),
        sa.Column("expiry", sa.Date()),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("modified_at", TS, nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_product_quantity_nonneg"),
    )

    op.create_table(
        "users",
        sa.Column("id", BIG_ID, primary_key=True),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", ROLE, nullable=False),
        sa.Column("school_id", BIG_ID, sa.ForeignKey("schools.id", ondelete="SET NULL")),
        sa.Column("created_at", TS, nullable=False),
    )

    op.create_table(
        "transfers",
        sa.Column("id", BIG_ID, primary_key=True),
        sa.Column("school_id", BIG_ID, sa.ForeignKey("schools.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", BIG_ID, sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("sent_at", TS, nullable=False),
        sa.Column("confirmed_at", TS),
        sa.Column("confirmed_by", BIG_ID, sa.ForeignKey("users.id", ondelete="SET NULL")),
    )
    op.create_index("ix_transfers_school_id", "transfers", ["school_id"])
    op.create_index("ix_transfers_school_confirmed", "transfers", ["school_id", "confirmed_at"])

    op.create_table(
        "transfer_items",
        sa.Column("id", BIG_ID, primary_key=True),
        sa.Column("transfer_id", BIG_ID, sa.ForeignKey("transfers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", BIG_ID, sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity_sent", QTY, nullable=False),
        sa.CheckConstraint("quantity_sent > 0", name="ck_transfer_item_qty_pos"),
    )
    op.create_index("ix_transfer_items_transfer_id", "transfer_items", ["transfer_id"])

    op.create_table(
        "withdrawal_items",
        sa.Column("id", BIG_ID, primary_key=True),
        sa.Column("school_id", BIG_ID, sa.ForeignKey("schools.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", BIG_ID, sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", QTY, nullable=False),
        sa.Column("user_id", BIG_ID, sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("withdrawn_at", TS, nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_withdrawal_item_qty_pos"),
    )
    op.create_index("ix_withdrawal_items_school_time", "withdrawal_items", ["school_id", "withdrawn_at"])

    op.create_table(
        "notifications",
        sa.Column("id", BIG_ID, primary_key=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False),
        sa.Column("context_data", sa.Text()),
        sa.Column("school_id", BIG_ID, sa.ForeignKey("schools.id", ondelete="SET NULL")),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_index("ix_notifications_school_id", "notifications", ["school_id"])

    # pas de FK: l'historique survit à la suppression du produit / de l'utilisateur
    op.create_table(
        "product_history",
        sa.Column("id", BIG_ID, primary_key=True),
        sa.Column("product_id", BIG_ID),
        sa.Column("product_name_snapshot", sa.String(255), nullable=False),
        sa.Column("action", sa.String(32), nullable=False),
        sa.Column("detail", sa.Text()),
        sa.Column("user_id", BIG_ID),
        sa.Column("username_snapshot", sa.String(100)),
        sa.Column("occurred_at", TS, nullable=False),
    )
    op.create_index("ix_product_history_product_id", "product_history", ["product_id"])
    op.create_index("ix_product_history_time", "product_history", ["occurred_at"])


def downgrade() -> None:
    op.drop_table("product_history")
    op.drop_table("notifications")
    op.drop_table("withdrawal_items")
    op.drop_table("transfer_items")
    op.drop_table("transfers")
    op.drop_table("users")
    op.drop_table("products")
    op.drop_table("schools")
    ROLE.drop(op.get_bind(), checkfirst=True)
