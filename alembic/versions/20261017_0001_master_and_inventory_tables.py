"""master data and inventory tables

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261017_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _index_exists(inspector: sa.Inspector, table_name: str, index_name: str) -> bool:
    return index_name in {index["name"] for index in inspector.get_indexes(table_name)}


def _party_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("contact_info", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "items"):
        op.create_table(
            "items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("quantity_type", sa.String(length=10), nullable=False),
            sa.Column("unit_name", sa.String(length=30), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("id"),
        )
    if not _table_exists(inspector, "suppliers"):
        _party_table("suppliers")
    if not _table_exists(inspector, "sellers"):
        _party_table("sellers")

    if not _table_exists(inspector, "item_types"):
        op.create_table(
            "item_types",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("item_id", sa.String(length=36), nullable=False),
            sa.Column("type_name", sa.String(length=100), nullable=False),
            sa.Column("first_introduced_date", sa.Date(), nullable=False),
            sa.Column("last_seen_date", sa.Date(), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("item_id", "type_name", name="uq_item_types_item_type"),
        )

    if not _table_exists(inspector, "current_inventory"):
        op.create_table(
            "current_inventory",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("item_id", sa.String(length=36), nullable=False),
            sa.Column("type_name", sa.String(length=100), nullable=False),
            sa.Column("current_stock", sa.Numeric(14, 3), nullable=False),
            sa.Column("weighted_avg_rate", sa.Numeric(14, 4), nullable=False),
            sa.Column("last_updated", sa.Date(), nullable=False),
            sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("item_id", "type_name", name="uq_current_inventory_item_type"),
        )

    if not _table_exists(inspector, "daily_inventory"):
        op.create_table(
            "daily_inventory",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("inventory_date", sa.Date(), nullable=False),
            sa.Column("item_id", sa.String(length=36), nullable=False),
            sa.Column("type_name", sa.String(length=100), nullable=False),
            sa.Column("opening_stock", sa.Numeric(14, 3), nullable=False),
            sa.Column("purchased_today", sa.Numeric(14, 3), nullable=False),
            sa.Column("sold_today", sa.Numeric(14, 3), nullable=False),
            sa.Column("returned_today", sa.Numeric(14, 3), nullable=False, server_default="0"),
            sa.Column("closing_stock", sa.Numeric(14, 3), nullable=False),
            sa.Column("weighted_avg_purchase_rate", sa.Numeric(14, 4), nullable=False),
            sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint(
                "inventory_date", "item_id", "type_name", name="uq_daily_inventory_date_item_type"
            ),
        )

    if not _table_exists(inspector, "inventory_movements"):
        op.create_table(
            "inventory_movements",
            sa.Column("seq", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("movement_date", sa.Date(), nullable=False),
            sa.Column("item_id", sa.String(length=36), nullable=False),
            sa.Column("type_name", sa.String(length=100), nullable=False),
            sa.Column("qty_delta", sa.Numeric(14, 3), nullable=False),
            sa.Column("reason", sa.String(length=30), nullable=False),
            sa.Column("reference_id", sa.String(length=36), nullable=True),
            sa.Column("unit_cost", sa.Numeric(14, 4), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
            sa.PrimaryKeyConstraint("seq"),
        )

    inspector = sa.inspect(bind)
    indexes = [
        ("items", "ix_items_name", ["name"]),
        ("suppliers", "ix_suppliers_name", ["name"]),
        ("sellers", "ix_sellers_name", ["name"]),
        ("item_types", "ix_item_types_item_id", ["item_id"]),
        ("current_inventory", "ix_current_inventory_item_id", ["item_id"]),
        ("daily_inventory", "ix_daily_inventory_item_id", ["item_id"]),
        ("daily_inventory", "ix_daily_inventory_date_item", ["inventory_date", "item_id"]),
        ("daily_inventory", "ix_daily_inventory_item_type_date", ["item_id", "type_name", "inventory_date"]),
        ("inventory_movements", "ix_inventory_movements_item_type_seq", ["item_id", "type_name", "seq"]),
        ("inventory_movements", "ix_inventory_movements_date", ["movement_date"]),
    ]
    for table_name, index_name, columns in indexes:
        if not _index_exists(inspector, table_name, index_name):
            op.create_index(index_name, table_name, columns, unique=False)


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    for table_name in (
        "inventory_movements",
        "daily_inventory",
        "current_inventory",
        "item_types",
        "sellers",
        "suppliers",
        "items",
    ):
        if _table_exists(inspector, table_name):
            op.drop_table(table_name)
