"""ledger events, balances and audit log

Revision ID: 20261017_0002
Revises: 20261017_0001
Create Date: 2026-10-17 09:30:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261017_0002"
down_revision: Union[str, None] = "20261017_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _index_exists(inspector: sa.Inspector, table_name: str, index_name: str) -> bool:
    return index_name in {index["name"] for index in inspector.get_indexes(table_name)}


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "procurement_sessions"):
        op.create_table(
            "procurement_sessions",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("session_date", sa.Date(), nullable=False),
            sa.Column("total_suppliers", sa.Integer(), nullable=False),
            sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("session_date"),
        )
    if not _table_exists(inspector, "procurement_entries"):
        op.create_table(
            "procurement_entries",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("procurement_session_id", sa.String(length=36), nullable=False),
            sa.Column("supplier_id", sa.String(length=36), nullable=False),
            sa.Column("item_id", sa.String(length=36), nullable=False),
            sa.Column("type_name", sa.String(length=100), nullable=False),
            sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
            sa.Column("rate", sa.Numeric(14, 4), nullable=False),
            sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["procurement_session_id"], ["procurement_sessions.id"]),
            sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
            sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "sales_sessions"):
        op.create_table(
            "sales_sessions",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("session_date", sa.Date(), nullable=False),
            sa.Column("total_sellers", sa.Integer(), nullable=False),
            sa.Column("total_sales_amount", sa.Numeric(14, 2), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("session_date"),
        )
    if not _table_exists(inspector, "sales_entries"):
        op.create_table(
            "sales_entries",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("sales_session_id", sa.String(length=36), nullable=False),
            sa.Column("seller_id", sa.String(length=36), nullable=False),
            sa.Column("item_id", sa.String(length=36), nullable=False),
            sa.Column("total_amount_purchased", sa.Numeric(14, 2), nullable=False),
            sa.Column("total_quantity_purchased", sa.Numeric(14, 3), nullable=False),
            sa.Column("quantity_returned", sa.Numeric(14, 3), nullable=False),
            sa.Column("amount_paid", sa.Numeric(14, 2), nullable=False),
            sa.Column("less_discount", sa.Numeric(14, 2), nullable=False),
            sa.Column("final_quantity_outstanding", sa.Numeric(14, 3), nullable=False),
            sa.Column("final_payment_outstanding", sa.Numeric(14, 2), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["sales_session_id"], ["sales_sessions.id"]),
            sa.ForeignKeyConstraint(["seller_id"], ["sellers.id"]),
            sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
    if not _table_exists(inspector, "sales_line_items"):
        op.create_table(
            "sales_line_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("sales_entry_id", sa.String(length=36), nullable=False),
            sa.Column("type_name", sa.String(length=100), nullable=False),
            sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
            sa.Column("sale_rate", sa.Numeric(14, 4), nullable=False),
            sa.Column("amount", sa.Numeric(14, 2), nullable=False),
            sa.ForeignKeyConstraint(["sales_entry_id"], ["sales_entries.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "damage_entries"):
        op.create_table(
            "damage_entries",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("damage_date", sa.Date(), nullable=False),
            sa.Column("supplier_id", sa.String(length=36), nullable=False),
            sa.Column("item_id", sa.String(length=36), nullable=False),
            sa.Column("type_name", sa.String(length=100), nullable=False),
            sa.Column("damaged_quantity", sa.Numeric(14, 3), nullable=False),
            sa.Column("damaged_returned_quantity", sa.Numeric(14, 3), nullable=False),
            sa.Column("supplier_discount_amount", sa.Numeric(14, 2), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
            sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "payments"):
        op.create_table(
            "payments",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("payment_date", sa.Date(), nullable=False),
            sa.Column("party_kind", sa.String(length=10), nullable=False),
            sa.Column("party_id", sa.String(length=36), nullable=False),
            sa.Column("item_id", sa.String(length=36), nullable=False),
            sa.Column("amount", sa.Numeric(14, 2), nullable=False),
            sa.Column("quantity_returned", sa.Numeric(14, 3), nullable=False),
            sa.Column("notes", sa.String(length=255), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "opening_balances"):
        op.create_table(
            "opening_balances",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("party_kind", sa.String(length=10), nullable=False),
            sa.Column("party_id", sa.String(length=36), nullable=False),
            sa.Column("item_id", sa.String(length=36), nullable=False),
            sa.Column("opening_payment_due", sa.Numeric(14, 2), nullable=False),
            sa.Column("opening_quantity_due", sa.Numeric(14, 3), nullable=False),
            sa.Column("effective_from_date", sa.Date(), nullable=False),
            sa.Column("created_date", sa.Date(), nullable=False),
            sa.Column("last_modified_date", sa.Date(), nullable=False),
            sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("party_kind", "party_id", "item_id", name="uq_opening_balances_party_item"),
        )

    if not _table_exists(inspector, "outstanding_balances"):
        op.create_table(
            "outstanding_balances",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("party_kind", sa.String(length=10), nullable=False),
            sa.Column("party_id", sa.String(length=36), nullable=False),
            sa.Column("item_id", sa.String(length=36), nullable=False),
            sa.Column("payment_due", sa.Numeric(14, 2), nullable=False),
            sa.Column("quantity_due", sa.Numeric(14, 3), nullable=False),
            sa.Column("needs_review", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("last_updated", sa.Date(), nullable=False),
            sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("party_kind", "party_id", "item_id", name="uq_outstanding_balances_party_item"),
        )

    if not _table_exists(inspector, "balance_journal"):
        op.create_table(
            "balance_journal",
            sa.Column("seq", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("event_date", sa.Date(), nullable=False),
            sa.Column("party_kind", sa.String(length=10), nullable=False),
            sa.Column("party_id", sa.String(length=36), nullable=False),
            sa.Column("item_id", sa.String(length=36), nullable=False),
            sa.Column("payment_delta", sa.Numeric(14, 2), nullable=False),
            sa.Column("quantity_delta", sa.Numeric(14, 3), nullable=False),
            sa.Column("event_type", sa.String(length=20), nullable=False),
            sa.Column("reference_id", sa.String(length=36), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
            sa.PrimaryKeyConstraint("seq"),
        )

    if not _table_exists(inspector, "audit_logs"):
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("actor", sa.String(length=120), nullable=True),
            sa.Column("action", sa.String(length=100), nullable=False),
            sa.Column("target_type", sa.String(length=100), nullable=False),
            sa.Column("target_id", sa.String(length=36), nullable=True),
            sa.Column("metadata_json", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("id"),
        )

    inspector = sa.inspect(bind)
    indexes = [
        ("procurement_entries", "ix_procurement_entries_procurement_session_id", ["procurement_session_id"]),
        ("procurement_entries", "ix_procurement_entries_session_supplier", ["procurement_session_id", "supplier_id"]),
        ("procurement_entries", "ix_procurement_entries_supplier_item", ["supplier_id", "item_id"]),
        ("sales_entries", "ix_sales_entries_sales_session_id", ["sales_session_id"]),
        ("sales_entries", "ix_sales_entries_seller_item", ["seller_id", "item_id"]),
        ("sales_entries", "ix_sales_entries_session_item", ["sales_session_id", "item_id"]),
        ("sales_line_items", "ix_sales_line_items_sales_entry_id", ["sales_entry_id"]),
        ("damage_entries", "ix_damage_entries_date_supplier", ["damage_date", "supplier_id"]),
        ("damage_entries", "ix_damage_entries_supplier_item", ["supplier_id", "item_id"]),
        ("payments", "ix_payments_date", ["payment_date"]),
        ("payments", "ix_payments_party_item", ["party_kind", "party_id", "item_id"]),
        ("opening_balances", "ix_opening_balances_party", ["party_kind", "party_id"]),
        ("outstanding_balances", "ix_outstanding_balances_party", ["party_kind", "party_id"]),
        ("outstanding_balances", "ix_outstanding_balances_item", ["item_id"]),
        (
            "balance_journal",
            "ix_balance_journal_party_item_date",
            ["party_kind", "party_id", "item_id", "event_date"],
        ),
        ("audit_logs", "ix_audit_logs_target_id", ["target_id"]),
        ("audit_logs", "ix_audit_logs_created_at", ["created_at"]),
        ("audit_logs", "ix_audit_logs_action_created_at", ["action", "created_at"]),
    ]
    for table_name, index_name, columns in indexes:
        if not _index_exists(inspector, table_name, index_name):
            op.create_index(index_name, table_name, columns, unique=False)


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    for table_name in (
        "audit_logs",
        "balance_journal",
        "outstanding_balances",
        "opening_balances",
        "payments",
        "damage_entries",
        "sales_line_items",
        "sales_entries",
        "sales_sessions",
        "procurement_entries",
        "procurement_sessions",
    ):
        if _table_exists(inspector, table_name):
            op.drop_table(table_name)
