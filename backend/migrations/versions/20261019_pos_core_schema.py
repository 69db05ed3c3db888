"""POS core schema: catalog stock, shifts, sales, returns, document sequences, audit

Revision ID: 20261019_pos_core
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_pos_core"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), **kwargs)


def upgrade():
    # ------------------------------------------------------------------
    # Catalog (read by the core; stock mutated only by the inventory ledger)
    # ------------------------------------------------------------------
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("stock_quantity", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("sku", name="uq_products_sku"),
        sa.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        sa.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "product_variants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("label", sa.String(length=128), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=True),
        sa.Column("stock_quantity", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint("sku", name="uq_product_variants_sku"),
        sa.CheckConstraint("stock_quantity >= 0", name="ck_product_variants_stock_non_negative"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_product_variants_product_id", "product_variants", ["product_id"])

    op.create_table(
        "inventory_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("variant_id", sa.Integer(), sa.ForeignKey("product_variants.id"), nullable=True),
        sa.Column("quantity_delta", sa.Integer(), nullable=False),
        sa.Column("quantity_after", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=32), nullable=False),
        sa.Column("reference", sa.String(length=64), nullable=True),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        _timestamp("occurred_at"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_movements_product_id", "inventory_movements", ["product_id"])
    op.create_index("ix_inventory_movements_variant_id", "inventory_movements", ["variant_id"])
    op.create_index("ix_inventory_movements_reason", "inventory_movements", ["reason"])
    op.create_index("ix_inventory_movements_reference", "inventory_movements", ["reference"])
    op.create_index("ix_inventory_movements_product_occurred", "inventory_movements", ["product_id", "occurred_at"])

    # ------------------------------------------------------------------
    # Registers and shifts
    # ------------------------------------------------------------------
    op.create_table(
        "cash_registers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("location", sa.String(length=128), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint("name", name="uq_cash_registers_name"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_cash_registers_is_active", "cash_registers", ["is_active"])

    op.create_table(
        "staff_shifts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("staff_id", sa.Integer(), nullable=False),
        sa.Column("register_id", sa.Integer(), sa.ForeignKey("cash_registers.id"), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("opening_cash_cents", sa.Integer(), nullable=False),
        sa.Column("closing_cash_cents", sa.Integer(), nullable=True),
        sa.Column("expected_cash_cents", sa.Integer(), nullable=True),
        sa.Column("cash_difference_cents", sa.Integer(), nullable=True),
        sa.Column("clock_in", sa.DateTime(timezone=True), nullable=False),
        sa.Column("clock_out", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("opening_cash_cents >= 0", name="ck_staff_shifts_opening_cash"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_staff_shifts_staff_id", "staff_shifts", ["staff_id"])
    op.create_index("ix_staff_shifts_register_id", "staff_shifts", ["register_id"])
    op.create_index("ix_staff_shifts_status", "staff_shifts", ["status"])
    op.create_index("ix_staff_shifts_clock_in", "staff_shifts", ["clock_in"])
    op.create_index("ix_staff_shifts_staff_clock_in", "staff_shifts", ["staff_id", "clock_in"])
    # One open shift per staff member
    op.create_index(
        "uq_staff_shifts_one_open_per_staff",
        "staff_shifts",
        ["staff_id"],
        unique=True,
        sqlite_where=sa.text("status = 'open'"),
        postgresql_where=sa.text("status = 'open'"),
    )

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------
    op.create_table(
        "pos_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("receipt_number", sa.String(length=64), nullable=False),
        sa.Column("shift_id", sa.Integer(), sa.ForeignKey("staff_shifts.id"), nullable=False),
        sa.Column("staff_id", sa.Integer(), nullable=False),
        sa.Column("register_id", sa.Integer(), sa.ForeignKey("cash_registers.id"), nullable=False),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.Column("tax_cents", sa.Integer(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("cash_received_cents", sa.Integer(), nullable=True),
        sa.Column("change_given_cents", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("receipt_number", name="uq_pos_transactions_receipt_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_pos_transactions_shift_id", "pos_transactions", ["shift_id"])
    op.create_index("ix_pos_transactions_staff_id", "pos_transactions", ["staff_id"])
    op.create_index("ix_pos_transactions_register_id", "pos_transactions", ["register_id"])
    op.create_index("ix_pos_transactions_status", "pos_transactions", ["status"])
    op.create_index("ix_pos_transactions_created_at", "pos_transactions", ["created_at"])
    op.create_index("ix_pos_transactions_shift_status", "pos_transactions", ["shift_id", "status"])

    op.create_table(
        "pos_transaction_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("pos_transactions.id"), nullable=False),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("variant_id", sa.Integer(), sa.ForeignKey("product_variants.id"), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.Column("refunded_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("transaction_id", "line_number", name="uq_pos_items_txn_line"),
        sa.CheckConstraint("quantity > 0", name="ck_pos_items_quantity_positive"),
        sa.CheckConstraint("unit_price_cents >= 0", name="ck_pos_items_price_non_negative"),
        sa.CheckConstraint(
            "refunded_quantity >= 0 AND refunded_quantity <= quantity",
            name="ck_pos_items_refunded_within_sold",
        ),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_pos_transaction_items_transaction_id", "pos_transaction_items", ["transaction_id"])
    op.create_index("ix_pos_transaction_items_product_id", "pos_transaction_items", ["product_id"])

    op.create_table(
        "pos_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("pos_transactions.id"), nullable=False),
        sa.Column("method", sa.String(length=32), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("amount_received_cents", sa.Integer(), nullable=True),
        sa.Column("change_cents", sa.Integer(), nullable=True),
        sa.Column("reference", sa.String(length=128), nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint("amount_cents > 0", name="ck_pos_payments_amount_positive"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_pos_payments_transaction_id", "pos_payments", ["transaction_id"])
    op.create_index("ix_pos_payments_method", "pos_payments", ["method"])
    op.create_index("ix_pos_payments_created_at", "pos_payments", ["created_at"])

    # ------------------------------------------------------------------
    # Returns
    # ------------------------------------------------------------------
    op.create_table(
        "pos_returns",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("return_number", sa.String(length=64), nullable=False),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("pos_transactions.id"), nullable=False),
        sa.Column("refund_amount_cents", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("processed_by_staff_id", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("return_number", name="uq_pos_returns_return_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_pos_returns_transaction_id", "pos_returns", ["transaction_id"])
    op.create_index("ix_pos_returns_processed_by_staff_id", "pos_returns", ["processed_by_staff_id"])
    op.create_index("ix_pos_returns_created_at", "pos_returns", ["created_at"])

    op.create_table(
        "pos_return_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("return_id", sa.Integer(), sa.ForeignKey("pos_returns.id"), nullable=False),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("pos_transactions.id"), nullable=False),
        sa.Column("transaction_item_id", sa.Integer(), sa.ForeignKey("pos_transaction_items.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("variant_id", sa.Integer(), sa.ForeignKey("product_variants.id"), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("refund_cents", sa.Integer(), nullable=False),
        sa.Column("condition", sa.String(length=16), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_pos_return_items_quantity_positive"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_pos_return_items_return_id", "pos_return_items", ["return_id"])
    op.create_index("ix_pos_return_items_transaction_item_id", "pos_return_items", ["transaction_item_id"])
    op.create_index("ix_pos_return_items_txn_product", "pos_return_items", ["transaction_id", "product_id"])

    # ------------------------------------------------------------------
    # Numbering, audit, notifications
    # ------------------------------------------------------------------
    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("document_type", sa.String(length=32), nullable=False),
        sa.Column("period", sa.String(length=8), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False),
        _timestamp("updated_at"),
        sa.UniqueConstraint("document_type", "period", name="uq_doc_sequences_type_period"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_document_sequences_document_type", "document_sequences", ["document_type"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        _timestamp("created_at"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("link", sa.String(length=255), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_notifications_type", "notifications", ["type"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])


def downgrade():
    op.drop_table("notifications")
    op.drop_table("audit_logs")
    op.drop_table("document_sequences")
    op.drop_table("pos_return_items")
    op.drop_table("pos_returns")
    op.drop_table("pos_payments")
    op.drop_table("pos_transaction_items")
    op.drop_table("pos_transactions")
    op.drop_index("uq_staff_shifts_one_open_per_staff", table_name="staff_shifts")
    op.drop_table("staff_shifts")
    op.drop_table("cash_registers")
    op.drop_table("inventory_movements")
    op.drop_table("product_variants")
    op.drop_table("products")
