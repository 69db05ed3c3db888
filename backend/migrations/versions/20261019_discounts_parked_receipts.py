"""Line discounts, customer fields, parked orders and receipt snapshots

Revision ID: 20261019_parked_receipts
Revises: 20261019_pos_core
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_parked_receipts"
down_revision = "20261019_pos_core"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("pos_transactions") as batch_op:
        batch_op.add_column(sa.Column("discount_cents", sa.Integer(), nullable=False, server_default="0"))
        batch_op.add_column(sa.Column("customer_id", sa.Integer(), nullable=True))
        batch_op.add_column(sa.Column("customer_email", sa.String(length=255), nullable=True))
        batch_op.create_index("ix_pos_transactions_customer_id", ["customer_id"])

    with op.batch_alter_table("pos_transaction_items") as batch_op:
        batch_op.add_column(sa.Column("discount_cents", sa.Integer(), nullable=False, server_default="0"))
        batch_op.create_check_constraint(
            "ck_pos_items_discount_within_subtotal",
            "discount_cents >= 0 AND discount_cents <= subtotal_cents",
        )

    with op.batch_alter_table("pos_return_items") as batch_op:
        batch_op.add_column(sa.Column("discount_cents", sa.Integer(), nullable=False, server_default="0"))

    op.create_table(
        "pos_receipts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("pos_transactions.id"), nullable=False),
        sa.Column("receipt_number", sa.String(length=64), nullable=False),
        sa.Column("receipt_data", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("transaction_id", name="uq_pos_receipts_transaction"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_pos_receipts_receipt_number", "pos_receipts", ["receipt_number"])

    op.create_table(
        "parked_orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("staff_id", sa.Integer(), nullable=False),
        sa.Column("customer_name", sa.String(length=128), nullable=True),
        sa.Column("customer_phone", sa.String(length=32), nullable=True),
        sa.Column("cart_data", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_parked_orders_staff_id", "parked_orders", ["staff_id"])
    op.create_index("ix_parked_orders_expires_at", "parked_orders", ["expires_at"])
    op.create_index("ix_parked_orders_staff_created", "parked_orders", ["staff_id", "created_at"])


def downgrade():
    op.drop_index("ix_parked_orders_staff_created", table_name="parked_orders")
    op.drop_index("ix_parked_orders_expires_at", table_name="parked_orders")
    op.drop_index("ix_parked_orders_staff_id", table_name="parked_orders")
    op.drop_table("parked_orders")

    op.drop_index("ix_pos_receipts_receipt_number", table_name="pos_receipts")
    op.drop_table("pos_receipts")

    with op.batch_alter_table("pos_return_items") as batch_op:
        batch_op.drop_column("discount_cents")

    with op.batch_alter_table("pos_transaction_items") as batch_op:
        batch_op.drop_constraint("ck_pos_items_discount_within_subtotal", type_="check")
        batch_op.drop_column("discount_cents")

    with op.batch_alter_table("pos_transactions") as batch_op:
        batch_op.drop_index("ix_pos_transactions_customer_id")
        batch_op.drop_column("customer_email")
        batch_op.drop_column("customer_id")
        batch_op.drop_column("discount_cents")
