"""enforce immutable order line items and add listing index

Revision ID: 0002_line_item_immutability
Revises: 0001_ordering
Create Date: 2026-10-17
"""

from alembic import op


revision = "0002_line_item_immutability"
down_revision = "0001_ordering"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
        CREATE OR REPLACE FUNCTION prevent_line_item_mutation()
        RETURNS trigger
        LANGUAGE plpgsql
        AS $$
        BEGIN
            RAISE EXCEPTION 'order_line_items are price snapshots; % is not allowed', TG_OP;
        END;
        $$;
        """
    )
    op.execute(
        """
        CREATE TRIGGER trg_order_line_items_immutable
        BEFORE UPDATE OR DELETE ON order_line_items
        FOR EACH ROW
        EXECUTE FUNCTION prevent_line_item_mutation();
        """
    )
    op.create_index(
        "ix_orders_customer_id_created_at",
        "orders",
        ["customer_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_orders_customer_id_created_at", table_name="orders")
    op.execute("DROP TRIGGER IF EXISTS trg_order_line_items_immutable ON order_line_items;")
    op.execute("DROP FUNCTION IF EXISTS prevent_line_item_mutation();")
