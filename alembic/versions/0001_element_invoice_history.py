"""Create the element invoice history ledger.

Revision ID: 0001
Revises:
Create Date: 2026-10-18

The ledger records which element was billed at which stage for which work
order. Deployments that already created it at startup keep their table; the
unique index is added if it is missing.
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists."""
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    return inspector.has_table(table_name)


def index_exists(table_name: str, index_name: str) -> bool:
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    names = {index["name"] for index in inspector.get_indexes(table_name)}
    names |= {constraint["name"] for constraint in inspector.get_unique_constraints(table_name)}
    return index_name in names


def upgrade() -> None:
    if not table_exists("element_invoice_history"):
        op.create_table(
            "element_invoice_history",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("work_order_id", sa.Integer(), nullable=False),
            sa.Column("element_id", sa.Integer(), nullable=False),
            sa.Column("stage", sa.Text(), nullable=False),
            sa.Column("volume", sa.Float(), nullable=False),
            sa.Column("period_start", sa.DateTime(), nullable=False),
            sa.Column("period_end", sa.DateTime(), nullable=False),
            sa.Column("invoice_id", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_element_invoice_history_work_order_id", "element_invoice_history", ["work_order_id"])

    if not index_exists("element_invoice_history", "uq_element_invoice_history"):
        op.create_index(
            "uq_element_invoice_history",
            "element_invoice_history",
            ["work_order_id", "element_id", "stage"],
            unique=True,
        )


def downgrade() -> None:
    op.drop_table("element_invoice_history")
