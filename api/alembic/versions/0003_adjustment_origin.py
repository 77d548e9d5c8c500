"""tag reconciliation adjustments on the ledger

Revision ID: 0003_adjustment_origin
Revises: 0002_reconciliation
Create Date: 2026-10-06 14:20:00

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql as pg

revision = "0003_adjustment_origin"
down_revision = "0002_reconciliation"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("ledger_transactions", sa.Column("origin", sa.String(length=32), nullable=False, server_default="manual"))
    op.add_column("ledger_transactions", sa.Column("origin_session_id", pg.UUID(as_uuid=True), nullable=True))
    op.create_index("ix_ledger_transactions_origin_session_id", "ledger_transactions", ["origin_session_id"])
    # rows written before the tag existed are recognised by their description marker
    op.execute(
        "UPDATE ledger_transactions SET origin = 'reconciliation_adjustment', origin_session_id = reconciliation_id "
        "WHERE payment_method = 'reconciliation' AND description LIKE '[RECONCILIATION]%'"
    )


def downgrade() -> None:
    op.drop_index("ix_ledger_transactions_origin_session_id", table_name="ledger_transactions")
    op.drop_column("ledger_transactions", "origin_session_id")
    op.drop_column("ledger_transactions", "origin")
