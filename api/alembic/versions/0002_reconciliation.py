"""reconciliation sessions, links and items

Revision ID: 0002_reconciliation
Revises: 0001_accounts_ledger
Create Date: 2026-09-30 09:00:00

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql as pg

revision = "0002_reconciliation"
down_revision = "0001_accounts_ledger"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "reconciliation_sessions",
        sa.Column("id", pg.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("account_id", pg.UUID(as_uuid=True), sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("bank_balance", sa.Numeric(14, 2), nullable=False),
        sa.Column("book_balance", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="in_progress"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_reconciliation_sessions_account_id", "reconciliation_sessions", ["account_id"])

    op.create_table(
        "transaction_reconciliations",
        sa.Column("id", pg.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("transaction_id", pg.UUID(as_uuid=True), nullable=False),
        sa.Column("reconciliation_id", pg.UUID(as_uuid=True), nullable=False),
        sa.Column("is_reconciled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("reconciled_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("transaction_id", "reconciliation_id", name="uq_txrec_tx_session"),
    )
    op.create_index("ix_transaction_reconciliations_transaction_id", "transaction_reconciliations", ["transaction_id"])
    op.create_index("ix_transaction_reconciliations_reconciliation_id", "transaction_reconciliations", ["reconciliation_id"])

    op.create_table(
        "reconciliation_items",
        sa.Column("id", pg.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("reconciliation_id", pg.UUID(as_uuid=True), nullable=False),
        sa.Column("transaction_id", pg.UUID(as_uuid=True), nullable=True),
        sa.Column("transaction_kind", sa.String(length=16), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("is_cleared", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_reconciliation_items_reconciliation_id", "reconciliation_items", ["reconciliation_id"])


def downgrade() -> None:
    op.drop_index("ix_reconciliation_items_reconciliation_id", table_name="reconciliation_items")
    op.drop_table("reconciliation_items")
    op.drop_index("ix_transaction_reconciliations_reconciliation_id", table_name="transaction_reconciliations")
    op.drop_index("ix_transaction_reconciliations_transaction_id", table_name="transaction_reconciliations")
    op.drop_table("transaction_reconciliations")
    op.drop_index("ix_reconciliation_sessions_account_id", table_name="reconciliation_sessions")
    op.drop_table("reconciliation_sessions")
