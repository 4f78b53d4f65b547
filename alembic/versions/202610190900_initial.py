"""initial schema: transactions, skipped dates, goals

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610190900"
down_revision = None
branch_labels = None
depends_on = None


KIND_ENUM = sa.Enum("income", "expense", name="transactionkind")


def upgrade():
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("kind", KIND_ENUM, nullable=False),
        sa.Column("label", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("anchor_date", sa.Date(), nullable=False),
        sa.Column(
            "frequency",
            sa.Enum(
                "once", "weekly", "biweekly", "monthly", "yearly", name="frequency"
            ),
            nullable=False,
        ),
        sa.Column(
            "is_original", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("original_id", sa.Integer(), sa.ForeignKey("transactions.id")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )
    op.create_index(
        "ix_transactions_user_kind_anchor",
        "transactions",
        ["user_id", "kind", "anchor_date"],
    )
    op.create_index("ix_transactions_original", "transactions", ["original_id"])

    op.create_table(
        "skipped_dates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "transaction_id",
            sa.Integer(),
            sa.ForeignKey("transactions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("skipped_on", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "transaction_id", "skipped_on", name="uq_skipped_date_transaction_day"
        ),
    )

    op.create_table(
        "goals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("kind", KIND_ENUM, nullable=False),
        sa.Column(
            "interval",
            sa.Enum("weekly", "biweekly", "monthly", "yearly", name="intervalkind"),
            nullable=False,
        ),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("label_targets_json", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "kind", name="uq_goal_user_kind"),
        sa.CheckConstraint("total_cents >= 0", name="ck_goal_total_positive"),
    )


def downgrade():
    op.drop_table("goals")
    op.drop_table("skipped_dates")
    op.drop_index("ix_transactions_original", table_name="transactions")
    op.drop_index("ix_transactions_user_kind_anchor", table_name="transactions")
    op.drop_table("transactions")
