from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "request_drafts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=100), nullable=False),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "is_temporary", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("temporary_until", sa.Date(), nullable=True),
        sa.Column("resources", sa.Text(), nullable=False, server_default=""),
        sa.Column("workstation", sa.String(length=200), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")
        ),
    )
    op.create_index("ix_request_drafts_user_id", "request_drafts", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_request_drafts_user_id", table_name="request_drafts")
    op.drop_table("request_drafts")
