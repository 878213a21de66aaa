"""Add replica_outbox (durable queue of writes awaiting the remote replica)

Revision ID: 20261019_replica_outbox
Revises: 20261018_stored_records
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_replica_outbox"
down_revision = "20261018_stored_records"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "replica_outbox",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("warung_id", sa.String(64), nullable=False),
        sa.Column("op", sa.String(16), nullable=False),
        sa.Column("entity_type", sa.String(64), nullable=False),
        sa.Column("record_id", sa.String(128), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_replica_outbox_tenant_status", "replica_outbox", ["warung_id", "status", "id"])


def downgrade():
    op.drop_index("ix_replica_outbox_tenant_status", table_name="replica_outbox")
    op.drop_table("replica_outbox")
