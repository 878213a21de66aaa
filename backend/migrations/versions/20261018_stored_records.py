"""Add stored_records (tenant-scoped versioned record cache)

Revision ID: 20261018_stored_records
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_stored_records"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "stored_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("warung_id", sa.String(64), nullable=False),
        sa.Column("entity_type", sa.String(64), nullable=False),
        sa.Column("record_id", sa.String(128), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("warung_id", "entity_type", "record_id", name="uq_stored_records_scope"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stored_records_tenant_type", "stored_records", ["warung_id", "entity_type"])


def downgrade():
    op.drop_index("ix_stored_records_tenant_type", table_name="stored_records")
    op.drop_table("stored_records")
