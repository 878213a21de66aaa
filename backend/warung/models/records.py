from __future__ import annotations

from ..extensions import db


class StoredRecord(db.Model):
    """
    Local durable cache row: one entity record of one tenant.

    MULTI-TENANT: every row is scoped by warung_id; the SQL store never
    queries across tenants.

    VERSIONING: version_id is SQLAlchemy's optimistic-lock column. It starts
    at 1 on insert and is bumped on every update; a concurrent writer that
    flushes against a stale version gets StaleDataError.
    """
    __tablename__ = "stored_records"
    __table_args__ = (
        db.UniqueConstraint("warung_id", "entity_type", "record_id", name="uq_stored_records_scope"),
        db.Index("ix_stored_records_tenant_type", "warung_id", "entity_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warung_id = db.Column(db.String(64), nullable=False)
    entity_type = db.Column(db.String(64), nullable=False)
    record_id = db.Column(db.String(128), nullable=False)

    payload = db.Column(db.JSON, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<StoredRecord warung_id={self.warung_id!r} entity_type={self.entity_type!r} "
            f"record_id={self.record_id!r} v{self.version_id}>"
        )

    def to_record(self) -> dict:
        """Payload as seen by the core: the stored dict plus its version."""
        return {**self.payload, "version": self.version_id}

