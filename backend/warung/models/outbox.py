from __future__ import annotations

from ..extensions import db


OUTBOX_PENDING = "pending"
OUTBOX_SENT = "sent"


class ReplicaOutboxEntry(db.Model):
    """
    One local write waiting to be mirrored to the remote replica.

    Rows live in the local database so queued mirrors survive a restart
    while offline. Delivery order is the autoincrement id; delivered rows
    are kept with status 'sent'.
    """
    __tablename__ = "replica_outbox"
    __table_args__ = (
        db.Index("ix_replica_outbox_tenant_status", "warung_id", "status", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warung_id = db.Column(db.String(64), nullable=False)
    op = db.Column(db.String(16), nullable=False)
    entity_type = db.Column(db.String(64), nullable=False)
    record_id = db.Column(db.String(128), nullable=False)
    payload = db.Column(db.JSON, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=OUTBOX_PENDING)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<ReplicaOutboxEntry #{self.id} {self.op} {self.entity_type} "
            f"{self.record_id!r} warung_id={self.warung_id!r} {self.status}>"
        )
