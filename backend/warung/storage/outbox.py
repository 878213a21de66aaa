# Overview: Durable per-tenant queue of local writes awaiting the remote replica.

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..errors import StorageError
from ..models import ReplicaOutboxEntry, OUTBOX_PENDING, OUTBOX_SENT
from ..time_utils import utcnow


OP_UPSERT = "upsert"
OP_DELETE = "delete"


@dataclass(frozen=True)
class PendingMirror:
    op: str
    entity_type: str
    record_id: str
    record: dict | None = None


class Outbox(ABC):
    """FIFO of PendingMirror entries for one tenant. Sequence numbers only grow."""

    @abstractmethod
    def enqueue(self, mirror: PendingMirror) -> int:
        """Append a mirror; returns its sequence number."""

    @abstractmethod
    def entries(self) -> list[tuple[int, PendingMirror]]:
        """Undelivered mirrors, oldest first."""

    @abstractmethod
    def mark_sent(self, seq: int) -> None:
        """Drop a delivered mirror from the pending set."""

    def peek(self) -> tuple[int, PendingMirror] | None:
        entries = self.entries()
        return entries[0] if entries else None

    def count(self) -> int:
        return len(self.entries())


class MemoryOutbox(Outbox):
    """Outbox kept on a MemoryBacking, so it outlives any one store instance."""
    def __init__(self, backing, warung_id: str):
        self.backing = backing
        self.warung_id = warung_id

    def _queue(self) -> list[tuple[int, PendingMirror]]:
        return self.backing.outboxes.setdefault(self.warung_id, [])

    def enqueue(self, mirror: PendingMirror) -> int:
        with self.backing.lock:
            self.backing.outbox_seq += 1
            seq = self.backing.outbox_seq
            self._queue().append((seq, copy.deepcopy(mirror)))
            return seq

    def entries(self) -> list[tuple[int, PendingMirror]]:
        with self.backing.lock:
            return list(self._queue())

    def mark_sent(self, seq: int) -> None:
        with self.backing.lock:
            queue = self._queue()
            queue[:] = [entry for entry in queue if entry[0] != seq]


class SqlOutbox(Outbox):
    """Outbox rows in the replica_outbox table of the local database."""
    def __init__(self, store):
        self.store = store

    @property
    def warung_id(self) -> str:
        return self.store.warung_id

    def _pending(self):
        return self.store.session.query(ReplicaOutboxEntry).filter_by(
            warung_id=self.warung_id,
            status=OUTBOX_PENDING,
        ).order_by(ReplicaOutboxEntry.id)

    def enqueue(self, mirror: PendingMirror) -> int:
        session = self.store.session
        try:
            row = ReplicaOutboxEntry(
                warung_id=self.warung_id,
                op=mirror.op,
                entity_type=mirror.entity_type,
                record_id=mirror.record_id,
                payload=mirror.record,
                status=OUTBOX_PENDING,
            )
            session.add(row)
            session.commit()
            return row.id
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError(
                f"Failed to queue replica {mirror.op} of {mirror.entity_type} {mirror.record_id}",
                details={"reason": str(exc)},
            ) from exc

    def entries(self) -> list[tuple[int, PendingMirror]]:
        try:
            rows = self._pending().all()
        except SQLAlchemyError as exc:
            self.store.session.rollback()
            raise StorageError("Failed to read replica outbox", details={"reason": str(exc)}) from exc
        return [
            (row.id, PendingMirror(row.op, row.entity_type, row.record_id, row.payload))
            for row in rows
        ]

    def count(self) -> int:
        try:
            return self._pending().count()
        except SQLAlchemyError as exc:
            self.store.session.rollback()
            raise StorageError("Failed to read replica outbox", details={"reason": str(exc)}) from exc

    def mark_sent(self, seq: int) -> None:
        session = self.store.session
        try:
            row = session.get(ReplicaOutboxEntry, seq)
            if row is not None and row.status == OUTBOX_PENDING:
                row.status = OUTBOX_SENT
                row.sent_at = utcnow()
                session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError("Failed to update replica outbox", details={"reason": str(exc)}) from exc


def pending_by_warung(session) -> dict[str, int]:
    """Undelivered mirror counts per tenant, read straight from the local database."""
    rows = (
        session.query(ReplicaOutboxEntry.warung_id, func.count(ReplicaOutboxEntry.id))
        .filter(ReplicaOutboxEntry.status == OUTBOX_PENDING)
        .group_by(ReplicaOutboxEntry.warung_id)
        .all()
    )
    return {warung_id: count for warung_id, count in rows}
