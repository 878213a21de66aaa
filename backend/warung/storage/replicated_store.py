# Overview: Offline-first Store: local cache is authoritative, remote replica is best-effort.

"""
Replicated Store

WRITE PATH:
1. Write the local store synchronously. Local failures (including
   ConcurrencyConflict) propagate: they are the only fatal storage errors.
2. Record the resulting mirror in the local outbox (``local.open_outbox()``,
   durable for the SQL store), then send it to the remote replica as a
   blind write and mark it sent. A remote failure is logged and the entry
   stays queued; it never fails the caller's commit.

READ PATH: local only.

ORDERING: mirrors reach the remote in outbox order. While older entries are
queued, or a flush is draining them, new writes only enqueue.

``flush_pending()`` drains the outbox (e.g. when connectivity returns).
``pull()`` copies the remote snapshot over local collections, which is how
another device's writes reach this one. It refuses to run while local writes
are still queued, and never deletes write-once records (sales, restocks,
debt payments, point history).
"""

from __future__ import annotations

import logging
import threading

from ..models import DebtPayment, PointHistory, Procurement, Transaction
from .base import Store
from .outbox import OP_DELETE, OP_UPSERT, Outbox, PendingMirror

logger = logging.getLogger(__name__)


WRITE_ONCE_TYPES = frozenset({
    Transaction.ENTITY_TYPE,
    Procurement.ENTITY_TYPE,
    DebtPayment.ENTITY_TYPE,
    PointHistory.ENTITY_TYPE,
})


class ReplicatedStore(Store):
    def __init__(self, local: Store, remote: Store | None, outbox: Outbox | None = None):
        super().__init__(local.warung_id, local.feed)
        if remote is not None and remote.warung_id != local.warung_id:
            raise ValueError("local and remote stores must be bound to the same warung_id")
        self.local = local
        self.remote = remote
        self.outbox = outbox if outbox is not None else local.open_outbox()
        # Guards the outbox and the flushing flag; re-entrant for writes made
        # from inside a remote call
        self._lock = threading.RLock()
        self._flushing = False

    @property
    def pending(self) -> list[PendingMirror]:
        """Queued mirrors, oldest first."""
        return [mirror for _, mirror in self.outbox.entries()]

    def pending_count(self) -> int:
        return self.outbox.count()

    def get_all(self, entity_type: str) -> list[dict]:
        return self.local.get_all(entity_type)

    def get(self, entity_type: str, record_id: str) -> dict | None:
        return self.local.get(entity_type, record_id)

    def upsert(self, entity_type: str, record_id: str, record: dict, expected_version: int | None = None) -> int:
        new_version = self.local.upsert(entity_type, record_id, record, expected_version=expected_version)
        self._mirror(PendingMirror(OP_UPSERT, entity_type, record_id, dict(record)))
        return new_version

    def delete(self, entity_type: str, record_id: str) -> None:
        self.local.delete(entity_type, record_id)
        self._mirror(PendingMirror(OP_DELETE, entity_type, record_id))

    def flush_pending(self) -> int:
        """Send queued mirrors in order. Returns how many are still pending."""
        if self.remote is None:
            return 0
        with self._lock:
            if self._flushing:
                return self.outbox.count()
            self._flushing = True
        try:
            while True:
                with self._lock:
                    head = self.outbox.peek()
                if head is None:
                    break
                seq, mirror = head
                # Sent outside the lock: writes arriving meanwhile queue behind it
                if not self._apply_remote(mirror):
                    break
                with self._lock:
                    self.outbox.mark_sent(seq)
        finally:
            with self._lock:
                self._flushing = False
        return self.outbox.count()

    def pull(self, entity_types: list[str]) -> bool:
        """
        Copy the remote snapshot into local collections (remote wins).

        Returns False without touching anything when there is no remote or
        when local writes are still waiting in the outbox.
        """
        if self.remote is None:
            return False
        backlog = self.pending_count()
        if backlog:
            logger.warning(
                "Skipping pull for warung %s: %d local write(s) not yet on the remote replica",
                self.warung_id, backlog,
            )
            return False
        with self.feed.batch():
            for entity_type in entity_types:
                remote_records = self.remote.get_all(entity_type)
                remote_ids = {r["id"] for r in remote_records}
                for record in remote_records:
                    self.local.upsert(entity_type, record["id"], record)
                if entity_type in WRITE_ONCE_TYPES:
                    continue
                for record in self.local.get_all(entity_type):
                    if record["id"] not in remote_ids:
                        self.local.delete(entity_type, record["id"])
        return True

    def _mirror(self, mirror: PendingMirror) -> None:
        if self.remote is None:
            return
        with self._lock:
            backlog = self._flushing or self.outbox.count() > 0
            seq = self.outbox.enqueue(mirror)
            if backlog:
                return
            if self._apply_remote(mirror):
                self.outbox.mark_sent(seq)

    def _apply_remote(self, mirror: PendingMirror) -> bool:
        try:
            if mirror.op == OP_UPSERT:
                self.remote.upsert(mirror.entity_type, mirror.record_id, mirror.record)
            else:
                self.remote.delete(mirror.entity_type, mirror.record_id)
        except Exception:
            logger.warning(
                "Remote replica %s of %s %s failed for warung %s; queued for retry",
                mirror.op, mirror.entity_type, mirror.record_id, self.warung_id,
                exc_info=True,
            )
            return False
        return True
