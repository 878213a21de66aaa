# Overview: In-process Store used by tests and single-process demo mode.

from __future__ import annotations

import copy
import threading

from ..errors import ConcurrencyConflict
from .base import Store
from .change_feed import ChangeFeed
from .outbox import MemoryOutbox


class MemoryBacking:
    """
    Shared record space for MemoryStore instances.

    Several stores (one per tenant, or several "devices" of the same tenant)
    can point at one backing to simulate a shared database.
    """
    def __init__(self):
        self.lock = threading.RLock()
        # (warung_id, entity_type) -> record_id -> (version, payload)
        self.tables: dict[tuple[str, str], dict[str, tuple[int, dict]]] = {}
        # warung_id -> [(seq, PendingMirror)] for ReplicatedStore over this backing
        self.outboxes: dict = {}
        self.outbox_seq = 0

    def table(self, warung_id: str, entity_type: str) -> dict[str, tuple[int, dict]]:
        return self.tables.setdefault((warung_id, entity_type), {})

    def clear(self) -> None:
        with self.lock:
            self.tables.clear()
            self.outboxes.clear()


class MemoryStore(Store):
    def __init__(self, warung_id: str, backing: MemoryBacking | None = None, feed: ChangeFeed | None = None):
        super().__init__(warung_id, feed)
        self.backing = backing or MemoryBacking()

    def open_outbox(self) -> MemoryOutbox:
        return MemoryOutbox(self.backing, self.warung_id)

    def get_all(self, entity_type: str) -> list[dict]:
        with self.backing.lock:
            table = self.backing.table(self.warung_id, entity_type)
            return [
                {**copy.deepcopy(payload), "version": version}
                for version, payload in table.values()
            ]

    def get(self, entity_type: str, record_id: str) -> dict | None:
        with self.backing.lock:
            row = self.backing.table(self.warung_id, entity_type).get(record_id)
            if row is None:
                return None
            version, payload = row
            return {**copy.deepcopy(payload), "version": version}

    def upsert(self, entity_type: str, record_id: str, record: dict, expected_version: int | None = None) -> int:
        payload = {k: v for k, v in record.items() if k != "version"}
        with self.backing.lock:
            table = self.backing.table(self.warung_id, entity_type)
            current = table[record_id][0] if record_id in table else 0
            if expected_version is not None and current != expected_version:
                raise ConcurrencyConflict(entity_type, record_id, expected_version, current)
            new_version = current + 1
            table[record_id] = (new_version, copy.deepcopy(payload))
        self._notify(entity_type)
        return new_version

    def delete(self, entity_type: str, record_id: str) -> None:
        with self.backing.lock:
            removed = self.backing.table(self.warung_id, entity_type).pop(record_id, None)
        if removed is not None:
            self._notify(entity_type)
