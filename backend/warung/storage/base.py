# Overview: Abstract tenant-scoped record store the ledgers are written against.

"""
Store Contract (authoritative)

- A Store instance is bound to exactly one tenant (warung_id). No method
  takes a tenant argument, so cross-tenant reads and writes are impossible.
- Records are JSON-safe dicts keyed by (entity_type, record_id).
- Every stored record has a monotonic "version": 1 after the first write,
  +1 on every replace. Reads return it under the "version" key.
- upsert(expected_version=None) is a blind last-writer-wins write (facts,
  reference data). upsert(expected_version=N) is compare-and-swap: it
  succeeds only if the current version is N (0 meaning "must not exist")
  and raises ConcurrencyConflict otherwise.
- Every successful write or delete publishes one ChangeEvent on the
  store's feed for the entity type.
- Read/write failures raise StorageError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, TypeVar

from ..errors import ConcurrencyConflict, NotFoundError
from .change_feed import ChangeEvent, ChangeFeed


T = TypeVar("T")


class Store(ABC):
    def __init__(self, warung_id: str, feed: ChangeFeed | None = None):
        if not warung_id:
            raise ValueError("warung_id required")
        self.warung_id = warung_id
        self.feed = feed or ChangeFeed()

    @abstractmethod
    def get_all(self, entity_type: str) -> list[dict]:
        """All records of entity_type for this tenant."""

    def get(self, entity_type: str, record_id: str) -> dict | None:
        for record in self.get_all(entity_type):
            if record.get("id") == record_id:
                return record
        return None

    @abstractmethod
    def upsert(
        self,
        entity_type: str,
        record_id: str,
        record: dict,
        expected_version: int | None = None,
    ) -> int:
        """Create or replace a record. Returns the new version."""

    @abstractmethod
    def delete(self, entity_type: str, record_id: str) -> None:
        """Delete a record; deleting a missing id is a no-op."""

    def open_outbox(self):
        """Durable queue for a ReplicatedStore that uses this store as its local side."""
        raise NotImplementedError(f"{type(self).__name__} cannot hold a replica outbox")

    def subscribe(self, entity_type: str, callback: Callable[[ChangeEvent], None]) -> Callable[[], None]:
        return self.feed.subscribe(entity_type, callback)

    def _notify(self, entity_type: str) -> None:
        self.feed.publish(self.warung_id, entity_type)


# =============================================================================
# TYPED HELPERS
# =============================================================================
# Entity classes expose ENTITY_TYPE, to_dict() and from_dict(); these helpers
# keep the (de)serialization out of the ledgers.

def fetch(store: Store, model: type[T], record_id: str) -> T | None:
    record = store.get(model.ENTITY_TYPE, record_id)
    return model.from_dict(record) if record is not None else None


def fetch_required(store: Store, model: type[T], record_id: str) -> T:
    obj = fetch(store, model, record_id)
    if obj is None:
        raise NotFoundError(model.ENTITY_TYPE, record_id)
    return obj


def fetch_all(store: Store, model: type[T]) -> list[T]:
    return [model.from_dict(record) for record in store.get_all(model.ENTITY_TYPE)]


def persist(store: Store, obj, *, cas: bool = True) -> int:
    """
    Write an entity back. With cas=True the write is conditional on the
    version the entity was loaded with; the entity's version is updated.
    """
    expected = obj.version if cas else None
    new_version = store.upsert(obj.ENTITY_TYPE, obj.id, obj.to_dict(), expected_version=expected)
    obj.version = new_version
    return new_version


def append_fact(store: Store, fact) -> bool:
    """
    Write an immutable fact once. Returns False if a fact with the same id
    already exists (retried commit), in which case nothing is written.
    """
    try:
        store.upsert(fact.ENTITY_TYPE, fact.id, fact.to_dict(), expected_version=0)
    except ConcurrencyConflict:
        return False
    return True

