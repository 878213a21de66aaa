# Overview: Store construction for the Flask app (one store per tenant, cached per process).

from __future__ import annotations

from flask import current_app, g

from .base import Store, fetch, fetch_required, fetch_all, persist, append_fact
from .change_feed import ChangeEvent, ChangeFeed
from .outbox import Outbox, MemoryOutbox, SqlOutbox, PendingMirror
from .memory_store import MemoryBacking, MemoryStore
from .sql_store import SqlStore
from .replicated_store import ReplicatedStore


# Every tenant collection, in the order a full wipe/pull walks them
ENTITY_TYPES = [
    "products",
    "customers",
    "suppliers",
    "point_rewards",
    "transactions",
    "procurements",
    "debt_payments",
    "point_history",
    "settings",
]


def open_store(app, warung_id: str) -> Store:
    """
    Build (or reuse) the store for warung_id according to app config.

    STORE_BACKEND=memory -> MemoryStore on a process-wide backing.
    STORE_BACKEND=sql    -> SqlStore on the Flask-SQLAlchemy session,
                            wrapped in a ReplicatedStore when
                            REMOTE_DATABASE_URL is configured.

    Stores are cached per tenant so change feed subscribers survive across
    requests and every request thread shares one outbox lock per tenant.
    """
    state = app.extensions.setdefault("warung_stores", {})
    store = state.get(warung_id)
    if store is not None:
        return store

    backend = app.config.get("STORE_BACKEND", "sql")
    if backend == "memory":
        backing = app.extensions.setdefault("warung_memory_backing", MemoryBacking())
        store = MemoryStore(warung_id, backing=backing)
    elif backend == "sql":
        store = SqlStore(warung_id)
        remote_url = app.config.get("REMOTE_DATABASE_URL")
        if remote_url:
            store = ReplicatedStore(store, SqlStore.connect(remote_url, warung_id))
    else:
        raise ValueError(f"Unknown STORE_BACKEND: {backend}")

    state[warung_id] = store
    return store


def get_store() -> Store:
    """Store for the tenant of the current request (see decorators.require_tenant)."""
    return open_store(current_app, g.warung_id)


__all__ = [
    "Store", "fetch", "fetch_required", "fetch_all", "persist", "append_fact",
    "ChangeEvent", "ChangeFeed",
    "MemoryBacking", "MemoryStore", "SqlStore", "ReplicatedStore",
    "Outbox", "MemoryOutbox", "SqlOutbox", "PendingMirror",
    "ENTITY_TYPES", "open_store", "get_store",
]
