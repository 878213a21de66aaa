# Overview: Compare-and-swap retry helpers for ledger read-modify-write cycles.

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from flask import current_app, has_app_context

from ..errors import ConcurrencyConflict, NotFoundError
from ..storage import Store, fetch, persist

logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    attempts: int = 3
    backoff_base: float = 0.05


# Used outside an app context; each app carries its own in app.extensions
retry_policy = RetryPolicy()

EXTENSION_KEY = "warung_retry_policy"


def configure(app) -> RetryPolicy:
    """Build the app's policy from CAS_RETRY_* config (called by create_app)."""
    policy = RetryPolicy(
        attempts=int(app.config.get("CAS_RETRY_ATTEMPTS", retry_policy.attempts)),
        backoff_base=float(app.config.get("CAS_RETRY_BACKOFF", retry_policy.backoff_base)),
    )
    app.extensions[EXTENSION_KEY] = policy
    return policy


def current_policy() -> RetryPolicy:
    if has_app_context():
        return current_app.extensions.get(EXTENSION_KEY, retry_policy)
    return retry_policy


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a read-modify-write operation, re-running it on ConcurrencyConflict.

    func must re-read everything it writes; it is called from scratch on each
    attempt. The last conflict is re-raised once attempts are exhausted.
    """
    policy = current_policy()
    attempts = attempts if attempts is not None else policy.attempts
    backoff_base = backoff_base if backoff_base is not None else policy.backoff_base

    for attempt in range(attempts):
        try:
            return func()
        except ConcurrencyConflict as exc:
            if attempt >= attempts - 1:
                raise
            logger.debug("CAS conflict on %s %s, retrying (%d/%d)",
                         exc.entity_type, exc.record_id, attempt + 1, attempts)
            if backoff_base:
                time.sleep(backoff_base * (2 ** attempt))


def read_modify_write(store: Store, model, record_id: str, mutate, *, missing_ok: bool = False):
    """
    Load one aggregate, apply mutate(obj) and save it with compare-and-swap.

    mutate returns False to signal "nothing to write" (e.g. the fact was
    already applied). Returns the saved object, or None when the record is
    missing and missing_ok is set.
    """
    def _op():
        obj = fetch(store, model, record_id)
        if obj is None:
            if missing_ok:
                return None
            raise NotFoundError(model.ENTITY_TYPE, record_id)
        if mutate(obj) is False:
            return obj
        persist(store, obj)
        return obj

    return run_with_retry(_op)
