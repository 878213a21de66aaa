# Overview: Explicit change notifications from stores to the presentation layer.

"""
Change Feed

Stores publish one ChangeEvent per entity type whenever a collection of a
tenant changes; observers (UI refresh, websocket bridges, tests) subscribe
per entity type. The core never reads from the feed.

COALESCING: inside ``with feed.batch():`` events are collected and each
entity type is published once when the outermost batch exits, so a sale
that touches ten products produces a single "products" event.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    warung_id: str
    entity_type: str


Subscriber = Callable[[ChangeEvent], None]


class ChangeFeed:
    def __init__(self):
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)
        self._local = threading.local()

    def subscribe(self, entity_type: str, callback: Subscriber) -> Callable[[], None]:
        """Register callback for entity_type. Returns an unsubscribe function."""
        self._subscribers[entity_type].append(callback)

        def unsubscribe():
            if callback in self._subscribers[entity_type]:
                self._subscribers[entity_type].remove(callback)

        return unsubscribe

    def publish(self, warung_id: str, entity_type: str) -> None:
        pending = getattr(self._local, "pending", None)
        if pending is not None:
            pending.setdefault(ChangeEvent(warung_id, entity_type), None)
            return
        self._dispatch(ChangeEvent(warung_id, entity_type))

    @contextmanager
    def batch(self):
        """Coalesce events until the outermost batch exits (also on error)."""
        outermost = getattr(self._local, "pending", None) is None
        if outermost:
            self._local.pending = {}
        try:
            yield self
        finally:
            if outermost:
                events = list(self._local.pending)
                self._local.pending = None
                for event in events:
                    self._dispatch(event)

    def _dispatch(self, event: ChangeEvent) -> None:
        for callback in list(self._subscribers.get(event.entity_type, [])):
            try:
                callback(event)
            except Exception:
                # Subscriber errors never reach the writer
                logger.exception("Change feed subscriber failed for %s", event.entity_type)
