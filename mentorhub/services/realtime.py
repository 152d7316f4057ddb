"""In-process change feed for table writes.

Subscribers hold an explicit ``Subscription`` handle and release it when they
stop listening, either with ``close()`` or by leaving a ``with`` block.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable

logger = logging.getLogger(__name__)

CHANGE_EVENTS = ('INSERT', 'UPDATE', 'DELETE')


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event: str
    record: dict[str, Any]
    committed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_payload(self) -> dict[str, Any]:
        return {
            'table': self.table,
            'event': self.event,
            'record': self.record,
            'committed_at': self.committed_at.isoformat(),
        }


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription:
    def __init__(self, feed: ChangeFeed, table: str, subscription_id: str) -> None:
        self.feed = feed
        self.table = table
        self.subscription_id = subscription_id
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.feed._remove(self.table, self.subscription_id)
        self.closed = True

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class ChangeFeed:
    def __init__(self) -> None:
        self._lock = Lock()
        self._subscribers: dict[str, dict[str, ChangeCallback]] = {}

    def subscribe(self, table: str, callback: ChangeCallback) -> Subscription:
        subscription_id = uuid.uuid4().hex
        with self._lock:
            self._subscribers.setdefault(table, {})[subscription_id] = callback
        return Subscription(self, table, subscription_id)

    def _remove(self, table: str, subscription_id: str) -> None:
        with self._lock:
            callbacks = self._subscribers.get(table, {})
            callbacks.pop(subscription_id, None)
            if not callbacks:
                self._subscribers.pop(table, None)

    def subscriber_count(self, table: str) -> int:
        with self._lock:
            return len(self._subscribers.get(table, {}))

    def publish(self, table: str, event: str, record: dict[str, Any]) -> ChangeEvent:
        if event not in CHANGE_EVENTS:
            raise ValueError(f'Unknown change event {event!r}.')

        change = ChangeEvent(table=table, event=event, record=record)
        with self._lock:
            callbacks = list(self._subscribers.get(table, {}).values())

        for callback in callbacks:
            try:
                callback(change)
            except Exception:
                logger.exception('Change feed subscriber failed for %s %s', table, event)

        return change


feed = ChangeFeed()
