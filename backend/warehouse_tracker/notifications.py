# Overview: In-process fan-out of ledger change notifications to subscribed sinks.

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable

from flask import current_app, has_app_context

from .time_utils import to_utc_z, utcnow

"""
Notification Invariants

- Published only after the mutation's transaction has committed.
- Fire-and-forget: a failing sink is logged and skipped; it never fails
  or rolls back the mutation, and never stops delivery to other sinks.
- Message shape: {"action": tag, "data": payload, "timestamp": ISO-8601 Z}.
"""

ADD_PALLET = "add_pallet"
REMOVE_PALLETS = "remove_pallets"
REMOVE_UNITS = "remove_units"
DELETE_PALLET = "delete_pallet"

Sink = Callable[[dict], Any]


class RecordingSink:
    """Keeps the most recent messages in memory (UI polling, tests)."""

    def __init__(self, maxlen: int = 100):
        self.messages: deque[dict] = deque(maxlen=maxlen)

    def __call__(self, message: dict) -> None:
        self.messages.append(message)

    def recent(self, limit: int | None = None) -> list[dict]:
        items = list(self.messages)
        items.reverse()
        if limit is not None:
            items = items[:limit]
        return items

    def clear(self) -> None:
        self.messages.clear()


class NotificationHub:
    def __init__(self, app=None):
        self._sinks: list[Sink] = []
        self.recorder = RecordingSink()
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self.recorder = RecordingSink(maxlen=app.config.get("NOTIFICATION_BUFFER_SIZE", 100))
        self._sinks = [self.recorder]
        app.extensions["notifier"] = self

    def subscribe(self, sink: Sink) -> Sink:
        if sink not in self._sinks:
            self._sinks.append(sink)
        return sink

    def unsubscribe(self, sink: Sink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    def publish(self, action: str, payload: dict) -> dict:
        message = {
            "action": action,
            "data": payload,
            "timestamp": to_utc_z(utcnow()),
        }
        for sink in list(self._sinks):
            try:
                sink(message)
            except Exception:
                logger = current_app.logger if has_app_context() else logging.getLogger(__name__)
                logger.exception("Notification sink failed for %s", action)
        return message
