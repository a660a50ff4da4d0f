"""Explicit scan lifecycle events.

The event names are fixed at import time; subscribing to anything else is
an error. Handlers run in priority order (highest first) and a failing
handler is logged without interrupting the scan or the other handlers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .logging_config import get_logger

logger = get_logger(__name__)

SCAN_STARTED = "scan.started"
SCAN_COMPLETED = "scan.completed"
SCAN_CACHE_HIT = "scan.cache_hit"
SCAN_FAILED = "scan.failed"
SNAPSHOT_SAVED = "snapshot.saved"

EVENT_NAMES = (SCAN_STARTED, SCAN_COMPLETED, SCAN_CACHE_HIT, SCAN_FAILED, SNAPSHOT_SAVED)

Handler = Callable[[dict[str, Any]], None]


@dataclass(frozen=True)
class Subscription:
    event: str
    handler: Handler
    priority: int = 0
    name: str = ""


class EventBus:
    """Event name -> ordered handlers."""

    def __init__(self, handlers: Optional[dict[str, list[Handler]]] = None):
        self._subscriptions: dict[str, list[Subscription]] = {name: [] for name in EVENT_NAMES}
        for event, fns in (handlers or {}).items():
            for fn in fns:
                self.subscribe(event, fn)

    def subscribe(self, event: str, handler: Handler, priority: int = 0) -> Subscription:
        if event not in self._subscriptions:
            raise ValueError(f"Unknown event {event!r}; expected one of {', '.join(EVENT_NAMES)}")
        subscription = Subscription(
            event=event,
            handler=handler,
            priority=priority,
            name=getattr(handler, "__qualname__", repr(handler)),
        )
        subscriptions = self._subscriptions[event]
        subscriptions.append(subscription)
        # stable: equal priorities keep subscription order
        subscriptions.sort(key=lambda s: s.priority, reverse=True)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.event, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)

    def handlers(self, event: str) -> list[Subscription]:
        return list(self._subscriptions.get(event, []))

    def emit(self, event: str, payload: Optional[dict[str, Any]] = None) -> None:
        if event not in self._subscriptions:
            raise ValueError(f"Unknown event {event!r}")
        payload = payload or {}
        for subscription in list(self._subscriptions[event]):
            try:
                logger.debug(f"Dispatching {event} to {subscription.name}")
                subscription.handler(payload)
            except Exception:
                logger.exception(f"Event handler {subscription.name} failed on {event}")
