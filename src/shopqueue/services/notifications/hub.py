"""In-process publish/subscribe fan-out for queue and shop status events.

Delivery is at-most-once: a subscriber that is not connected when an event is
published never sees it, and a subscriber that raises is logged and skipped.
Clients reconcile by pulling the full queue listing periodically.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from ...models.domain import utcnow

logger = logging.getLogger(__name__)

GLOBAL_CHANNEL = "global"

CUSTOMER_JOINED = "customer-joined"
CUSTOMER_SERVING = "customer-serving"
CUSTOMER_COMPLETED = "customer-completed"
CUSTOMER_CANCELLED = "customer-cancelled"
SHOP_STATUS_CHANGED = "shop-status-changed"


def shop_channel(shop_id: str) -> str:
    return f"shop-{shop_id}"


@dataclass(frozen=True, slots=True)
class Event:
    channel: str
    name: str
    payload: dict[str, Any]
    published_at: datetime = field(default_factory=utcnow)


Subscriber = Callable[[Event], None]


class NotificationHub:
    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = {}
        self._lock = threading.Lock()

    def subscribe(self, channel: str, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` on ``channel``; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.setdefault(channel, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(channel, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subscribers.get(channel, []))

    def publish(self, channel: str, name: str, payload: dict[str, Any]) -> int:
        """Deliver an event to current subscribers; returns how many received it."""
        event = Event(channel=channel, name=name, payload=payload)
        with self._lock:
            callbacks = list(self._subscribers.get(channel, []))
        delivered = 0
        for callback in callbacks:
            try:
                callback(event)
                delivered += 1
            except Exception as exc:
                logger.warning("Dropped %s event on %s: %s", name, channel, exc)
        logger.debug("Published %s on %s to %d subscriber(s)", name, channel, delivered)
        return delivered

    def publish_to_shop(self, shop_id: str, name: str, payload: dict[str, Any]) -> int:
        return self.publish(shop_channel(shop_id), name, {"type": name, "shopId": shop_id, **payload})

    def broadcast(self, name: str, payload: dict[str, Any]) -> int:
        return self.publish(GLOBAL_CHANNEL, name, payload)
