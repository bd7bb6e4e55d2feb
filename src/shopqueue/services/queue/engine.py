"""FIFO waiting line per shop.

Every mutation of a shop's line (join, serve, complete, cancel, recompute) runs
under that shop's lock; different shops never wait on each other. Joins also
hold the customer's lock, always taken before the shop lock, so the
one-active-entry-per-customer rule holds across shops.

Positions are derived: they are rewritten from the waiting set, ordered by
ticket, after every removal and are recomputed again on every read.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Optional

from ...data.queue_repository import QueueStore
from ...errors import (
    DuplicateActiveEntry,
    Forbidden,
    MissingField,
    NotFound,
    NotInServiceState,
    NotInWaitingState,
    TicketConflict,
)
from ...models.domain import ACTIVE_STATUSES, QueueEntry, QueueStatus, ServiceKind, Shop, utcnow
from ..directory.service import ShopDirectory, local_now
from ..locks import KeyedLocks
from ..notifications.hub import (
    CUSTOMER_CANCELLED,
    CUSTOMER_COMPLETED,
    CUSTOMER_JOINED,
    CUSTOMER_SERVING,
    NotificationHub,
)

logger = logging.getLogger(__name__)

WAITING_ONLY = frozenset({QueueStatus.WAITING})


@dataclass(frozen=True, slots=True)
class QueueStats:
    shop_id: str
    waiting: int
    in_service: int
    completed_today: int
    estimated_wait_minutes: int

    @property
    def total_in_queue(self) -> int:
        return self.waiting + self.in_service


def assign_positions(waiting: list[QueueEntry], average_service_minutes: int) -> list[QueueEntry]:
    """Number waiting entries 1..N in ticket order with matching wait estimates."""

    ordered = sorted(waiting, key=lambda entry: (entry.ticket_number or 0, entry.joined_at))
    return [
        replace(entry, position=rank, estimated_wait_minutes=rank * average_service_minutes)
        for rank, entry in enumerate(ordered, start=1)
    ]


class QueueEngine:
    def __init__(self, store: QueueStore, directory: ShopDirectory, hub: NotificationHub) -> None:
        self.store = store
        self.directory = directory
        self.hub = hub
        self._shop_locks = KeyedLocks()
        self._customer_locks = KeyedLocks()

    def _entry(self, entry_id: str) -> QueueEntry:
        entry = self.store.get(entry_id)
        if entry is None:
            raise NotFound(f"Queue entry '{entry_id}' not found.")
        return entry

    def _recomputed(self, shop: Shop, exclude: str | None = None) -> list[QueueEntry]:
        waiting = [
            entry
            for entry in self.store.for_shop(shop.shop_id, WAITING_ONLY)
            if entry.entry_id != exclude
        ]
        return assign_positions(waiting, shop.average_service_minutes)

    def _new_entry(self, shop: Shop, customer_id: str, service_kind: ServiceKind) -> QueueEntry:
        position = self.store.count(shop.shop_id, WAITING_ONLY) + 1
        return QueueEntry(
            entry_id=uuid.uuid4().hex,
            shop_id=shop.shop_id,
            customer_id=customer_id,
            service_kind=service_kind,
            ticket_number=self.store.last_ticket_number(shop.shop_id) + 1,
            position=position,
            estimated_wait_minutes=position * shop.average_service_minutes,
        )

    def _issue(self, shop: Shop, customer_id: str, service_kind: ServiceKind) -> QueueEntry:
        entry = self._new_entry(shop, customer_id, service_kind)
        try:
            self.store.insert(entry)
        except TicketConflict:
            # Another process took this ticket. Retry once; a second conflict propagates.
            logger.warning("Ticket %s taken for shop %s, retrying", entry.ticket_number, shop.shop_id)
            entry = self._new_entry(shop, customer_id, service_kind)
            self.store.insert(entry)
        return entry

    def join(self, shop_id: str, customer_id: str, service_kind: Any) -> QueueEntry:
        """Append the customer to the tail of the shop's line.

        Returns the stored entry carrying its ticket number, position and
        estimated wait.

        Raises:
            MissingField: empty customer identity.
            NotFound: unknown or deactivated shop.
            DuplicateActiveEntry: the customer is already waiting or being served anywhere.
        """
        if not customer_id:
            raise MissingField("Customer identity is required.")
        if service_kind in (None, ""):
            raise MissingField("Service type is required.")
        kind = ServiceKind(service_kind)
        shop = self.directory.get(shop_id)
        if not shop.is_active:
            raise NotFound(f"Shop '{shop_id}' is not accepting customers.")

        with self._customer_locks.hold(customer_id), self._shop_locks.hold(shop_id):
            active = self.store.active_for_customer(customer_id)
            if active is not None:
                raise DuplicateActiveEntry(
                    f"Customer already has an active entry at shop '{active.shop_id}'."
                )
            entry = self._issue(shop, customer_id, kind)

        logger.info(
            "Customer %s joined %s with ticket %s at position %s",
            customer_id, shop_id, entry.ticket_number, entry.position,
        )
        self.hub.publish_to_shop(
            shop_id,
            CUSTOMER_JOINED,
            {
                "entryId": entry.entry_id,
                "customerId": customer_id,
                "ticketNumber": entry.ticket_number,
                "position": entry.position,
                "serviceType": kind.value,
                "status": entry.status.value,
            },
        )
        return entry

    def serve(self, entry_id: str) -> QueueEntry:
        """Move a waiting entry into service. Other positions are left as they are."""

        shop_id = self._entry(entry_id).shop_id
        with self._shop_locks.hold(shop_id):
            entry = self._entry(entry_id)
            if entry.status is not QueueStatus.WAITING:
                raise NotInWaitingState(f"Entry is {entry.status.value}, not waiting.")
            served = replace(
                entry,
                status=QueueStatus.IN_SERVICE,
                service_started_at=utcnow(),
                position=0,
                estimated_wait_minutes=0,
            )
            self.store.save(served)

        logger.info("Serving ticket %s at %s", served.ticket_number, shop_id)
        self.hub.publish_to_shop(shop_id, CUSTOMER_SERVING, {"entryId": entry_id})
        return served

    def complete(self, entry_id: str) -> QueueEntry:
        shop_id = self._entry(entry_id).shop_id
        shop = self.directory.get(shop_id)
        with self._shop_locks.hold(shop_id):
            entry = self._entry(entry_id)
            if entry.status is not QueueStatus.IN_SERVICE:
                raise NotInServiceState(f"Entry is {entry.status.value}, not in service.")
            completed = replace(entry, status=QueueStatus.COMPLETED, service_completed_at=utcnow())
            self.store.save_many([completed, *self._recomputed(shop, exclude=entry_id)])

        logger.info("Completed ticket %s at %s", completed.ticket_number, shop_id)
        self.hub.publish_to_shop(shop_id, CUSTOMER_COMPLETED, {"entryId": entry_id})
        return completed

    def cancel(self, entry_id: str, customer_id: str) -> QueueEntry:
        """Withdraw a waiting entry on behalf of the customer who owns it."""

        shop_id = self._entry(entry_id).shop_id
        shop = self.directory.get(shop_id)
        with self._shop_locks.hold(shop_id):
            entry = self._entry(entry_id)
            if entry.customer_id != customer_id:
                raise Forbidden("You can only cancel your own queue entry.")
            if entry.status is not QueueStatus.WAITING:
                raise NotInWaitingState(f"Cannot cancel - service already {entry.status.value}.")
            cancelled = replace(
                entry,
                status=QueueStatus.CANCELLED,
                ticket_number=None,
                position=0,
                estimated_wait_minutes=0,
            )
            self.store.save_many([cancelled, *self._recomputed(shop, exclude=entry_id)])

        logger.info("Customer %s cancelled entry %s at %s", customer_id, entry_id, shop_id)
        self.hub.publish_to_shop(
            shop_id, CUSTOMER_CANCELLED, {"entryId": entry_id, "customerId": customer_id}
        )
        return cancelled

    def recompute_positions(self, shop_id: str) -> list[QueueEntry]:
        shop = self.directory.get(shop_id)
        with self._shop_locks.hold(shop_id):
            waiting = self._recomputed(shop)
            self.store.save_many(waiting)
        return waiting

    def queue_length(self, shop_id: str) -> int:
        """Occupancy: entries waiting plus entries being served."""

        with self._shop_locks.hold(shop_id):
            return self.store.count(shop_id, ACTIVE_STATUSES)

    def list_queue(self, shop_id: str) -> list[QueueEntry]:
        """Active entries in ticket order; waiting ones carry fresh positions."""

        shop = self.directory.get(shop_id)
        with self._shop_locks.hold(shop_id):
            entries = self.store.for_shop(shop_id, ACTIVE_STATUSES)
        serving = [entry for entry in entries if entry.status is QueueStatus.IN_SERVICE]
        waiting = [entry for entry in entries if entry.status is QueueStatus.WAITING]
        return serving + assign_positions(waiting, shop.average_service_minutes)

    def _with_fresh_position(self, entry: QueueEntry) -> QueueEntry:
        if entry.status is not QueueStatus.WAITING:
            return entry
        for current in self.list_queue(entry.shop_id):
            if current.entry_id == entry.entry_id:
                return current
        return entry

    def active_entry(self, customer_id: str) -> Optional[QueueEntry]:
        entry = self.store.active_for_customer(customer_id)
        return self._with_fresh_position(entry) if entry else None

    def entry_status(self, entry_id: str, shop_id: str | None = None) -> QueueEntry:
        """Look up by entry id, falling back to a ticket number within ``shop_id``."""

        entry = self.store.get(entry_id)
        if entry is None and shop_id and entry_id.isdigit():
            entry = self.store.find_by_ticket(shop_id, int(entry_id))
        if entry is None:
            raise NotFound(f"Queue entry '{entry_id}' not found.")
        return self._with_fresh_position(entry)

    def stats(self, shop_id: str, now: datetime | None = None) -> QueueStats:
        shop = self.directory.get(shop_id)
        now = now or local_now()
        with self._shop_locks.hold(shop_id):
            waiting = self.store.count(shop_id, WAITING_ONLY)
            in_service = self.store.count(shop_id, {QueueStatus.IN_SERVICE})
            completed = self.store.for_shop(shop_id, {QueueStatus.COMPLETED})
        today = now.date()
        completed_today = sum(
            1
            for entry in completed
            if entry.service_completed_at is not None
            and entry.service_completed_at.astimezone(now.tzinfo).date() == today
        )
        return QueueStats(
            shop_id=shop_id,
            waiting=waiting,
            in_service=in_service,
            completed_today=completed_today,
            estimated_wait_minutes=waiting * shop.average_service_minutes,
        )
