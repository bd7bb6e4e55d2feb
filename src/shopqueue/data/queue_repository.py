"""Queue entry persistence: an in-memory store and a Supabase-backed store."""

from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime
from typing import Any, Collection, Iterable, Optional, Protocol

from ..errors import StoreError, TicketConflict
from ..models.domain import ACTIVE_STATUSES, QueueEntry, QueueStatus, ServiceKind

logger = logging.getLogger(__name__)


def _ticket_order(entry: QueueEntry) -> tuple[int, int, datetime]:
    # Entries without a ticket (cancelled) sort after ticketed ones.
    if entry.ticket_number is None:
        return (1, 0, entry.joined_at)
    return (0, entry.ticket_number, entry.joined_at)


class QueueStore(Protocol):
    def insert(self, entry: QueueEntry) -> None:
        """Persist a new entry; raises TicketConflict if the shop ticket is taken."""
        ...

    def save(self, entry: QueueEntry) -> None: ...

    def save_many(self, entries: Iterable[QueueEntry]) -> None: ...

    def get(self, entry_id: str) -> Optional[QueueEntry]: ...

    def find_by_ticket(self, shop_id: str, ticket_number: int) -> Optional[QueueEntry]: ...

    def for_shop(self, shop_id: str, statuses: Collection[QueueStatus]) -> list[QueueEntry]:
        """Entries of one shop in the given statuses, ticket ascending."""
        ...

    def count(self, shop_id: str, statuses: Collection[QueueStatus]) -> int: ...

    def active_for_customer(self, customer_id: str) -> Optional[QueueEntry]: ...

    def last_ticket_number(self, shop_id: str) -> int:
        """Highest ticket ever issued for the shop, including cleared ones."""
        ...


class InMemoryQueueStore:
    """Thread-safe dict store with per-shop status indexes.

    Lookups touch only the entries of the requested shop and statuses, so the
    cost of a queue operation does not grow with completed or cancelled history.
    """

    def __init__(self) -> None:
        self._entries: dict[str, QueueEntry] = {}
        self._last_ticket: dict[str, int] = {}
        # (shop_id, status) -> entry ids
        self._by_shop_status: dict[tuple[str, QueueStatus], set[str]] = {}
        # customer_id -> id of the customer's waiting or in-service entry
        self._active_by_customer: dict[str, str] = {}
        # (shop_id, ticket_number) -> entry id
        self._by_ticket: dict[tuple[str, int], str] = {}
        self._lock = threading.RLock()

    def _index(self, entry: QueueEntry) -> None:
        self._by_shop_status.setdefault((entry.shop_id, entry.status), set()).add(entry.entry_id)
        if entry.status in ACTIVE_STATUSES:
            self._active_by_customer[entry.customer_id] = entry.entry_id
        if entry.ticket_number is not None:
            self._by_ticket[(entry.shop_id, entry.ticket_number)] = entry.entry_id

    def _unindex(self, entry: QueueEntry) -> None:
        ids = self._by_shop_status.get((entry.shop_id, entry.status))
        if ids is not None:
            ids.discard(entry.entry_id)
            if not ids:
                del self._by_shop_status[(entry.shop_id, entry.status)]
        if self._active_by_customer.get(entry.customer_id) == entry.entry_id:
            del self._active_by_customer[entry.customer_id]
        if entry.ticket_number is not None:
            self._by_ticket.pop((entry.shop_id, entry.ticket_number), None)

    def _ids(self, shop_id: str, statuses: Collection[QueueStatus]) -> list[str]:
        ids: list[str] = []
        for status in statuses:
            ids.extend(self._by_shop_status.get((shop_id, status), ()))
        return ids

    def insert(self, entry: QueueEntry) -> None:
        with self._lock:
            if entry.entry_id in self._entries:
                raise StoreError(f"Queue entry '{entry.entry_id}' already exists.")
            if entry.ticket_number is not None:
                if entry.ticket_number <= self._last_ticket.get(entry.shop_id, 0):
                    raise TicketConflict(
                        f"Ticket {entry.ticket_number} already issued for shop '{entry.shop_id}'."
                    )
                self._last_ticket[entry.shop_id] = entry.ticket_number
            stored = copy.deepcopy(entry)
            self._entries[entry.entry_id] = stored
            self._index(stored)

    def save(self, entry: QueueEntry) -> None:
        self.save_many([entry])

    def save_many(self, entries: Iterable[QueueEntry]) -> None:
        entries = list(entries)
        with self._lock:
            missing = [entry.entry_id for entry in entries if entry.entry_id not in self._entries]
            if missing:
                raise StoreError(f"Unknown queue entries: {missing}")
            for entry in entries:
                self._unindex(self._entries[entry.entry_id])
                stored = copy.deepcopy(entry)
                self._entries[entry.entry_id] = stored
                self._index(stored)

    def get(self, entry_id: str) -> Optional[QueueEntry]:
        with self._lock:
            entry = self._entries.get(entry_id)
            return copy.deepcopy(entry) if entry else None

    def find_by_ticket(self, shop_id: str, ticket_number: int) -> Optional[QueueEntry]:
        with self._lock:
            entry_id = self._by_ticket.get((shop_id, ticket_number))
            return copy.deepcopy(self._entries[entry_id]) if entry_id else None

    def for_shop(self, shop_id: str, statuses: Collection[QueueStatus]) -> list[QueueEntry]:
        with self._lock:
            entries = [copy.deepcopy(self._entries[entry_id]) for entry_id in self._ids(shop_id, statuses)]
        return sorted(entries, key=_ticket_order)

    def count(self, shop_id: str, statuses: Collection[QueueStatus]) -> int:
        with self._lock:
            return sum(len(self._by_shop_status.get((shop_id, status), ())) for status in statuses)

    def active_for_customer(self, customer_id: str) -> Optional[QueueEntry]:
        with self._lock:
            entry_id = self._active_by_customer.get(customer_id)
            return copy.deepcopy(self._entries[entry_id]) if entry_id else None

    def last_ticket_number(self, shop_id: str) -> int:
        with self._lock:
            return self._last_ticket.get(shop_id, 0)


def entry_to_row(entry: QueueEntry) -> dict[str, Any]:
    return {
        "entry_id": entry.entry_id,
        "shop_id": entry.shop_id,
        "customer_id": entry.customer_id,
        "service_kind": entry.service_kind.value,
        "ticket_number": entry.ticket_number,
        "status": entry.status.value,
        "position": entry.position,
        "estimated_wait_minutes": entry.estimated_wait_minutes,
        "joined_at": entry.joined_at.isoformat(),
        "service_started_at": entry.service_started_at.isoformat() if entry.service_started_at else None,
        "service_completed_at": entry.service_completed_at.isoformat() if entry.service_completed_at else None,
    }


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def entry_from_row(row: dict[str, Any]) -> QueueEntry:
    return QueueEntry(
        entry_id=row["entry_id"],
        shop_id=row["shop_id"],
        customer_id=row["customer_id"],
        service_kind=ServiceKind(row["service_kind"]),
        ticket_number=row.get("ticket_number"),
        status=QueueStatus(row["status"]),
        position=int(row.get("position") or 0),
        estimated_wait_minutes=int(row.get("estimated_wait_minutes") or 0),
        joined_at=datetime.fromisoformat(row["joined_at"]),
        service_started_at=_parse_timestamp(row.get("service_started_at")),
        service_completed_at=_parse_timestamp(row.get("service_completed_at")),
    )


class SupabaseQueueStore:
    """``queue_entries`` table keyed by entry id.

    A unique index on ``(shop_id, ticket_number)`` backs ticket atomicity across
    processes; the shop's ``last_ticket_number`` column keeps the high-water mark.
    """

    table = "queue_entries"

    def __init__(self, client: Any) -> None:
        self.client = client

    def _execute(self, action: str, query: Any) -> Any:
        try:
            return query.execute()
        except Exception as exc:
            if "duplicate key" in str(exc) or "23505" in str(exc):
                raise TicketConflict("Ticket number already issued.") from exc
            logger.error("Supabase %s failed: %s", action, exc)
            raise StoreError(f"Queue store unavailable during {action}.") from exc

    def _parse(self, row: Any) -> QueueEntry:
        try:
            return entry_from_row(row)
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Malformed queue row: %s", exc)
            raise StoreError("Queue store returned a malformed row.") from exc

    def insert(self, entry: QueueEntry) -> None:
        """Insert the entry, then raise the shop's ticket high-water mark.

        If the mark cannot be raised the inserted row is deleted again, so a
        failed insert leaves no entry behind.
        """
        self._execute("insert", self.client.table(self.table).insert(entry_to_row(entry)))
        if entry.ticket_number is None:
            return
        try:
            self._execute(
                "update",
                self.client.table("shops")
                .update({"last_ticket_number": entry.ticket_number})
                .eq("shop_id", entry.shop_id)
                .lt("last_ticket_number", entry.ticket_number),
            )
        except StoreError:
            logger.warning("Rolling back entry %s after ticket mark update failed", entry.entry_id)
            self._execute("delete", self.client.table(self.table).delete().eq("entry_id", entry.entry_id))
            raise

    def save(self, entry: QueueEntry) -> None:
        self._execute(
            "update",
            self.client.table(self.table).update(entry_to_row(entry)).eq("entry_id", entry.entry_id),
        )

    def save_many(self, entries: Iterable[QueueEntry]) -> None:
        rows = [entry_to_row(entry) for entry in entries]
        if rows:
            self._execute("upsert", self.client.table(self.table).upsert(rows, on_conflict="entry_id"))

    def get(self, entry_id: str) -> Optional[QueueEntry]:
        result = self._execute(
            "select", self.client.table(self.table).select("*").eq("entry_id", entry_id).limit(1)
        )
        rows = result.data or []
        return self._parse(rows[0]) if rows else None

    def find_by_ticket(self, shop_id: str, ticket_number: int) -> Optional[QueueEntry]:
        result = self._execute(
            "select",
            self.client.table(self.table)
            .select("*")
            .eq("shop_id", shop_id)
            .eq("ticket_number", ticket_number)
            .limit(1),
        )
        rows = result.data or []
        return self._parse(rows[0]) if rows else None

    def for_shop(self, shop_id: str, statuses: Collection[QueueStatus]) -> list[QueueEntry]:
        result = self._execute(
            "select",
            self.client.table(self.table)
            .select("*")
            .eq("shop_id", shop_id)
            .in_("status", [status.value for status in statuses]),
        )
        return sorted((self._parse(row) for row in (result.data or [])), key=_ticket_order)

    def count(self, shop_id: str, statuses: Collection[QueueStatus]) -> int:
        result = self._execute(
            "count",
            self.client.table(self.table)
            .select("entry_id", count="exact")
            .eq("shop_id", shop_id)
            .in_("status", [status.value for status in statuses]),
        )
        return int(result.count or 0)

    def active_for_customer(self, customer_id: str) -> Optional[QueueEntry]:
        result = self._execute(
            "select",
            self.client.table(self.table)
            .select("*")
            .eq("customer_id", customer_id)
            .in_("status", [status.value for status in ACTIVE_STATUSES])
            .limit(1),
        )
        rows = result.data or []
        return self._parse(rows[0]) if rows else None

    def last_ticket_number(self, shop_id: str) -> int:
        shop_result = self._execute(
            "select",
            self.client.table("shops").select("last_ticket_number").eq("shop_id", shop_id).limit(1),
        )
        entry_result = self._execute(
            "select",
            self.client.table(self.table)
            .select("ticket_number")
            .eq("shop_id", shop_id)
            .not_.is_("ticket_number", "null")
            .order("ticket_number", desc=True)
            .limit(1),
        )
        stored = (shop_result.data or [{}])[0].get("last_ticket_number") or 0
        issued = (entry_result.data or [{}])[0].get("ticket_number") or 0
        return max(int(stored), int(issued))
