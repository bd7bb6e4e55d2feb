"""Last known customer locations, recorded opportunistically by clients."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..models.domain import Coordinate, utcnow


@dataclass(frozen=True, slots=True)
class CustomerLocation:
    customer_id: str
    location: Coordinate
    recorded_at: datetime


class CustomerLocationStore:
    """A cache only; discovery always uses the coordinates of the request."""

    def __init__(self) -> None:
        self._locations: dict[str, CustomerLocation] = {}
        self._lock = threading.Lock()

    def record(self, customer_id: str, location: Coordinate) -> CustomerLocation:
        record = CustomerLocation(customer_id=customer_id, location=location, recorded_at=utcnow())
        with self._lock:
            self._locations[customer_id] = record
        return record

    def get(self, customer_id: str) -> Optional[CustomerLocation]:
        with self._lock:
            return self._locations.get(customer_id)
