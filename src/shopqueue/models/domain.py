"""Domain models for shops, queue entries and coordinates."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QueueStatus(str, Enum):
    WAITING = "waiting"
    IN_SERVICE = "in-service"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = frozenset({QueueStatus.WAITING, QueueStatus.IN_SERVICE})


class ServiceKind(str, Enum):
    HAIRCUT = "haircut"
    SHAVE = "shave"
    HAIRCUT_SHAVE = "haircut-shave"
    STYLING = "styling"
    BEARD_TRIM = "beard-trim"
    FACIAL = "facial"
    HEAD_MASSAGE = "head-massage"
    HAIR_COLOR = "hair-color"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A validated latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(slots=True)
class OperatingHours:
    opening: str = "09:00"
    closing: str = "20:00"


@dataclass(slots=True)
class Address:
    street: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""

    def display(self) -> str:
        parts = (self.street, self.city, self.state, self.pincode)
        text = ", ".join(part.strip() for part in parts if part and part.strip())
        return text or "Address not available"


@dataclass(slots=True)
class Shop:
    """A registered shop; the location is always a complete coordinate."""

    shop_id: str
    name: str
    owner_id: str
    phone: str
    location: Coordinate
    address: Address = field(default_factory=Address)
    rating: float = 0.0
    total_reviews: int = 0
    services: tuple[ServiceKind, ...] = (ServiceKind.HAIRCUT, ServiceKind.SHAVE)
    hours: OperatingHours = field(default_factory=OperatingHours)
    # None means "follow operating hours"; True/False is the owner's manual override.
    is_open: Optional[bool] = None
    average_service_minutes: int = 20
    is_active: bool = True
    is_test: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def discoverable(self) -> bool:
        return self.is_active and not self.is_test


@dataclass(slots=True)
class QueueEntry:
    """A customer's place in one shop's waiting line."""

    entry_id: str
    shop_id: str
    customer_id: str
    service_kind: ServiceKind
    ticket_number: Optional[int]
    status: QueueStatus = QueueStatus.WAITING
    # Derived from the waiting set; only meaningful right after a recompute.
    position: int = 0
    estimated_wait_minutes: int = 0
    joined_at: datetime = field(default_factory=utcnow)
    service_started_at: Optional[datetime] = None
    service_completed_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES
