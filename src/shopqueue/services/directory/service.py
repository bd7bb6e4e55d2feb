"""Shop Directory: registration, updates and effective status of shops."""

from __future__ import annotations

import logging
import uuid
from contextlib import nullcontext
from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo

from ...config import settings
from ...data.shop_repository import ShopStore
from ...errors import (
    DuplicateShop,
    Forbidden,
    InvalidField,
    InvalidHours,
    MissingField,
    MissingLocation,
    NotFound,
)
from ...models.domain import Address, OperatingHours, ServiceKind, Shop, utcnow
from ..geospatial import make_coordinate
from ..locks import KeyedLocks
from ..notifications.hub import SHOP_STATUS_CHANGED, NotificationHub

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"name", "phone", "address", "hours", "services", "average_service_minutes"}


def local_now() -> datetime:
    return datetime.now(ZoneInfo(settings.local_timezone))


def parse_hhmm(value: str) -> str:
    """Return ``value`` if it is a valid 24h ``HH:MM`` string, else raise InvalidHours."""

    hours, sep, minutes = (value or "").partition(":")
    if not sep or len(hours) != 2 or len(minutes) != 2 or not (hours + minutes).isdigit():
        raise InvalidHours(f"Expected HH:MM, got '{value}'.")
    if int(hours) > 23 or int(minutes) > 59:
        raise InvalidHours(f"Time out of range: '{value}'.")
    return value


def within_hours(hours: OperatingHours, now: datetime) -> bool:
    # Zero-padded HH:MM strings order the same way as the times they encode.
    current = now.strftime("%H:%M")
    return hours.opening <= current <= hours.closing


def effective_is_open(shop: Shop, now: datetime | None = None) -> bool:
    """Manual override if the owner set one, otherwise the operating-hours window."""

    if shop.is_open is not None:
        return shop.is_open
    return within_hours(shop.hours, now or local_now())


def display_address(shop: Shop) -> str:
    return shop.address.display()


def _require_text(value: Optional[str], label: str) -> str:
    if value is None or not str(value).strip():
        raise MissingField(f"{label} is required.")
    return str(value).strip()


def _coerce_services(services: Iterable[Any] | None) -> tuple[ServiceKind, ...]:
    if services is None:
        return (ServiceKind.HAIRCUT, ServiceKind.SHAVE)
    kinds: list[ServiceKind] = []
    for service in services:
        kind = ServiceKind(service)
        if kind not in kinds:
            kinds.append(kind)
    return tuple(kinds)


def _service_minutes(value: Any) -> int:
    if value is None:
        return settings.default_service_minutes
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidField(f"average_service_minutes must be a whole number >= 1, got {value!r}.")
    return value


def _coerce_hours(hours: OperatingHours | None) -> OperatingHours:
    if hours is None:
        return OperatingHours(opening=settings.default_opening_time, closing=settings.default_closing_time)
    return OperatingHours(opening=parse_hhmm(hours.opening), closing=parse_hhmm(hours.closing))


class ShopDirectory:
    def __init__(self, store: ShopStore, hub: NotificationHub) -> None:
        self.store = store
        self.hub = hub
        self._locks = KeyedLocks()

    def register(
        self,
        *,
        name: str,
        owner_id: str,
        phone: str,
        latitude: Any = None,
        longitude: Any = None,
        address: Address | None = None,
        services: Iterable[Any] | None = None,
        hours: OperatingHours | None = None,
        average_service_minutes: int | None = None,
        is_test: bool = False,
    ) -> Shop:
        """Register a shop; all validation happens before anything is stored.

        Raises:
            MissingField: name, owner or phone is empty.
            MissingLocation: either coordinate component is absent.
            InvalidCoordinates: the coordinate is present but out of range.
            InvalidField: average_service_minutes is not a whole number >= 1.
            DuplicateShop: the phone number already belongs to a shop.
        """
        name = _require_text(name, "name")
        owner_id = _require_text(owner_id, "owner")
        phone = _require_text(phone, "phone")
        if latitude in (None, "") or longitude in (None, ""):
            raise MissingLocation("Shop location (latitude and longitude) is required.")
        location = make_coordinate(latitude, longitude)
        shop = Shop(
            shop_id=f"shop-{uuid.uuid4().hex[:12]}",
            name=name,
            owner_id=owner_id,
            phone=phone,
            location=location,
            address=address or Address(),
            services=_coerce_services(services),
            hours=_coerce_hours(hours),
            average_service_minutes=_service_minutes(average_service_minutes),
            is_test=is_test,
        )
        with self._locks.hold(f"phone:{phone}"):
            if self.store.find_by_phone(phone) is not None:
                raise DuplicateShop("A shop is already registered with this phone number.")
            self.store.add(shop)
        logger.info("Registered shop %s (%s) at %s", shop.shop_id, shop.name, location)
        return shop

    def get(self, shop_id: str) -> Shop:
        shop = self.store.get(shop_id)
        if shop is None:
            raise NotFound(f"Shop '{shop_id}' not found.")
        return shop

    def list_shops(self, active: Optional[bool] = None) -> list[Shop]:
        return self.store.list_shops(active=active)

    def require_owner(self, shop_id: str, owner_id: str) -> Shop:
        shop = self.get(shop_id)
        if shop.owner_id != owner_id:
            raise Forbidden("Only the shop owner can manage this shop.")
        return shop

    def update(self, shop_id: str, owner_id: str, **changes: Any) -> Shop:
        """Apply a partial update; ``None`` values leave the field unchanged.

        A phone change holds the same ``phone:<n>`` lock as ``register`` so the
        two cannot both claim one number.
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidField(f"Unsupported shop fields: {sorted(unknown)}")
        values = {key: value for key, value in changes.items() if value is not None}
        if "name" in values:
            values["name"] = _require_text(values["name"], "name")
        if "phone" in values:
            values["phone"] = _require_text(values["phone"], "phone")
        if "hours" in values:
            values["hours"] = _coerce_hours(values["hours"])
        if "services" in values:
            values["services"] = _coerce_services(values["services"])
        if "average_service_minutes" in values:
            values["average_service_minutes"] = _service_minutes(values["average_service_minutes"])

        phone_lock = self._locks.hold(f"phone:{values['phone']}") if "phone" in values else nullcontext()
        with self._locks.hold(shop_id), phone_lock:
            shop = self.require_owner(shop_id, owner_id)
            if "phone" in values:
                other = self.store.find_by_phone(values["phone"])
                if other is not None and other.shop_id != shop_id:
                    raise DuplicateShop("A shop is already registered with this phone number.")
            updated = replace(shop, **values, updated_at=utcnow())
            self.store.save(updated)
        return updated

    def update_location(self, shop_id: str, owner_id: str, latitude: Any, longitude: Any) -> Shop:
        if latitude in (None, "") or longitude in (None, ""):
            raise MissingLocation("Latitude and longitude are required.")
        location = make_coordinate(latitude, longitude)
        with self._locks.hold(shop_id):
            shop = self.require_owner(shop_id, owner_id)
            updated = replace(shop, location=location, updated_at=utcnow())
            self.store.save(updated)
        logger.info("Moved shop %s to %s", shop_id, location)
        return updated

    def set_open(self, shop_id: str, owner_id: str, is_open: Optional[bool]) -> Shop:
        """Set or clear the manual open/closed override and broadcast the change."""

        with self._locks.hold(shop_id):
            shop = self.require_owner(shop_id, owner_id)
            updated = replace(shop, is_open=is_open, updated_at=utcnow())
            self.store.save(updated)
        logger.info("Shop %s is now %s", shop_id, {True: "OPEN", False: "CLOSED", None: "on hours"}[is_open])
        self.hub.broadcast(
            SHOP_STATUS_CHANGED,
            {"shopId": shop_id, "shopName": updated.name, "isOpen": effective_is_open(updated)},
        )
        return updated

    def set_active(self, shop_id: str, owner_id: str, active: bool) -> Shop:
        with self._locks.hold(shop_id):
            shop = self.require_owner(shop_id, owner_id)
            updated = replace(shop, is_active=active, updated_at=utcnow())
            self.store.save(updated)
        logger.info("Shop %s %s", shop_id, "activated" if active else "deactivated")
        return updated
