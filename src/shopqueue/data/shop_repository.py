"""Shop persistence: an in-memory store and a Supabase-backed store."""

from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime
from typing import Any, Optional, Protocol

from ..errors import StoreError
from ..models.domain import Address, Coordinate, OperatingHours, ServiceKind, Shop
from .geo_index import GeoIndex, IndexHit

logger = logging.getLogger(__name__)


class ShopStore(Protocol):
    def add(self, shop: Shop) -> None: ...

    def save(self, shop: Shop) -> None: ...

    def get(self, shop_id: str) -> Optional[Shop]: ...

    def find_by_phone(self, phone: str) -> Optional[Shop]: ...

    def list_shops(self, active: Optional[bool] = None) -> list[Shop]: ...

    def within(self, origin: Coordinate, radius_m: float) -> list[IndexHit]:
        """Active, non-test shops within the radius, nearest first."""
        ...


class InMemoryShopStore:
    """Thread-safe dict store; discoverable shops are mirrored into a GeoIndex."""

    def __init__(self, index: GeoIndex | None = None) -> None:
        self._shops: dict[str, Shop] = {}
        self._index = index or GeoIndex()
        self._lock = threading.RLock()

    def _sync_index(self, shop: Shop) -> None:
        if shop.discoverable:
            self._index.upsert(shop.shop_id, shop.location)
        else:
            self._index.remove(shop.shop_id)

    def add(self, shop: Shop) -> None:
        with self._lock:
            if shop.shop_id in self._shops:
                raise StoreError(f"Shop '{shop.shop_id}' already exists.")
            self._shops[shop.shop_id] = copy.deepcopy(shop)
            self._sync_index(shop)

    def save(self, shop: Shop) -> None:
        with self._lock:
            if shop.shop_id not in self._shops:
                raise StoreError(f"Shop '{shop.shop_id}' does not exist.")
            self._shops[shop.shop_id] = copy.deepcopy(shop)
            self._sync_index(shop)

    def get(self, shop_id: str) -> Optional[Shop]:
        with self._lock:
            shop = self._shops.get(shop_id)
            return copy.deepcopy(shop) if shop else None

    def find_by_phone(self, phone: str) -> Optional[Shop]:
        with self._lock:
            for shop in self._shops.values():
                if shop.phone == phone:
                    return copy.deepcopy(shop)
        return None

    def list_shops(self, active: Optional[bool] = None) -> list[Shop]:
        with self._lock:
            shops = [
                copy.deepcopy(shop)
                for shop in self._shops.values()
                if active is None or shop.is_active == active
            ]
        return sorted(shops, key=lambda shop: shop.created_at)

    def within(self, origin: Coordinate, radius_m: float) -> list[IndexHit]:
        return self._index.within(origin, radius_m)


def shop_to_row(shop: Shop) -> dict[str, Any]:
    return {
        "shop_id": shop.shop_id,
        "name": shop.name,
        "owner_id": shop.owner_id,
        "phone": shop.phone,
        "latitude": shop.location.latitude,
        "longitude": shop.location.longitude,
        "street": shop.address.street,
        "city": shop.address.city,
        "state": shop.address.state,
        "pincode": shop.address.pincode,
        "rating": shop.rating,
        "total_reviews": shop.total_reviews,
        "services": [service.value for service in shop.services],
        "opening_time": shop.hours.opening,
        "closing_time": shop.hours.closing,
        "is_open": shop.is_open,
        "average_service_minutes": shop.average_service_minutes,
        "is_active": shop.is_active,
        "is_test": shop.is_test,
        "created_at": shop.created_at.isoformat(),
        "updated_at": shop.updated_at.isoformat(),
    }


def shop_from_row(row: dict[str, Any]) -> Shop:
    return Shop(
        shop_id=row["shop_id"],
        name=row["name"],
        owner_id=row["owner_id"],
        phone=row["phone"],
        location=Coordinate(latitude=float(row["latitude"]), longitude=float(row["longitude"])),
        address=Address(
            street=row.get("street") or "",
            city=row.get("city") or "",
            state=row.get("state") or "",
            pincode=row.get("pincode") or "",
        ),
        rating=float(row.get("rating") or 0.0),
        total_reviews=int(row.get("total_reviews") or 0),
        services=tuple(ServiceKind(value) for value in (row.get("services") or [])),
        hours=OperatingHours(
            opening=row.get("opening_time") or "09:00",
            closing=row.get("closing_time") or "20:00",
        ),
        is_open=row.get("is_open"),
        average_service_minutes=int(row.get("average_service_minutes") or 20),
        is_active=bool(row.get("is_active", True)),
        is_test=bool(row.get("is_test", False)),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


class SupabaseShopStore:
    """Shops table in Supabase with a PostGIS radius query exposed as an RPC.

    ``shops_within_radius(lat, lng, radius_m)`` must return ``shop_id`` and
    ``distance_m`` for active, non-test shops ordered by distance; it is expected
    to use ``ST_DWithin`` on a GIST-indexed geography column.
    """

    table = "shops"

    def __init__(self, client: Any) -> None:
        self.client = client

    def _execute(self, action: str, query: Any) -> Any:
        try:
            return query.execute()
        except Exception as exc:
            logger.error("Supabase %s failed: %s", action, exc)
            raise StoreError(f"Shop store unavailable during {action}.") from exc

    def _parse(self, row: Any) -> Shop:
        try:
            return shop_from_row(row)
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Malformed shop row: %s", exc)
            raise StoreError("Shop store returned a malformed row.") from exc

    def add(self, shop: Shop) -> None:
        self._execute("insert", self.client.table(self.table).insert(shop_to_row(shop)))

    def save(self, shop: Shop) -> None:
        row = shop_to_row(shop)
        self._execute("update", self.client.table(self.table).update(row).eq("shop_id", shop.shop_id))

    def get(self, shop_id: str) -> Optional[Shop]:
        result = self._execute(
            "select", self.client.table(self.table).select("*").eq("shop_id", shop_id).limit(1)
        )
        rows = result.data or []
        return self._parse(rows[0]) if rows else None

    def find_by_phone(self, phone: str) -> Optional[Shop]:
        result = self._execute(
            "select", self.client.table(self.table).select("*").eq("phone", phone).limit(1)
        )
        rows = result.data or []
        return self._parse(rows[0]) if rows else None

    def list_shops(self, active: Optional[bool] = None) -> list[Shop]:
        query = self.client.table(self.table).select("*")
        if active is not None:
            query = query.eq("is_active", active)
        result = self._execute("select", query.order("created_at"))
        return [self._parse(row) for row in (result.data or [])]

    def within(self, origin: Coordinate, radius_m: float) -> list[IndexHit]:
        result = self._execute(
            "rpc",
            self.client.rpc(
                "shops_within_radius",
                {"lat": origin.latitude, "lng": origin.longitude, "radius_m": radius_m},
            ),
        )
        return [
            IndexHit(shop_id=row["shop_id"], distance_km=float(row["distance_m"]) / 1000.0)
            for row in (result.data or [])
        ]
