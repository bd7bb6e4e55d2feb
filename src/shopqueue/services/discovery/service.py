"""Nearby shop discovery: geo index + directory metadata + live queue occupancy."""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ...config import settings
from ...data.geo_index import IndexHit
from ...data.shop_repository import ShopStore
from ...errors import DiscoveryUnavailable, InvalidRadius, ShopQueueError
from ...models.domain import Coordinate, Shop, utcnow
from ..directory.service import effective_is_open, local_now
from ..geospatial import distance_km, make_coordinate
from ..queue.engine import QueueEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EnrichedShop:
    shop: Shop
    distance_km: float
    queue_length: int
    estimated_wait_minutes: int
    is_open: bool


@dataclass(frozen=True, slots=True)
class NearbyResult:
    origin: Coordinate
    radius_m: float
    shops: list[EnrichedShop]
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def count(self) -> int:
        return len(self.shops)


def validate_radius(radius_m: Any, max_radius_m: float | None = None) -> float:
    limit = settings.max_radius_m if max_radius_m is None else max_radius_m
    if isinstance(radius_m, bool):
        raise InvalidRadius("Radius must be a number of meters.")
    try:
        radius = float(radius_m)
    except (TypeError, ValueError) as exc:
        raise InvalidRadius(f"Radius must be a number of meters, got '{radius_m}'.") from exc
    if not math.isfinite(radius) or radius < 0 or radius > limit:
        raise InvalidRadius(f"Radius must be between 0 and {limit:g} meters.")
    return radius


class DiscoveryService:
    """Answers "shops near me" sorted by exact distance, then shop id."""

    def __init__(
        self,
        store: ShopStore,
        engine: QueueEngine,
        *,
        timeout_seconds: float | None = None,
        max_workers: int = 4,
    ) -> None:
        self.store = store
        self.engine = engine
        self.timeout_seconds = timeout_seconds or settings.geo_query_timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="geo-index")

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _candidates(self, origin: Coordinate, radius_m: float) -> list[IndexHit]:
        future = self._executor.submit(self.store.within, origin, radius_m)
        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError as exc:
            future.cancel()
            logger.error("Geo index lookup exceeded %.1fs", self.timeout_seconds)
            raise DiscoveryUnavailable("Nearby search timed out, please retry.") from exc
        except Exception as exc:
            logger.error("Geo index lookup failed: %s", exc)
            raise DiscoveryUnavailable("Nearby search is temporarily unavailable.") from exc

    def _enrich(self, origin: Coordinate, radius_m: float, hit: IndexHit, now: datetime) -> EnrichedShop | None:
        shop = self.store.get(hit.shop_id)
        if shop is None or not shop.discoverable:
            return None
        exact_km = distance_km(origin, shop.location)
        if exact_km * 1000.0 > radius_m:
            return None
        queue_length = self.engine.queue_length(shop.shop_id)
        return EnrichedShop(
            shop=shop,
            distance_km=exact_km,
            queue_length=queue_length,
            estimated_wait_minutes=queue_length * shop.average_service_minutes,
            is_open=effective_is_open(shop, now),
        )

    def find_nearby(self, origin: Coordinate, radius_m: Any, now: datetime | None = None) -> NearbyResult:
        """Shops within ``radius_m`` meters of ``origin``.

        Raises:
            InvalidCoordinates: origin out of range (checked before any lookup).
            InvalidRadius: radius outside [0, max_radius_m].
            DiscoveryUnavailable: the index or directory could not be read.
        """
        origin = make_coordinate(origin.latitude, origin.longitude)
        radius = validate_radius(radius_m)
        now = now or local_now()

        hits = self._candidates(origin, radius)
        enriched: list[EnrichedShop] = []
        try:
            for hit in hits:
                item = self._enrich(origin, radius, hit, now)
                if item is not None:
                    enriched.append(item)
        except ShopQueueError as exc:
            logger.error("Directory lookup failed during discovery: %s", exc)
            raise DiscoveryUnavailable("Nearby search is temporarily unavailable.") from exc

        enriched.sort(key=lambda item: (item.distance_km, item.shop.shop_id))
        logger.info(
            "Found %d shop(s) within %.0fm of (%.5f, %.5f)",
            len(enriched), radius, origin.latitude, origin.longitude,
        )
        return NearbyResult(origin=origin, radius_m=radius, shops=enriched)
