"""In-process spatial index over shop locations."""

from __future__ import annotations

import threading
from dataclasses import dataclass

import numpy as np
from sklearn.neighbors import BallTree

from ..models.domain import Coordinate
from ..services.geospatial import EARTH_RADIUS_KM


@dataclass(frozen=True, slots=True)
class IndexHit:
    shop_id: str
    distance_km: float


class GeoIndex:
    """Ball tree over (lat, lon) points using the haversine metric.

    Points are kept in a dict and the tree is rebuilt lazily on the first query
    after a mutation. Queries never scan the point set linearly.
    """

    def __init__(self) -> None:
        self._points: dict[str, Coordinate] = {}
        self._tree: BallTree | None = None
        self._ids: list[str] = []
        self._dirty = False
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._points)

    def __contains__(self, shop_id: object) -> bool:
        with self._lock:
            return shop_id in self._points

    def upsert(self, shop_id: str, location: Coordinate) -> None:
        with self._lock:
            self._points[shop_id] = location
            self._dirty = True

    def remove(self, shop_id: str) -> None:
        with self._lock:
            if self._points.pop(shop_id, None) is not None:
                self._dirty = True

    def _rebuild(self) -> None:
        self._ids = sorted(self._points)
        if not self._ids:
            self._tree = None
        else:
            radians = np.radians(
                [[self._points[sid].latitude, self._points[sid].longitude] for sid in self._ids]
            )
            self._tree = BallTree(radians, metric="haversine")
        self._dirty = False

    def within(self, origin: Coordinate, radius_m: float) -> list[IndexHit]:
        """Return every point within ``radius_m`` of ``origin``, nearest first."""

        with self._lock:
            if self._dirty:
                self._rebuild()
            if self._tree is None:
                return []
            query = np.radians([[origin.latitude, origin.longitude]])
            indices, distances = self._tree.query_radius(
                query,
                r=(radius_m / 1000.0) / EARTH_RADIUS_KM,
                return_distance=True,
                sort_results=True,
            )
            return [
                IndexHit(shop_id=self._ids[int(idx)], distance_km=float(dist) * EARTH_RADIUS_KM)
                for idx, dist in zip(indices[0], distances[0])
            ]
