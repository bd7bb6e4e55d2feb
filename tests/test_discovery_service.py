import threading
from datetime import datetime

import pytest

from src.shopqueue.container import build_services
from src.shopqueue.data.queue_repository import InMemoryQueueStore
from src.shopqueue.data.shop_repository import InMemoryShopStore
from src.shopqueue.errors import DiscoveryUnavailable, InvalidCoordinates, InvalidRadius, StoreError
from src.shopqueue.models.domain import Coordinate, OperatingHours
from src.shopqueue.services.discovery.service import validate_radius

CUSTOMER = Coordinate(latitude=21.1720, longitude=72.8350)
NOON = datetime(2024, 5, 1, 12, 0)


@pytest.fixture
def services():
    services = build_services(InMemoryShopStore(), InMemoryQueueStore())
    yield services
    services.close()


def _register(services, name: str, phone: str, latitude: float, longitude: float, **extra):
    return services.directory.register(
        name=name, owner_id=f"owner-{phone}", phone=phone, latitude=latitude, longitude=longitude, **extra
    )


def test_shop_within_radius_is_found_with_exact_distance(services):
    shop = _register(services, "Fade Street", "9000000001", 21.1702, 72.8311)

    result = services.discovery.find_nearby(CUSTOMER, 2000, now=NOON)

    assert result.count == 1
    found = result.shops[0]
    assert found.shop.shop_id == shop.shop_id
    assert found.distance_km == pytest.approx(0.45, abs=0.03)
    assert found.queue_length == 0
    assert found.estimated_wait_minutes == 0
    assert found.is_open is True


def test_shop_outside_radius_is_absent(services):
    _register(services, "Far Cuts", "9000000002", 21.2202, 72.8811)

    result = services.discovery.find_nearby(Coordinate(21.1702, 72.8311), 2000, now=NOON)

    assert result.count == 0
    assert result.radius_m == 2000


def test_results_sorted_by_distance_then_id(services):
    far = _register(services, "Far", "9000000003", 21.1800, 72.8350)
    near = _register(services, "Near", "9000000004", 21.1725, 72.8350)
    twin = _register(services, "Twin", "9000000005", 21.1725, 72.8350)

    result = services.discovery.find_nearby(CUSTOMER, 5000, now=NOON)

    ids = [item.shop.shop_id for item in result.shops]
    assert ids == sorted([near.shop_id, twin.shop_id]) + [far.shop_id]


def test_queue_length_and_wait_reflect_active_entries(services):
    shop = _register(services, "Busy", "9000000006", 21.1702, 72.8311)
    first = services.queue.join(shop.shop_id, "c1", "haircut")
    services.queue.join(shop.shop_id, "c2", "haircut")
    services.queue.join(shop.shop_id, "c3", "haircut")
    services.queue.serve(first.entry_id)

    found = services.discovery.find_nearby(CUSTOMER, 2000, now=NOON).shops[0]

    assert found.queue_length == 3
    assert found.estimated_wait_minutes == 60


def test_manual_override_and_hours_drive_is_open(services):
    shop = _register(services, "Night Owl", "9000000007", 21.1702, 72.8311, hours=OperatingHours("18:00", "23:00"))

    assert services.discovery.find_nearby(CUSTOMER, 2000, now=NOON).shops[0].is_open is False

    services.directory.set_open(shop.shop_id, shop.owner_id, True)
    assert services.discovery.find_nearby(CUSTOMER, 2000, now=NOON).shops[0].is_open is True


def test_inactive_and_test_shops_are_hidden(services):
    shop = _register(services, "Closed Down", "9000000008", 21.1702, 72.8311)
    _register(services, "Fixture", "9000000009", 21.1702, 72.8311, is_test=True)
    services.directory.set_active(shop.shop_id, shop.owner_id, False)

    assert services.discovery.find_nearby(CUSTOMER, 2000, now=NOON).count == 0


def test_invalid_origin_is_rejected(services):
    with pytest.raises(InvalidCoordinates):
        services.discovery.find_nearby(Coordinate(latitude=95.0, longitude=72.8), 2000)


@pytest.mark.parametrize("radius", [-1, "wide", None, 50_001, float("inf")])
def test_invalid_radius_is_rejected(radius):
    with pytest.raises(InvalidRadius):
        validate_radius(radius)


def test_zero_radius_is_allowed():
    assert validate_radius(0) == 0.0
    assert validate_radius("2500") == 2500.0


def test_index_failure_surfaces_as_discovery_unavailable():
    class BrokenStore(InMemoryShopStore):
        def within(self, origin, radius_m):
            raise StoreError("connection refused")

    services = build_services(BrokenStore(), InMemoryQueueStore())
    try:
        with pytest.raises(DiscoveryUnavailable):
            services.discovery.find_nearby(CUSTOMER, 2000)
    finally:
        services.close()


def test_slow_index_times_out():
    release = threading.Event()

    class SlowStore(InMemoryShopStore):
        def within(self, origin, radius_m):
            release.wait(timeout=2.0)
            return []

    services = build_services(SlowStore(), InMemoryQueueStore(), geo_timeout_seconds=0.05)
    try:
        with pytest.raises(DiscoveryUnavailable):
            services.discovery.find_nearby(CUSTOMER, 2000)
    finally:
        release.set()
        services.close()
