import pytest
from fastapi.testclient import TestClient

from src.shopqueue.container import build_services
from src.shopqueue.data.queue_repository import InMemoryQueueStore
from src.shopqueue.data.shop_repository import InMemoryShopStore
from src.shopqueue.main import create_app
from src.shopqueue.services.notifications.hub import shop_channel

OWNER = {"X-Owner-Id": "owner-1"}


def _customer(cid: str) -> dict[str, str]:
    return {"X-Customer-Id": cid}


@pytest.fixture
def services():
    services = build_services(InMemoryShopStore(), InMemoryQueueStore())
    yield services
    services.close()


@pytest.fixture
def api_client(services) -> TestClient:
    return TestClient(create_app(services))


def _register_shop(client: TestClient, phone: str = "9000000001", lat: float = 21.1702, lng: float = 72.8311) -> str:
    response = client.post(
        "/api/shops/register",
        headers=OWNER,
        json={
            "name": "Fade Street",
            "phone": phone,
            "latitude": lat,
            "longitude": lng,
            "address": {"street": "Ring Road", "city": "Surat"},
            "services": ["haircut", "beard-trim"],
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["shopId"]


def _join(client: TestClient, shop_id: str, customer_id: str) -> dict:
    response = client.post(
        "/api/queue/join",
        headers=_customer(customer_id),
        json={"shopId": shop_id, "serviceType": "haircut"},
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_health_endpoints(api_client: TestClient):
    assert api_client.get("/api/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "running"


def test_nearby_shows_registered_shop_with_queue(api_client: TestClient):
    shop_id = _register_shop(api_client)
    _join(api_client, shop_id, "c1")
    _join(api_client, shop_id, "c2")
    _join(api_client, shop_id, "c3")

    response = api_client.get("/api/shops/nearby", params={"lat": 21.1720, "lng": 72.8350, "radius": 2000})

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "success"
    assert payload["count"] == 1
    assert payload["radius"] == "2 km"
    assert payload["userLocation"] == {"latitude": 21.1720, "longitude": 72.8350}
    shop = payload["data"][0]
    assert shop["id"] == shop_id
    assert shop["distanceText"].endswith(" m")
    assert shop["queueLength"] == 3
    assert shop["estimatedWaitTime"] == 60
    assert shop["waitTimeText"] == "60 min"
    assert shop["address"] == "Ring Road, Surat"
    assert shop["services"] == ["haircut", "beard-trim"]


def test_nearby_accepts_long_parameter_names_and_default_radius(api_client: TestClient):
    _register_shop(api_client)

    response = api_client.get("/api/shops/nearby", params={"latitude": 21.1720, "longitude": 72.8350})

    assert response.status_code == 200
    assert response.json()["radius"] == "5 km"
    assert response.json()["data"][0]["waitTimeText"] == "No wait"


def test_nearby_excludes_distant_shop(api_client: TestClient):
    _register_shop(api_client, lat=21.2202, lng=72.8811)

    response = api_client.get("/api/shops/nearby", params={"lat": 21.1702, "lng": 72.8311, "radius": 2000})

    assert response.json()["count"] == 0


@pytest.mark.parametrize(
    "params, kind",
    [
        ({"lat": 21.17}, "InvalidCoordinates"),
        ({"lat": "abc", "lng": 72.8}, "InvalidCoordinates"),
        ({"lat": 91, "lng": 72.8}, "InvalidCoordinates"),
        ({"lat": 21.17, "lng": 72.8, "radius": -5}, "InvalidRadius"),
    ],
)
def test_nearby_rejects_bad_input(api_client: TestClient, params, kind):
    response = api_client.get("/api/shops/nearby", params=params)

    assert response.status_code == 400
    assert response.json()["detail"]["kind"] == kind


def test_register_without_location_is_rejected(api_client: TestClient):
    response = api_client.post("/api/shops/register", headers=OWNER, json={"name": "No Map", "phone": "1"})

    assert response.status_code == 400
    assert response.json()["detail"]["kind"] == "MissingLocation"


def test_register_requires_owner_identity(api_client: TestClient):
    response = api_client.post(
        "/api/shops/register", json={"name": "Anon", "phone": "1", "latitude": 21.0, "longitude": 72.0}
    )

    assert response.status_code == 401


def test_duplicate_phone_conflicts(api_client: TestClient):
    _register_shop(api_client)
    response = api_client.post(
        "/api/shops/register",
        headers=OWNER,
        json={"name": "Copy", "phone": "9000000001", "latitude": 21.0, "longitude": 72.0},
    )

    assert response.status_code == 409
    assert response.json()["detail"]["kind"] == "DuplicateShop"


def test_queue_lifecycle_over_http(api_client: TestClient, services):
    shop_id = _register_shop(api_client)
    events = []
    services.hub.subscribe(shop_channel(shop_id), events.append)

    first = _join(api_client, shop_id, "c1")
    second = _join(api_client, shop_id, "c2")
    third = _join(api_client, shop_id, "c3")
    assert [first["ticketNumber"], second["ticketNumber"], third["ticketNumber"]] == [1, 2, 3]
    assert third["position"] == 3
    assert third["estimatedWaitMinutes"] == 60

    served = api_client.patch(f"/api/queue/serve/{second['entryId']}", headers=OWNER)
    assert served.status_code == 200
    assert served.json()["data"]["status"] == "in-service"

    completed = api_client.patch(f"/api/queue/complete/{second['entryId']}", headers=OWNER)
    assert completed.status_code == 200
    assert completed.json()["data"]["status"] == "completed"

    listing = api_client.get("/api/queue/list", params={"shop_id": shop_id}).json()
    assert [(e["customerId"], e["position"]) for e in listing["data"]] == [("c1", 1), ("c3", 2)]

    mine = api_client.get("/api/queue/my-queue", headers=_customer("c3")).json()
    assert mine["data"]["position"] == 2
    assert mine["data"]["estimatedWaitMinutes"] == 40

    stats = api_client.get("/api/queue/stats", params={"shop_id": shop_id}).json()["data"]
    assert stats["waiting"] == 2
    assert stats["completedToday"] == 1

    assert [event.name for event in events] == [
        "customer-joined",
        "customer-joined",
        "customer-joined",
        "customer-serving",
        "customer-completed",
    ]


def test_serving_twice_and_completing_waiting_conflict(api_client: TestClient):
    shop_id = _register_shop(api_client)
    entry = _join(api_client, shop_id, "c1")

    premature = api_client.patch(f"/api/queue/complete/{entry['entryId']}", headers=OWNER)
    assert premature.status_code == 409
    assert premature.json()["detail"]["kind"] == "NotInServiceState"

    api_client.patch(f"/api/queue/serve/{entry['entryId']}", headers=OWNER)
    again = api_client.patch(f"/api/queue/serve/{entry['entryId']}", headers=OWNER)
    assert again.status_code == 409
    assert again.json()["detail"]["kind"] == "NotInWaitingState"


def test_only_shop_owner_can_serve(api_client: TestClient):
    shop_id = _register_shop(api_client)
    entry = _join(api_client, shop_id, "c1")

    response = api_client.patch(f"/api/queue/serve/{entry['entryId']}", headers={"X-Owner-Id": "owner-2"})

    assert response.status_code == 403


def test_cancel_flow(api_client: TestClient):
    shop_id = _register_shop(api_client)
    entry = _join(api_client, shop_id, "c1")

    forbidden = api_client.delete(f"/api/queue/cancel/{entry['entryId']}", headers=_customer("c2"))
    assert forbidden.status_code == 403

    cancelled = api_client.delete(f"/api/queue/cancel/{entry['entryId']}", headers=_customer("c1"))
    assert cancelled.status_code == 200

    status = api_client.get(f"/api/queue/status/{entry['entryId']}").json()["data"]
    assert status["status"] == "cancelled"
    assert status["ticketNumber"] is None

    assert api_client.get("/api/queue/my-queue", headers=_customer("c1")).json()["data"] is None


def test_duplicate_join_conflicts(api_client: TestClient):
    shop_id = _register_shop(api_client)
    _join(api_client, shop_id, "c1")

    response = api_client.post(
        "/api/queue/join", headers=_customer("c1"), json={"shopId": shop_id, "serviceType": "shave"}
    )

    assert response.status_code == 409
    assert response.json()["detail"]["kind"] == "DuplicateActiveEntry"


def test_toggle_status_overrides_hours(api_client: TestClient):
    shop_id = _register_shop(api_client)

    closed = api_client.patch(f"/api/shops/{shop_id}/toggle-status", headers=OWNER, json={"isOpen": False})
    assert closed.status_code == 200
    assert closed.json()["isOpen"] is False

    shop = api_client.get(f"/api/shops/{shop_id}").json()
    assert shop["isOpen"] is False
    assert shop["isOpenNow"] is False

    nearby = api_client.get("/api/shops/nearby", params={"lat": 21.1702, "lng": 72.8311}).json()
    assert nearby["data"][0]["isOpen"] is False


def test_unknown_shop_is_not_found(api_client: TestClient):
    response = api_client.get("/api/shops/shop-missing")

    assert response.status_code == 404
    assert response.json()["detail"]["kind"] == "NotFound"


def test_customer_location_round_trip(api_client: TestClient):
    missing = api_client.get("/api/customers/me/location", headers=_customer("c1"))
    assert missing.status_code == 404

    response = api_client.patch(
        "/api/customers/me/location", headers=_customer("c1"), json={"latitude": 21.17, "longitude": 72.83}
    )
    assert response.status_code == 200
    assert response.json()["coordinates"] == {"latitude": 21.17, "longitude": 72.83}

    stored = api_client.get("/api/customers/me/location", headers=_customer("c1")).json()
    assert stored["customerId"] == "c1"


def test_store_health_reports_memory_backend(api_client: TestClient):
    _register_shop(api_client)

    assert api_client.get("/api/health/store").json() == {"backend": "memory", "healthy": True, "activeShops": 1}
