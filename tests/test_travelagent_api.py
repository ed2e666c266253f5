"""End-to-end tests for the /travelagent API with fake hotel and flight services."""

import httpx
import pytest
from fastapi.testclient import TestClient

import settings
from api.travelagent import app, get_db, get_http_client
from errors import StoreError
from persistence.crud import CompositeBookingStore
from persistence.models import TaxiBookingModel


class RemoteServices:
    """
    Serves both remote booking services behind one MockTransport.
    `create_status` / `delete_status` override the normal 201 / 204 answers.
    """

    def __init__(self):
        self.calls = []
        self.create_status = {}
        self.delete_status = {}
        self.create_raises = {}
        self.next_id = {"hotel": 2, "flight": 3}

    def service_for(self, request):
        if str(request.url).startswith(settings.HOTEL_SERVICE_URL):
            return "hotel"
        if str(request.url).startswith(settings.FLIGHT_SERVICE_URL):
            return "flight"
        raise AssertionError(f"unexpected call to {request.url}")

    def __call__(self, request):
        name = self.service_for(request)
        if request.method == "POST":
            self.calls.append((name, "create"))
            if name in self.create_raises:
                raise self.create_raises[name](request)
            status = self.create_status.get(name, 201)
            if status != 201:
                return httpx.Response(status)
            return httpx.Response(201, json={"id": self.next_id[name]})
        booking_id = int(request.url.path.rsplit("/", 1)[-1])
        self.calls.append((name, "delete", booking_id))
        return httpx.Response(self.delete_status.get(name, 204))


@pytest.fixture
def remote():
    return RemoteServices()


@pytest.fixture
def client(db, remote):
    http = httpx.Client(transport=httpx.MockTransport(remote))
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_http_client] = lambda: http
    yield TestClient(app)
    app.dependency_overrides.clear()
    http.close()


@pytest.fixture
def body(tomorrow):
    return {"customer_id": 1, "taxi_id": 1, "hotel_id": 10, "flight_id": 20, "time": tomorrow.isoformat()}


def taxi_bookings(db):
    return db.query(TaxiBookingModel).count()


def test_create_returns_stored_booking(client, body, db):
    resp = client.post("/travelagent", json=body)

    assert resp.status_code == 201
    data = resp.json()
    assert data["hotel_booking_id"] == 2
    assert data["flight_booking_id"] == 3
    assert data["time"] == body["time"]
    assert client.get(f"/travelagent/{data['id']}").json() == data
    assert [b["id"] for b in client.get("/travelagent").json()] == [data["id"]]
    assert taxi_bookings(db) == 1


def test_flight_rejected_rolls_back_hotel_then_taxi(client, body, remote, db):
    remote.create_status["flight"] = 400

    resp = client.post("/travelagent", json=body)

    assert resp.status_code == 400
    assert remote.calls == [("hotel", "create"), ("flight", "create"), ("hotel", "delete", 2)]
    assert taxi_bookings(db) == 0
    assert client.get("/travelagent").json() == []


def test_taxi_conflict_makes_no_remote_calls(client, body, remote, db):
    assert client.post("/travelagent", json=body).status_code == 201
    remote.calls.clear()

    resp = client.post("/travelagent", json=body)

    assert resp.status_code == 400
    assert "taxi" in resp.json()["detail"]
    assert remote.calls == []


def test_failed_rollback_is_server_error(client, body, remote, db):
    remote.create_status["flight"] = 409
    remote.delete_status["hotel"] = 500

    resp = client.post("/travelagent", json=body)

    assert resp.status_code == 500
    detail = resp.json()["detail"]
    assert "duplicate flight booking" in detail
    assert "hotel booking 2 could not be deleted" in detail
    # taxi rollback still happened
    assert taxi_bookings(db) == 0


def test_unexpected_remote_status_is_server_error(client, body, remote, db):
    remote.create_status["hotel"] = 503

    resp = client.post("/travelagent", json=body)

    assert resp.status_code == 500
    assert taxi_bookings(db) == 0


def test_undecodable_flight_response_rolls_back(client, body, remote, db):
    remote.create_raises["flight"] = lambda request: httpx.DecodingError("bad gzip", request=request)

    resp = client.post("/travelagent", json=body)

    assert resp.status_code == 500
    assert "flight service unreachable" in resp.json()["detail"]
    assert remote.calls == [("hotel", "create"), ("flight", "create"), ("hotel", "delete", 2)]
    assert taxi_bookings(db) == 0
    assert client.get("/travelagent").json() == []


def test_store_failure_is_distinct_server_error(client, body, remote, db, monkeypatch):
    def fail(self, booking):
        raise StoreError("disk full")

    monkeypatch.setattr(CompositeBookingStore, "create", fail)

    resp = client.post("/travelagent", json=body)

    assert resp.status_code == 500
    assert "could not be stored" in resp.json()["detail"]
    assert "rollback failed" not in resp.json()["detail"]
    assert not [c for c in remote.calls if c[1] == "delete"]
    assert taxi_bookings(db) == 1


def test_get_unknown_booking_is_404(client):
    assert client.get("/travelagent/999").status_code == 404
    assert client.get("/travelagent/999").status_code == 404


def test_delete_cancels_every_leg(client, body, remote, db):
    booking = client.post("/travelagent", json=body).json()
    remote.calls.clear()

    resp = client.request("DELETE", "/travelagent", json={"id": booking["id"]})

    assert resp.status_code == 204
    assert remote.calls == [("flight", "delete", 3), ("hotel", "delete", 2)]
    assert taxi_bookings(db) == 0
    assert client.get(f"/travelagent/{booking['id']}").status_code == 404


def test_delete_unknown_is_404(client):
    assert client.request("DELETE", "/travelagent", json={"id": 999}).status_code == 404


def test_delete_with_failed_leg_is_400(client, body, remote, db):
    booking = client.post("/travelagent", json=body).json()
    remote.delete_status["flight"] = 500

    resp = client.request("DELETE", "/travelagent", json={"id": booking["id"]})

    assert resp.status_code == 400
    assert "flight booking 3 could not be deleted" in resp.json()["detail"]
    assert taxi_bookings(db) == 0
    assert client.get("/travelagent").json() == []
