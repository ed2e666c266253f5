"""
Run this script to see a full composite booking flow without any real services:
 - an in-memory database with one customer and one taxi
 - fake hotel and flight services served through httpx.MockTransport
 - book a taxi + hotel + flight package -> stored
 - book a package whose flight is rejected -> hotel and taxi are rolled back
 - cancel the stored package
"""

import itertools
import json
from datetime import date, timedelta

import httpx
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from booking_schemas import CompositeBookingRequest
from booking_tools import LocalTaxiBookingService, RemoteBookingClient
from persistence.crud import CompositeBookingStore
from persistence.db import init_db
from persistence.models import CustomerModel, TaxiModel
from txn_manager import CompositeBookingOrchestrator, default_legs


class FakeBookingService:
    """
    In-process stand-in for a remote booking service.
    Bookings for resource ids in `rejected` answer 400.
    """

    def __init__(self, resource_field: str, rejected=()):
        self.resource_field = resource_field
        self.rejected = set(rejected)
        self.bookings = {}
        self._ids = itertools.count(1)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            body = json.loads(request.content)
            if body[self.resource_field] in self.rejected:
                return httpx.Response(400)
            booking_id = next(self._ids)
            self.bookings[booking_id] = body
            return httpx.Response(201, json={"id": booking_id, **body})
        if request.method == "DELETE":
            booking_id = int(request.url.path.rsplit("/", 1)[-1])
            if self.bookings.pop(booking_id, None) is None:
                return httpx.Response(400)
            return httpx.Response(204)
        return httpx.Response(405)


def main():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(bind=engine)
    db = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    db.add_all([
        CustomerModel(id=1, name="Jane Doe", email="jane@example.com", phone_number="01234567890"),
        TaxiModel(id=1, registration="AB12CDE", seats=4),
    ])
    db.commit()

    hotel_service = FakeBookingService("hotelId")
    flight_service = FakeBookingService("flightId", rejected={999})
    hotel_http = httpx.Client(transport=httpx.MockTransport(hotel_service))
    flight_http = httpx.Client(transport=httpx.MockTransport(flight_service))

    legs = default_legs(
        LocalTaxiBookingService(db),
        RemoteBookingClient("hotel", "http://hotel.example/api", hotel_http, "hotelId"),
        RemoteBookingClient("flight", "http://flight.example/api", flight_http, "flightId"),
    )
    orchestrator = CompositeBookingOrchestrator(legs, CompositeBookingStore(db))
    tomorrow = date.today() + timedelta(days=1)

    print("=== Book package ===")
    ok = orchestrator.book(CompositeBookingRequest(customer_id=1, taxi_id=1, hotel_id=10, flight_id=20, time=tomorrow))
    print("state:", ok.state)
    for leg in ok.legs:
        print(f"- {leg.leg_kind}: outcome={leg.outcome}, booking_id={leg.remote_booking_id}")
    print("stored:", ok.booking)

    print("\n=== Book package with a rejected flight ===")
    day_after = tomorrow + timedelta(days=1)
    failed = orchestrator.book(CompositeBookingRequest(customer_id=1, taxi_id=1, hotel_id=10, flight_id=999, time=day_after))
    print("state:", failed.state)
    print("message:", failed.message)
    print("hotel bookings left:", sorted(hotel_service.bookings))

    print("\n=== Cancel package ===")
    cancelled = orchestrator.cancel(ok.booking.id)
    print(cancelled.message)
    print("remaining composite bookings:", orchestrator.list_bookings())

    hotel_http.close()
    flight_http.close()
    db.close()
    return ok, failed, cancelled


if __name__ == "__main__":
    main()
