import logging
from datetime import date
from typing import Optional

import httpx
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from errors import Conflict, InternalError, InvalidRequest, ProtocolError, RemoteUnavailable
from persistence.models import CustomerModel, TaxiBookingModel, TaxiModel

logger = logging.getLogger(__name__)


class RemoteBookingClient:
    """
    Books and cancels one kind of resource (hotel room, flight seat) at a
    remote booking service over HTTP.

    The httpx.Client is supplied by the caller and shared between clients;
    each call is a single request with no retries. Status contract:
    201 created, 204 deleted, 400 invalid input, 409 conflict, anything else
    is a protocol error. Any failure to complete the request (transport,
    timeout, undecodable body) is RemoteUnavailable.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        http: httpx.Client,
        resource_field: str,
        agent_customer_id: Optional[int] = None,
    ):
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.http = http
        self.resource_field = resource_field    # e.g. "hotelId"
        self.agent_customer_id = agent_customer_id

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return self.http.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteUnavailable(f"{self.name} service timed out: {e}") from e
        except httpx.RequestError as e:
            raise RemoteUnavailable(f"{self.name} service unreachable: {e!r}") from e

    def create(self, customer_id: int, resource_id: int, when: date) -> int:
        payload = {
            "customerId": self.agent_customer_id if self.agent_customer_id is not None else customer_id,
            self.resource_field: resource_id,
            "date": when.isoformat(),
        }
        logger.info("%s booking request: %s", self.name, payload)
        resp = self._send("POST", f"{self.base_url}/bookings", json=payload)
        logger.info("%s create returned %s", self.name, resp.status_code)

        if resp.status_code == 400:
            raise InvalidRequest(f"invalid input provided to the {self.name} booking")
        if resp.status_code == 409:
            raise Conflict(f"duplicate {self.name} booking")
        if resp.status_code != 201:
            raise ProtocolError(f"unexpected response code from {self.name} service: {resp.status_code}")
        try:
            return int(resp.json()["id"])
        except (ValueError, KeyError, TypeError) as e:
            raise ProtocolError(f"{self.name} service returned no booking id: {resp.text[:200]}") from e

    def delete(self, booking_id: int) -> None:
        resp = self._send("DELETE", f"{self.base_url}/bookings/{booking_id}")
        logger.info("%s delete of %s returned %s", self.name, booking_id, resp.status_code)

        if resp.status_code == 400:
            raise InvalidRequest(f"invalid {self.name} booking id {booking_id}")
        if resp.status_code == 409:
            raise Conflict(f"{self.name} booking {booking_id} could not be removed")
        if resp.status_code != 204:
            raise ProtocolError(f"unexpected response code from {self.name} service: {resp.status_code}")


class LocalTaxiBookingService:
    """
    Taxi bookings live in this application's own database, so this leg
    talks to the session directly instead of going over the network.
    """

    name = "taxi"

    def __init__(self, db: Session):
        self.db = db

    def create(self, customer_id: int, taxi_id: int, when: date) -> int:
        try:
            booking_id = self._insert(customer_id, taxi_id, when)
        except IntegrityError as e:
            # lost a race with a concurrent booking for the same taxi and day
            self.db.rollback()
            raise Conflict(f"taxi {taxi_id} is already booked on {when.isoformat()}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise InternalError(f"could not store taxi booking: {e}") from e
        logger.info("taxi booking %s created for customer %s", booking_id, customer_id)
        return booking_id

    def _insert(self, customer_id: int, taxi_id: int, when: date) -> int:
        if self.db.get(CustomerModel, customer_id) is None:
            raise InvalidRequest(f"customer {customer_id} does not exist")
        if self.db.get(TaxiModel, taxi_id) is None:
            raise InvalidRequest(f"taxi {taxi_id} does not exist")
        if when < date.today():
            raise InvalidRequest("booking day must be in the future")

        existing = self.db.scalar(
            select(TaxiBookingModel).where(TaxiBookingModel.taxi_id == taxi_id, TaxiBookingModel.date == when)
        )
        if existing is not None:
            raise Conflict(f"taxi {taxi_id} is already booked on {when.isoformat()}")

        booking = TaxiBookingModel(customer_id=customer_id, taxi_id=taxi_id, date=when)
        self.db.add(booking)
        self.db.commit()
        self.db.refresh(booking)
        return booking.id

    def delete(self, booking_id: int) -> None:
        try:
            booking = self.db.get(TaxiBookingModel, booking_id)
            if booking is None:
                raise InvalidRequest(f"no taxi booking with id {booking_id}")
            self.db.delete(booking)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise InternalError(f"could not delete taxi booking {booking_id}: {e}") from e
        logger.info("taxi booking %s deleted", booking_id)
