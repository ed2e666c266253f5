from datetime import date, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from persistence.crud import CompositeBookingStore
from persistence.db import init_db
from persistence.models import CustomerModel, TaxiModel
from txn_manager import CompositeBookingOrchestrator, default_legs


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    session.add_all([
        CustomerModel(id=1, name="Jane Doe", email="jane@example.com", phone_number="01234567890"),
        TaxiModel(id=1, registration="AB12CDE", seats=4),
    ])
    session.commit()
    yield session
    session.close()


@pytest.fixture
def tomorrow():
    return date.today() + timedelta(days=1)


class FakeLegService:
    """
    Leg service double. Every create/delete is appended to the shared `calls`
    list so tests can assert on cross-leg ordering.
    """

    def __init__(self, name, calls, booking_id, create_error=None, delete_error=None):
        self.name = name
        self.calls = calls
        self.booking_id = booking_id
        self.create_error = create_error
        self.delete_error = delete_error

    def create(self, customer_id, resource_id, when):
        self.calls.append((self.name, "create", resource_id))
        if self.create_error is not None:
            raise self.create_error
        return self.booking_id

    def delete(self, booking_id):
        self.calls.append((self.name, "delete", booking_id))
        if self.delete_error is not None:
            raise self.delete_error


@pytest.fixture
def calls():
    return []


@pytest.fixture
def make_orchestrator(db, calls):
    """
    Build an orchestrator over fake legs with booking ids taxi=1, hotel=2,
    flight=3. Keyword arguments set create/delete errors per leg, e.g.
    flight_create=InvalidRequest("..."), hotel_delete=ProtocolError("...").
    """

    def build(store=None, **errors):
        services = {
            name: FakeLegService(
                name,
                calls,
                booking_id,
                create_error=errors.get(f"{name}_create"),
                delete_error=errors.get(f"{name}_delete"),
            )
            for booking_id, name in enumerate(("taxi", "hotel", "flight"), start=1)
        }
        legs = default_legs(services["taxi"], services["hotel"], services["flight"])
        return CompositeBookingOrchestrator(legs, store or CompositeBookingStore(db))

    return build
