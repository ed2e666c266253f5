import logging
from contextlib import asynccontextmanager
from typing import List

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request, Response
from sqlalchemy.orm import Session

import settings
from booking_schemas import CompositeBooking, CompositeBookingRef, CompositeBookingRequest
from booking_tools import LocalTaxiBookingService, RemoteBookingClient
from errors import CLIENT_ERROR_KINDS, NotFound
from persistence.crud import CompositeBookingStore
from persistence.db import SessionLocal, init_db
from txn_manager import CompositeBookingOrchestrator, default_legs

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # initialize DB (creates tables)
    init_db()
    # one pooled client for all outbound calls, released on shutdown
    app.state.http_client = httpx.Client(timeout=settings.REMOTE_TIMEOUT_SECONDS)
    try:
        yield
    finally:
        app.state.http_client.close()


app = FastAPI(title="Travel agent", lifespan=lifespan)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_http_client(request: Request) -> httpx.Client:
    return request.app.state.http_client


def get_orchestrator(
    db: Session = Depends(get_db), http: httpx.Client = Depends(get_http_client)
) -> CompositeBookingOrchestrator:
    hotel = RemoteBookingClient(
        "hotel", settings.HOTEL_SERVICE_URL, http, "hotelId", settings.HOTEL_AGENT_CUSTOMER_ID
    )
    flight = RemoteBookingClient(
        "flight", settings.FLIGHT_SERVICE_URL, http, "flightId", settings.FLIGHT_AGENT_CUSTOMER_ID
    )
    legs = default_legs(LocalTaxiBookingService(db), hotel, flight)
    return CompositeBookingOrchestrator(legs, CompositeBookingStore(db))


@app.post("/travelagent", status_code=201, response_model=CompositeBooking)
def create_booking(
    booking: CompositeBookingRequest, orchestrator: CompositeBookingOrchestrator = Depends(get_orchestrator)
):
    result = orchestrator.book(booking)
    if result.ok:
        return result.booking

    logger.info("composite booking failed (%s): %s", result.state, result.message)
    if result.state == "failed" and result.failure.kind in CLIENT_ERROR_KINDS:
        raise HTTPException(status_code=400, detail="bad request: " + result.message)
    # rollback failures and post-commit store failures need an operator
    raise HTTPException(status_code=500, detail=result.message)


@app.get("/travelagent", response_model=List[CompositeBooking])
def list_bookings(orchestrator: CompositeBookingOrchestrator = Depends(get_orchestrator)):
    return orchestrator.list_bookings()


@app.get("/travelagent/{booking_id}", response_model=CompositeBooking)
def get_booking(booking_id: int, orchestrator: CompositeBookingOrchestrator = Depends(get_orchestrator)):
    try:
        return orchestrator.get(booking_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.delete("/travelagent", status_code=204)
def delete_booking(ref: CompositeBookingRef, orchestrator: CompositeBookingOrchestrator = Depends(get_orchestrator)):
    try:
        result = orchestrator.cancel(ref.id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    if not result.ok:
        raise HTTPException(status_code=400, detail="bad request: " + result.message)
    return Response(status_code=204)
