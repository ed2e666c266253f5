import logging
from datetime import date
from typing import Dict, Iterator, List, Protocol, Sequence, Tuple

from booking_schemas import (
    CancellationResult,
    CompensationFailure,
    CompositeBooking,
    CompositeBookingRequest,
    LegFailure,
    LegKind,
    LegResult,
    OrchestrationResult,
    PersistenceFailure,
)
from errors import CLIENT_ERROR_KINDS, BookingServiceError, InternalError, StoreError

logger = logging.getLogger(__name__)


class LegService(Protocol):
    def create(self, customer_id: int, resource_id: int, when: date) -> int: ...

    def delete(self, booking_id: int) -> None: ...


class LegDefinition:
    """
    One leg of a composite booking. The resource to book is read from
    `<kind>_id` on the request, the created booking id is written to
    `<kind>_booking_id` on the composite record.
    """

    def __init__(self, kind: LegKind, service: LegService):
        self.kind = kind
        self.service = service

    def resource_id(self, request: CompositeBookingRequest) -> int:
        return getattr(request, f"{self.kind}_id")

    def booking_id(self, booking: CompositeBooking) -> int:
        return getattr(booking, f"{self.kind}_booking_id")


def default_legs(taxi: LegService, hotel: LegService, flight: LegService) -> List[LegDefinition]:
    return [LegDefinition("taxi", taxi), LegDefinition("hotel", hotel), LegDefinition("flight", flight)]


class CompensationLedger:
    """
    Completed legs of the current attempt, in completion order.
    Unwinding always yields the most recently completed leg first.
    """

    def __init__(self):
        self._entries: List[Tuple[LegDefinition, LegResult]] = []

    def record(self, leg: LegDefinition, result: LegResult):
        self._entries.append((leg, result))

    def unwind(self) -> Iterator[Tuple[LegDefinition, LegResult]]:
        while self._entries:
            yield self._entries.pop()

    def booking_ids(self) -> Dict[str, int]:
        return {f"{leg.kind}_booking_id": result.remote_booking_id for leg, result in self._entries}

    def __len__(self):
        return len(self._entries)


class CompositeBookingOrchestrator:
    """
    Saga coordinator for taxi + hotel + flight bookings.

    Legs run strictly in the configured order. If a leg fails, every leg that
    already succeeded is deleted again in reverse completion order and the
    attempt ends without a composite record. Only when all legs succeed is the
    composite booking written to the store.
    """

    def __init__(self, legs: Sequence[LegDefinition], store):
        self.legs = list(legs)
        self.store = store

    def book(self, request: CompositeBookingRequest) -> OrchestrationResult:
        ledger = CompensationLedger()
        results: List[LegResult] = []

        for leg in self.legs:
            result = LegResult(leg_kind=leg.kind)
            results.append(result)
            try:
                result.remote_booking_id = leg.service.create(
                    request.customer_id, leg.resource_id(request), request.time
                )
            except BookingServiceError as e:
                result.outcome = "rejected" if e.kind in CLIENT_ERROR_KINDS else "remote_error"
                result.detail = e.detail
                logger.warning("%s leg failed (%s): %s", leg.kind, e.kind, e.detail)
                failure = LegFailure(leg=leg.kind, kind=e.kind, detail=e.detail)
            except Exception as e:
                # anything unexpected still unwinds the legs already booked
                result.outcome = "remote_error"
                result.detail = repr(e)
                logger.exception("%s leg failed unexpectedly", leg.kind)
                failure = LegFailure(leg=leg.kind, kind=InternalError.kind, detail=repr(e))
            else:
                failure = None

            if failure is not None:
                compensation_failures = self._compensate(ledger)
                return OrchestrationResult(
                    state="compensation_failed" if compensation_failures else "failed",
                    legs=results,
                    failure=failure,
                    compensation_failures=compensation_failures,
                )
            result.outcome = "success"
            ledger.record(leg, result)
            logger.info("%s leg booked: %s", leg.kind, result.remote_booking_id)

        booking_ids = ledger.booking_ids()
        booking = CompositeBooking(**request.model_dump(), **booking_ids)
        try:
            stored = self.store.create(booking)
        except StoreError as e:
            # Legs exist with nothing referencing them. Leave them for an operator.
            logger.critical("composite booking not stored, orphaned legs %s: %s", booking_ids, e)
            return OrchestrationResult(
                state="persistence_failed",
                legs=results,
                persistence_failure=PersistenceFailure(detail=str(e), **booking_ids),
            )
        logger.info("composite booking %s stored", stored.id)
        return OrchestrationResult(state="stored", booking=stored, legs=results)

    def _compensate(self, ledger: CompensationLedger) -> List[CompensationFailure]:
        failures = []
        for leg, result in ledger.unwind():
            failure = self._delete_leg(leg, result.remote_booking_id)
            if failure is not None:
                failures.append(failure)
        return failures

    def _delete_leg(self, leg: LegDefinition, booking_id: int):
        try:
            leg.service.delete(booking_id)
        except BookingServiceError as e:
            logger.error("rollback of %s booking %s failed: %s", leg.kind, booking_id, e.detail)
            return CompensationFailure(leg=leg.kind, booking_id=booking_id, kind=e.kind, detail=e.detail)
        except Exception as e:
            logger.exception("rollback of %s booking %s failed unexpectedly", leg.kind, booking_id)
            return CompensationFailure(leg=leg.kind, booking_id=booking_id, kind=InternalError.kind, detail=repr(e))
        logger.info("rolled back %s booking %s", leg.kind, booking_id)
        return None

    def cancel(self, booking_id: int) -> CancellationResult:
        """
        Cancel a stored composite booking: delete every leg, last leg first,
        then remove the composite record. A failed leg deletion does not stop
        the others and the record is removed regardless.
        Raises NotFound if there is no such booking.
        """
        booking = self.store.find_by_id(booking_id)
        failures = []
        for leg in reversed(self.legs):
            failure = self._delete_leg(leg, leg.booking_id(booking))
            if failure is not None:
                failures.append(failure)
        self.store.delete(booking)
        return CancellationResult(booking=booking, failures=failures)

    def get(self, booking_id: int) -> CompositeBooking:
        return self.store.find_by_id(booking_id)

    def list_bookings(self) -> List[CompositeBooking]:
        return self.store.find_all()
