from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

LegKind = Literal["taxi", "hotel", "flight"]
ErrorKind = Literal["invalid_request", "conflict", "remote_unavailable", "protocol_error", "internal_error"]


class CompositeBookingRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    customer_id: int             # requesting customer (local customer table)
    taxi_id: int
    hotel_id: int
    flight_id: int
    time: date


class CompositeBookingRef(BaseModel):
    id: int


class LegResult(BaseModel):
    leg_kind: LegKind
    remote_booking_id: Optional[int] = None   # set once the leg is created
    outcome: Literal["pending", "success", "rejected", "remote_error"] = "pending"
    detail: Optional[str] = None


class CompositeBooking(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    customer_id: int
    taxi_id: int
    hotel_id: int
    flight_id: int
    taxi_booking_id: int
    hotel_booking_id: int
    flight_booking_id: int
    time: date


class LegFailure(BaseModel):
    leg: LegKind
    kind: ErrorKind
    detail: str


class CompensationFailure(BaseModel):
    leg: LegKind
    booking_id: int
    kind: ErrorKind
    detail: str


class PersistenceFailure(BaseModel):
    detail: str
    taxi_booking_id: int
    hotel_booking_id: int
    flight_booking_id: int


class OrchestrationResult(BaseModel):
    """
    Outcome of one composite booking attempt.
    state is 'stored' on success; otherwise exactly one of failure /
    persistence_failure is set, and compensation_failures lists the rollback
    steps that did not go through.
    """
    state: Literal["stored", "failed", "compensation_failed", "persistence_failed"]
    booking: Optional[CompositeBooking] = None
    legs: List[LegResult] = Field(default_factory=list)
    failure: Optional[LegFailure] = None
    compensation_failures: List[CompensationFailure] = Field(default_factory=list)
    persistence_failure: Optional[PersistenceFailure] = None

    @property
    def ok(self) -> bool:
        return self.state == "stored"

    @property
    def message(self) -> str:
        if self.state == "stored":
            return f"composite booking {self.booking.id} stored"
        if self.persistence_failure is not None:
            pf = self.persistence_failure
            return (
                f"all legs booked but the composite booking could not be stored: {pf.detail}; "
                f"taxi booking {pf.taxi_booking_id}, hotel booking {pf.hotel_booking_id} and "
                f"flight booking {pf.flight_booking_id} need manual reconciliation"
            )
        msg = f"{self.failure.leg} booking failed: {self.failure.detail}"
        if self.compensation_failures:
            causes = "; ".join(
                f"{cf.leg} booking {cf.booking_id} could not be deleted: {cf.detail}"
                for cf in self.compensation_failures
            )
            msg += f", AND rollback failed because: {causes}"
        return msg


class CancellationResult(BaseModel):
    booking: CompositeBooking
    failures: List[CompensationFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def message(self) -> str:
        if not self.failures:
            return f"composite booking {self.booking.id} cancelled"
        causes = "; ".join(
            f"{cf.leg} booking {cf.booking_id} could not be deleted: {cf.detail}" for cf in self.failures
        )
        return f"composite booking {self.booking.id} removed, rollback failed: {causes}"
