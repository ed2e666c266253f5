import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from booking_schemas import CompositeBooking
from errors import NotFound, StoreError
from persistence.models import TravelAgentBookingModel

logger = logging.getLogger(__name__)


def model_to_pydantic(db_booking: TravelAgentBookingModel) -> CompositeBooking:
    return CompositeBooking.model_validate(db_booking)


class CompositeBookingStore:
    """
    Persistence for composite (travel agent) bookings.
    No business rules live here; the orchestrator is the only writer.
    """

    def __init__(self, db: Session):
        self.db = db

    def create(self, booking: CompositeBooking) -> CompositeBooking:
        db_booking = TravelAgentBookingModel(**booking.model_dump(exclude={"id"}))
        try:
            self.db.add(db_booking)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"could not store composite booking: {e}") from e
        self.db.refresh(db_booking)
        return model_to_pydantic(db_booking)

    def find_by_id(self, booking_id: int) -> CompositeBooking:
        db_booking = self.db.get(TravelAgentBookingModel, booking_id)
        if db_booking is None:
            raise NotFound(f"no composite booking with id {booking_id}")
        return model_to_pydantic(db_booking)

    def find_all(self) -> List[CompositeBooking]:
        rows = self.db.scalars(select(TravelAgentBookingModel).order_by(TravelAgentBookingModel.id)).all()
        return [model_to_pydantic(r) for r in rows]

    def delete(self, booking: CompositeBooking) -> None:
        db_booking = self.db.get(TravelAgentBookingModel, booking.id)
        if db_booking is None:
            raise NotFound(f"no composite booking with id {booking.id}")
        try:
            self.db.delete(db_booking)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"could not delete composite booking {booking.id}: {e}") from e
        logger.info("composite booking %s deleted", booking.id)
