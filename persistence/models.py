from sqlalchemy import Column, Date, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from .db import Base

class CustomerModel(Base):
    __tablename__ = "customer"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50))
    email = Column(String, unique=True, index=True)
    phone_number = Column(String(16))

    taxi_bookings = relationship("TaxiBookingModel", back_populates="customer", cascade="all, delete-orphan")

class TaxiModel(Base):
    __tablename__ = "taxi"

    id = Column(Integer, primary_key=True, index=True)
    registration = Column(String(7), unique=True)
    seats = Column(Integer)

    bookings = relationship("TaxiBookingModel", back_populates="taxi", cascade="all, delete-orphan")

class TaxiBookingModel(Base):
    __tablename__ = "taxi_booking"
    # one booking per taxi per day
    __table_args__ = (UniqueConstraint("taxi_id", "date", name="uq_taxi_booking_taxi_date"),)

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customer.id", ondelete="CASCADE"), index=True, nullable=False)
    taxi_id = Column(Integer, ForeignKey("taxi.id", ondelete="CASCADE"), index=True, nullable=False)
    date = Column(Date, nullable=False)

    customer = relationship("CustomerModel", back_populates="taxi_bookings")
    taxi = relationship("TaxiModel", back_populates="bookings")

class TravelAgentBookingModel(Base):
    __tablename__ = "travel_agent_booking"

    id = Column(Integer, primary_key=True, index=True)
    # original request
    customer_id = Column(Integer, index=True, nullable=False)
    taxi_id = Column(Integer, nullable=False)
    hotel_id = Column(Integer, nullable=False)
    flight_id = Column(Integer, nullable=False)
    time = Column(Date, nullable=False)

    # leg bookings; the hotel/flight ids live in the remote services
    taxi_booking_id = Column(Integer, nullable=False)
    hotel_booking_id = Column(Integer, nullable=False)
    flight_booking_id = Column(Integer, nullable=False)
