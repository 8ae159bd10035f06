"""Student trip bookings and reservations."""
import logging

from core.errors import AlreadyBooked, Forbidden, InvalidRequest, InvalidTransition, NotFound
from models.records import Booking
from services import aggregation
from services.engine import DataEngine

logger = logging.getLogger(__name__)

CLOSED_TRIP_STATUSES = ("cancelled", "completed")
FINAL_BOOKING_STATUSES = ("cancelled", "completed")


class BookingService:
    def __init__(self, engine: DataEngine):
        self.engine = engine

    async def create_booking(self, student_id: str, trip_id: str) -> Booking:
        if not trip_id:
            raise InvalidRequest("tripId is required")
        async with self.engine.transaction() as snapshot:
            if snapshot.student(student_id) is None:
                raise NotFound("Student not found")
            trip = snapshot.trip(trip_id)
            if trip is None:
                raise NotFound("Trip not found")
            if trip.status in CLOSED_TRIP_STATUSES:
                raise InvalidRequest(f"Trip is {trip.status}")
            if any(
                b.student_id == student_id and b.trip_id == trip_id and b.status != "cancelled"
                for b in snapshot.bookings
            ):
                raise AlreadyBooked("Trip already booked")

            now = self.engine.now()
            booking = Booking.new(
                "booking", now,
                student_id=student_id,
                trip_id=trip_id,
                status="pending",
                date=trip.date,
            )
            snapshot.bookings.append(booking)
            logger.info("Booking %s created for %s on trip %s", booking.id, student_id, trip_id)
            return booking

    async def cancel_booking(self, student_id: str, booking_id: str) -> Booking:
        async with self.engine.transaction() as snapshot:
            booking = snapshot.booking(booking_id)
            if booking is None:
                raise NotFound("Booking not found")
            if booking.student_id != student_id:
                raise Forbidden("Not your booking")
            if booking.status in FINAL_BOOKING_STATUSES:
                raise InvalidTransition(f"Booking is already {booking.status}")
            booking.status = "cancelled"
            booking.touch(self.engine.now())
            logger.info("Booking %s cancelled", booking_id)
            return booking

    async def student_bookings(self, student_id: str) -> list[dict]:
        snapshot = await self.engine.read()
        return aggregation.student_bookings(snapshot, student_id)

    async def reservations(self, student_id: str) -> list[dict]:
        snapshot = await self.engine.read()
        return aggregation.current_reservations(snapshot, student_id)

    async def statistics(self, student_id: str) -> dict:
        snapshot = await self.engine.read()
        if snapshot.student(student_id) is None:
            raise NotFound("Student not found")
        return aggregation.student_statistics(snapshot, student_id)
