"""
Attendance recording.

One record per (studentId, tripId); resubmitting updates it in place.
Supervisors may only record attendance on trips they supervise.
"""
import logging

from core.errors import Forbidden, InvalidRequest, NotFound
from models.records import ATTENDANCE_STATUSES, Attendance, stamp
from services import aggregation
from services.engine import DataEngine

logger = logging.getLogger(__name__)


class AttendanceService:
    def __init__(self, engine: DataEngine):
        self.engine = engine

    async def submit(
        self,
        supervisor_id: str | None,
        student_id: str,
        trip_id: str,
        status: str,
        timestamp: str | None = None,
        notes: str | None = None,
    ) -> Attendance:
        """Record attendance; `supervisor_id=None` skips the trip ownership check (admin)."""
        if not student_id or not trip_id:
            raise InvalidRequest("studentId and tripId are required")
        if status not in ATTENDANCE_STATUSES:
            raise InvalidRequest("status must be 'present' or 'absent'")

        async with self.engine.transaction() as snapshot:
            trip = snapshot.trip(trip_id)
            if trip is None:
                raise NotFound("Trip not found")
            if supervisor_id is not None and trip.supervisor_id != supervisor_id:
                raise Forbidden("Not authorized to record attendance for this trip")

            now = self.engine.now()
            when = timestamp or stamp(now)
            record = next(
                (a for a in snapshot.attendance if a.student_id == student_id and a.trip_id == trip_id),
                None,
            )
            if record is None:
                record = Attendance.new(
                    "att", now,
                    student_id=student_id,
                    trip_id=trip_id,
                    status=status,
                    timestamp=when,
                    notes=notes or "",
                )
                snapshot.attendance.append(record)
            else:
                record.status = status
                record.timestamp = when
                if notes is not None:
                    record.notes = notes
                record.touch(now)
            logger.info("Attendance %s: %s on trip %s", status, student_id, trip_id)
            return record

    async def supervisor_attendance(self, supervisor_id: str, trip_id: str | None = None,
                                    day: str | None = None) -> dict:
        snapshot = await self.engine.read()
        return aggregation.supervisor_attendance(snapshot, supervisor_id, trip_id, day)
