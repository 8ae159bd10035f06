"""
Capacity & subscription gated bus assignment.

A student rides at most one bus: assignment appends them to the bus roster,
drops them from any other roster, and records `assignedBusId` on the user.
The whole check-then-write runs inside one engine transaction, so concurrent
assignments against the same bus cannot overshoot its capacity.
"""
import logging

from core.errors import AlreadyAssigned, Full, NotFound, SubscriptionInactive
from models.records import Snapshot, Student
from services.engine import DataEngine

logger = logging.getLogger(__name__)


def has_active_subscription(snapshot: Snapshot, student_id: str) -> bool:
    return any(p.student_id == student_id and p.status == "completed" for p in snapshot.payments)


class AssignmentService:
    def __init__(self, engine: DataEngine):
        self.engine = engine

    async def assign_student_to_bus(self, student_id: str, bus_id: str) -> dict:
        async with self.engine.transaction() as snapshot:
            student = snapshot.student(student_id)
            if student is None:
                raise NotFound("Student not found")
            bus = snapshot.bus(bus_id)
            if bus is None:
                raise NotFound("Bus not found")

            if not has_active_subscription(snapshot, student_id):
                logger.info("Assignment refused for %s: no completed payment", student_id)
                raise SubscriptionInactive("Subscription inactive. Complete payment first.")
            if student_id in bus.assigned_students:
                raise AlreadyAssigned("Student already assigned to this bus")
            if len(bus.assigned_students) >= (bus.capacity or 0):
                logger.info("Assignment refused for %s: bus %s is full", student_id, bus_id)
                raise Full("Bus is full")

            now = self.engine.now()
            for other in snapshot.buses:
                if other.id != bus_id and student_id in other.assigned_students:
                    other.assigned_students = [s for s in other.assigned_students if s != student_id]
                    other.touch(now)
                    logger.info("Student %s moved off bus %s", student_id, other.id)

            bus.assigned_students = [*bus.assigned_students, student_id]
            bus.touch(now)
            student.assigned_bus_id = bus_id
            student.touch(now)
            logger.info("Student %s assigned to bus %s (%d/%s)",
                        student_id, bus_id, len(bus.assigned_students), bus.capacity)
            return {"user": student, "bus": bus}

    async def roster(self, bus_id: str) -> dict:
        snapshot = await self.engine.read()
        bus = snapshot.bus(bus_id)
        if bus is None:
            raise NotFound("Bus not found")
        students = []
        for sid in bus.assigned_students:
            user = snapshot.user(sid)
            if isinstance(user, Student):
                students.append(user.pick("name", "student_id", "department"))
        return {
            "busId": bus.id,
            "capacity": bus.capacity,
            "assigned": len(bus.assigned_students),
            "available": max((bus.capacity or 0) - len(bus.assigned_students), 0),
            "students": students,
        }
