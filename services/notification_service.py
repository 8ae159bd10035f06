# services/notification_service.py
"""
Notification fan-out, user inboxes and announcements.

Notifications are appended to the snapshot's `notifications` collection,
one record per recipient; delivery beyond that (push, SMS) is out of scope.
"""
import logging

from core.errors import Forbidden, InvalidRequest, NotFound
from models.records import Announcement, Notification, Snapshot, Trip
from services.engine import DataEngine

logger = logging.getLogger(__name__)

BROADCAST_TITLE = "Bus Update"
INBOX_STATUSES = ("read", "unread")
ANNOUNCEMENT_FIELDS = ("title", "message", "type", "priority", "target_roles")


def _notification(now, user_id, title, message, **fields) -> Notification:
    return Notification.new(
        "notif", now,
        user_id=user_id,
        title=title,
        message=message,
        status="unread",
        **fields,
    )


def notify_trip_created(snapshot: Snapshot, trip: Trip, now) -> int:
    """Tell the trip's driver and supervisor about a new trip; returns the count."""
    route = snapshot.route(trip.route_id)
    where = route.name if route and route.name else trip.route_id
    message = f"New trip on {where} scheduled for {trip.date} at {trip.start_time}"
    sent = 0
    for user_id in dict.fromkeys(u for u in (trip.driver_id, trip.supervisor_id) if u):
        if snapshot.user(user_id) is None:
            continue
        snapshot.notifications.append(_notification(
            now, user_id, "New Trip Assigned", message,
            type="trip_created", priority="medium",
            trip_id=trip.id, bus_id=trip.bus_id, route_id=trip.route_id,
        ))
        sent += 1
    return sent


class NotificationService:
    def __init__(self, engine: DataEngine):
        self.engine = engine

    async def broadcast(self, supervisor_id: str, message: str, bus_id: str | None = None) -> dict:
        """
        Notify every student who booked any trip of the target bus.

        The bus is the explicit `bus_id`, else the bus whose
        `assignedSupervisorId` is the caller. Each distinct student gets one
        notification; zero recipients is a valid outcome.
        """
        if not message or not message.strip():
            raise InvalidRequest("message is required")

        async with self.engine.transaction() as snapshot:
            if bus_id:
                bus = snapshot.bus(bus_id)
            else:
                bus = next((b for b in snapshot.buses if b.assigned_supervisor_id == supervisor_id), None)
            if bus is None:
                raise NotFound("No bus found for broadcast")

            trip_ids = {t.id for t in snapshot.trips if t.bus_id == bus.id}
            recipients = dict.fromkeys(
                b.student_id for b in snapshot.bookings if b.trip_id in trip_ids and b.student_id
            )

            now = self.engine.now()
            for student_id in recipients:
                snapshot.notifications.append(_notification(
                    now, student_id, BROADCAST_TITLE, message,
                    type="alert", priority="high", sender_id=supervisor_id, bus_id=bus.id,
                ))
            logger.info("Broadcast from %s on bus %s reached %d student(s)",
                        supervisor_id, bus.id, len(recipients))
            return {"busId": bus.id, "count": len(recipients)}

    # ---------------- Inbox ---------------- #

    async def inbox(self, user_id: str, status: str | None = None) -> list[Notification]:
        snapshot = await self.engine.read()
        items = [n for n in snapshot.notifications if n.user_id == user_id]
        if status:
            items = [n for n in items if n.status == status]
        return sorted(items, key=lambda n: n.created_at or "", reverse=True)

    async def set_status(self, caller_id: str, notification_id: str, status: str,
                         is_admin: bool = False) -> Notification:
        if status not in INBOX_STATUSES:
            raise InvalidRequest("status must be 'read' or 'unread'")
        async with self.engine.transaction() as snapshot:
            notification = Snapshot.find(snapshot.notifications, notification_id)
            if notification is None:
                raise NotFound("Notification not found")
            if notification.user_id != caller_id and not is_admin:
                raise Forbidden("Not your notification")
            notification.status = status
            notification.touch(self.engine.now())
            return notification

    async def delete(self, notification_id: str) -> None:
        async with self.engine.transaction() as snapshot:
            if Snapshot.find(snapshot.notifications, notification_id) is None:
                raise NotFound("Notification not found")
            snapshot.notifications = [n for n in snapshot.notifications if n.id != notification_id]

    # ---------------- Announcements ---------------- #

    async def create_announcement(self, author_id: str, data: dict) -> Announcement:
        if not data.get("title") or not data.get("message"):
            raise InvalidRequest("title and message are required")
        async with self.engine.transaction() as snapshot:
            now = self.engine.now()
            announcement = Announcement.new(
                "ann", now,
                created_by=author_id,
                **{k: v for k, v in data.items() if k in ANNOUNCEMENT_FIELDS and v is not None},
            )
            snapshot.announcements.append(announcement)
            logger.info("Announcement %s created by %s", announcement.id, author_id)
            return announcement

    async def list_announcements(
        self,
        type: str | None = None,
        priority: str | None = None,
        target_role: str | None = None,
    ) -> list[Announcement]:
        snapshot = await self.engine.read()
        items = snapshot.announcements
        if type:
            items = [a for a in items if a.type == type]
        if priority:
            items = [a for a in items if a.priority == priority]
        if target_role:
            items = [a for a in items if not a.target_roles or target_role in a.target_roles]
        return sorted(items, key=lambda a: a.created_at or "", reverse=True)

    async def get_announcement(self, announcement_id: str) -> Announcement:
        snapshot = await self.engine.read()
        announcement = Snapshot.find(snapshot.announcements, announcement_id)
        if announcement is None:
            raise NotFound("Announcement not found")
        return announcement

    async def update_announcement(self, announcement_id: str, data: dict) -> Announcement:
        async with self.engine.transaction() as snapshot:
            announcement = Snapshot.find(snapshot.announcements, announcement_id)
            if announcement is None:
                raise NotFound("Announcement not found")
            for key, value in data.items():
                if key in ANNOUNCEMENT_FIELDS and value is not None:
                    setattr(announcement, key, value)
            announcement.touch(self.engine.now())
            return announcement

    async def delete_announcement(self, announcement_id: str) -> None:
        async with self.engine.transaction() as snapshot:
            if Snapshot.find(snapshot.announcements, announcement_id) is None:
                raise NotFound("Announcement not found")
            snapshot.announcements = [a for a in snapshot.announcements if a.id != announcement_id]
