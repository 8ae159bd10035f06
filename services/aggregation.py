"""
Cross-collection aggregation over a single snapshot.

Purpose:
- Join trips, buses, routes, users, bookings, payments and attendance into
  the per-role views and reports
- Keep every number derived from the same consistent snapshot

Notes:
- Everything here is a pure function of (snapshot, arguments); indexes are
  built per call and never cached.
- Dangling references resolve to None, never to an error.
- Percentages round to 2 decimals; division by zero yields 0.
"""
from collections import defaultdict
from datetime import date, datetime, timedelta
import math
import re

from models.records import (
    BOOKING_STATUSES,
    PAYMENT_STATUSES,
    TRIP_STATUSES,
    Bus,
    Maintenance,
    Payment,
    Snapshot,
    Student,
    Trip,
)
from services.trip_lifecycle import duration_minutes

MONTH_KEY = re.compile(r"^(\d{4})-(\d{2})")

ROUTE_FIELDS = ("name", "start_point", "end_point")
BUS_FIELDS = ("number", "model", "capacity", "status")
TRIP_FIELDS = ("date", "start_time", "end_time", "status")
PERSON_FIELDS = ("name", "email", "phone")
STUDENT_FIELDS = ("name", "student_id", "department", "year")


# ---------------- Arithmetic ---------------- #

def round2(value: float) -> float:
    return round(value, 2)


def pct(part: float, whole: float) -> float:
    if not whole:
        return 0
    return round2(part / whole * 100)


def ratio(part: float, whole: float) -> float:
    if not whole:
        return 0
    return round2(part / whole)


def mean(values: list) -> float:
    return round2(sum(values) / len(values)) if values else 0


def amount(payment: Payment) -> float:
    value = payment.amount
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def revenue(payments: list[Payment]) -> float:
    return sum(amount(p) for p in payments if p.status == "completed")


def month_key(value: str | None) -> str | None:
    """'YYYY-MM' for an ISO date or timestamp; None when it does not start with one."""
    if not value or not isinstance(value, str):
        return None
    match = MONTH_KEY.match(value)
    return f"{match.group(1)}-{match.group(2)}" if match else None


def in_range(value: str | None, start: str | None, end: str | None) -> bool:
    if not start and not end:
        return True
    if not value:
        return False
    day = value[:10]
    if start and day < start:
        return False
    if end and day > end:
        return False
    return True


def newest_first(trips: list[Trip]) -> list[Trip]:
    return sorted(trips, key=lambda t: t.date or "", reverse=True)


def _pick(record, fields):
    return record.pick(*fields) if record is not None else None


# ---------------- Index ---------------- #

class Index:
    """Request-scoped lookups over one snapshot."""

    def __init__(self, snapshot: Snapshot):
        self.snapshot = snapshot
        self.users = {u.id: u for u in reversed(snapshot.users)}
        self.buses = {b.id: b for b in reversed(snapshot.buses)}
        self.routes = {r.id: r for r in reversed(snapshot.routes)}
        self.trips = {t.id: t for t in reversed(snapshot.trips)}
        self.bookings = defaultdict(list)
        self.payments = defaultdict(list)
        self.attendance = defaultdict(list)
        for b in snapshot.bookings:
            self.bookings[b.trip_id].append(b)
        for p in snapshot.payments:
            self.payments[p.trip_id].append(p)
        for a in snapshot.attendance:
            self.attendance[a.trip_id].append(a)

    def student(self, user_id):
        user = self.users.get(user_id)
        return user if isinstance(user, Student) else None

    def capacity(self, bus_id) -> int:
        bus = self.buses.get(bus_id)
        return (bus.capacity or 0) if bus is not None else 0


# ---------------- Rollups ---------------- #

def booking_rollup(bookings, index: Index, with_list: bool = True) -> dict:
    rollup = {"total": len(bookings)}
    for status in BOOKING_STATUSES:
        rollup[status] = sum(1 for b in bookings if b.status == status)
    rollup["confirmationRate"] = pct(rollup["confirmed"], rollup["total"])
    if with_list:
        rollup["list"] = [
            {**b.to_dict(), "student": _pick(index.student(b.student_id), STUDENT_FIELDS)}
            for b in bookings
        ]
    return rollup


def payment_rollup(payments, cost: float = 0) -> dict:
    rollup = {"total": len(payments)}
    for status in PAYMENT_STATUSES:
        rollup[status] = sum(1 for p in payments if p.status == status)
    earned = revenue(payments)
    rollup.update({
        "revenue": earned,
        "pendingRevenue": sum(amount(p) for p in payments if p.status == "pending"),
        "cost": cost,
        "profit": earned - cost,
        "profitMargin": pct(earned - cost, earned),
    })
    return rollup


def attendance_rollup(records) -> dict:
    present = sum(1 for a in records if a.status == "present")
    absent = sum(1 for a in records if a.status == "absent")
    return {"total": len(records), "present": present, "absent": absent, "rate": pct(present, len(records))}


def trip_counts(trips) -> dict:
    counts = {"total": len(trips)}
    for status in TRIP_STATUSES:
        counts[status] = sum(1 for t in trips if t.status == status)
    counts["completionRate"] = pct(counts["completed"], counts["total"])
    return counts


# ---------------- Trips ---------------- #

def enrich_trip(trip: Trip, index: Index) -> dict:
    bus = index.buses.get(trip.bus_id)
    bookings = index.bookings.get(trip.id, [])
    payments = index.payments.get(trip.id, [])
    attendance = index.attendance.get(trip.id, [])
    cost = trip.operational_cost or 0
    pay = payment_rollup(payments, cost)
    passengers = trip.passengers or 0
    return {
        **trip.to_dict(),
        "route": _pick(index.routes.get(trip.route_id), ROUTE_FIELDS + ("distance", "estimated_duration")),
        "bus": _pick(bus, BUS_FIELDS),
        "driver": _pick(index.users.get(trip.driver_id), PERSON_FIELDS + ("license_number",)),
        "supervisor": _pick(index.users.get(trip.supervisor_id), PERSON_FIELDS),
        "bookings": booking_rollup(bookings, index),
        "payments": pay,
        "attendance": attendance_rollup(attendance),
        "performance": {
            "durationMinutes": round2(duration_minutes(trip.start_time, trip.end_time)),
            "utilization": pct(passengers, bus.capacity) if bus is not None and bus.capacity else 0,
            "revenuePerPassenger": ratio(pay["revenue"], passengers),
        },
    }


def summarize_trips(enriched: list[dict]) -> dict:
    summary = {"totalTrips": len(enriched)}
    for status in TRIP_STATUSES:
        summary[f"{status}Trips"] = sum(1 for t in enriched if t.get("status") == status)
    summary["completionRate"] = pct(summary["completedTrips"], len(enriched))
    summary.update({
        "totalBookings": sum(t["bookings"]["total"] for t in enriched),
        "totalPassengers": sum(t.get("passengers") or 0 for t in enriched),
        "totalRevenue": sum(t["payments"]["revenue"] for t in enriched),
        "totalCost": sum(t["payments"]["cost"] for t in enriched),
        "averageUtilization": mean([t["performance"]["utilization"] for t in enriched]),
        "averageAttendanceRate": mean([t["attendance"]["rate"] for t in enriched if t["attendance"]["total"]]),
    })
    summary["totalProfit"] = summary["totalRevenue"] - summary["totalCost"]
    return summary


def search_matches(trip: Trip, index: Index, term: str) -> bool:
    route = index.routes.get(trip.route_id)
    bus = index.buses.get(trip.bus_id)
    driver = index.users.get(trip.driver_id)
    supervisor = index.users.get(trip.supervisor_id)
    haystack = [
        trip.id,
        route.name if route else None,
        bus.number if bus else None,
        driver.name if driver else None,
        supervisor.name if supervisor else None,
    ]
    term = term.lower()
    return any(term in str(v).lower() for v in haystack if v)


def trip_listing(snapshot: Snapshot, trips: list[Trip], search: str | None = None) -> dict:
    index = Index(snapshot)
    if search:
        trips = [t for t in trips if search_matches(t, index, search)]
    enriched = [enrich_trip(t, index) for t in newest_first(trips)]
    return {"trips": enriched, "summary": summarize_trips(enriched)}


# ---------------- Fleet ---------------- #

def parse_timestamp(value: str | None) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        try:
            parsed = parsed.astimezone().replace(tzinfo=None)
        except (OverflowError, ValueError):
            return None
    return parsed


def maintenance_status(bus: Bus, now: datetime, due_soon_days: int = 7) -> dict:
    status = {
        "lastMaintenance": bus.last_maintenance,
        "maintenanceInterval": bus.maintenance_interval,
        "nextMaintenance": None,
        "daysUntilMaintenance": None,
        "isMaintenanceDue": False,
        "status": "ok",
    }
    interval = bus.maintenance_interval
    if isinstance(interval, bool) or not isinstance(interval, (int, float)) or interval <= 0:
        return status

    last = parse_timestamp(bus.last_maintenance)
    try:
        due = last + timedelta(days=interval) if last is not None else now
    except (OverflowError, ValueError):
        # due date outside the representable calendar
        return status
    days = math.ceil((due - now).total_seconds() / 86400)
    overdue = now > due
    status.update({
        "nextMaintenance": due.isoformat(timespec="seconds"),
        "daysUntilMaintenance": days,
        "isMaintenanceDue": overdue,
        "status": "overdue" if overdue else "due_soon" if days <= due_soon_days else "ok",
    })
    return status


def bus_performance(bus: Bus, index: Index, now: datetime, due_soon_days: int = 7) -> dict:
    trips = [t for t in index.snapshot.trips if t.bus_id == bus.id]
    counts = trip_counts(trips)
    passengers = sum(t.passengers or 0 for t in trips)
    payments = [p for t in trips for p in index.payments.get(t.id, [])]
    durations = [
        d for d in (duration_minutes(t.start_time, t.end_time) for t in trips if t.status == "completed")
        if d > 0
    ]
    recent = [
        {**t.pick(*TRIP_FIELDS), "route": _pick(index.routes.get(t.route_id), ROUTE_FIELDS)}
        for t in newest_first(trips)[:5]
    ]
    return {
        **bus.to_dict(),
        "supervisor": _pick(index.users.get(bus.assigned_supervisor_id), PERSON_FIELDS),
        "performance": {
            "totalTrips": counts["total"],
            "completedTrips": counts["completed"],
            "activeTrips": counts["active"],
            "scheduledTrips": counts["scheduled"],
            "cancelledTrips": counts["cancelled"],
            "completionRate": counts["completionRate"],
            "totalBookings": sum(len(index.bookings.get(t.id, [])) for t in trips),
            "totalPassengers": passengers,
            "totalRevenue": revenue(payments),
            "utilizationRate": pct(passengers, (bus.capacity or 0) * len(trips)),
            "averageTripDuration": mean(durations),
        },
        "maintenance": maintenance_status(bus, now, due_soon_days),
        "recentTrips": recent,
        "lastTrip": trips[-1].to_dict() if trips else None,
    }


def fleet_report(
    snapshot: Snapshot,
    now: datetime,
    status: str | None = None,
    bus_type: str | None = None,
    due_soon_days: int = 7,
) -> dict:
    index = Index(snapshot)
    buses = snapshot.buses
    if status:
        buses = [b for b in buses if b.status == status]
    if bus_type:
        buses = [b for b in buses if b.bus_type == bus_type]

    fleet = [bus_performance(b, index, now, due_soon_days) for b in buses]
    fleet.sort(key=lambda b: b["performance"]["totalRevenue"], reverse=True)
    return {
        "fleet": fleet,
        "summary": {
            "totalBuses": len(fleet),
            "activeBuses": sum(1 for b in buses if b.status == "active"),
            "maintenanceBuses": sum(1 for b in buses if b.status == "maintenance"),
            "retiredBuses": sum(1 for b in buses if b.status == "retired"),
            "totalCapacity": sum(b.capacity or 0 for b in buses),
            "totalRevenue": sum(b["performance"]["totalRevenue"] for b in fleet),
            "averageUtilization": mean([b["performance"]["utilizationRate"] for b in fleet]),
            "maintenanceOverdue": sum(1 for b in fleet if b["maintenance"]["status"] == "overdue"),
            "maintenanceDueSoon": sum(1 for b in fleet if b["maintenance"]["status"] == "due_soon"),
        },
    }


# ---------------- Maintenance schedule ---------------- #

SCHEDULE_BANDS = ((90, "overdue", "critical"), (60, "due_soon", "high"), (30, "approaching", "medium"))
SCHEDULE_PRIORITY_ORDER = {"critical": 4, "high": 3, "medium": 2, "low": 1}
SCHEDULE_STATUS_ORDER = {"overdue": 4, "due_soon": 3, "approaching": 2, "up_to_date": 1}
DEFAULT_TRIP_DISTANCE = 50
RECORD_FIELDS = (
    "type", "status", "priority", "scheduled_date", "completed_date", "actual_cost", "description",
)


def whole_days(start: datetime | None, end: datetime | None) -> int | None:
    if start is None or end is None:
        return None
    return math.floor((end - start).total_seconds() / 86400)


def schedule_band(days_since: int | None) -> tuple[str, str]:
    if days_since is not None:
        for threshold, status, priority in SCHEDULE_BANDS:
            if days_since > threshold:
                return status, priority
    return "up_to_date", "low"


def cost(record: Maintenance) -> float:
    value = record.actual_cost
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def filter_maintenance(
    records: list[Maintenance],
    record_type: str | None = None,
    status: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
) -> list[Maintenance]:
    if record_type:
        records = [m for m in records if m.type == record_type]
    if status:
        records = [m for m in records if m.status == status]
    if date_from or date_to:
        records = [m for m in records if in_range(m.scheduled_date or m.created_at or m.date, date_from, date_to)]
    return records


def bus_schedule(bus: Bus, records: list[Maintenance], index: Index, now: datetime) -> dict:
    trips = [t for t in index.snapshot.trips if t.bus_id == bus.id]
    counts = trip_counts(trips)
    days_since = whole_days(parse_timestamp(bus.last_maintenance), now)
    status, priority = schedule_band(days_since)

    mileage = 0
    for t in trips:
        route = index.routes.get(t.route_id)
        distance = route.distance if route is not None else None
        usable = isinstance(distance, (int, float)) and not isinstance(distance, bool)
        mileage += distance if usable else DEFAULT_TRIP_DISTANCE

    completed = [m for m in records if m.status == "completed"]
    total_cost = sum(cost(m) for m in completed)
    recent = sorted(records, key=lambda m: m.created_at or m.date or "", reverse=True)[:5]
    upcoming = sorted(
        (m for m in records if m.status in ("open", "scheduled")),
        key=lambda m: m.scheduled_date or m.created_at or "",
    )[:3]
    return {
        "busId": bus.id,
        "busNumber": bus.number,
        "busModel": bus.model,
        "capacity": bus.capacity,
        "status": bus.status,
        "lastMaintenance": bus.last_maintenance,
        "nextMaintenance": bus.next_maintenance,
        "daysSinceLastMaintenance": days_since,
        "daysUntilNextMaintenance": whole_days(now, parse_timestamp(bus.next_maintenance)),
        "maintenanceStatus": status,
        "maintenancePriority": priority,
        "totalTrips": counts["total"],
        "completedTrips": counts["completed"],
        "activeTrips": counts["active"],
        "completionRate": counts["completionRate"],
        "estimatedMileage": mileage,
        "totalMaintenanceCost": total_cost,
        "averageMaintenanceCost": round2(total_cost / len(completed)) if completed else 0,
        "recentMaintenance": [m.pick(*RECORD_FIELDS) for m in recent],
        "upcomingMaintenance": [m.to_dict() for m in upcoming],
    }


def maintenance_schedule(
    snapshot: Snapshot,
    now: datetime,
    bus_id: str | None = None,
    record_type: str | None = None,
    status: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
) -> dict:
    index = Index(snapshot)
    buses = [b for b in snapshot.buses if not bus_id or b.id == bus_id]
    records = filter_maintenance(snapshot.maintenance, record_type, status, date_from, date_to)
    by_bus = defaultdict(list)
    for m in records:
        by_bus[m.bus_id].append(m)

    schedule = [bus_schedule(b, by_bus.get(b.id, []), index, now) for b in buses]
    schedule.sort(
        key=lambda row: (
            SCHEDULE_PRIORITY_ORDER[row["maintenancePriority"]],
            SCHEDULE_STATUS_ORDER[row["maintenanceStatus"]],
        ),
        reverse=True,
    )

    def count(key, value):
        return sum(1 for row in schedule if row[key] == value)

    total_cost = sum(row["totalMaintenanceCost"] for row in schedule)
    return {
        "schedule": schedule,
        "summary": {
            "totalBuses": len(schedule),
            "overdueMaintenance": count("maintenanceStatus", "overdue"),
            "dueSoonMaintenance": count("maintenanceStatus", "due_soon"),
            "approachingMaintenance": count("maintenanceStatus", "approaching"),
            "upToDateMaintenance": count("maintenanceStatus", "up_to_date"),
            "criticalPriority": count("maintenancePriority", "critical"),
            "highPriority": count("maintenancePriority", "high"),
            "mediumPriority": count("maintenancePriority", "medium"),
            "lowPriority": count("maintenancePriority", "low"),
            "totalMaintenanceCost": total_cost,
            "averageMaintenanceCost": ratio(total_cost, len(schedule)),
            "maintenanceEfficiency": pct(count("maintenanceStatus", "up_to_date"), len(schedule)),
        },
    }


def route_utilization(snapshot: Snapshot) -> list[dict]:
    index = Index(snapshot)
    rows = []
    for route in snapshot.routes:
        trips = [t for t in snapshot.trips if t.route_id == route.id]
        bookings = sum(len(index.bookings.get(t.id, [])) for t in trips)
        capacity = sum(index.capacity(t.bus_id) for t in trips)
        rows.append({
            "routeId": route.id,
            "routeName": route.name,
            "totalTrips": len(trips),
            "totalBookings": bookings,
            "totalCapacity": capacity,
            "utilization": pct(bookings, capacity),
        })
    return rows


# ---------------- Finance ---------------- #

def month_window(now: datetime, months: int) -> list[date]:
    """First day of each month in the window ending with the current one, oldest first."""
    firsts = []
    for back in range(months - 1, -1, -1):
        year, month = divmod(now.year * 12 + now.month - 1 - back, 12)
        firsts.append(date(year, month + 1, 1))
    return firsts


def monthly_revenue(snapshot: Snapshot, now: datetime, months: int = 6) -> list[dict]:
    completed = [p for p in snapshot.payments if p.status == "completed"]
    rows = []
    for first in month_window(now, months):
        key = first.strftime("%Y-%m")
        rows.append({
            "month": first.strftime("%b %Y"),
            "monthKey": key,
            "revenue": sum(amount(p) for p in completed if month_key(p.date) == key),
        })
    return rows


def payment_status_counts(payments) -> dict:
    counts = {s: 0 for s in PAYMENT_STATUSES}
    for p in payments:
        key = p.status or "unknown"
        counts[key] = counts.get(key, 0) + 1
    return counts


def analytics_overview(snapshot: Snapshot, now: datetime, months: int = 6) -> dict:
    bus_rows = []
    for bus in snapshot.buses:
        trips = [t for t in snapshot.trips if t.bus_id == bus.id]
        counts = trip_counts(trips)
        bus_rows.append({
            "busId": bus.id,
            "busNumber": bus.number,
            "totalTrips": counts["total"],
            "completedTrips": counts["completed"],
            "completionRate": counts["completionRate"],
        })
    return {
        "monthlyRevenue": monthly_revenue(snapshot, now, months),
        "paymentStatus": payment_status_counts(snapshot.payments),
        "routeUtilization": route_utilization(snapshot),
        "busPerformance": bus_rows,
        "summary": {
            "totalUsers": len(snapshot.users),
            "totalStudents": sum(1 for u in snapshot.users if isinstance(u, Student)),
            "totalBuses": len(snapshot.buses),
            "totalRoutes": len(snapshot.routes),
            "totalTrips": len(snapshot.trips),
            "totalBookings": len(snapshot.bookings),
            "totalPayments": len(snapshot.payments),
            "totalRevenue": revenue(snapshot.payments),
        },
    }


# ---------------- Reports ---------------- #

def monthly_trip_stats(trips: list[Trip], index: Index) -> list[dict]:
    """Trips, passengers and completed revenue per trip month, oldest first."""
    monthly = {}
    for trip in trips:
        key = month_key(trip.date)
        if key is None:
            continue
        row = monthly.setdefault(key, {"month": key, "trips": 0, "passengers": 0, "revenue": 0})
        row["trips"] += 1
        row["passengers"] += trip.passengers or 0
        row["revenue"] += revenue(index.payments.get(trip.id, []))
    return [monthly[k] for k in sorted(monthly)]


def _top(rows: list[dict], n: int = 5) -> list[dict]:
    return sorted(rows, key=lambda r: r["revenue"], reverse=True)[:n]


def performance_report(snapshot: Snapshot, start: str | None = None, end: str | None = None) -> dict:
    """Operations report over the trips dated within [start, end] (inclusive, YYYY-MM-DD)."""
    index = Index(snapshot)
    trips = [t for t in snapshot.trips if in_range(t.date, start, end)]
    trip_ids = {t.id for t in trips}
    payments = [p for p in snapshot.payments if p.trip_id in trip_ids]
    bookings = [b for b in snapshot.bookings if b.trip_id in trip_ids]
    attendance = [a for a in snapshot.attendance if a.trip_id in trip_ids]

    def group(key_of, ids_to_rows):
        rows = []
        for key, label in ids_to_rows:
            group_trips = [t for t in trips if key_of(t) == key]
            group_payments = [p for t in group_trips for p in index.payments.get(t.id, [])]
            counts = trip_counts(group_trips)
            rows.append({
                "id": key,
                "name": label,
                "totalTrips": counts["total"],
                "completedTrips": counts["completed"],
                "completionRate": counts["completionRate"],
                "passengers": sum(t.passengers or 0 for t in group_trips),
                "revenue": revenue(group_payments),
            })
        return rows

    fleet = group(lambda t: t.bus_id, [(b.id, b.number) for b in snapshot.buses])
    drivers = group(lambda t: t.driver_id, [(u.id, u.name) for u in snapshot.users if u.role == "driver"])
    routes = group(lambda t: t.route_id, [(r.id, r.name) for r in snapshot.routes])

    earned = revenue(payments)
    cost = sum(t.operational_cost or 0 for t in trips)
    return {
        "period": {"startDate": start or "all", "endDate": end or "all"},
        "trips": trip_counts(trips),
        "bookings": booking_rollup(bookings, index, with_list=False),
        "fleetPerformance": fleet,
        "driverPerformance": drivers,
        "routePerformance": routes,
        "financial": {
            **payment_rollup(payments, cost),
            "failedRevenue": sum(amount(p) for p in payments if p.status == "failed"),
            "revenuePerTrip": ratio(earned, len(trips)),
        },
        "monthlyTrends": monthly_trip_stats(trips, index),
        "attendance": attendance_rollup(attendance),
        "topPerformers": {
            "buses": _top(fleet),
            "drivers": _top(drivers),
            "routes": _top(routes),
        },
    }


def supervisor_report(
    snapshot: Snapshot,
    supervisor_id: str,
    start: str | None = None,
    end: str | None = None,
) -> dict:
    index = Index(snapshot)
    trips = [t for t in snapshot.trips if t.supervisor_id == supervisor_id and in_range(t.date, start, end)]
    trip_ids = {t.id for t in trips}
    payments = [p for p in snapshot.payments if p.trip_id in trip_ids]
    attendance = [a for a in snapshot.attendance if a.trip_id in trip_ids]
    counts = trip_counts(trips)
    present = attendance_rollup(attendance)

    return {
        "supervisorId": supervisor_id,
        "period": {"startDate": start or "all", "endDate": end or "all"},
        "summary": {
            "totalTrips": counts["total"],
            "completedTrips": counts["completed"],
            "activeTrips": counts["active"],
            "cancelledTrips": counts["cancelled"],
            "totalPassengers": sum(t.passengers or 0 for t in trips),
            "totalRevenue": revenue(payments),
            "totalAttendance": present["total"],
            "presentStudents": present["present"],
            "absentStudents": present["absent"],
            "attendanceRate": present["rate"],
        },
        "monthlyStats": monthly_trip_stats(trips, index),
        "trips": [
            {
                **t.to_dict(),
                "route": _pick(index.routes.get(t.route_id), ROUTE_FIELDS),
                "bus": _pick(index.buses.get(t.bus_id), ("number", "capacity")),
                "revenue": revenue(index.payments.get(t.id, [])),
                "attendance": attendance_rollup(index.attendance.get(t.id, [])),
            }
            for t in newest_first(trips)
        ],
    }


def supervisor_attendance(
    snapshot: Snapshot,
    supervisor_id: str,
    trip_id: str | None = None,
    day: str | None = None,
) -> dict:
    index = Index(snapshot)
    trips = [t for t in snapshot.trips if t.supervisor_id == supervisor_id]
    if day:
        trips = [t for t in trips if t.date == day]
    if trip_id:
        trips = [t for t in trips if t.id == trip_id]

    by_trip = {}
    records = []
    for trip in trips:
        rows = [
            {**a.to_dict(), "student": _pick(index.student(a.student_id), STUDENT_FIELDS)}
            for a in index.attendance.get(trip.id, [])
        ]
        if not rows:
            continue
        records.extend(rows)
        by_trip[trip.id] = {
            "trip": trip.pick(*TRIP_FIELDS),
            "route": _pick(index.routes.get(trip.route_id), ROUTE_FIELDS),
            "bus": _pick(index.buses.get(trip.bus_id), ("number",)),
            "records": rows,
            "summary": attendance_rollup(index.attendance.get(trip.id, [])),
        }

    present = sum(1 for r in records if r.get("status") == "present")
    return {
        "supervisorId": supervisor_id,
        "summary": {
            "totalRecords": len(records),
            "presentStudents": present,
            "absentStudents": sum(1 for r in records if r.get("status") == "absent"),
            "attendanceRate": pct(present, len(records)),
        },
        "attendanceByTrip": by_trip,
        "allRecords": records,
    }


# ---------------- Riders ---------------- #

def student_statistics(snapshot: Snapshot, student_id: str) -> dict:
    bookings = [b for b in snapshot.bookings if b.student_id == student_id]
    payments = [p for p in snapshot.payments if p.student_id == student_id]

    monthly_bookings = defaultdict(int)
    for b in bookings:
        key = month_key(b.date or b.created_at)
        if key:
            monthly_bookings[key] += 1
    monthly_payments = defaultdict(float)
    for p in payments:
        key = month_key(p.date or p.created_at)
        if key:
            monthly_payments[key] += amount(p)

    methods = defaultdict(int)
    for p in payments:
        methods[p.method or "unknown"] += 1
    statuses = defaultdict(int)
    for b in bookings:
        statuses[b.status or "unknown"] += 1

    return {
        "totalBookings": len(bookings),
        "activeBookings": sum(1 for b in bookings if b.status in ("pending", "confirmed")),
        "completedBookings": sum(1 for b in bookings if b.status == "completed"),
        "totalPayments": sum(amount(p) for p in payments),
        "completedPayments": revenue(payments),
        "pendingPayments": sum(amount(p) for p in payments if p.status == "pending"),
        "monthlyBookings": dict(sorted(monthly_bookings.items())),
        "monthlyPayments": dict(sorted(monthly_payments.items())),
        "paymentMethods": dict(methods),
        "bookingStatuses": dict(statuses),
    }


def student_bookings(snapshot: Snapshot, student_id: str) -> list[dict]:
    index = Index(snapshot)
    rows = []
    for b in snapshot.bookings:
        if b.student_id != student_id:
            continue
        trip = index.trips.get(b.trip_id)
        rows.append({
            **b.to_dict(),
            "trip": _pick(trip, TRIP_FIELDS),
            "route": _pick(index.routes.get(trip.route_id), ROUTE_FIELDS) if trip else None,
            "bus": _pick(index.buses.get(trip.bus_id), ("number",)) if trip else None,
        })
    return rows


def student_payments(snapshot: Snapshot, student_id: str) -> list[dict]:
    index = Index(snapshot)
    rows = []
    for p in snapshot.payments:
        if p.student_id != student_id:
            continue
        booking = snapshot.booking(p.booking_id)
        trip = index.trips.get(booking.trip_id if booking and booking.trip_id else p.trip_id)
        rows.append({
            **p.to_dict(),
            "booking": _pick(booking, ("status", "date")),
            "trip": _pick(trip, TRIP_FIELDS),
            "route": _pick(index.routes.get(trip.route_id), ROUTE_FIELDS) if trip else None,
        })
    return rows


def supervisor_payments(snapshot: Snapshot, supervisor_id: str) -> dict:
    index = Index(snapshot)
    trip_ids = {t.id for t in snapshot.trips if t.supervisor_id == supervisor_id}
    payments = [p for p in snapshot.payments if p.trip_id in trip_ids]
    rows = []
    for p in payments:
        trip = index.trips.get(p.trip_id)
        rows.append({
            **p.to_dict(),
            "trip": _pick(trip, TRIP_FIELDS),
            "route": _pick(index.routes.get(trip.route_id), ROUTE_FIELDS) if trip else None,
            "student": _pick(index.student(p.student_id), STUDENT_FIELDS),
        })
    return {
        "payments": rows,
        "summary": {
            "totalPayments": len(payments),
            "completedPayments": sum(1 for p in payments if p.status == "completed"),
            "pendingPayments": sum(1 for p in payments if p.status == "pending"),
            "failedPayments": sum(1 for p in payments if p.status == "failed"),
            "totalRevenue": revenue(payments),
        },
    }


def current_reservations(snapshot: Snapshot, student_id: str) -> list[dict]:
    return [
        row for row in student_bookings(snapshot, student_id)
        if row.get("status") in ("pending", "confirmed", "active")
    ]
