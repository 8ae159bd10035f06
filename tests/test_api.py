import pytest

from conftest import auth


@pytest.mark.asyncio
async def test_health_and_ready(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "data": {"status": "ok"}, "error": None}
    assert resp.headers.get("X-Request-ID")

    ready = await client.get("/ready")
    assert ready.status_code == 200
    assert ready.json()["data"]["ready"] is True


@pytest.mark.asyncio
async def test_missing_or_bad_token(client):
    resp = await client.get("/profile")
    assert resp.status_code == 401
    body = resp.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "unauthorized"

    resp = await client.get("/profile", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_role_gate(client):
    resp = await client.get("/trips", headers=auth("stu-1", "student"))
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "forbidden"


@pytest.mark.asyncio
async def test_student_pays_then_gets_a_seat(client):
    headers = auth("stu-3", "student")

    resp = await client.post("/student/assign-bus", json={"busId": "bus-2"}, headers=headers)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "subscription_inactive"

    resp = await client.post(
        "/payments", json={"tripId": "trip-3", "amount": 300, "method": "bank_transfer"}, headers=headers
    )
    assert resp.status_code == 200
    payment = resp.json()["data"]
    assert payment["method"] == "bank"
    assert payment["status"] == "completed"
    assert payment["studentId"] == "stu-3"

    resp = await client.post("/student/assign-bus", json={"busId": "bus-2"}, headers=headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["bus"]["assignedStudents"] == ["stu-3"]
    assert data["user"]["assignedBusId"] == "bus-2"
    assert data["user"]["subscriptionStatus"] == "active"


@pytest.mark.asyncio
async def test_student_cannot_act_for_someone_else(client):
    resp = await client.post(
        "/student/assign-bus", json={"busId": "bus-1", "studentId": "stu-2"}, headers=auth("stu-1", "student")
    )
    assert resp.status_code == 403


@pytest.mark.parametrize("amount", [-10, 0, "abc", True])
@pytest.mark.asyncio
async def test_invalid_payment_amount(client, amount):
    resp = await client.post(
        "/payments", json={"tripId": "trip-1", "amount": amount, "method": "cash"}, headers=auth("stu-1", "student")
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_request"


@pytest.mark.asyncio
async def test_supervisor_settlement_flow(client):
    resp = await client.patch(
        "/supervisor/payments/pay-2", json={"status": "completed"}, headers=auth("sup-2", "supervisor")
    )
    assert resp.status_code == 403

    resp = await client.patch(
        "/supervisor/payments/pay-2", json={"status": "completed"}, headers=auth("sup-1", "supervisor")
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "completed"

    resp = await client.patch(
        "/supervisor/payments/pay-2", json={"status": "failed"}, headers=auth("sup-1", "supervisor")
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "invalid_transition"

    summary = (await client.get("/supervisor/payments", headers=auth("sup-1", "supervisor"))).json()["data"]["summary"]
    assert summary["completedPayments"] == 2
    assert summary["totalRevenue"] == 100


@pytest.mark.asyncio
async def test_supervisor_broadcast_and_inbox(client):
    resp = await client.post(
        "/supervisor/broadcast", json={"message": "Running late"}, headers=auth("sup-1", "supervisor")
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["count"] == 2

    inbox = (await client.get("/notifications", headers=auth("stu-2", "student"))).json()["data"]
    assert len(inbox) == 1
    assert inbox[0]["title"] == "Bus Update"

    resp = await client.post("/supervisor/broadcast", json={"message": ""}, headers=auth("sup-1", "supervisor"))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_attendance_and_reports(client):
    headers = auth("sup-1", "supervisor")
    resp = await client.post(
        "/supervisor/attendance",
        json={"studentId": "stu-1", "tripId": "trip-2", "status": "present"},
        headers=headers,
    )
    assert resp.status_code == 200

    report = (await client.get("/supervisor/reports", headers=headers)).json()["data"]
    assert report["summary"]["totalAttendance"] == 3

    attendance = (await client.get("/supervisor/attendance", params={"tripId": "trip-2"}, headers=headers)).json()
    assert attendance["data"]["summary"]["totalRecords"] == 1


@pytest.mark.asyncio
async def test_driver_trips(client):
    resp = await client.get("/driver/trips", headers=auth("drv-1", "driver"))
    assert resp.status_code == 200
    trips = resp.json()["data"]["trips"]
    assert [t["id"] for t in trips] == ["trip-3", "trip-2", "trip-1", "trip-4"]
    assert trips[2]["status"] == "completed"


@pytest.mark.asyncio
async def test_manager_trip_and_fleet_endpoints(client):
    headers = auth("mgr-1", "movement-manager")
    resp = await client.post(
        "/trips",
        json={"routeId": "route-1", "busId": "bus-1", "driverId": "drv-1", "supervisorId": "sup-1",
              "date": "2026-03-18", "startTime": "07:00", "endTime": "07:45"},
        headers=headers,
    )
    assert resp.status_code == 200
    trip_id = resp.json()["data"]["id"]

    detail = (await client.get(f"/trips/{trip_id}", headers=headers)).json()["data"]
    assert detail["route"]["name"] == "North Campus Loop"

    missing = await client.get("/trips/trip-404", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "not_found"

    fleet = (await client.get("/manager/fleet", headers=headers)).json()["data"]
    assert fleet["summary"]["totalBuses"] == 3

    analytics = (await client.get("/manager/analytics", headers=headers)).json()["data"]
    assert len(analytics["monthlyRevenue"]) == 6

    resp = await client.post("/manager/buses", json={"number": "B-500", "capacity": "many"}, headers=headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_admin_endpoints(client):
    headers = auth("adm-1", "admin")
    payments = (await client.get("/admin/payments", params={"status": "pending"}, headers=headers)).json()["data"]
    assert [p["id"] for p in payments] == ["pay-2", "pay-3"]

    resp = await client.delete("/admin/payments/pay-3", headers=headers)
    assert resp.status_code == 200

    resp = await client.post(
        "/admin/announcements", json={"title": "Notice", "message": "Hello", "targetRoles": ["driver"]},
        headers=headers,
    )
    assert resp.status_code == 200

    listed = (await client.get("/announcements", params={"targetRole": "driver"},
                               headers=auth("drv-1", "driver"))).json()["data"]
    assert [a["title"] for a in listed] == ["Notice"]

    resp = await client.delete("/admin/buses/bus-3", headers=auth("mgr-1", "movement-manager"))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_profile_update_is_whitelisted(client):
    headers = auth("stu-1", "student")
    resp = await client.patch(
        "/profile", json={"phone": "+20123", "role": "admin", "subscriptionStatus": "active"}, headers=headers
    )
    assert resp.status_code == 200
    profile = resp.json()["data"]
    assert profile["phone"] == "+20123"
    assert profile["role"] == "student"
    assert "subscriptionStatus" not in profile

    sup = (await client.get("/supervisors/sup-1", headers=headers)).json()["data"]
    assert sup["name"] == "Laila Samir"


@pytest.mark.asyncio
async def test_admin_maintenance_schedule(client):
    headers = auth("adm-1", "admin")
    resp = await client.post(
        "/admin/maintenance", json={"busId": "bus-1", "type": "repair", "priority": "high"}, headers=headers
    )
    assert resp.status_code == 200
    record_id = resp.json()["data"]["id"]

    resp = await client.patch(f"/admin/maintenance/{record_id}", json={"status": "in_progress"}, headers=headers)
    assert resp.json()["data"]["status"] == "in_progress"

    data = (await client.get("/admin/maintenance-schedule", params={"type": "repair"}, headers=headers)).json()["data"]
    assert data["summary"]["totalBuses"] == 3
    rows = {r["busId"]: r for r in data["schedule"]}
    assert [m["id"] for m in rows["bus-1"]["recentMaintenance"]] == [record_id]

    resp = await client.get("/admin/maintenance-schedule", headers=auth("mgr-1", "movement-manager"))
    assert resp.status_code == 403

    resp = await client.delete(f"/admin/maintenance/{record_id}", headers=headers)
    assert resp.status_code == 200
    resp = await client.delete(f"/admin/maintenance/{record_id}", headers=headers)
    assert resp.status_code == 404
