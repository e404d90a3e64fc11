"""Tests for catalog, template, exception and schedule endpoints."""

from datetime import timedelta
import pytest

from tests.factories import make_workflow, next_weekday

TEMPLATE = {
    "working_hours": {"start": "08:00", "end": "12:00"},
    "break_times": [{"start": "10:00", "end": "10:30", "label": "Coffee"}],
    "slot_duration_minutes": 30,
    "allowed_appointment_type_ids": ["consultation"],
}


async def _setup_provider(client, weekdays=range(5)):
    resp = await client.post("/api/v1/clinics", json={"id": "c1", "name": "Clinic One"})
    assert resp.status_code == 201
    resp = await client.post("/api/v1/appointment-types", json={
        "id": "consultation", "name": "General Consultation", "duration_minutes": 30,
        "price_min": 150000, "price_max": 300000,
    })
    assert resp.status_code == 201
    resp = await client.post("/api/v1/providers", json={"id": "dr-a", "name": "Dr. A", "clinic_id": "c1"})
    assert resp.status_code == 201
    for weekday in weekdays:
        resp = await client.put(f"/api/v1/providers/dr-a/templates/{weekday}", json=TEMPLATE)
        assert resp.status_code == 200


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_provider_gets_default_base_rate(client):
    await _setup_provider(client, weekdays=[])
    resp = await client.get("/api/v1/providers/dr-a")
    assert resp.status_code == 200
    assert float(resp.json()["base_rate"]) == 150000


@pytest.mark.asyncio
async def test_unknown_provider_returns_404(client):
    resp = await client.get("/api/v1/providers/nobody")
    assert resp.status_code == 404
    assert "nobody" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_duplicate_provider_rejected(client):
    await _setup_provider(client, weekdays=[])
    resp = await client.post("/api/v1/providers", json={"id": "dr-a", "name": "Dr. A again"})
    assert resp.status_code == 422
    assert resp.json()["errors"][0]["field"] == "id"


@pytest.mark.asyncio
async def test_template_round_trip(client):
    await _setup_provider(client, weekdays=[0])

    resp = await client.get("/api/v1/providers/dr-a/templates/0")
    assert resp.status_code == 200
    body = resp.json()
    assert body["weekday"] == 0
    assert body["break_times"][0]["label"] == "Coffee"

    resp = await client.get("/api/v1/providers/dr-a/templates")
    assert [t["weekday"] for t in resp.json()] == [0]

    resp = await client.delete("/api/v1/providers/dr-a/templates/0")
    assert resp.status_code == 204
    resp = await client.get("/api/v1/providers/dr-a/templates/0")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_invalid_template_returns_422(client):
    await _setup_provider(client, weekdays=[])
    bad = dict(TEMPLATE, working_hours={"start": "12:00", "end": "08:00"})
    resp = await client.put("/api/v1/providers/dr-a/templates/0", json=bad)
    assert resp.status_code == 422

    resp = await client.put("/api/v1/providers/dr-a/templates/7", json=TEMPLATE)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_daily_schedule_and_time_ranges(client):
    await _setup_provider(client)
    monday = next_weekday(0)

    resp = await client.get(f"/api/v1/providers/dr-a/schedule/{monday.isoformat()}")
    assert resp.status_code == 200
    schedule = resp.json()
    starts = [s["start_time"] for s in schedule["time_slots"]]
    assert starts == ["08:00", "08:30", "09:00", "09:30", "10:30", "11:00", "11:30"]
    assert schedule["time_slots"][0]["id"] == f"dr-a-{monday.isoformat()}-08:00"

    resp = await client.get(f"/api/v1/providers/dr-a/schedule/{monday.isoformat()}/time-ranges")
    ranges = resp.json()
    assert [r["id"] for r in ranges] == ["morning"]
    assert ranges[0]["total_count"] == 7


@pytest.mark.asyncio
async def test_exception_blocks_day_in_availability(client):
    await _setup_provider(client)
    monday = next_weekday(0)
    wednesday = monday + timedelta(days=2)

    resp = await client.post("/api/v1/providers/dr-a/exceptions", json={
        "date": wednesday.isoformat(), "kind": "blocked", "reason": "Seminar",
    })
    assert resp.status_code == 201

    resp = await client.get(
        "/api/v1/providers/dr-a/availability",
        params={"start_date": monday.isoformat(), "end_date": (monday + timedelta(days=4)).isoformat()},
    )
    assert resp.status_code == 200
    assert [d["status"] for d in resp.json()] == ["available", "available", "blocked", "available", "available"]

    resp = await client.get("/api/v1/providers/dr-a/exceptions")
    assert [e["reason"] for e in resp.json()] == ["Seminar"]

    resp = await client.delete(f"/api/v1/providers/dr-a/exceptions/{wednesday.isoformat()}")
    assert resp.status_code == 204


@pytest.mark.asyncio
async def test_modified_exception_requires_override(client):
    await _setup_provider(client)
    resp = await client.post("/api/v1/providers/dr-a/exceptions", json={
        "date": next_weekday(0).isoformat(), "kind": "modified",
    })
    assert resp.status_code == 422
    assert resp.json()["errors"][0]["field"] == "override_template"


@pytest.mark.asyncio
async def test_holiday_closes_clinic(client):
    await _setup_provider(client)
    monday = next_weekday(0)

    resp = await client.post("/api/v1/holidays", json={"date": monday.isoformat(), "name": "Clinic Day Off"})
    assert resp.status_code == 201

    resp = await client.get(f"/api/v1/providers/dr-a/schedule/{monday.isoformat()}")
    body = resp.json()
    assert body["is_holiday"] is True
    assert body["holiday_name"] == "Clinic Day Off"
    assert body["time_slots"] == []


@pytest.mark.asyncio
async def test_availability_range_limit(client):
    await _setup_provider(client, weekdays=[])
    start = next_weekday(0)
    resp = await client.get(
        "/api/v1/providers/dr-a/availability",
        params={"start_date": start.isoformat(), "end_date": (start + timedelta(days=120)).isoformat()},
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_holiday_flags_displaced_bookings(client, db, weekday_provider):
    monday = next_weekday(0)
    booking = await make_workflow(monday).submit_booking(db)

    resp = await client.post("/api/v1/holidays", json={
        "date": monday.isoformat(), "name": "Clinic Anniversary", "affects_schedule": True,
    })
    assert resp.status_code == 201

    resp = await client.get("/api/v1/appointments/reschedule-required")
    assert [a["id"] for a in resp.json()] == [str(booking.id)]


@pytest.mark.asyncio
async def test_fixed_holiday_matches_month_and_day(client, db, weekday_provider):
    monday = next_weekday(0)
    if (monday.month, monday.day) == (2, 29):
        monday += timedelta(days=7)
    booking = await make_workflow(monday).submit_booking(db)

    last_year = monday.replace(year=monday.year - 1)
    resp = await client.post("/api/v1/holidays", json={
        "date": last_year.isoformat(), "name": "Founders Day", "is_fixed": True,
    })
    assert resp.status_code == 201

    resp = await client.get("/api/v1/appointments/reschedule-required")
    assert [a["id"] for a in resp.json()] == [str(booking.id)]


@pytest.mark.asyncio
async def test_marker_holiday_keeps_bookings(client, db, weekday_provider):
    monday = next_weekday(0)
    await make_workflow(monday).submit_booking(db)

    resp = await client.post("/api/v1/holidays", json={
        "date": monday.isoformat(), "name": "Awareness Day", "affects_schedule": False,
    })
    assert resp.status_code == 201

    resp = await client.get("/api/v1/appointments/reschedule-required")
    assert resp.json() == []
