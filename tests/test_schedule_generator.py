"""Tests for daily schedule generation."""

import uuid
from datetime import date
from decimal import Decimal
import pytest

from medbook.core.exceptions import ConfigurationError, NotFoundError
from medbook.models.appointment import SlotReservation
from medbook.models.schedule import ExceptionKind
from medbook.schemas.schedule import (
    BreakTime,
    CalendarExceptionCreate,
    CalendarExceptionOut,
    HolidayCreate,
    HolidayOut,
    TemplateOverride,
    WorkingHours,
)
from medbook.services import exception_store, template_registry
from medbook.services.schedule_generator import (
    build_daily_schedule,
    generate_daily_schedule,
    nearest_available_slots,
    slot_price,
)
from medbook.utils.time_utils import time_to_minutes
from tests.factories import BASE_RATE, PROVIDER_ID, clinic_day_template, morning_template, next_weekday

MONDAY = date(2026, 11, 2)


def _reservation(slot_id, start, end, booked_by="patient-1"):
    return SlotReservation(
        slot_id=slot_id,
        provider_id=PROVIDER_ID,
        date=MONDAY,
        start_time=start,
        end_time=end,
        booked_by=booked_by,
        appointment_id=uuid.uuid4(),
    )


def test_morning_template_yields_eight_slots():
    schedule = build_daily_schedule(PROVIDER_ID, MONDAY, morning_template(), BASE_RATE)

    assert schedule.is_working_day is True
    assert schedule.day_of_week == 0
    assert [s.start_time for s in schedule.time_slots] == [
        "08:00", "08:30", "09:00", "09:30", "10:00", "10:30", "11:00", "11:30",
    ]
    assert schedule.time_slots[-1].end_time == "12:00"
    assert all(s.available for s in schedule.time_slots)
    assert schedule.time_slots[0].id == "dr-test-2026-11-02-08:00"
    assert schedule.time_slots[0].appointment_type_id == "consultation"


def test_slots_are_increasing_and_never_overlap():
    template = morning_template(
        working_hours=WorkingHours(start="07:15", end="16:50"),
        break_times=[BreakTime(start="10:00", end="10:20"), BreakTime(start="12:00", end="13:00")],
        slot_duration_minutes=25,
    )
    slots = build_daily_schedule(PROVIDER_ID, MONDAY, template, BASE_RATE).time_slots

    assert slots
    for prev, nxt in zip(slots, slots[1:]):
        assert time_to_minutes(prev.end_time) <= time_to_minutes(nxt.start_time)
    assert time_to_minutes(slots[-1].end_time) <= time_to_minutes("16:50")


def test_slots_touching_a_break_are_dropped():
    schedule = build_daily_schedule(PROVIDER_ID, MONDAY, clinic_day_template(), BASE_RATE)
    starts = [s.start_time for s in schedule.time_slots]

    assert "11:30" in starts
    assert "12:00" not in starts
    assert "12:30" not in starts
    assert "13:00" in starts
    assert len(schedule.time_slots) == 16


def test_partial_slot_at_end_of_day_is_not_generated():
    template = morning_template(working_hours=WorkingHours(start="08:00", end="09:45"))
    slots = build_daily_schedule(PROVIDER_ID, MONDAY, template, BASE_RATE).time_slots
    assert [s.start_time for s in slots] == ["08:00", "08:30", "09:00"]


def test_end_of_day_bound_is_accepted():
    template = morning_template(working_hours=WorkingHours(start="23:00", end="24:00"))
    slots = build_daily_schedule(PROVIDER_ID, MONDAY, template, BASE_RATE).time_slots
    assert [s.end_time for s in slots] == ["23:30", "24:00"]


def test_regeneration_is_idempotent():
    first = build_daily_schedule(PROVIDER_ID, MONDAY, clinic_day_template(), BASE_RATE)
    second = build_daily_schedule(PROVIDER_ID, MONDAY, clinic_day_template(), BASE_RATE)
    assert first == second


def test_after_hours_pricing():
    assert slot_price(time_to_minutes("07:30"), Decimal("150000")) == Decimal("195000.00")
    assert slot_price(time_to_minutes("08:00"), Decimal("150000")) == Decimal("150000.00")
    assert slot_price(time_to_minutes("17:59"), Decimal("150000")) == Decimal("150000.00")
    assert slot_price(time_to_minutes("18:00"), Decimal("150000")) == Decimal("195000.00")


def test_invalid_template_raises_configuration_error():
    bad_duration = morning_template(slot_duration_minutes=0)
    with pytest.raises(ConfigurationError):
        build_daily_schedule(PROVIDER_ID, MONDAY, bad_duration, BASE_RATE)

    reversed_hours = morning_template(working_hours=WorkingHours(start="12:00", end="08:00"))
    with pytest.raises(ConfigurationError):
        build_daily_schedule(PROVIDER_ID, MONDAY, reversed_hours, BASE_RATE)

    malformed = morning_template(working_hours=WorkingHours(start="8am", end="12:00"))
    with pytest.raises(ConfigurationError):
        build_daily_schedule(PROVIDER_ID, MONDAY, malformed, BASE_RATE)


def test_no_template_means_non_working_day():
    schedule = build_daily_schedule(PROVIDER_ID, MONDAY, None, BASE_RATE)
    assert schedule.is_working_day is False
    assert schedule.time_slots == []


def test_blocked_exception_closes_the_day():
    exception = CalendarExceptionOut(
        provider_id=PROVIDER_ID, date=MONDAY, kind=ExceptionKind.BLOCKED, reason="Conference",
    )
    schedule = build_daily_schedule(PROVIDER_ID, MONDAY, clinic_day_template(), BASE_RATE, exception=exception)

    assert schedule.is_working_day is False
    assert schedule.time_slots == []
    assert schedule.special_note == "Conference"


def test_modified_exception_substitutes_only_given_fields():
    exception = CalendarExceptionOut(
        provider_id=PROVIDER_ID,
        date=MONDAY,
        kind=ExceptionKind.MODIFIED,
        reason="Short day",
        override_template=TemplateOverride(working_hours=WorkingHours(start="08:00", end="10:00")),
    )
    schedule = build_daily_schedule(PROVIDER_ID, MONDAY, clinic_day_template(), BASE_RATE, exception=exception)

    assert schedule.is_working_day is True
    assert [s.start_time for s in schedule.time_slots] == ["08:00", "08:30", "09:00", "09:30"]
    assert schedule.break_times[0].label == "Lunch Break"
    assert schedule.special_note == "Short day"


def test_holiday_closes_day_unless_provider_overrides_it():
    holiday = HolidayOut(id=1, date=MONDAY, name="Independence Day", is_fixed=True, affects_schedule=True)

    closed = build_daily_schedule(PROVIDER_ID, MONDAY, clinic_day_template(), BASE_RATE, holiday=holiday)
    assert closed.is_working_day is False
    assert closed.is_holiday is True
    assert closed.holiday_name == "Independence Day"

    working = build_daily_schedule(
        PROVIDER_ID,
        MONDAY,
        clinic_day_template(),
        BASE_RATE,
        exception=CalendarExceptionOut(
            provider_id=PROVIDER_ID,
            date=MONDAY,
            kind=ExceptionKind.MODIFIED,
            override_template=TemplateOverride(working_hours=WorkingHours(start="08:00", end="10:00")),
        ),
        holiday=holiday,
    )
    assert working.is_working_day is True
    assert working.is_holiday is True
    assert len(working.time_slots) == 4


def test_holiday_without_schedule_effect_only_marks_the_day():
    holiday = HolidayOut(id=1, date=MONDAY, name="Observance", affects_schedule=False)
    schedule = build_daily_schedule(PROVIDER_ID, MONDAY, morning_template(), BASE_RATE, holiday=holiday)
    assert schedule.is_working_day is True
    assert schedule.is_holiday is True
    assert len(schedule.time_slots) == 8


def test_reservations_survive_regeneration():
    reservation = _reservation("dr-test-2026-11-02-09:00", "09:00", "09:30")

    for _ in range(2):
        schedule = build_daily_schedule(
            PROVIDER_ID, MONDAY, morning_template(), BASE_RATE, reservations=[reservation]
        )
        booked = [s for s in schedule.time_slots if not s.available]
        assert [s.id for s in booked] == ["dr-test-2026-11-02-09:00"]
        assert booked[0].booked_by == "patient-1"
        assert schedule.orphaned_reservations == []


def test_reservation_outside_new_template_is_reported_and_blocks_overlap():
    # Booked 09:00-09:30 under 30 min slots; template now uses 45 min slots
    reservation = _reservation("dr-test-2026-11-02-09:00", "09:00", "09:30")
    template = morning_template(slot_duration_minutes=45)

    schedule = build_daily_schedule(PROVIDER_ID, MONDAY, template, BASE_RATE, reservations=[reservation])

    assert [o.slot_id for o in schedule.orphaned_reservations] == ["dr-test-2026-11-02-09:00"]
    unavailable = [s.start_time for s in schedule.time_slots if not s.available]
    # 08:45-09:30 and 09:30-10:15: only the first overlaps 09:00-09:30
    assert unavailable == ["08:45"]


def test_nearest_available_slots_orders_by_distance():
    schedule = build_daily_schedule(PROVIDER_ID, MONDAY, morning_template(), BASE_RATE)
    schedule.time_slots[3].available = False  # 09:30

    nearest = nearest_available_slots(schedule, "09:30")
    assert [s.start_time for s in nearest] == ["09:00", "10:00", "08:30"]


@pytest.mark.asyncio
async def test_generate_daily_schedule_from_database(db, weekday_provider):
    monday = next_weekday(0)
    schedule = await generate_daily_schedule(db, PROVIDER_ID, monday)
    assert schedule.is_working_day is True
    assert len(schedule.time_slots) == 16

    saturday = next_weekday(5)
    weekend = await generate_daily_schedule(db, PROVIDER_ID, saturday)
    assert weekend.is_working_day is False


@pytest.mark.asyncio
async def test_generate_uses_stored_exception_and_fixed_holiday(db, weekday_provider):
    monday = next_weekday(0)
    await exception_store.set_exception(
        db, PROVIDER_ID, CalendarExceptionCreate(date=monday, kind=ExceptionKind.BLOCKED, reason="Training"),
    )
    schedule = await generate_daily_schedule(db, PROVIDER_ID, monday)
    assert schedule.is_working_day is False
    assert schedule.special_note == "Training"

    tuesday = next_weekday(1)
    # Stored in an earlier year; fixed holidays recur on month/day
    await exception_store.add_holiday(
        db, HolidayCreate(date=tuesday.replace(year=tuesday.year - 4), name="Founders Day", is_fixed=True),
    )
    holiday_schedule = await generate_daily_schedule(db, PROVIDER_ID, tuesday)
    assert holiday_schedule.is_holiday is True
    assert holiday_schedule.holiday_name == "Founders Day"
    assert holiday_schedule.time_slots == []


@pytest.mark.asyncio
async def test_generate_unknown_provider(db):
    with pytest.raises(NotFoundError):
        await generate_daily_schedule(db, "nobody", next_weekday(0))


@pytest.mark.asyncio
async def test_set_template_rejects_invalid_template(db, provider):
    with pytest.raises(ConfigurationError):
        await template_registry.set_template(
            db, PROVIDER_ID, 0, morning_template(working_hours=WorkingHours(start="10:00", end="10:00")),
        )
    assert await template_registry.get_template(db, PROVIDER_ID, 0) is None
