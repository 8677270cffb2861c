"""Tests for services/calendar_service — time helpers, views and event CRUD."""

from __future__ import annotations

from datetime import date

import pytest

from services.calendar_service import (
    MIN_EVENT_HEIGHT_PX,
    CalendarManager,
    add_months,
    event_block,
    event_time_range,
    event_type_class,
    format_time,
    time_slots,
    week_start,
)
from services.errors import ValidationError

TODAY = date(2024, 5, 15)  # a Wednesday


@pytest.fixture
def cal(gateway, session):
    return CalendarManager(gateway, session, today=TODAY)


# ─── Helpers ──────────────────────────────────────────────────────────────────

class TestHelpers:
    @pytest.mark.parametrize(
        "hour,minute,label",
        [(0, 0, "12 AM"), (9, 0, "9 AM"), (9, 30, "9:30 AM"), (12, 0, "12 PM"), (23, 5, "11:05 PM")],
    )
    def test_format_time(self, hour, minute, label):
        assert format_time(hour, minute) == label

    def test_time_slots(self):
        slots = time_slots()
        assert len(slots) == 24
        assert slots[13].time == "13:00"
        assert slots[13].label == "1 PM"

    def test_time_range_uses_duration(self):
        assert event_time_range({"event_time": "09:30", "duration": 90}) == "9:30 AM - 11 AM"
        assert event_time_range({"event_time": "23:30"}) == "11:30 PM - 12:30 AM"

    def test_block_geometry(self):
        block = event_block({"title": "Exam review", "event_time": "02:30", "duration": 15})
        assert block.top_px == 150
        assert block.height_px == MIN_EVENT_HEIGHT_PX
        assert block.css_class == "event-type-study"

    def test_type_class_default(self):
        assert event_type_class({"title": "Dentist"}) == "event-type-default"

    def test_week_starts_on_sunday(self):
        assert week_start(TODAY) == date(2024, 5, 12)
        assert week_start(date(2024, 5, 12)) == date(2024, 5, 12)

    def test_add_months_clamps_day(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2024, 12, 15), 1) == date(2025, 1, 15)
        assert add_months(date(2024, 1, 15), -1) == date(2023, 12, 15)


# ─── View state ───────────────────────────────────────────────────────────────

class TestViews:
    def test_navigation_per_view(self, cal):
        cal.navigate_next()
        assert cal.current_date == date(2024, 5, 22)
        cal.change_view("day")
        cal.navigate_previous()
        assert cal.current_date == date(2024, 5, 21)
        cal.change_view("month")
        cal.navigate_next()
        assert cal.current_date == date(2024, 6, 21)
        cal.go_to_today()
        assert cal.current_date == TODAY

    def test_today_follows_the_clock(self, gateway, session):
        days = iter([TODAY, TODAY, date(2024, 5, 16), date(2024, 5, 16)])
        cal = CalendarManager(gateway, session, clock=lambda: next(days))
        assert cal.current_date == TODAY
        assert cal.is_today(TODAY)
        assert cal.is_today(date(2024, 5, 16))
        cal.go_to_today()
        assert cal.current_date == date(2024, 5, 16)

    def test_unknown_view(self, cal):
        with pytest.raises(ValueError):
            cal.change_view("year")

    def test_select_date_switches_to_day(self, cal):
        cal.select_date("2024-05-20")
        assert cal.view == "day"
        assert cal.current_date == date(2024, 5, 20)

    def test_week_days_and_month_grid(self, cal):
        days = cal.week_days()
        assert days[0] == date(2024, 5, 12)
        assert days[-1] == date(2024, 5, 18)
        weeks = cal.month_weeks()
        assert weeks[0][0] == date(2024, 4, 28)
        assert all(len(w) == 7 for w in weeks)

    def test_header_labels(self, cal):
        assert cal.header_label() == "May 2024"
        cal.change_view("day")
        assert cal.header_label() == "May 15, 2024"
        cal.change_view("week")
        cal.select_date("2024-05-29")
        cal.change_view("week")
        assert cal.header_label() == "May - Jun 2024"


# ─── Events ───────────────────────────────────────────────────────────────────

class TestEvents:
    def test_add_and_query(self, cal):
        cal.add_event("Study group", "2024-05-15", "14:00", 120, "Room 3")
        cal.add_event("Breakfast", "2024-05-15", "08:00")
        assert [e["title"] for e in cal.events_for_date(TODAY)] == ["Breakfast", "Study group"]
        assert cal.events_for_date(date(2024, 5, 16)) == []

        cal.load_events()
        assert len(cal.events) == 2

    def test_required_fields(self, cal):
        with pytest.raises(ValidationError, match="required fields"):
            cal.add_event("  ", "2024-05-15", "10:00")

    def test_delete(self, cal):
        event = cal.add_event("Exam", "2024-05-20", "09:00")
        cal.delete_event(event["id"])
        assert cal.get_event(event["id"]) is None
        assert cal.load_events() == []
