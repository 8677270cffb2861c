"""
Calendar: day / week / month views over the user's events.

Weeks start on Sunday. Event times are "HH:MM" strings, dates "YYYY-MM-DD".
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable

from services.auth_service import SessionStore
from services.database_service import DatabaseManager
from services.errors import ServiceError, ValidationError

LOGGER = logging.getLogger("studybuddy.calendar")

VIEWS = ("day", "week", "month")
HOUR_HEIGHT_PX = 60
MIN_EVENT_HEIGHT_PX = 30
DEFAULT_DURATION_MIN = 60
MONTH_CELL_EVENT_LIMIT = 3

_EVENT_KEYWORDS = (
    ("event-type-meeting", ("meeting", "call", "sync")),
    ("event-type-personal", ("lunch", "dinner", "coffee")),
    ("event-type-study", ("study", "review", "exam")),
    ("event-type-work", ("work", "project", "task")),
)


@dataclass(frozen=True)
class TimeSlot:
    time: str
    label: str
    hour: int


@dataclass(frozen=True)
class EventBlock:
    event: dict[str, Any]
    top_px: float
    height_px: float
    css_class: str
    time_range: str


def format_time(hour: int, minute: int = 0) -> str:
    """24h -> "9 AM" / "9:30 AM" / "12 PM"."""
    suffix = "AM" if hour < 12 else "PM"
    h12 = hour % 12 or 12
    return f"{h12} {suffix}" if minute == 0 else f"{h12}:{minute:02d} {suffix}"


def time_slots() -> list[TimeSlot]:
    return [TimeSlot(time=f"{h:02d}:00", label=format_time(h), hour=h) for h in range(24)]


def _parse_hhmm(value: str) -> tuple[int, int]:
    parts = (value or "00:00").split(":")
    return int(parts[0]), int(parts[1]) if len(parts) > 1 else 0


def event_time_range(event: dict[str, Any]) -> str:
    hours, minutes = _parse_hhmm(event.get("event_time") or event.get("time") or "")
    end = hours * 60 + minutes + int(event.get("duration") or DEFAULT_DURATION_MIN)
    return f"{format_time(hours, minutes)} - {format_time((end // 60) % 24, end % 60)}"


def event_type_class(event: dict[str, Any]) -> str:
    title = str(event.get("title", "")).lower()
    for css_class, keywords in _EVENT_KEYWORDS:
        if any(k in title for k in keywords):
            return css_class
    return "event-type-default"


def event_block(event: dict[str, Any]) -> EventBlock:
    hours, minutes = _parse_hhmm(event.get("event_time") or event.get("time") or "")
    duration = int(event.get("duration") or DEFAULT_DURATION_MIN)
    return EventBlock(
        event=event,
        top_px=(hours * 60 + minutes) / 60 * HOUR_HEIGHT_PX,
        height_px=max(duration / 60 * HOUR_HEIGHT_PX, MIN_EVENT_HEIGHT_PX),
        css_class=event_type_class(event),
        time_range=event_time_range(event),
    )


def week_start(day: date) -> date:
    # date.weekday(): Monday=0 .. Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def add_months(day: date, months: int) -> date:
    index = day.month - 1 + months
    year, month = day.year + index // 12, index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


class CalendarManager:
    """Event list plus the current view and focus date."""

    def __init__(
        self,
        gateway: DatabaseManager,
        session: SessionStore,
        today: date | None = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self.gateway = gateway
        self.session = session
        self._fixed_today = today
        self._clock = clock
        self.current_date = self.today
        self.view = "week"
        self.events: list[dict[str, Any]] = []

    @property
    def today(self) -> date:
        return self._fixed_today or self._clock()

    # ---------- data ----------

    def load_events(self) -> list[dict[str, Any]]:
        user_id = self.session.user_id
        if not user_id:
            self.events = []
            return self.events
        result = self.gateway.get_user_events(user_id)
        if not result.success:
            raise ServiceError(result.error or "Failed to load events")
        self.events = result.data or []
        return self.events

    def add_event(
        self, title: str, event_date: str, event_time: str, duration: int | None = None, description: str = ""
    ) -> dict[str, Any]:
        title = (title or "").strip()
        if not title or not event_date or not event_time:
            raise ValidationError("Please fill in all required fields.")
        user_id = self.session.user_id
        if not user_id:
            raise ValidationError("User not authenticated")

        result = self.gateway.save_event(
            user_id,
            {
                "title": title,
                "description": (description or "").strip(),
                "date": event_date,
                "time": event_time,
                "duration": int(duration or DEFAULT_DURATION_MIN),
            },
        )
        if not result.success:
            raise ServiceError("Failed to create event. Please try again.")
        self.events.append(result.data)
        self.events.sort(key=lambda e: (e.get("event_date") or "", e.get("event_time") or ""))
        return result.data

    def delete_event(self, event_id: str) -> None:
        result = self.gateway.delete_event(event_id)
        if not result.success:
            raise ServiceError("Failed to delete event")
        self.events = [e for e in self.events if e.get("id") != event_id]

    def get_event(self, event_id: str) -> dict[str, Any] | None:
        return next((e for e in self.events if e.get("id") == event_id), None)

    def events_for_date(self, day: date) -> list[dict[str, Any]]:
        key = day.isoformat()
        return [e for e in self.events if e.get("event_date") == key]

    def event_blocks_for_date(self, day: date) -> list[EventBlock]:
        return [event_block(e) for e in self.events_for_date(day)]

    # ---------- view state ----------

    def change_view(self, view: str) -> None:
        if view not in VIEWS:
            raise ValueError(f"Unknown calendar view: {view}")
        self.view = view

    def go_to_today(self) -> None:
        self.current_date = self.today

    def navigate(self, step: int) -> date:
        if self.view == "day":
            self.current_date += timedelta(days=step)
        elif self.view == "week":
            self.current_date += timedelta(days=7 * step)
        else:
            self.current_date = add_months(self.current_date, step)
        return self.current_date

    def navigate_previous(self) -> date:
        return self.navigate(-1)

    def navigate_next(self) -> date:
        return self.navigate(1)

    def select_date(self, day: date | str) -> None:
        self.current_date = date.fromisoformat(day) if isinstance(day, str) else day
        self.view = "day"

    def is_today(self, day: date) -> bool:
        return day == self.today

    def week_days(self) -> list[date]:
        start = week_start(self.current_date)
        return [start + timedelta(days=i) for i in range(7)]

    def month_weeks(self) -> list[list[date]]:
        cal = calendar.Calendar(firstweekday=calendar.SUNDAY)
        return cal.monthdatescalendar(self.current_date.year, self.current_date.month)

    def header_label(self) -> str:
        d = self.current_date
        if self.view == "day":
            return f"{d.strftime('%B')} {d.day}, {d.year}"
        if self.view == "week":
            start = week_start(d)
            end = start + timedelta(days=6)
            if start.month == end.month:
                return f"{start.strftime('%B')} {start.year}"
            return f"{start.strftime('%b')} - {end.strftime('%b')} {end.year}"
        return f"{d.strftime('%B')} {d.year}"
