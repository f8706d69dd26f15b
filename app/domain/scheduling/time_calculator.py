"""
Time parsing and slot arithmetic.

Times of day are handled as integer minutes since midnight; "HH:MM" strings
only appear at the edges (storage and API).
"""

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable, Optional

from ...config import CLINIC_HOURS, CLOSED_WEEKDAYS, SLOT_GRANULARITY_MINUTES

WEEKDAYS = ["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY"]

TIME_PATTERN = r"^(\d{1,2}):(\d{2})$"


class Period(str, Enum):
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"
    EVENING = "EVENING"


PERIOD_ORDER = [Period.MORNING, Period.AFTERNOON, Period.EVENING]


def to_minutes(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight, "24:00" included"""
    match = re.match(TIME_PATTERN, value) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    total = hours * 60 + minutes
    if minutes > 59 or total > 24 * 60:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return total


def to_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open interval intersection: [a,b) ∩ [c,d) ≠ ∅ ⇔ a < d ∧ c < b"""
    return a_start < b_end and b_start < a_end


@dataclass(frozen=True)
class Window:
    """Opening window of one period, in minutes since midnight"""

    period: Period
    open: int
    close: int

    def candidate_starts(self, duration_minutes: int, step_minutes: int) -> list[int]:
        """Start times from opening, every step, whose appointment ends by closing"""
        starts = []
        current = self.open
        while current + duration_minutes <= self.close:
            starts.append(current)
            current += step_minutes
        return starts


def parse_clinic_hours(value: str) -> list[Window]:
    """
    Parse "MORNING=09:00-12:00,AFTERNOON=14:00-18:00" into windows.

    Raises:
        ValueError: on unknown periods or inverted windows
    """
    windows = []
    for chunk in value.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        try:
            name, hours = chunk.split("=")
            start, end = hours.split("-")
        except ValueError:
            raise ValueError(f"Invalid clinic hours entry '{chunk}'")
        window = Window(Period(name.strip().upper()), to_minutes(start.strip()), to_minutes(end.strip()))
        if window.close <= window.open:
            raise ValueError(f"Clinic hours for {window.period.value} close before they open")
        windows.append(window)
    return sort_windows(windows)


def sort_windows(windows: Iterable[Window]) -> list[Window]:
    return sorted(windows, key=lambda w: (w.open, PERIOD_ORDER.index(w.period)))


@dataclass(frozen=True)
class OperatingHours:
    """Clinic opening configuration injected into the engine"""

    windows: list[Window]
    closed_weekdays: frozenset = field(default_factory=frozenset)
    granularity_minutes: int = 30

    def __post_init__(self):
        if self.granularity_minutes <= 0:
            raise ValueError("Slot granularity must be a positive number of minutes")

    @classmethod
    def from_config(cls) -> "OperatingHours":
        return cls(
            windows=parse_clinic_hours(CLINIC_HOURS),
            closed_weekdays=frozenset(CLOSED_WEEKDAYS),
            granularity_minutes=SLOT_GRANULARITY_MINUTES,
        )

    def is_closed_weekday(self, day: date) -> bool:
        return weekday_name(day) in self.closed_weekdays


def find_window(start_minutes: int, windows: list[Window]) -> Optional[Window]:
    for window in windows:
        if window.open <= start_minutes < window.close:
            return window
    return None


def get_operating_hours() -> OperatingHours:
    """FastAPI dependency returning the configured opening hours"""
    return OperatingHours.from_config()
