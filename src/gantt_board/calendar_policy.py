from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, field, replace
from typing import Iterable


WEEKDAY_NAMES = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")
"""Weekday flag order, Sunday first."""

DEFAULT_FIXED_HOLIDAYS = frozenset(
    {
        "2026-01-01",
        "2026-01-12",
        "2026-02-11",
        "2026-02-23",
        "2026-03-20",
        "2026-04-29",
        "2026-05-03",
        "2026-05-04",
        "2026-05-05",
        "2026-05-06",
        "2026-07-20",
        "2026-08-11",
        "2026-09-21",
        "2026-09-22",
        "2026-09-23",
        "2026-10-12",
        "2026-11-03",
        "2026-11-23",
    }
)
"""National holidays bundled with the default policy (Japan, 2026)."""


def format_day(value: _dt.date) -> str:
    """Calendar-day key for a date (YYYY-MM-DD, taken from the local fields)."""
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def parse_day(value: str) -> _dt.date:
    return _dt.date.fromisoformat(value)


def as_day(value: _dt.date | _dt.datetime) -> _dt.date:
    """Drop any time component; a datetime is read in its own (local) fields."""
    if isinstance(value, _dt.datetime):
        return value.date()
    return value


def sunday_first_index(value: _dt.date) -> int:
    """Day-of-week index with Sunday == 0 and Saturday == 6."""
    return (value.weekday() + 1) % 7


@dataclass(frozen=True)
class CalendarPolicy:
    """
    Decides which calendar days are non-working.

    `weekday_holidays` holds seven flags ordered Sunday..Saturday. Fixed
    holidays are calendar-day strings and only count while
    `observe_fixed_holidays` is set.
    """

    weekday_holidays: tuple[bool, bool, bool, bool, bool, bool, bool] = (
        True,
        False,
        False,
        False,
        False,
        False,
        True,
    )
    fixed_holidays: frozenset[str] = field(default_factory=lambda: DEFAULT_FIXED_HOLIDAYS)
    observe_fixed_holidays: bool = True

    def __post_init__(self) -> None:
        if len(self.weekday_holidays) != 7:
            raise ValueError(f"expected 7 weekday flags, got {len(self.weekday_holidays)}")
        object.__setattr__(self, "weekday_holidays", tuple(bool(flag) for flag in self.weekday_holidays))
        object.__setattr__(self, "fixed_holidays", frozenset(self.fixed_holidays))

    @classmethod
    def from_weekday_names(
        cls,
        names: Iterable[str],
        fixed_holidays: Iterable[str] = (),
        observe_fixed_holidays: bool = True,
    ) -> "CalendarPolicy":
        lowered = {name.lower() for name in names}
        unknown = sorted(lowered - set(WEEKDAY_NAMES))
        if unknown:
            raise ValueError(f"unknown weekday names {unknown}")
        flags = tuple(name in lowered for name in WEEKDAY_NAMES)
        return cls(
            weekday_holidays=flags,  # type: ignore[arg-type]
            fixed_holidays=frozenset(fixed_holidays),
            observe_fixed_holidays=observe_fixed_holidays,
        )

    def is_holiday(self, day: _dt.date) -> bool:
        return is_holiday(day, self)

    def with_fixed_holidays_observed(self, observe: bool) -> "CalendarPolicy":
        return replace(self, observe_fixed_holidays=observe)

    @property
    def holiday_weekday_names(self) -> list[str]:
        return [name for name, flag in zip(WEEKDAY_NAMES, self.weekday_holidays) if flag]


def is_holiday(day: _dt.date, policy: CalendarPolicy) -> bool:
    """True when the day's weekday flag is set or it is an observed fixed holiday."""

    day = as_day(day)
    if policy.weekday_holidays[sunday_first_index(day)]:
        return True
    return policy.observe_fixed_holidays and format_day(day) in policy.fixed_holidays
