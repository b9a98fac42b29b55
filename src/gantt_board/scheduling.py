from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable

from .board_models import BarSegment, GanttTask
from .calendar_policy import CalendarPolicy, as_day, is_holiday


class BoardValidationError(Exception):
    """Raised when boundary input is invalid (bad config, bad request payloads, dangling refs)."""


class SchedulingError(Exception):
    """Raised when a span cannot be computed (non-positive work days, or no workday in the week)."""


def compute_end_date(start: date, work_days: int, policy: CalendarPolicy) -> date:
    """
    Return the day on which `work_days` workdays starting at `start` are used up.

    `start` is consumed as workday 1 when it is not a holiday. A holiday
    start is walked over without decrementing; it is not shifted first.
    """

    if work_days < 1:
        raise SchedulingError(f"work_days must be >= 1, got {work_days}")
    if all(policy.weekday_holidays):
        raise SchedulingError("calendar policy marks every weekday as a holiday")

    current = as_day(start)
    remaining = work_days
    while True:
        if not is_holiday(current, policy):
            remaining -= 1
            if remaining == 0:
                return current
        current += timedelta(days=1)


def compute_work_days(start: date, end: date, policy: CalendarPolicy) -> int:
    """Count non-holiday days in the inclusive range [start, end]; 0 when end < start."""

    return sum(1 for day in iter_days(start, end) if not is_holiday(day, policy))


def task_end_date(task: GanttTask, policy: CalendarPolicy) -> date:
    return compute_end_date(task.start_date, task.work_days, policy)


def iter_days(start: date, end: date) -> Iterable[date]:
    current = as_day(start)
    end = as_day(end)
    while current <= end:
        yield current
        current += timedelta(days=1)


def get_segments(task: GanttTask, policy: CalendarPolicy, range_start: date) -> list[BarSegment]:
    """
    Split a task span into maximal holiday-free segments for bar drawing.

    Offsets are whole days from `range_start` and may be negative when the
    task starts before the displayed range.
    """

    return split_span(task.start_date, task_end_date(task, policy), policy, range_start)


def split_span(start: date, end: date, policy: CalendarPolicy, range_start: date) -> list[BarSegment]:
    runs: list[tuple[date, date]] = []
    run_start: date | None = None
    previous: date | None = None

    for day in iter_days(start, end):
        if is_holiday(day, policy):
            if run_start is not None and previous is not None:
                runs.append((run_start, previous))
                run_start = None
        elif run_start is None:
            run_start = day
        previous = day

    if run_start is not None and previous is not None:
        runs.append((run_start, previous))

    origin = as_day(range_start)
    last_index = len(runs) - 1
    return [
        BarSegment(
            start_offset_days=(first - origin).days,
            length_days=(last - first).days + 1,
            is_first=index == 0,
            is_last=index == last_index,
        )
        for index, (first, last) in enumerate(runs)
    ]
