from __future__ import annotations

from datetime import date, timedelta
from typing import List

from .board_models import UNASSIGNED_GROUP, FlatRenderRow, GanttTask, TaskGroup
from .calendar_policy import CalendarPolicy
from .ordering import TaskOrderingStore
from .scheduling import get_segments, iter_days, task_end_date

PREVIEW_DAYS_BEFORE = 7
PREVIEW_DAYS_AFTER = 14


def preview_range(today: date) -> list[date]:
    """Compact window around today: one week back, two weeks ahead."""

    return list(iter_days(today - timedelta(days=PREVIEW_DAYS_BEFORE), today + timedelta(days=PREVIEW_DAYS_AFTER)))


def year_range(years: list[int]) -> list[date]:
    """Every day of the given years, in the order the years are listed."""

    days: list[date] = []
    for year in years:
        days.extend(iter_days(date(year, 1, 1), date(year, 12, 31)))
    return days


def task_touches_year(task: GanttTask, year: int, policy: CalendarPolicy) -> bool:
    return task.start_date.year <= year <= task_end_date(task, policy).year


def to_render_rows(store: TaskOrderingStore, policy: CalendarPolicy, range_start: date) -> list[FlatRenderRow]:
    """
    Convert the ordered board into a flat list of render rows.

    Unassigned tasks come first, then each group heading followed by its
    tasks when the group is expanded. Collapsed tasks keep their row but
    carry no bar segments.
    """

    rows: List[FlatRenderRow] = []
    order = 0

    for task in store.tasks_in_group(UNASSIGNED_GROUP):
        rows.append(_task_row(task, order, policy, range_start))
        order += 1

    for group in store.groups():
        rows.append(_group_row(group, order))
        order += 1
        if not group.expanded:
            continue
        for task in store.tasks_in_group(group.id):
            rows.append(_task_row(task, order, policy, range_start))
            order += 1

    return rows


def _group_row(group: TaskGroup, order: int) -> FlatRenderRow:
    return FlatRenderRow(
        order=order,
        row_kind="group",
        node_id=group.id,
        name=group.name,
        group_id=group.id,
        color=group.color,
        collapsed=not group.expanded,
    )


def _task_row(task: GanttTask, order: int, policy: CalendarPolicy, range_start: date) -> FlatRenderRow:
    return FlatRenderRow(
        order=order,
        row_kind="task",
        node_id=task.id,
        name=task.title,
        group_id=task.group_id,
        color=task.color,
        collapsed=task.collapsed,
        status=task.status,
        progress=task.progress,
        start_date=task.start_date,
        end_date=task_end_date(task, policy),
        segments=[] if task.collapsed else get_segments(task, policy, range_start),
    )
