import datetime as dt

from gantt_board.board_models import GanttTask, TaskGroup, TaskStatus
from gantt_board.calendar_policy import CalendarPolicy
from gantt_board.ordering import TaskOrderingStore
from gantt_board.render_rows import preview_range, task_touches_year, to_render_rows, year_range

POLICY = CalendarPolicy(fixed_holidays=frozenset())
RANGE_START = dt.date(2026, 1, 5)


def _task(task_id, group_id="", **kwargs):
    return GanttTask(id=task_id, title=task_id.upper(), start_date=dt.date(2026, 1, 8), work_days=4, group_id=group_id, **kwargs)


def _store():
    store = TaskOrderingStore()
    store.add_group(TaskGroup(id="art", name="Art", color="bg-pink-500"))
    store.add_group(TaskGroup(id="ops", name="Ops", color="bg-green-500", expanded=False))
    store.add_task(_task("a1", "art"))
    store.add_task(_task("a2", "art", status=TaskStatus.COMPLETED, progress=100, collapsed=True))
    store.add_task(_task("o1", "ops"))
    store.add_task(_task("u1"))
    return store


def test_rows_follow_board_order():
    rows = to_render_rows(_store(), POLICY, RANGE_START)

    assert [(row.row_kind, row.node_id) for row in rows] == [
        ("task", "u1"),
        ("group", "art"),
        ("task", "a1"),
        ("task", "a2"),
        ("group", "ops"),
    ]
    assert [row.order for row in rows] == list(range(len(rows)))


def test_collapsed_group_heading_is_marked():
    rows = {row.node_id: row for row in to_render_rows(_store(), POLICY, RANGE_START)}

    assert rows["ops"].collapsed is True
    assert rows["art"].collapsed is False
    assert "o1" not in rows


def test_task_rows_carry_schedule_and_segments():
    rows = {row.node_id: row for row in to_render_rows(_store(), POLICY, RANGE_START)}

    active = rows["a1"]
    assert active.end_date == dt.date(2026, 1, 13)
    assert [(s.start_offset_days, s.length_days) for s in active.segments] == [(3, 2), (7, 2)]

    done = rows["a2"]
    assert done.status is TaskStatus.COMPLETED
    assert done.segments == []
    assert done.end_date == dt.date(2026, 1, 13)


def test_preview_range_spans_three_weeks():
    today = dt.date(2026, 3, 10)

    days = preview_range(today)

    assert len(days) == 22
    assert days[0] == dt.date(2026, 3, 3)
    assert days[-1] == dt.date(2026, 3, 24)


def test_year_range_concatenates_years():
    days = year_range([2026, 2027])

    assert len(days) == 365 + 365
    assert days[0] == dt.date(2026, 1, 1)
    assert days[-1] == dt.date(2027, 12, 31)


def test_task_touching_year_boundary():
    task = GanttTask(id="t", title="t", start_date=dt.date(2026, 12, 30), work_days=5)

    assert task_touches_year(task, 2026, POLICY)
    assert task_touches_year(task, 2027, POLICY)
    assert not task_touches_year(task, 2025, POLICY)
