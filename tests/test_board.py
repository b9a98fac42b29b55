import datetime as dt
import itertools
import json
import logging

import pytest

from gantt_board.board import Board
from gantt_board.board_models import AITaskProposal, Assignee, HistoryKind, TaskCreateRequest, TaskStatus
from gantt_board.calendar_policy import CalendarPolicy
from gantt_board.persistence import JsonFileSink
from gantt_board.scheduling import BoardValidationError
from gantt_board.snapshot import BoardSnapshot

RIN = Assignee(account_id="acc-rin", name="Rin", avatar="R")


class RecordingSink:
    def __init__(self):
        self.saved = []

    def save(self, snapshot):
        self.saved.append(snapshot)


class BrokenSink:
    def save(self, snapshot):
        raise OSError("disk full")


def _board(sink=None, **kwargs):
    ticks = itertools.count()
    kwargs.setdefault("clock", lambda: dt.datetime(2026, 1, 5, 9, 0) + dt.timedelta(minutes=next(ticks)))
    return Board(
        policy=CalendarPolicy(fixed_holidays=frozenset()),
        sink=sink,
        collaborators=[RIN],
        actor_name="Yuki",
        today=lambda: dt.date(2026, 1, 5),
        choose_color=lambda colors: colors[0],
        **kwargs,
    )


def _request(title="Storyboard", start=dt.date(2026, 1, 5), work_days=5, assignee_ids=()):
    return TaskCreateRequest(title=title, start_date=start, work_days=work_days, assignee_ids=tuple(assignee_ids))


def test_manual_tasks_go_to_top_of_unassigned():
    board = _board()

    first = board.add_task(_request("First"))
    second = board.add_task(_request("Second", assignee_ids=["acc-rin", "acc-unknown"]))

    assert board.store.task_ids("") == [second.id, first.id]
    assert first.assignees[0].name == "Unassigned"
    assert second.assignees == [RIN]
    assert first.color == "bg-slate-400"
    assert first.history == []
    assert board.end_date(first.id) == dt.date(2026, 1, 9)


def test_every_committed_mutation_is_persisted():
    sink = RecordingSink()
    board = _board(sink)
    group = board.add_group("Art", "bg-pink-500")
    task = board.add_task(_request())

    board.append_to_group_end(task.id, group.id)
    board.update_progress(task.id, 100)
    board.complete(task.id)

    assert len(sink.saved) == 5
    latest = sink.saved[-1]
    assert latest.tasks[0].status is TaskStatus.COMPLETED
    assert latest.tasks[0].color == "bg-pink-500"


def test_noops_are_not_persisted():
    sink = RecordingSink()
    board = _board(sink)
    task = board.add_task(_request())
    sink.saved.clear()

    board.complete(task.id)
    board.toggle_collapse(task.id)
    board.restore(task.id)
    board.add_comment(task.id, "")
    board.update_work_days(task.id, 0)
    board.reorder_within_group(task.id, task.id, True)
    board.begin_drag(task.id)
    board.hover_drag("other", 10, 0, 48)
    board.cancel_drag()

    assert sink.saved == []


def test_snapshot_is_detached_from_live_board():
    sink = RecordingSink()
    board = _board(sink)
    task = board.add_task(_request())

    board.update_progress(task.id, 50)

    assert sink.saved[0].tasks[0].progress == 0
    assert sink.saved[1].tasks[0].progress == 50


def test_sink_failure_is_logged_and_board_keeps_state(caplog):
    board = _board(BrokenSink())

    with caplog.at_level(logging.ERROR, logger="gantt_board.persistence"):
        task = board.add_task(_request())

    assert board.task(task.id) is task
    assert "Failed to persist" in caplog.text


def test_work_day_edit_records_old_and_new_values():
    board = _board()
    task = board.add_task(_request(work_days=5))

    entry = board.update_work_days(task.id, 7, comment="extra polish")

    assert task.work_days == 7
    assert (entry.kind, entry.old_value, entry.new_value, entry.comment) == (HistoryKind.WORK_DAYS, 5, 7, "extra polish")
    assert entry.actor_name == "Yuki"
    assert board.end_date(task.id) == dt.date(2026, 1, 13)


def test_progress_updates_clamp_and_write_no_history():
    board = _board()
    task = board.add_task(_request())

    assert board.update_progress(task.id, 140)
    assert task.progress == 100
    assert task.history == []


def test_shift_start_date_notes_the_new_date():
    board = _board()
    task = board.add_task(_request())

    entry = board.shift_start_date(task.id, dt.date(2026, 1, 12))

    assert task.start_date == dt.date(2026, 1, 12)
    assert entry.comment == "Start date changed to 2026-01-12"
    assert board.shift_start_date(task.id, dt.date(2026, 1, 12)) is None


def test_delete_flow_through_board():
    board = _board()
    task = board.add_task(_request())

    assert board.request_delete(task.id)
    assert task.status is TaskStatus.ACTIVE
    assert board.confirm_delete()
    assert task.status is TaskStatus.DELETED
    assert task.id in board.store
    assert board.restore(task.id)


def test_completion_event_reaches_subscribers():
    board = _board()
    titles = []
    board.subscribe("completed", lambda event: titles.append(event.title))
    task = board.add_task(_request("Ship demo"))

    board.update_progress(task.id, 87)
    assert not board.complete(task.id)
    board.update_progress(task.id, 100)
    assert board.complete(task.id)

    assert titles == ["Ship demo"]


def test_ingest_through_board_is_idempotent():
    sink = RecordingSink()
    board = _board(sink)
    proposal = AITaskProposal(title="Build UI", start_date=dt.date(2026, 2, 1), assignee_name="Rin")

    board.ingest_proposal(proposal)
    board.ingest_proposal(proposal)

    assert len(board.tasks()) == 1
    assert sum(len(task.history) for task in board.tasks()) == 1
    assert board.tasks()[0].assignees == [RIN]
    assert len(sink.saved) == 1


def test_drag_commit_through_board():
    board = _board()
    group = board.add_group("Art")
    first = board.add_task(_request("one"))
    second = board.add_task(_request("two"))
    board.append_to_group_end(first.id, group.id)

    board.begin_drag(second.id)
    indicator = board.hover_drag(first.id, pointer_y=40, row_top=0, row_height=48)
    assert board.store.task_ids("") == [second.id]
    assert board.commit_drag(first.id, indicator.insert_below)

    assert board.store.task_ids(group.id) == [first.id, second.id]
    assert second.color == group.color


def test_group_expansion_toggle():
    board = _board()
    group = board.add_group("Art")

    assert board.toggle_group_expanded(group.id)
    assert group.expanded is False
    assert board.add_group("   ") is None


def test_summary_figures():
    board = _board()
    done = board.add_task(_request("done"))
    half = board.add_task(_request("half"))
    gone = board.add_task(_request("gone"))
    board.update_progress(done.id, 100)
    board.complete(done.id)
    board.update_progress(half.id, 45)
    board.update_progress(gone.id, 10)
    board.request_delete(gone.id)
    board.confirm_delete()

    assert board.overall_progress() == 73
    assert board.status_counts() == {TaskStatus.ACTIVE: 1, TaskStatus.COMPLETED: 1, TaskStatus.DELETED: 1}


def test_recent_activity_is_most_recent_first():
    board = _board()
    task = board.add_task(_request())
    board.add_comment(task.id, "first")
    board.add_comment(task.id, "second")

    assert [entry.comment for _, entry in board.recent_activity()] == ["second", "first"]


def test_year_removal_blocked_by_tasks():
    board = _board()
    board.add_task(_request(start=dt.date(2026, 12, 30), work_days=5))

    assert not board.can_remove_year(2026)
    assert not board.can_remove_year(2027)
    assert board.can_remove_year(2028)


def test_milestones_are_keyed_by_date():
    sink = RecordingSink()
    board = _board(sink)
    day = dt.date(2026, 2, 14)

    created = board.save_milestone(day, "  Beta  ")
    edited = board.save_milestone(day, "Beta 2", "bg-red-500")

    assert edited is created
    assert (created.label, created.color) == ("Beta 2", "bg-red-500")
    assert len(board.milestones) == 1
    assert board.save_milestone(day, " ") is None
    assert board.delete_milestone(created.id)
    assert not board.delete_milestone(created.id)
    assert len(sink.saved) == 3


def test_calendar_change_moves_end_dates():
    board = _board()
    task = board.add_task(_request(start=dt.date(2026, 1, 8), work_days=4))
    assert board.end_date(task.id) == dt.date(2026, 1, 13)

    assert board.set_calendar_policy(CalendarPolicy())
    assert board.end_date(task.id) == dt.date(2026, 1, 14)
    assert not board.set_calendar_policy(CalendarPolicy())


def test_snapshot_json_round_trip_rebuilds_order(tmp_path):
    sink = JsonFileSink(tmp_path, "p1")
    board = _board(sink)
    art = board.add_group("Art", "bg-pink-500")
    code = board.add_group("Code", "bg-green-500")
    tasks = [board.add_task(_request(f"task {n}")) for n in range(4)]
    board.append_to_group_end(tasks[0].id, code.id)
    board.append_to_group_end(tasks[1].id, art.id)
    board.reorder_groups(code.id, art.id, insert_below=False)
    board.update_work_days(tasks[1].id, 8, comment="rework")
    board.save_milestone(dt.date(2026, 3, 1), "Alpha")

    stored = json.loads(sink.path.read_text(encoding="utf-8"))
    assert stored["ganttTasks"][0]["startDate"] == "2026-01-05"
    assert stored["holidaySettings"]["saturday"] is True

    restored = Board.from_snapshot(sink.load())

    assert restored.store.group_ids() == [code.id, art.id]
    assert restored.store.task_ids("") == board.store.task_ids("")
    assert restored.store.task_ids(art.id) == [tasks[1].id]
    assert restored.task(tasks[1].id).history == board.task(tasks[1].id).history
    assert restored.policy == board.policy
    assert restored.snapshot().to_dict() == board.snapshot().to_dict()


def test_snapshot_from_dict_rejects_malformed_data():
    with pytest.raises(BoardValidationError):
        BoardSnapshot.from_dict({"ganttTasks": [{"id": "t1"}]})


def _stored_task(task_id="t1", **overrides):
    data = {"id": task_id, "title": "Storyboard", "startDate": "2026-01-05", "workDays": 3}
    data.update(overrides)
    return data


def test_snapshot_rejects_collapsed_active_task():
    with pytest.raises(BoardValidationError, match="cannot be collapsed"):
        BoardSnapshot.from_dict({"ganttTasks": [_stored_task(status="active", isCollapsed=True)]})

    restored = Board.from_snapshot(
        BoardSnapshot.from_dict({"ganttTasks": [_stored_task(status="deleted", isCollapsed=True)]})
    )
    assert restored.toggle_collapse("t1")


def test_snapshot_rejects_duplicate_ids():
    with pytest.raises(BoardValidationError, match="duplicate id"):
        BoardSnapshot.from_dict({"ganttTasks": [_stored_task("t"), _stored_task("t")]})

    with pytest.raises(BoardValidationError, match="duplicate id"):
        BoardSnapshot.from_dict(
            {"taskGroups": [{"id": "g", "name": "Art"}], "ganttTasks": [_stored_task("g")]}
        )


def test_seed_refuses_to_drop_repeated_tasks():
    board = _board()
    first = board.add_task(_request("one"))
    snapshot = BoardSnapshot(tasks=(first, first), groups=(), milestones=())

    with pytest.raises(BoardValidationError, match="duplicate id"):
        Board.from_snapshot(snapshot)


def test_snapshot_from_json_rejects_non_object_documents():
    with pytest.raises(BoardValidationError, match="expected mapping"):
        BoardSnapshot.from_json("[]")


def test_board_from_snapshot_does_not_share_records():
    board = _board()
    task = board.add_task(_request())
    board.add_group("Art")
    board.save_milestone(dt.date(2026, 2, 14), "Beta")
    snapshot = board.snapshot()

    restored = Board.from_snapshot(snapshot)
    restored.update_progress(task.id, 60)
    restored.groups()[0].name = "Renamed"
    restored.save_milestone(dt.date(2026, 2, 14), "Beta 2")

    assert snapshot.tasks[0].progress == 0
    assert snapshot.groups[0].name == "Art"
    assert snapshot.milestones[0].label == "Beta"


def test_history_timestamps_keep_microseconds_through_json():
    board = _board(clock=lambda: dt.datetime(2026, 1, 5, 9, 0, 0, 123456))
    task = board.add_task(_request())
    board.add_comment(task.id, "precise")

    restored = BoardSnapshot.from_json(board.snapshot().to_json())

    assert restored.tasks[0].history[0].timestamp == dt.datetime(2026, 1, 5, 9, 0, 0, 123456)
