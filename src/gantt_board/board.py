from __future__ import annotations

import copy
import logging
import random
from collections import Counter
from datetime import date
from typing import Callable, Sequence

from .board_models import (
    DEFAULT_GROUP_COLOR,
    DEFAULT_MILESTONE_COLOR,
    UNASSIGNED_ASSIGNEE,
    UNASSIGNED_COLOR,
    UNASSIGNED_GROUP,
    AITaskProposal,
    Assignee,
    BarSegment,
    FlatRenderRow,
    GanttTask,
    HistoryEntry,
    Milestone,
    TaskCreateRequest,
    TaskGroup,
    TaskStatus,
    new_id,
)
from .calendar_policy import CalendarPolicy, format_day
from .ingest import AIIngestGate
from .lifecycle import BoardEvent, Clock, EventBus, EventKind, HistoryLedger, TaskLifecycle, local_now, recent_activity
from .milestones import MilestoneRegistry
from .ordering import DragSession, DropIndicator, TaskOrderingStore
from .persistence import NullSink, PersistenceSink, hand_off
from .render_rows import task_touches_year, to_render_rows
from .scheduling import BoardValidationError, compute_work_days, get_segments, task_end_date
from .snapshot import BoardSnapshot

logger = logging.getLogger(__name__)


class Board:
    """
    One project's dashboard model: ordering store, lifecycle, ledger,
    AI intake and milestones over a shared calendar policy.

    Every operation that changes committed state hands a fresh snapshot to
    the persistence sink. Operations that do nothing return False or None.
    """

    def __init__(
        self,
        policy: CalendarPolicy | None = None,
        sink: PersistenceSink | None = None,
        collaborators: Sequence[Assignee] = (),
        actor_name: str = "Me",
        clock: Clock = local_now,
        today: Callable[[], date] = date.today,
        choose_color: Callable[[Sequence[str]], str] = random.choice,
    ) -> None:
        self.policy = policy or CalendarPolicy()
        self.actor_name = actor_name
        self.events = EventBus()
        self.store = TaskOrderingStore()
        self.ledger = HistoryLedger(self.events, clock)
        self.lifecycle = TaskLifecycle(self.events)
        self.milestones = MilestoneRegistry()
        self.drag = DragSession(self.store)
        self.ingest = AIIngestGate(
            self.store,
            self.ledger,
            collaborators=collaborators,
            events=self.events,
            today=today,
            choose_color=choose_color,
        )
        self._sink: PersistenceSink = sink or NullSink()
        self._collaborators = {account.account_id: account for account in collaborators}

    @classmethod
    def from_snapshot(cls, snapshot: BoardSnapshot, **kwargs) -> "Board":
        if snapshot.calendar is not None and "policy" not in kwargs:
            kwargs["policy"] = snapshot.calendar
        board = cls(**kwargs)
        board.seed(
            copy.deepcopy(list(snapshot.groups)),
            copy.deepcopy(list(snapshot.tasks)),
            copy.deepcopy(list(snapshot.milestones)),
        )
        return board

    def seed(self, groups: Sequence[TaskGroup], tasks: Sequence[GanttTask], milestones: Sequence[Milestone]) -> None:
        """
        Load stored records without persisting; task order follows the given sequence.

        Raises BoardValidationError when a group or task id is reserved or repeated.
        """

        for group in groups:
            if not self.store.add_group(group):
                raise BoardValidationError(f"cannot load group {group.id!r}: reserved or duplicate id")
        for task in tasks:
            if not self.store.has_group(task.group_id):
                logger.warning("Task %r points at missing group %r; moving it to unassigned", task.id, task.group_id)
                task.group_id = UNASSIGNED_GROUP
            if not self.store.add_task(task):
                raise BoardValidationError(f"cannot load task {task.id!r}: duplicate id")
        self.milestones = MilestoneRegistry(milestones)

    # --- persistence ------------------------------------------------------

    def snapshot(self) -> BoardSnapshot:
        return BoardSnapshot.capture(
            self.store.iter_tasks(),
            self.store.groups(),
            self.milestones,
            calendar=self.policy,
        )

    def _commit(self, changed: bool) -> bool:
        if changed:
            hand_off(self._sink, self.snapshot())
        return changed

    def subscribe(self, kind: EventKind, callback: Callable[[BoardEvent], None]) -> Callable[[], None]:
        return self.events.subscribe(kind, callback)

    # --- lookup -----------------------------------------------------------

    def task(self, task_id: str) -> GanttTask | None:
        return self.store.get_task(task_id)

    def tasks(self) -> list[GanttTask]:
        return list(self.store.iter_tasks())

    def groups(self) -> list[TaskGroup]:
        return self.store.groups()

    # --- creation ---------------------------------------------------------

    def add_group(self, name: str, color: str = DEFAULT_GROUP_COLOR) -> TaskGroup | None:
        if not name.strip():
            return None
        group = TaskGroup(id=new_id("g"), name=name.strip(), color=color, expanded=True)
        self._commit(self.store.add_group(group))
        return group

    def toggle_group_expanded(self, group_id: str) -> bool:
        group = self.store.get_group(group_id)
        if group is None:
            return False
        group.expanded = not group.expanded
        return self._commit(True)

    def add_task(self, request: TaskCreateRequest) -> GanttTask:
        """Create a task from an already validated request at the top of the unassigned list."""

        assignees = [self._collaborators[account_id] for account_id in request.assignee_ids if account_id in self._collaborators]
        task = GanttTask(
            id=new_id("t"),
            title=request.title,
            start_date=request.start_date,
            work_days=request.work_days,
            assignees=assignees or [UNASSIGNED_ASSIGNEE],
            progress=0,
            color=UNASSIGNED_COLOR,
            group_id=UNASSIGNED_GROUP,
            status=TaskStatus.ACTIVE,
        )
        self.store.add_task(task, at_top=True)
        self.events.emit(BoardEvent("task_created", task.id, task.title))
        self._commit(True)
        return task

    def ingest_proposal(self, proposal: AITaskProposal) -> GanttTask | None:
        task = self.ingest.submit(proposal)
        self._commit(task is not None)
        return task

    # --- ordering ---------------------------------------------------------

    def reorder_within_group(self, task_id: str, target_id: str, insert_below: bool) -> bool:
        return self._commit(self.store.reorder_within_group(task_id, target_id, insert_below))

    def move_to_group(self, task_id: str, group_id: str, target_id: str | None = None, insert_below: bool = False) -> bool:
        return self._commit(self.store.move_to_group(task_id, group_id, target_id, insert_below))

    def append_to_group_end(self, task_id: str, group_id: str) -> bool:
        return self._commit(self.store.append_to_group_end(task_id, group_id))

    def reorder_groups(self, group_id: str, target_group_id: str, insert_below: bool) -> bool:
        return self._commit(self.store.reorder_groups(group_id, target_group_id, insert_below))

    def begin_drag(self, item_id: str) -> bool:
        return self.drag.begin(item_id)

    def hover_drag(self, target_id: str, pointer_y: float, row_top: float, row_height: float) -> DropIndicator | None:
        return self.drag.hover(target_id, pointer_y, row_top, row_height)

    def commit_drag(self, target_id: str, insert_below: bool) -> bool:
        return self._commit(self.drag.commit(target_id, insert_below))

    def commit_drag_to_group(self, group_id: str) -> bool:
        return self._commit(self.drag.commit_to_group(group_id))

    def cancel_drag(self) -> None:
        self.drag.cancel()

    # --- lifecycle --------------------------------------------------------

    def complete(self, task_id: str) -> bool:
        task = self.store.get_task(task_id)
        return task is not None and self._commit(self.lifecycle.complete(task))

    def request_delete(self, task_id: str) -> bool:
        task = self.store.get_task(task_id)
        return task is not None and self.lifecycle.request_delete(task)

    def confirm_delete(self) -> bool:
        return self._commit(self.lifecycle.confirm_delete())

    def cancel_delete(self) -> None:
        self.lifecycle.cancel_delete()

    def restore(self, task_id: str) -> bool:
        task = self.store.get_task(task_id)
        return task is not None and self._commit(self.lifecycle.restore(task))

    def toggle_collapse(self, task_id: str) -> bool:
        task = self.store.get_task(task_id)
        return task is not None and self._commit(self.lifecycle.toggle_collapse(task))

    # --- edits ------------------------------------------------------------

    def update_progress(self, task_id: str, progress: int) -> bool:
        task = self.store.get_task(task_id)
        if task is None:
            return False
        progress = max(0, min(100, int(progress)))
        if progress == task.progress:
            return False
        task.progress = progress
        return self._commit(True)

    def add_comment(self, task_id: str, text: str, actor_name: str | None = None) -> HistoryEntry | None:
        task = self.store.get_task(task_id)
        if task is None:
            return None
        entry = self.ledger.comment(task, text, actor_name or self.actor_name)
        self._commit(entry is not None)
        return entry

    def update_work_days(
        self,
        task_id: str,
        work_days: int,
        comment: str = "",
        actor_name: str | None = None,
    ) -> HistoryEntry | None:
        task = self.store.get_task(task_id)
        if task is None or work_days < 1:
            return None
        old_value = task.work_days
        task.work_days = work_days
        entry = self.ledger.work_days_changed(task, old_value, work_days, actor_name or self.actor_name, comment)
        self._commit(True)
        return entry

    def shift_start_date(self, task_id: str, new_start: date, actor_name: str | None = None) -> HistoryEntry | None:
        """Commit a bar drag: move the start date and note it in the ledger."""

        task = self.store.get_task(task_id)
        if task is None or task.start_date == new_start:
            return None
        task.start_date = new_start
        entry = self.ledger.comment(task, f"Start date changed to {format_day(new_start)}", actor_name or self.actor_name)
        self._commit(True)
        return entry

    # --- calendar ---------------------------------------------------------

    def set_calendar_policy(self, policy: CalendarPolicy) -> bool:
        if policy == self.policy:
            return False
        self.policy = policy
        return self._commit(True)

    def end_date(self, task_id: str) -> date | None:
        task = self.store.get_task(task_id)
        return task_end_date(task, self.policy) if task is not None else None

    def work_days_between(self, start: date, end: date) -> int:
        return compute_work_days(start, end, self.policy)

    def segments(self, task_id: str, range_start: date) -> list[BarSegment]:
        task = self.store.get_task(task_id)
        return get_segments(task, self.policy, range_start) if task is not None else []

    def render_rows(self, range_start: date) -> list[FlatRenderRow]:
        return to_render_rows(self.store, self.policy, range_start)

    # --- milestones -------------------------------------------------------

    def save_milestone(self, day: date, label: str, color: str = DEFAULT_MILESTONE_COLOR) -> Milestone | None:
        milestone = self.milestones.save(day, label, color)
        self._commit(milestone is not None)
        return milestone

    def delete_milestone(self, milestone_id: str) -> bool:
        return self._commit(self.milestones.delete(milestone_id))

    # --- summary ----------------------------------------------------------

    def overall_progress(self) -> int:
        """Rounded mean progress of every task that is not deleted."""

        live = [task for task in self.store.iter_tasks() if task.status is not TaskStatus.DELETED]
        if not live:
            return 0
        return int(sum(task.progress for task in live) / len(live) + 0.5)

    def status_counts(self) -> dict[TaskStatus, int]:
        counts = Counter(task.status for task in self.store.iter_tasks())
        return {status: counts.get(status, 0) for status in TaskStatus}

    def recent_activity(self, limit: int = 5) -> list[tuple[GanttTask, HistoryEntry]]:
        return recent_activity(self.store.iter_tasks(), limit)

    def can_remove_year(self, year: int) -> bool:
        return not any(task_touches_year(task, year, self.policy) for task in self.store.iter_tasks())

