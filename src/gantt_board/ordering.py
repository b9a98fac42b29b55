from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Literal

from .board_models import UNASSIGNED_GROUP, GanttTask, TaskGroup

logger = logging.getLogger(__name__)

DragKind = Literal["task", "group"]


def _reinsert(sequence: list[str], item: str, target: str, insert_below: bool) -> list[str]:
    """Remove `item` and put it next to `target`, using the target's index after removal."""

    remaining = [value for value in sequence if value != item]
    index = remaining.index(target)
    if insert_below:
        index += 1
    remaining.insert(index, item)
    return remaining


class TaskOrderingStore:
    """
    Canonical ordered collection of tasks-within-group and groups-within-board.

    Records live in id -> record maps; order lives in explicit id lists, one
    per group plus one for unassigned tasks, and a separate group order.
    Order only changes through the reorder/move operations below.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, GanttTask] = {}
        self._groups: dict[str, TaskGroup] = {}
        self._task_order: dict[str, list[str]] = {UNASSIGNED_GROUP: []}
        self._group_order: list[str] = []

    # --- lookup -----------------------------------------------------------

    def get_task(self, task_id: str) -> GanttTask | None:
        return self._tasks.get(task_id)

    def get_group(self, group_id: str) -> TaskGroup | None:
        return self._groups.get(group_id)

    def has_group(self, group_id: str) -> bool:
        """True for an existing group id or the unassigned bucket ("")."""
        return group_id == UNASSIGNED_GROUP or group_id in self._groups

    def task_ids(self, group_id: str = UNASSIGNED_GROUP) -> list[str]:
        return list(self._task_order.get(group_id, []))

    def group_ids(self) -> list[str]:
        return list(self._group_order)

    def groups(self) -> list[TaskGroup]:
        return [self._groups[group_id] for group_id in self._group_order]

    def tasks_in_group(self, group_id: str = UNASSIGNED_GROUP) -> list[GanttTask]:
        return [self._tasks[task_id] for task_id in self._task_order.get(group_id, [])]

    def iter_tasks(self) -> Iterator[GanttTask]:
        """Tasks in display order: unassigned first, then each group in group order."""
        for group_id in [UNASSIGNED_GROUP, *self._group_order]:
            for task_id in self._task_order[group_id]:
                yield self._tasks[task_id]

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    # --- insertion --------------------------------------------------------

    def add_group(self, group: TaskGroup) -> bool:
        if group.id == UNASSIGNED_GROUP or group.id in self._groups:
            logger.debug("Ignoring group with reserved or duplicate id %r", group.id)
            return False
        self._groups[group.id] = group
        self._group_order.append(group.id)
        self._task_order[group.id] = []
        return True

    def add_task(self, task: GanttTask, at_top: bool = False) -> bool:
        """Insert a new task at the end (or top) of its group's order."""

        if task.id in self._tasks:
            logger.debug("Ignoring duplicate task id %r", task.id)
            return False
        if not self.has_group(task.group_id):
            logger.debug("Task %r references unknown group %r", task.id, task.group_id)
            return False
        self._tasks[task.id] = task
        order = self._task_order[task.group_id]
        if at_top:
            order.insert(0, task.id)
        else:
            order.append(task.id)
        return True

    # --- reordering -------------------------------------------------------

    def reorder_within_group(self, task_id: str, target_id: str, insert_below: bool) -> bool:
        """Move a task next to another task of the same group."""

        task = self._tasks.get(task_id)
        target = self._tasks.get(target_id)
        if task is None or target is None or task_id == target_id:
            return False
        if task.group_id != target.group_id:
            return False
        order = self._task_order[task.group_id]
        self._task_order[task.group_id] = _reinsert(order, task_id, target_id, insert_below)
        return True

    def move_to_group(
        self,
        task_id: str,
        target_group_id: str,
        target_id: str | None = None,
        insert_below: bool = False,
    ) -> bool:
        """
        Move a task into `target_group_id`, next to `target_id` or at the end.

        The task takes on the destination group's color. Moving into the
        unassigned bucket keeps the current color.
        """

        task = self._tasks.get(task_id)
        if task is None or not self.has_group(target_group_id):
            return False
        if target_id is not None:
            if target_id == task_id or target_id not in self._task_order[target_group_id]:
                return False

        source = self._task_order[task.group_id]
        source.remove(task_id)
        destination = self._task_order[target_group_id]
        if target_id is None:
            destination.append(task_id)
        else:
            index = destination.index(target_id) + (1 if insert_below else 0)
            destination.insert(index, task_id)

        task.group_id = target_group_id
        group = self._groups.get(target_group_id)
        if group is not None:
            task.color = group.color
        return True

    def append_to_group_end(self, task_id: str, group_id: str) -> bool:
        return self.move_to_group(task_id, group_id, None)

    def reorder_groups(self, group_id: str, target_group_id: str, insert_below: bool) -> bool:
        if group_id == target_group_id:
            return False
        if group_id not in self._groups or target_group_id not in self._groups:
            return False
        self._group_order = _reinsert(self._group_order, group_id, target_group_id, insert_below)
        return True


@dataclass(frozen=True)
class DropIndicator:
    """Transient hover feedback: where the dragged row would land."""

    target_id: str
    insert_below: bool


class DragSession:
    """
    Three-phase drag protocol over a TaskOrderingStore.

    `begin` marks the dragged item, `hover` only computes an indicator, and
    `commit` is the single place the committed order changes. `cancel`
    drops the drag state.
    """

    def __init__(self, store: TaskOrderingStore) -> None:
        self._store = store
        self.dragged_id: str | None = None
        self.dragged_kind: DragKind | None = None
        self.indicator: DropIndicator | None = None

    @property
    def active(self) -> bool:
        return self.dragged_id is not None

    def begin(self, item_id: str) -> bool:
        if self._store.get_task(item_id) is not None:
            kind: DragKind = "task"
        elif self._store.get_group(item_id) is not None:
            kind = "group"
        else:
            return False
        self.dragged_id = item_id
        self.dragged_kind = kind
        self.indicator = None
        return True

    def hover(self, target_id: str, pointer_y: float, row_top: float, row_height: float) -> DropIndicator | None:
        if self.dragged_id is None or target_id == self.dragged_id:
            self.indicator = None
            return None
        midpoint = row_top + row_height / 2
        self.indicator = DropIndicator(target_id=target_id, insert_below=pointer_y >= midpoint)
        return self.indicator

    def commit(self, target_id: str, insert_below: bool) -> bool:
        dragged_id, kind = self.dragged_id, self.dragged_kind
        self.cancel()
        if dragged_id is None or dragged_id == target_id:
            return False

        if kind == "group":
            return self._store.reorder_groups(dragged_id, target_id, insert_below)

        dragged = self._store.get_task(dragged_id)
        target = self._store.get_task(target_id)
        if dragged is None or target is None:
            return False
        if dragged.group_id == target.group_id:
            return self._store.reorder_within_group(dragged_id, target_id, insert_below)
        return self._store.move_to_group(dragged_id, target.group_id, target_id, insert_below)

    def commit_to_group(self, group_id: str) -> bool:
        """Drop a dragged task on a group heading: it goes to the end of that group."""

        dragged_id, kind = self.dragged_id, self.dragged_kind
        self.cancel()
        if dragged_id is None or kind != "task":
            return False
        return self._store.append_to_group_end(dragged_id, group_id)

    def cancel(self) -> None:
        self.dragged_id = None
        self.dragged_kind = None
        self.indicator = None
