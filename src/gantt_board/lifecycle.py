from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Literal

from .board_models import GanttTask, HistoryEntry, HistoryKind, TaskStatus, new_id

logger = logging.getLogger(__name__)

EventKind = Literal["completed", "deleted", "restored", "history_appended", "task_created"]
Clock = Callable[[], datetime]


@dataclass(frozen=True)
class BoardEvent:
    """Notification for the presentation layer; the engine renders nothing itself."""

    kind: EventKind
    task_id: str
    title: str
    entry: HistoryEntry | None = None


Listener = Callable[[BoardEvent], None]


class EventBus:
    """Synchronous fan-out of board events to subscribed callbacks."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def subscribe(self, kind: EventKind, callback: Listener) -> Callable[[], None]:
        listeners = self._listeners.setdefault(kind, [])
        listeners.append(callback)

        def unsubscribe() -> None:
            if callback in listeners:
                listeners.remove(callback)

        return unsubscribe

    def emit(self, event: BoardEvent) -> None:
        for callback in list(self._listeners.get(event.kind, [])):
            callback(event)


def local_now() -> datetime:
    return datetime.now().replace(microsecond=0)


class HistoryLedger:
    """
    Append-only audit log kept on each task.

    Entries are stored in append order and never changed or removed;
    `recent_first` gives the reading order consumers show.
    """

    def __init__(self, events: EventBus | None = None, clock: Clock = local_now) -> None:
        self._events = events or EventBus()
        self._clock = clock

    def append(
        self,
        task: GanttTask,
        kind: HistoryKind,
        actor_name: str,
        *,
        old_value: int | str | None = None,
        new_value: int | str | None = None,
        comment: str | None = None,
    ) -> HistoryEntry:
        entry = HistoryEntry(
            id=new_id("h"),
            timestamp=self._clock(),
            kind=kind,
            actor_name=actor_name,
            old_value=old_value,
            new_value=new_value,
            comment=comment,
        )
        task.history.append(entry)
        self._events.emit(BoardEvent("history_appended", task.id, task.title, entry))
        return entry

    def comment(self, task: GanttTask, text: str, actor_name: str) -> HistoryEntry | None:
        if not text.strip():
            return None
        return self.append(task, HistoryKind.COMMENT, actor_name, comment=text)

    def work_days_changed(
        self,
        task: GanttTask,
        old_value: int,
        new_value: int,
        actor_name: str,
        comment: str | None = None,
    ) -> HistoryEntry:
        return self.append(
            task,
            HistoryKind.WORK_DAYS,
            actor_name,
            old_value=old_value,
            new_value=new_value,
            comment=comment or None,
        )

    @staticmethod
    def recent_first(task: GanttTask) -> list[HistoryEntry]:
        return list(reversed(task.history))


def recent_activity(tasks: Iterable[GanttTask], limit: int = 5) -> list[tuple[GanttTask, HistoryEntry]]:
    """Ledger entries across tasks, most recent first (ties keep board order)."""

    pairs = [(task, entry) for task in tasks for entry in task.history]
    pairs.sort(key=lambda pair: pair[1].timestamp, reverse=True)
    return pairs[:limit]


class TaskLifecycle:
    """
    Status machine for tasks: active, completed, deleted.

    active -> completed needs progress == 100; active -> deleted is always
    allowed; deleted -> active restores; completed is terminal. A task may be
    collapsed only while it is not active. Rejected calls return False and
    leave the task untouched.
    """

    def __init__(self, events: EventBus | None = None) -> None:
        self._events = events or EventBus()
        self.pending_delete: GanttTask | None = None

    def complete(self, task: GanttTask) -> bool:
        if not task.is_active or task.progress != 100:
            logger.debug("Not completing task %r (status=%s, progress=%s)", task.id, task.status.value, task.progress)
            return False
        task.status = TaskStatus.COMPLETED
        task.collapsed = True
        self._events.emit(BoardEvent("completed", task.id, task.title))
        return True

    def request_delete(self, task: GanttTask) -> bool:
        """First half of the delete gesture; nothing changes until `confirm_delete`."""

        if not task.is_active:
            return False
        self.pending_delete = task
        return True

    def confirm_delete(self) -> bool:
        task, self.pending_delete = self.pending_delete, None
        if task is None:
            return False
        return self.delete(task)

    def cancel_delete(self) -> None:
        self.pending_delete = None

    def delete(self, task: GanttTask) -> bool:
        if not task.is_active:
            logger.debug("Not deleting task %r in status %s", task.id, task.status.value)
            return False
        task.status = TaskStatus.DELETED
        task.collapsed = True
        self._events.emit(BoardEvent("deleted", task.id, task.title))
        return True

    def restore(self, task: GanttTask) -> bool:
        if task.status is not TaskStatus.DELETED:
            return False
        task.status = TaskStatus.ACTIVE
        task.collapsed = False
        self._events.emit(BoardEvent("restored", task.id, task.title))
        return True

    def toggle_collapse(self, task: GanttTask) -> bool:
        if task.is_active:
            logger.debug("Refusing to collapse active task %r", task.id)
            return False
        task.collapsed = not task.collapsed
        return True
