from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from .board_models import (
    Assignee,
    GanttTask,
    HistoryEntry,
    HistoryKind,
    Milestone,
    TaskGroup,
    TaskStatus,
)
from .calendar_policy import WEEKDAY_NAMES, CalendarPolicy, format_day, parse_day
from .scheduling import BoardValidationError


@dataclass(frozen=True)
class BoardSnapshot:
    """
    Detached copy of the board handed to persistence after a committed mutation.

    Tasks are listed in display order and groups in group order, so the
    ordering store can be rebuilt from the snapshot alone. The JSON form uses
    the dashboard's storage keys (ganttTasks, taskGroups, milestones,
    holidaySettings) with ISO calendar-day strings.
    """

    tasks: tuple[GanttTask, ...]
    groups: tuple[TaskGroup, ...]
    milestones: tuple[Milestone, ...]
    calendar: CalendarPolicy | None = None

    @classmethod
    def capture(
        cls,
        tasks: Iterable[GanttTask],
        groups: Iterable[TaskGroup],
        milestones: Iterable[Milestone],
        calendar: CalendarPolicy | None = None,
    ) -> "BoardSnapshot":
        return cls(
            tasks=tuple(copy.deepcopy(list(tasks))),
            groups=tuple(copy.deepcopy(list(groups))),
            milestones=tuple(copy.deepcopy(list(milestones))),
            calendar=calendar,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "ganttTasks": [task_to_dict(task) for task in self.tasks],
            "taskGroups": [group_to_dict(group) for group in self.groups],
            "milestones": [milestone_to_dict(milestone) for milestone in self.milestones],
        }
        if self.calendar is not None:
            data["holidaySettings"] = calendar_to_dict(self.calendar)
        return data

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Any) -> "BoardSnapshot":
        if not isinstance(data, dict):
            raise BoardValidationError("snapshot: expected mapping at top level")
        try:
            settings = data.get("holidaySettings")
            snapshot = cls(
                tasks=tuple(task_from_dict(raw) for raw in data.get("ganttTasks", [])),
                groups=tuple(group_from_dict(raw) for raw in data.get("taskGroups", [])),
                milestones=tuple(milestone_from_dict(raw) for raw in data.get("milestones", [])),
                calendar=calendar_from_dict(settings) if settings is not None else None,
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise BoardValidationError(f"snapshot: malformed board data ({exc})") from exc
        _assert_unique_ids(snapshot)
        return snapshot

    @classmethod
    def from_json(cls, text: str) -> "BoardSnapshot":
        return cls.from_dict(json.loads(text))


def task_to_dict(task: GanttTask) -> dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "assignees": [
            {"gitAccountId": assignee.account_id, "name": assignee.name, "avatar": assignee.avatar}
            for assignee in task.assignees
        ],
        "startDate": format_day(task.start_date),
        "workDays": task.work_days,
        "progress": task.progress,
        "color": task.color,
        "groupId": task.group_id,
        "history": [history_to_dict(entry) for entry in task.history],
        "status": task.status.value,
        "isCollapsed": task.collapsed,
    }


def task_from_dict(data: dict[str, Any]) -> GanttTask:
    task = GanttTask(
        id=data["id"],
        title=data["title"],
        assignees=[
            Assignee(account_id=raw.get("gitAccountId", ""), name=raw["name"], avatar=raw.get("avatar", ""))
            for raw in data.get("assignees", [])
        ],
        start_date=parse_day(data["startDate"]),
        work_days=int(data["workDays"]),
        progress=int(data.get("progress", 0)),
        color=data.get("color", ""),
        group_id=data.get("groupId", ""),
        history=[history_from_dict(raw) for raw in data.get("history", [])],
        status=TaskStatus(data.get("status", TaskStatus.ACTIVE.value)),
        collapsed=bool(data.get("isCollapsed", False)),
    )
    if task.collapsed and task.is_active:
        raise BoardValidationError(f"snapshot: active task {task.id!r} cannot be collapsed")
    return task


def history_to_dict(entry: HistoryEntry) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": entry.id,
        "timestamp": entry.timestamp.isoformat(),
        "type": entry.kind.value,
        "userName": entry.actor_name,
    }
    if entry.old_value is not None:
        data["oldValue"] = entry.old_value
    if entry.new_value is not None:
        data["newValue"] = entry.new_value
    if entry.comment is not None:
        data["comment"] = entry.comment
    return data


def history_from_dict(data: dict[str, Any]) -> HistoryEntry:
    return HistoryEntry(
        id=data["id"],
        timestamp=datetime.fromisoformat(data["timestamp"]),
        kind=HistoryKind(data["type"]),
        actor_name=data["userName"],
        old_value=data.get("oldValue"),
        new_value=data.get("newValue"),
        comment=data.get("comment"),
    )


def group_to_dict(group: TaskGroup) -> dict[str, Any]:
    return {"id": group.id, "name": group.name, "color": group.color, "isExpanded": group.expanded}


def group_from_dict(data: dict[str, Any]) -> TaskGroup:
    return TaskGroup(
        id=data["id"],
        name=data["name"],
        color=data.get("color", ""),
        expanded=bool(data.get("isExpanded", True)),
    )


def milestone_to_dict(milestone: Milestone) -> dict[str, Any]:
    return {
        "id": milestone.id,
        "date": format_day(milestone.date),
        "label": milestone.label,
        "color": milestone.color,
    }


def milestone_from_dict(data: dict[str, Any]) -> Milestone:
    return Milestone(id=data["id"], date=parse_day(data["date"]), label=data["label"], color=data.get("color", ""))


def calendar_to_dict(policy: CalendarPolicy) -> dict[str, Any]:
    data: dict[str, Any] = {name: flag for name, flag in zip(WEEKDAY_NAMES, policy.weekday_holidays)}
    data["holidays"] = policy.observe_fixed_holidays
    data["fixedHolidays"] = sorted(policy.fixed_holidays)
    return data


def calendar_from_dict(data: dict[str, Any]) -> CalendarPolicy:
    defaults = CalendarPolicy()
    flags = tuple(bool(data.get(name, default)) for name, default in zip(WEEKDAY_NAMES, defaults.weekday_holidays))
    fixed = data.get("fixedHolidays")
    return CalendarPolicy(
        weekday_holidays=flags,  # type: ignore[arg-type]
        fixed_holidays=frozenset(fixed) if fixed is not None else defaults.fixed_holidays,
        observe_fixed_holidays=bool(data.get("holidays", True)),
    )


def _assert_unique_ids(snapshot: BoardSnapshot) -> None:
    seen: set[str] = set()
    for record in (*snapshot.groups, *snapshot.tasks):
        if record.id in seen:
            raise BoardValidationError(f"snapshot: duplicate id {record.id!r}")
        seen.add(record.id)
