from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from typing import Any

import yaml

from .board import Board
from .board_models import (
    DEFAULT_GROUP_COLOR,
    DEFAULT_MILESTONE_COLOR,
    UNASSIGNED_COLOR,
    UNASSIGNED_GROUP,
    AITaskProposal,
    Assignee,
    GanttTask,
    Milestone,
    TaskCreateRequest,
    TaskGroup,
    TaskStatus,
    new_id,
)
from .calendar_policy import WEEKDAY_NAMES, CalendarPolicy, format_day
from .scheduling import BoardValidationError


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like tasks[0].start_date."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


def load_calendar_policy(path: str) -> CalendarPolicy:
    """Load a CalendarPolicy from a YAML file whose top level is the calendar mapping."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_calendar_policy(raw if raw is not None else {}, _Path())


def load_board(path: str, **board_kwargs: Any) -> Board:
    """Load a seed Board (calendar, groups, tasks, milestones) from a YAML file."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return _parse_board(raw, _Path(), board_kwargs)


def _parse_board(data: Any, path: _Path, board_kwargs: dict[str, Any]) -> Board:
    if not isinstance(data, dict):
        raise BoardValidationError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"calendar", "groups", "tasks", "milestones"}, path)

    calendar_raw = data.get("calendar")
    policy = parse_calendar_policy(calendar_raw if calendar_raw is not None else {}, path.child("calendar"))

    groups: list[TaskGroup] = []
    ids: set[str] = set()
    for idx, group_raw in enumerate(_optional_list(data, "groups", path)):
        groups.append(_parse_group(group_raw, path.child(f"groups[{idx}]"), ids))

    colors = {group.id: group.color for group in groups}
    tasks: list[GanttTask] = []
    for idx, task_raw in enumerate(_optional_list(data, "tasks", path)):
        tasks.append(_parse_task(task_raw, path.child(f"tasks[{idx}]"), ids, colors))

    milestones: list[Milestone] = []
    seen_days: set[_dt.date] = set()
    for idx, milestone_raw in enumerate(_optional_list(data, "milestones", path)):
        milestone = _parse_milestone(milestone_raw, path.child(f"milestones[{idx}]"))
        if milestone.date in seen_days:
            raise BoardValidationError(f"{path.child(f'milestones[{idx}]')}: duplicate milestone date {milestone.date}")
        seen_days.add(milestone.date)
        milestones.append(milestone)

    board_kwargs.setdefault("policy", policy)
    board = Board(**board_kwargs)
    board.seed(groups, tasks, milestones)
    return board


def parse_calendar_policy(data: Any, path: _Path = _Path()) -> CalendarPolicy:
    if not isinstance(data, dict):
        raise BoardValidationError(f"{path}: expected mapping for calendar")
    _assert_allowed_keys(data, {"weekdays", "fixed_holidays", "observe_fixed_holidays"}, path)

    defaults = CalendarPolicy()
    flags = defaults.weekday_holidays
    if "weekdays" in data:
        flags = _parse_weekdays(data["weekdays"], path.child("weekdays"))

    fixed = defaults.fixed_holidays
    if "fixed_holidays" in data:
        raw = data["fixed_holidays"]
        if not isinstance(raw, list):
            raise BoardValidationError(f"{path.child('fixed_holidays')}: expected list of dates")
        fixed = frozenset(
            format_day(_parse_date(value, path.child(f"fixed_holidays[{idx}]"))) for idx, value in enumerate(raw)
        )

    observe = data.get("observe_fixed_holidays", True)
    if not isinstance(observe, bool):
        raise BoardValidationError(f"{path.child('observe_fixed_holidays')}: expected boolean")

    return CalendarPolicy(weekday_holidays=flags, fixed_holidays=fixed, observe_fixed_holidays=observe)


def _parse_weekdays(value: Any, path: _Path) -> tuple[bool, bool, bool, bool, bool, bool, bool]:
    # Either a list of holiday weekday names or a full name -> bool mapping.
    if isinstance(value, list):
        names: set[str] = set()
        for idx, name in enumerate(value):
            if not isinstance(name, str) or name.lower() not in WEEKDAY_NAMES:
                raise BoardValidationError(f"{path}[{idx}]: expected weekday name, got {name!r}")
            names.add(name.lower())
        return tuple(name in names for name in WEEKDAY_NAMES)  # type: ignore[return-value]

    if isinstance(value, dict):
        lowered = {str(key).lower(): flag for key, flag in value.items()}
        _assert_allowed_keys(lowered, set(WEEKDAY_NAMES), path)
        flags = []
        for name, default in zip(WEEKDAY_NAMES, CalendarPolicy().weekday_holidays):
            flag = lowered.get(name, default)
            if not isinstance(flag, bool):
                raise BoardValidationError(f"{path.child(name)}: expected boolean")
            flags.append(flag)
        return tuple(flags)  # type: ignore[return-value]

    raise BoardValidationError(f"{path}: expected list of weekday names or mapping of weekday flags")


def _parse_group(data: Any, path: _Path, ids: set[str]) -> TaskGroup:
    if not isinstance(data, dict):
        raise BoardValidationError(f"{path}: expected mapping for group")
    _assert_allowed_keys(data, {"id", "name", "color", "expanded"}, path)
    group_id = _require_id(data, path, ids)
    name = _require_str(data, "name", path)
    color = _optional_str(data, "color", path) or DEFAULT_GROUP_COLOR
    expanded = data.get("expanded", True)
    if not isinstance(expanded, bool):
        raise BoardValidationError(f"{path.child('expanded')}: expected boolean")
    return TaskGroup(id=group_id, name=name, color=color, expanded=expanded)


def _parse_task(data: Any, path: _Path, ids: set[str], group_colors: dict[str, str]) -> GanttTask:
    if not isinstance(data, dict):
        raise BoardValidationError(f"{path}: expected mapping for task")
    _assert_allowed_keys(
        data,
        {"id", "title", "start_date", "work_days", "group", "assignees", "progress", "color", "status", "collapsed"},
        path,
    )
    task_id = _require_id(data, path, ids)
    title = _require_str(data, "title", path)
    start_date = _parse_date(_require_value(data, "start_date", path), path.child("start_date"))
    work_days = _parse_work_days(_require_value(data, "work_days", path), path.child("work_days"))

    group_id = _optional_str(data, "group", path) or UNASSIGNED_GROUP
    if group_id != UNASSIGNED_GROUP and group_id not in group_colors:
        raise BoardValidationError(f"{path.child('group')}: unknown group '{group_id}'")

    progress = data.get("progress", 0)
    if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
        raise BoardValidationError(f"{path.child('progress')}: expected integer between 0 and 100")

    status_raw = _optional_str(data, "status", path) or TaskStatus.ACTIVE.value
    try:
        status = TaskStatus(status_raw)
    except ValueError as exc:
        raise BoardValidationError(f"{path.child('status')}: unknown status '{status_raw}'") from exc
    if status is TaskStatus.COMPLETED and progress != 100:
        raise BoardValidationError(f"{path}: completed tasks must have progress 100")

    collapsed = data.get("collapsed", status is not TaskStatus.ACTIVE)
    if not isinstance(collapsed, bool):
        raise BoardValidationError(f"{path.child('collapsed')}: expected boolean")
    if collapsed and status is TaskStatus.ACTIVE:
        raise BoardValidationError(f"{path.child('collapsed')}: active tasks cannot be collapsed")

    assignees_raw = data.get("assignees", [])
    if not isinstance(assignees_raw, list):
        raise BoardValidationError(f"{path.child('assignees')}: expected list of names")
    assignees: list[Assignee] = []
    for idx, name in enumerate(assignees_raw):
        if not isinstance(name, str) or not name.strip():
            raise BoardValidationError(f"{path.child(f'assignees[{idx}]')}: expected non-empty string")
        assignees.append(Assignee.display_only(name.strip()))

    color = _optional_str(data, "color", path) or group_colors.get(group_id, UNASSIGNED_COLOR)

    return GanttTask(
        id=task_id,
        title=title,
        start_date=start_date,
        work_days=work_days,
        assignees=assignees,
        progress=progress,
        color=color,
        group_id=group_id,
        status=status,
        collapsed=collapsed,
    )


def _parse_milestone(data: Any, path: _Path) -> Milestone:
    if not isinstance(data, dict):
        raise BoardValidationError(f"{path}: expected mapping for milestone")
    _assert_allowed_keys(data, {"id", "date", "label", "color"}, path)
    day = _parse_date(_require_value(data, "date", path), path.child("date"))
    label = _require_str(data, "label", path).strip()
    color = _optional_str(data, "color", path) or DEFAULT_MILESTONE_COLOR
    milestone_id = _optional_str(data, "id", path) or new_id("ms")
    return Milestone(id=milestone_id, date=day, label=label, color=color)


def parse_task_request(data: Any) -> TaskCreateRequest:
    """Validate a manual creation payload (camelCase form keys) before it reaches a Board."""

    path = _Path(("request",))
    if not isinstance(data, dict):
        raise BoardValidationError(f"{path}: expected mapping")
    _assert_allowed_keys(data, {"title", "assigneeIds", "startDate", "workDays"}, path)
    title = _require_str(data, "title", path).strip()
    start_date = _parse_date(_require_value(data, "startDate", path), path.child("startDate"))
    work_days = _parse_work_days(_require_value(data, "workDays", path), path.child("workDays"))

    assignee_ids = data.get("assigneeIds", [])
    if not isinstance(assignee_ids, list) or not all(isinstance(value, str) for value in assignee_ids):
        raise BoardValidationError(f"{path.child('assigneeIds')}: expected list of account ids")

    return TaskCreateRequest(title=title, start_date=start_date, work_days=work_days, assignee_ids=tuple(assignee_ids))


def parse_ai_proposal(data: Any) -> AITaskProposal:
    """Read an assistant task payload; optional fields may be missing or null."""

    path = _Path(("proposal",))
    if not isinstance(data, dict):
        raise BoardValidationError(f"{path}: expected mapping")
    _assert_allowed_keys(
        data, {"title", "assigneeId", "assigneeName", "startDate", "hours", "groupId", "groupName"}, path
    )
    title = _require_str(data, "title", path).strip()

    start_raw = data.get("startDate")
    start_date = _parse_date(start_raw, path.child("startDate")) if start_raw not in (None, "") else None

    hours = data.get("hours")
    if hours is not None:
        if isinstance(hours, bool) or not isinstance(hours, (int, float)):
            raise BoardValidationError(f"{path.child('hours')}: expected number")
        hours = int(hours)

    return AITaskProposal(
        title=title,
        assignee_name=_optional_str(data, "assigneeName", path) or None,
        start_date=start_date,
        hours=hours,
        group_id=_optional_str(data, "groupId", path) or None,
        group_name=_optional_str(data, "groupName", path) or None,
    )


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(set(data.keys()) - allowed)
    if extras:
        raise BoardValidationError(f"{path}: unexpected fields {extras}")


def _optional_list(data: dict[str, Any], key: str, path: _Path) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise BoardValidationError(f"{path.child(key)}: expected list")
    return value


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise BoardValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _optional_str(data: dict[str, Any], key: str, path: _Path) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise BoardValidationError(f"{path.child(key)}: expected string")
    return value


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise BoardValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _parse_date(value: Any, path: _Path) -> _dt.date:
    # YAML turns unquoted YYYY-MM-DD into date objects already.
    if isinstance(value, _dt.datetime):
        raise BoardValidationError(f"{path}: expected YYYY-MM-DD date, got a timestamp")
    if isinstance(value, _dt.date):
        return value
    if not isinstance(value, str):
        raise BoardValidationError(f"{path}: expected YYYY-MM-DD string")
    try:
        parsed = _dt.date.fromisoformat(value)
    except ValueError as exc:
        raise BoardValidationError(f"{path}: expected YYYY-MM-DD string") from exc
    return parsed


def _parse_work_days(value: Any, path: _Path) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise BoardValidationError(f"{path}: expected integer")
    if value < 1:
        raise BoardValidationError(f"{path}: must be at least 1, got {value}")
    return value


def _require_id(data: dict[str, Any], path: _Path, ids: set[str]) -> str:
    value = _require_str(data, "id", path)
    if value in ids:
        raise BoardValidationError(f"{path.child('id')}: duplicate id '{value}'")
    ids.add(value)
    return value
