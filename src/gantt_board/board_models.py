from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Literal
from uuid import uuid4


UNASSIGNED_GROUP = ""
"""Group id used for tasks that sit outside every group."""

UNASSIGNED_COLOR = "bg-slate-400"
DEFAULT_GROUP_COLOR = "bg-blue-500"
DEFAULT_MILESTONE_COLOR = "bg-purple-500"
AI_TASK_COLORS = ("bg-blue-500", "bg-green-500", "bg-purple-500", "bg-orange-500", "bg-pink-500")

RowKind = Literal["group", "task"]
"""Allowed render row types: group heading or task bar row."""


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:12]}"


class TaskStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    DELETED = "deleted"


class HistoryKind(str, Enum):
    """Ledger entry kinds; ASSIGNEE and PROGRESS are reserved and never produced."""

    WORK_DAYS = "workDays"
    COMMENT = "comment"
    ASSIGNEE = "assignee"
    PROGRESS = "progress"


@dataclass(frozen=True)
class Assignee:
    """A collaborator attached to a task; an empty account_id marks a display-only name."""

    account_id: str
    name: str
    avatar: str

    @classmethod
    def display_only(cls, name: str) -> "Assignee":
        return cls(account_id="", name=name, avatar=name[:1] or "?")


UNASSIGNED_ASSIGNEE = Assignee(account_id="", name="Unassigned", avatar="?")


@dataclass(frozen=True)
class HistoryEntry:
    """Immutable audit record appended to a task's ledger."""

    id: str
    timestamp: datetime
    kind: HistoryKind
    actor_name: str
    old_value: int | str | None = None
    new_value: int | str | None = None
    comment: str | None = None


@dataclass
class GanttTask:
    """Schedulable task that renders as one or more bar segments on the timeline."""

    id: str
    title: str
    start_date: date
    work_days: int
    assignees: list[Assignee] = field(default_factory=list)
    progress: int = 0
    color: str = UNASSIGNED_COLOR
    group_id: str = UNASSIGNED_GROUP
    history: list[HistoryEntry] = field(default_factory=list)
    status: TaskStatus = TaskStatus.ACTIVE
    collapsed: bool = False

    @property
    def is_active(self) -> bool:
        return self.status is TaskStatus.ACTIVE


@dataclass
class TaskGroup:
    """Named, colored bucket of tasks; its position lives in the group order."""

    id: str
    name: str
    color: str = DEFAULT_GROUP_COLOR
    expanded: bool = True


@dataclass
class Milestone:
    """Zero-duration annotation pinned to a single calendar day."""

    id: str
    date: date
    label: str
    color: str = DEFAULT_MILESTONE_COLOR


@dataclass(frozen=True)
class TaskCreateRequest:
    """Manual creation payload; validated at the boundary before it reaches a Board."""

    title: str
    start_date: date
    work_days: int
    assignee_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class AITaskProposal:
    """Task suggested by the assistant; may be delivered more than once."""

    title: str
    assignee_name: str | None = None
    start_date: date | None = None
    hours: int | None = None
    group_id: str | None = None
    group_name: str | None = None


@dataclass(frozen=True)
class BarSegment:
    """Holiday-free run of a task span, offset in whole days from the display range start."""

    start_offset_days: int
    length_days: int
    is_first: bool
    is_last: bool

    @property
    def end_offset_days(self) -> int:
        """Inclusive offset of the last day covered by the segment."""
        return self.start_offset_days + self.length_days - 1


@dataclass
class FlatRenderRow:
    """
    Flattened view of a board used by renderers.

    Only the fields relevant to drawing are kept: positional order, row kind,
    group ownership, collapse state and the bar segments of the task span.
    """

    order: int
    row_kind: RowKind
    node_id: str
    name: str
    group_id: str
    color: str
    collapsed: bool = False
    status: TaskStatus | None = None
    progress: int = 0
    start_date: date | None = None
    end_date: date | None = None
    segments: list[BarSegment] = field(default_factory=list)
