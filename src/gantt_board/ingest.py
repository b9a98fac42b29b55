from __future__ import annotations

import logging
import random
from datetime import date
from typing import Callable, Sequence

from .board_models import (
    AI_TASK_COLORS,
    UNASSIGNED_GROUP,
    AITaskProposal,
    Assignee,
    GanttTask,
    TaskStatus,
    new_id,
)
from .lifecycle import BoardEvent, EventBus, HistoryLedger
from .ordering import TaskOrderingStore

logger = logging.getLogger(__name__)

AI_ACTOR = "AI"

DedupKey = tuple[str, str, str]


def dedup_key(proposal: AITaskProposal) -> DedupKey:
    """Normalized (title, start date, assignee name); missing parts become ""."""

    start = proposal.start_date.isoformat() if proposal.start_date else ""
    return (proposal.title.strip(), start, (proposal.assignee_name or "").strip())


def resolve_assignee(name: str, collaborators: Sequence[Assignee]) -> Assignee:
    """Match a free-text name to a known collaborator, else keep it display-only."""

    for account in collaborators:
        if account.name == name:
            return account
    for account in collaborators:
        if name in account.name:
            return account
    return Assignee.display_only(name)


class AIIngestGate:
    """
    Idempotent intake for tasks proposed by the assistant.

    The first delivery of a dedup key creates exactly one task with one
    ledger entry and hands it to the ordering store. Redeliveries are
    dropped without a task, an entry, an event or an error. The key set
    lives as long as the gate does.
    """

    def __init__(
        self,
        store: TaskOrderingStore,
        ledger: HistoryLedger,
        collaborators: Sequence[Assignee] = (),
        events: EventBus | None = None,
        today: Callable[[], date] = date.today,
        choose_color: Callable[[Sequence[str]], str] = random.choice,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._collaborators = list(collaborators)
        self._events = events or EventBus()
        self._today = today
        self._choose_color = choose_color
        self._seen: set[DedupKey] = set()

    @property
    def seen_keys(self) -> frozenset[DedupKey]:
        return frozenset(self._seen)

    def has_seen(self, proposal: AITaskProposal) -> bool:
        return dedup_key(proposal) in self._seen

    def submit(self, proposal: AITaskProposal) -> GanttTask | None:
        """Ingest one delivery; returns the created task, or None for a duplicate."""

        if not proposal.title.strip():
            logger.debug("Dropping AI proposal without a title")
            return None
        key = dedup_key(proposal)
        if key in self._seen:
            logger.debug("AI proposal already processed, skipping: %r", key)
            return None
        self._seen.add(key)

        work_days = proposal.hours if proposal.hours is not None and proposal.hours > 0 else 1
        group_id = self._resolve_group(proposal)
        group = self._store.get_group(group_id)
        assignee_name = (proposal.assignee_name or "").strip()
        assignees = [resolve_assignee(assignee_name, self._collaborators)] if assignee_name else []

        task = GanttTask(
            id=new_id("ai-task"),
            title=proposal.title,
            start_date=proposal.start_date or self._today(),
            work_days=work_days,
            assignees=assignees,
            progress=0,
            color=group.color if group is not None else self._choose_color(AI_TASK_COLORS),
            group_id=group_id,
            status=TaskStatus.ACTIVE,
        )
        self._ledger.comment(task, f"Task created by the AI assistant (work days: {work_days})", AI_ACTOR)
        self._store.add_task(task)
        logger.info("Created task %r from AI proposal %r", task.id, proposal.title)
        self._events.emit(BoardEvent("task_created", task.id, task.title))
        return task

    def _resolve_group(self, proposal: AITaskProposal) -> str:
        if proposal.group_id and self._store.has_group(proposal.group_id):
            return proposal.group_id
        if proposal.group_name:
            wanted = proposal.group_name.strip().lower()
            for group in self._store.groups():
                if group.name.strip().lower() == wanted:
                    return group.id
        if proposal.group_id:
            logger.debug("AI proposal names unknown group %r; using unassigned", proposal.group_id)
        return UNASSIGNED_GROUP
