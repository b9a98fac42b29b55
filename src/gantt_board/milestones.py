from __future__ import annotations

import logging
from datetime import date
from typing import Iterable

from .board_models import DEFAULT_MILESTONE_COLOR, Milestone, new_id

logger = logging.getLogger(__name__)


class MilestoneRegistry:
    """Milestones keyed by calendar day; at most one per date."""

    def __init__(self, milestones: Iterable[Milestone] = ()) -> None:
        self._by_date: dict[date, Milestone] = {}
        for milestone in milestones:
            self._by_date[milestone.date] = milestone

    def get(self, day: date) -> Milestone | None:
        return self._by_date.get(day)

    def find(self, milestone_id: str) -> Milestone | None:
        for milestone in self._by_date.values():
            if milestone.id == milestone_id:
                return milestone
        return None

    def save(self, day: date, label: str, color: str = DEFAULT_MILESTONE_COLOR) -> Milestone | None:
        """Create the milestone for `day`, or edit the one already there."""

        label = label.strip()
        if not label:
            return None
        existing = self._by_date.get(day)
        if existing is not None:
            existing.label = label
            existing.color = color
            return existing
        milestone = Milestone(id=new_id("ms"), date=day, label=label, color=color)
        self._by_date[day] = milestone
        logger.info("Added milestone %r on %s", label, day.isoformat())
        return milestone

    def delete(self, milestone_id: str) -> bool:
        milestone = self.find(milestone_id)
        if milestone is None:
            return False
        del self._by_date[milestone.date]
        return True

    def in_range(self, start: date, end: date) -> list[Milestone]:
        return [milestone for milestone in self if start <= milestone.date <= end]

    def __iter__(self):
        return iter(sorted(self._by_date.values(), key=lambda milestone: milestone.date))

    def __len__(self) -> int:
        return len(self._by_date)
