"""Storage hand-off for board snapshots."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from .snapshot import BoardSnapshot

logger = logging.getLogger(__name__)


class PersistenceSink(Protocol):
    """Anything that can store a board snapshot."""

    def save(self, snapshot: BoardSnapshot) -> None: ...


class NullSink:
    """Sink that stores nothing."""

    def save(self, snapshot: BoardSnapshot) -> None:
        return None


class JsonFileSink:
    """Stores one JSON document per project under `data_dir`."""

    def __init__(self, data_dir: Path | str, project_id: str) -> None:
        self.data_dir = Path(data_dir)
        self.project_id = project_id

    @property
    def path(self) -> Path:
        return self.data_dir / f"project_{self.project_id}.json"

    def save(self, snapshot: BoardSnapshot) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".json.tmp")
        tmp_path.write_text(snapshot.to_json(), encoding="utf-8")
        tmp_path.replace(self.path)

    def load(self) -> BoardSnapshot | None:
        if not self.path.exists():
            return None
        return BoardSnapshot.from_json(self.path.read_text(encoding="utf-8"))


def hand_off(sink: PersistenceSink, snapshot: BoardSnapshot) -> bool:
    """
    Fire-and-forget save: failures are logged and never reach the caller.

    Returns whether the sink accepted the snapshot. Nothing is retried or
    rolled back; the in-memory board stays the source of truth.
    """

    try:
        sink.save(snapshot)
    except Exception:
        logger.exception("Failed to persist board snapshot via %s", type(sink).__name__)
        return False
    return True
