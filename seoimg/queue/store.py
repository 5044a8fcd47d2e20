"""Run-state persistence: one JSON snapshot per template type, with staleness policy."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError as PydanticValidationError

from seoimg.errors import PersistenceCorruptionError
from seoimg.schemas.models import QueueRun, QueueSnapshot, TemplateType, utcnow

logger = logging.getLogger(__name__)

DEFAULT_STALE_AFTER = 60 * 60  # seconds


class RunStateRepository(Protocol):
    stale_after: float

    def load_run_state(self, template_type: TemplateType) -> QueueSnapshot | None: ...
    def save_run_state(self, template_type: TemplateType, state: QueueSnapshot) -> None: ...
    def clear_run_state(self, template_type: TemplateType) -> None: ...


def is_stale(run: QueueRun, stale_after: float, now: datetime | None = None) -> bool:
    """An active run with no progress update for longer than ``stale_after`` seconds."""
    if not run.is_active:
        return False
    now = now or utcnow()
    return now - run.updated_at > timedelta(seconds=stale_after)


def parse_snapshot(raw: str) -> QueueSnapshot:
    try:
        return QueueSnapshot.model_validate_json(raw)
    except (PydanticValidationError, ValueError) as e:
        raise PersistenceCorruptionError(str(e)) from e


class FileRunStateRepository:
    """Snapshots as ``<dir>/<template>.json``. Survives restarts within the same data dir."""

    def __init__(self, runs_dir: Path, stale_after: float = DEFAULT_STALE_AFTER):
        self._dir = Path(runs_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self.stale_after = stale_after

    def _path(self, template_type: TemplateType) -> Path:
        return self._dir / f"{template_type.value}.json"

    def load_run_state(self, template_type: TemplateType) -> QueueSnapshot | None:
        """
        Return the stored snapshot, or None when there is nothing worth resuming.
        Corrupt, finished and stale snapshots are deleted on the way.
        """
        path = self._path(template_type)
        if not path.exists():
            return None
        try:
            snapshot = parse_snapshot(path.read_text(encoding="utf-8"))
        except PersistenceCorruptionError as e:
            logger.warning("Discarding unreadable %s run state: %s", template_type.value, e)
            self.clear_run_state(template_type)
            return None

        run = snapshot.run
        if run is not None and run.is_complete:
            logger.info("Discarding completed %s run %s", template_type.value, run.run_id)
            self.clear_run_state(template_type)
            return None
        if run is not None and is_stale(run, self.stale_after):
            logger.warning(
                "Discarding stale %s run %s (last update %s)",
                template_type.value, run.run_id, run.updated_at,
            )
            self.clear_run_state(template_type)
            return None
        return snapshot

    def save_run_state(self, template_type: TemplateType, state: QueueSnapshot) -> None:
        state.saved_at = utcnow()
        path = self._path(template_type)
        tmp = path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(state.model_dump(mode="json"), f, indent=2)
        tmp.replace(path)

    def clear_run_state(self, template_type: TemplateType) -> None:
        self._path(template_type).unlink(missing_ok=True)
