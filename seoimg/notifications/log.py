"""Append-only notification log, optionally persisted to a JSON file per account."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from seoimg.schemas.models import Notification, NotificationKind

logger = logging.getLogger(__name__)


class NotificationLog:
    """User-visible outcomes, newest first. Only the ``read`` flag is ever mutated."""

    def __init__(self, path: Path | None = None):
        self._path = Path(path) if path else None
        self._items: list[Notification] = self._load()

    def _load(self) -> list[Notification]:
        if self._path is None or not self._path.exists():
            return []
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return [Notification.model_validate(n) for n in data]
        except (OSError, ValueError, PydanticValidationError) as e:
            logger.error("Error loading notifications from %s: %s", self._path, e)
            return []

    def _save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump([n.model_dump(mode="json") for n in self._items], f, indent=2)

    def notify(
        self,
        kind: NotificationKind | str,
        title: str,
        message: str = "",
        **metadata: Any,
    ) -> str:
        """Append a notification; metadata maps onto Notification fields (related_run_id, image_count, ...)."""
        notification = Notification(kind=NotificationKind(kind), title=title, message=message, **metadata)
        self._items.insert(0, notification)
        self._save()
        log = logger.warning if notification.kind is NotificationKind.ERROR else logger.info
        log("[%s] %s: %s", notification.kind.value, title, message)
        return notification.id

    def get(self, notification_id: str) -> Notification | None:
        return next((n for n in self._items if n.id == notification_id), None)

    def list(self, unread_only: bool = False) -> list[Notification]:
        if unread_only:
            return [n for n in self._items if not n.read]
        return list(self._items)

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._items if not n.read)

    def mark_read(self, notification_id: str) -> bool:
        n = self.get(notification_id)
        if n is None:
            return False
        n.read = True
        self._save()
        return True

    def mark_all_read(self) -> None:
        for n in self._items:
            n.read = True
        self._save()

    def remove(self, notification_id: str) -> bool:
        before = len(self._items)
        self._items = [n for n in self._items if n.id != notification_id]
        if len(self._items) == before:
            return False
        self._save()
        return True

    def clear_all(self) -> None:
        self._items = []
        if self._path is not None and self._path.exists():
            self._path.unlink()
