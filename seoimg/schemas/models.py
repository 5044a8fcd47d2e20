"""Pydantic models: single source of truth for queue items, runs, credits and notifications."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


class TemplateType(str, Enum):
    BLOG = "blog"
    INFOGRAPHIC = "infographic"

    @property
    def image_type(self) -> str:
        """Value sent as ``image_type`` to the webhook."""
        return "Featured Image" if self is TemplateType.BLOG else "Infographic"

    @property
    def label(self) -> str:
        return "blog featured image" if self is TemplateType.BLOG else "infographic"


class ItemStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class GenerationRequest(BaseModel):
    """One queued image request; mutated only by the queue that owns it."""

    id: str = Field(default_factory=lambda: new_id("item"))
    template_type: TemplateType
    fields: dict[str, str] = Field(default_factory=dict)
    status: ItemStatus = ItemStatus.PENDING
    result_image: str | None = None  # base64, only when completed
    error_message: str | None = None  # only when failed
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (ItemStatus.COMPLETED, ItemStatus.FAILED)


class QueueRun(BaseModel):
    """One bulk submission; all items share the run's template type."""

    run_id: str = Field(default_factory=lambda: new_id("bulk"))
    template_type: TemplateType
    start_time: datetime = Field(default_factory=utcnow)
    total_count: int = Field(ge=0)
    processed_count: int = Field(default=0, ge=0)
    is_active: bool = True
    item_ids: list[str] = Field(default_factory=list)  # processing order
    cancelled: bool = False
    updated_at: datetime = Field(default_factory=utcnow)  # last progress update
    resumed_at: datetime | None = None
    processed_at_resume: int = Field(default=0, ge=0)

    @property
    def is_complete(self) -> bool:
        return self.processed_count >= self.total_count


class QueueSnapshot(BaseModel):
    """Persisted run + items for one template type."""

    template_type: TemplateType
    run: QueueRun | None = None
    items: list[GenerationRequest] = Field(default_factory=list)
    saved_at: datetime = Field(default_factory=utcnow)


class CreditAccount(BaseModel):
    account_id: str
    balance: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CreditTransaction(BaseModel):
    """Ledger entry; ``amount`` is negative for usage."""

    id: str = Field(default_factory=lambda: new_id("txn"))
    account_id: str
    amount: int
    kind: Literal["usage", "purchase", "admin_adjustment", "bonus"]
    description: str = ""
    template_type: TemplateType | None = None
    created_at: datetime = Field(default_factory=utcnow)


class NotificationKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Notification(BaseModel):
    id: str = Field(default_factory=lambda: new_id("ntf"))
    kind: NotificationKind
    title: str
    message: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    read: bool = False
    duration_ms: int | None = None  # auto-dismiss hint for UIs
    related_run_id: str | None = None
    template_type: TemplateType | None = None
    image_count: int | None = None
    is_bulk: bool = False
