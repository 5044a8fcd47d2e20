"""Pydantic models: single source of truth for all data shapes."""

from seoimg.schemas.models import (
    CreditAccount,
    CreditTransaction,
    GenerationRequest,
    ItemStatus,
    Notification,
    NotificationKind,
    QueueRun,
    QueueSnapshot,
    TemplateType,
)

__all__ = [
    "CreditAccount",
    "CreditTransaction",
    "GenerationRequest",
    "ItemStatus",
    "Notification",
    "NotificationKind",
    "QueueRun",
    "QueueSnapshot",
    "TemplateType",
]
