"""Per-account controller: owns the ledger handle, notification log and one queue per template."""

from __future__ import annotations

import logging
import time
from pathlib import Path

from seoimg.config import Settings, get_settings
from seoimg.credits.ledger import CreditLedger, get_credit_ledger
from seoimg.errors import RunActiveError
from seoimg.export import export_zip
from seoimg.generation.client import ImageGenerator, WebhookClient
from seoimg.generation.single import generate_single
from seoimg.notifications.log import NotificationLog
from seoimg.queue.bulk import BulkQueue
from seoimg.queue.store import FileRunStateRepository
from seoimg.schemas.models import NotificationKind, TemplateType

logger = logging.getLogger(__name__)


class StudioSession:
    """Everything one account touches. Callers get state through this object, never globals."""

    def __init__(
        self,
        account_id: str,
        settings: Settings | None = None,
        ledger: CreditLedger | None = None,
        generator: ImageGenerator | None = None,
        notifications: NotificationLog | None = None,
    ):
        self.account_id = account_id
        self.settings = settings or get_settings()
        self.ledger = ledger or get_credit_ledger()
        self.generator = generator or WebhookClient(
            self.settings.seoimg_webhook_url, timeout=self.settings.seoimg_webhook_timeout
        )
        self.notifications = notifications or NotificationLog(
            self.settings.notifications_dir / f"{account_id}.json"
        )
        self._repository = FileRunStateRepository(
            self.settings.runs_dir / account_id, stale_after=self.settings.seoimg_run_stale_after
        )
        self._queues: dict[TemplateType, BulkQueue] = {}

    def queue(self, template_type: TemplateType | str) -> BulkQueue:
        template_type = TemplateType(template_type)
        if template_type not in self._queues:
            self._queues[template_type] = BulkQueue(
                template_type,
                self.account_id,
                ledger=self.ledger,
                notifications=self.notifications,
                generator=self.generator,
                repository=self._repository,
                costs=self.settings.credit_costs,
                inter_request_delay=self.settings.seoimg_inter_request_delay,
                completion_grace=self.settings.seoimg_completion_grace,
                stale_check_interval=self.settings.seoimg_stale_check_interval,
            )
        return self._queues[template_type]

    @property
    def bulk_active(self) -> bool:
        """At most one bulk run per session, across both templates."""
        return any(self.queue(t).has_active_run for t in TemplateType)

    @property
    def balance(self) -> int:
        return self.ledger.get_balance(self.account_id)

    async def generate_single(self, template_type: TemplateType | str, fields: dict[str, str]) -> str:
        return await generate_single(
            TemplateType(template_type),
            fields,
            account_id=self.account_id,
            ledger=self.ledger,
            generator=self.generator,
            notifications=self.notifications,
            costs=self.settings.credit_costs,
            bulk_active=self.bulk_active,
        )

    async def start_run(self, template_type: TemplateType | str) -> str:
        template_type = TemplateType(template_type)
        busy = [t for t in TemplateType if t is not template_type and self.queue(t).has_active_run]
        if busy:
            self.notifications.notify(
                NotificationKind.WARNING,
                "Bulk Processing Active",
                f"A {busy[0].value} bulk run is still in progress. Please wait for it to finish.",
            )
            raise RunActiveError(f"A {busy[0].value} bulk run is already active")
        return await self.queue(template_type).start_run()

    def export_zip(self, template_type: TemplateType | str, zip_path: Path | None = None) -> Path | None:
        """ZIP every completed image of the queue; None (plus a warning notification) when there are none."""
        template_type = TemplateType(template_type)
        zip_path = zip_path or (
            self.settings.exports_dir
            / self.account_id
            / f"seo-engine-{template_type.value}-images-{int(time.time() * 1000)}.zip"
        )
        count = export_zip(self.queue(template_type).items, zip_path)
        if count == 0:
            self.notifications.notify(
                NotificationKind.WARNING,
                "No Images to Download",
                "No completed images available for download.",
            )
            return None
        self.notifications.notify(
            NotificationKind.SUCCESS,
            "ZIP Downloaded",
            f"Successfully downloaded {count} images as ZIP file.",
            image_count=count,
        )
        return zip_path
