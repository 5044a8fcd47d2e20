"""Bulk submission queue: sequential webhook calls with persisted, resumable progress.

One ``BulkQueue`` owns the items of a single template type for one account.
``start_run`` validates, prices and debits the whole batch up front, then a
background asyncio task sends the items to the webhook one at a time, in
insertion order, pausing ``inter_request_delay`` seconds between calls. Every
state change is written through the run-state repository so a restarted
process can pick the run back up (see ``resume_run``).
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from datetime import datetime

from seoimg.credits.ledger import CreditLedger
from seoimg.errors import (
    CreditDebitError,
    GenerationCallError,
    InsufficientCreditsError,
    NoValidItemsError,
    RunActiveError,
    ValidationError,
)
from seoimg.generation.client import ImageGenerator
from seoimg.generation.prompt import build_payload, empty_fields, is_item_valid, per_item_cost
from seoimg.notifications.log import NotificationLog
from seoimg.queue.store import RunStateRepository, is_stale
from seoimg.sanitize import sanitize_fields
from seoimg.schemas.models import (
    GenerationRequest,
    ItemStatus,
    NotificationKind,
    QueueRun,
    QueueSnapshot,
    TemplateType,
    utcnow,
)

logger = logging.getLogger(__name__)

STALE_RESET_MESSAGE = "Bulk run was reset after receiving no progress updates"


class BulkQueue:
    def __init__(
        self,
        template_type: TemplateType,
        account_id: str,
        ledger: CreditLedger,
        notifications: NotificationLog,
        generator: ImageGenerator,
        repository: RunStateRepository,
        costs: dict[str, int] | None = None,
        inter_request_delay: float = 2.0,
        completion_grace: float = 2.0,
        stale_check_interval: float = 60.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.template_type = TemplateType(template_type)
        self.account_id = account_id
        self._ledger = ledger
        self._notifications = notifications
        self._generator = generator
        self._repo = repository
        self._costs = costs
        self._delay = inter_request_delay
        self._grace = completion_grace
        self._stale_interval = stale_check_interval
        self._sleep = sleep

        self.items: list[GenerationRequest] = []
        self.run: QueueRun | None = None
        self.current_item_id: str | None = None
        self._task: asyncio.Task | None = None
        self._watchdog: asyncio.Task | None = None
        self._cleanup: asyncio.Task | None = None
        self._restore()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _restore(self) -> None:
        snapshot = self._repo.load_run_state(self.template_type)
        if snapshot is None:
            return
        self.items = snapshot.items
        self.run = snapshot.run
        if self.run is not None and self.run.is_active:
            logger.warning(
                "Restored interrupted %s run %s (%d/%d processed)",
                self.template_type.value, self.run.run_id,
                self.run.processed_count, self.run.total_count,
            )

    def snapshot(self) -> QueueSnapshot:
        return QueueSnapshot(
            template_type=self.template_type,
            run=self.run.model_copy() if self.run else None,
            items=[item.model_copy(deep=True) for item in self.items],
        )

    def _persist(self) -> None:
        if self.run is None and not self.items:
            self._repo.clear_run_state(self.template_type)
            return
        self._repo.save_run_state(
            self.template_type,
            QueueSnapshot(template_type=self.template_type, run=self.run, items=self.items),
        )

    def _touch(self) -> None:
        if self.run is not None:
            self.run.updated_at = utcnow()
        self._persist()

    def _find(self, item_id: str) -> GenerationRequest | None:
        return next((i for i in self.items if i.id == item_id), None)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def has_active_run(self) -> bool:
        return self.run is not None and self.run.is_active

    @property
    def item_cost(self) -> int:
        return per_item_cost(self.template_type, self._costs)

    def valid_items(self) -> list[GenerationRequest]:
        """Pending items with every required field filled, in insertion order."""
        return [i for i in self.items if i.status is ItemStatus.PENDING and is_item_valid(i)]

    def batch_cost(self) -> int:
        return len(self.valid_items()) * self.item_cost

    # ------------------------------------------------------------------
    # Item editing
    # ------------------------------------------------------------------

    def add_item(self, template_type: TemplateType | str | None = None) -> str:
        template_type = TemplateType(template_type or self.template_type)
        if template_type is not self.template_type:
            raise ValidationError(
                f"Cannot add a {template_type.value} item to the {self.template_type.value} queue"
            )
        item = GenerationRequest(template_type=template_type, fields=empty_fields(template_type))
        self.items.append(item)
        self._persist()
        return item.id

    def update_item_fields(self, item_id: str, fields: dict[str, str]) -> bool:
        """Replace an item's fields and return it to pending. No-op while a run is active or processing."""
        if self.is_running or self.has_active_run:
            logger.warning("Ignoring edit of %s: %s run in progress", item_id, self.template_type.value)
            return False
        item = self._find(item_id)
        if item is None:
            return False
        item.fields = {**empty_fields(self.template_type), **sanitize_fields(dict(fields))}
        item.status = ItemStatus.PENDING
        item.result_image = None
        item.error_message = None
        item.started_at = None
        item.finished_at = None
        self._persist()
        return True

    def remove_item(self, item_id: str) -> bool:
        """Delete an item unless it is the one currently in flight."""
        if item_id == self.current_item_id:
            return False
        item = self._find(item_id)
        if item is None:
            return False
        self.items.remove(item)
        run = self.run
        if run is not None and item_id in run.item_ids:
            run.item_ids.remove(item_id)
            if run.is_active and not item.is_terminal:
                run.total_count -= 1
        self._touch()
        if run is not None and run.is_active and run.is_complete and not self.is_running:
            # Nothing left to send for a restored run.
            self._finish(run)
        return True

    def clear_items(self) -> None:
        """Drop the whole batch. Refused while a run is processing."""
        if self.is_running:
            raise RunActiveError("Cannot clear items while bulk processing is active")
        self.items = []
        self.run = None
        self._repo.clear_run_state(self.template_type)

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def start_run(self) -> str:
        """
        Price, debit and start processing every valid pending item.

        Raises RunActiveError, NoValidItemsError, InsufficientCreditsError or
        CreditDebitError; in each case a notification is emitted and no state changes.
        """
        if self.is_running or self.has_active_run:
            self._notifications.notify(
                NotificationKind.WARNING,
                "Bulk Processing Active",
                "Please wait for the current bulk run to finish before starting another.",
            )
            raise RunActiveError(f"A {self.template_type.value} bulk run is already active")

        valid = self.valid_items()
        if not valid:
            self._notifications.notify(
                NotificationKind.WARNING,
                "No Valid Items",
                "Please fill out at least one complete form before processing.",
            )
            raise NoValidItemsError("No items have all required fields filled in")

        cost = len(valid) * self.item_cost
        balance = self._ledger.get_balance(self.account_id)
        if balance < cost:
            message = (
                f"You need {cost} credits to process {len(valid)} {self.template_type.value} images. "
                f"You have {balance} credits remaining."
            )
            self._notifications.notify(NotificationKind.ERROR, "Insufficient Credits", message)
            raise InsufficientCreditsError(cost, balance, message)

        reason = f"Bulk generation: {len(valid)} {self.template_type.label} images ({cost} credits)"
        try:
            debited = self._ledger.debit(self.account_id, cost, reason, self.template_type)
        except Exception as e:
            logger.exception("Credit debit raised for %s: %s", self.account_id, e)
            debited = False
        if not debited:
            self._notifications.notify(
                NotificationKind.ERROR,
                "Credit Deduction Failed",
                "Failed to deduct credits. Please try again.",
            )
            raise CreditDebitError(f"Ledger rejected debit of {cost} credits")

        if self._cleanup is not None and not self._cleanup.done():
            self._cleanup.cancel()
        run = QueueRun(
            template_type=self.template_type,
            total_count=len(valid),
            item_ids=[i.id for i in valid],
        )
        self.run = run
        self._touch()
        logger.info(
            "Started %s run %s: %d items, %d credits",
            self.template_type.value, run.run_id, run.total_count, cost,
        )
        self._notifications.notify(
            NotificationKind.INFO,
            "Bulk Processing Started",
            f"Processing {run.total_count} {self.template_type.value} images. "
            "You can continue working while they are generated.",
            related_run_id=run.run_id,
            template_type=self.template_type,
            image_count=run.total_count,
            is_bulk=True,
        )
        self._launch(run)
        return run.run_id

    async def resume_run(self) -> str:
        """Continue a run restored from storage. Already paid for, so nothing is debited."""
        run = self.run
        if run is None or not run.is_active or self.is_running:
            raise ValidationError("No interrupted run to resume")
        for item_id in run.item_ids:
            item = self._find(item_id)
            if item is not None and item.status is ItemStatus.IN_PROGRESS:
                item.status = ItemStatus.PENDING
                item.started_at = None
        run.resumed_at = utcnow()
        run.processed_at_resume = run.processed_count
        self._touch()
        logger.info("Resuming %s run %s", self.template_type.value, run.run_id)
        self._notifications.notify(
            NotificationKind.INFO,
            "Bulk Processing Resumed",
            f"Resuming {run.total_count - run.processed_count} remaining {self.template_type.value} images.",
            related_run_id=run.run_id,
            template_type=self.template_type,
            is_bulk=True,
        )
        self._launch(run)
        return run.run_id

    def _launch(self, run: QueueRun) -> None:
        self._task = asyncio.create_task(self._process(run))
        if self._stale_interval > 0:
            self._watchdog = asyncio.create_task(self._watch_staleness(run))

    def cancel_run(self) -> bool:
        """
        Stop starting new items. The item in flight still finishes and is
        recorded; the loop then winds the run down.
        """
        run = self.run
        if run is None or not run.is_active:
            return False
        run.is_active = False
        run.cancelled = True
        self._touch()
        logger.info("Cancelled %s run %s", self.template_type.value, run.run_id)
        if not self.is_running:
            self._finish(run)
        return True

    async def join(self, include_cleanup: bool = False) -> None:
        """Wait for the processing task (and optionally the post-completion cleanup)."""
        if self._task is not None:
            await self._task
        if include_cleanup and self._cleanup is not None:
            try:
                await self._cleanup
            except asyncio.CancelledError:
                pass

    async def _process(self, run: QueueRun) -> None:
        first = True
        try:
            for item_id in list(run.item_ids):
                if not run.is_active:
                    break
                item = self._find(item_id)
                if item is None or item.status is not ItemStatus.PENDING:
                    continue

                item.status = ItemStatus.IN_PROGRESS
                item.started_at = utcnow()
                self.current_item_id = item.id
                self._touch()

                if not first:
                    await self._sleep(self._delay)
                first = False

                try:
                    image = await self._generator.generate(build_payload(item.template_type, item.fields))
                except GenerationCallError as e:
                    self._fail(item, str(e))
                except Exception as e:
                    logger.exception("Unexpected error generating %s", item.id)
                    self._fail(item, str(e) or "Unknown error occurred")
                else:
                    item.status = ItemStatus.COMPLETED
                    item.result_image = image
                    item.finished_at = utcnow()
                    logger.info("Item %s completed (%s run %s)", item.id, self.template_type.value, run.run_id)

                run.processed_count = min(run.processed_count + 1, run.total_count)
                self.current_item_id = None
                self._touch()
        except asyncio.CancelledError:
            # Task torn down (shutdown or stale reset): keep the snapshot so it can be resumed.
            self.current_item_id = None
            self._persist()
            raise
        self._finish(run)

    def _fail(self, item: GenerationRequest, message: str) -> None:
        item.status = ItemStatus.FAILED
        item.error_message = message
        item.finished_at = utcnow()
        logger.warning("Item %s failed: %s", item.id, message)

    def _finish(self, run: QueueRun) -> None:
        run.is_active = False
        self.current_item_id = None
        if run.cancelled:
            # Items a crash left mid-call were never answered; they can be sent again later.
            for item in self.items:
                if item.id in run.item_ids and item.status is ItemStatus.IN_PROGRESS:
                    item.status = ItemStatus.PENDING
                    item.started_at = None
        self._touch()
        if self._watchdog is not None and self._watchdog is not asyncio.current_task():
            self._watchdog.cancel()
        self._watchdog = None

        run_items = [i for i in self.items if i.id in run.item_ids]
        completed = sum(1 for i in run_items if i.status is ItemStatus.COMPLETED)
        failed = sum(1 for i in run_items if i.status is ItemStatus.FAILED)
        logger.info(
            "Finished %s run %s: %d completed, %d failed, %d/%d processed",
            self.template_type.value, run.run_id, completed, failed,
            run.processed_count, run.total_count,
        )
        meta = dict(
            related_run_id=run.run_id,
            template_type=self.template_type,
            image_count=completed,
            is_bulk=True,
        )
        if run.cancelled:
            self._notifications.notify(
                NotificationKind.WARNING,
                "Bulk Processing Cancelled",
                f"Stopped after {run.processed_count} of {run.total_count} items. "
                f"{completed} {self.template_type.value} images were generated.",
                **meta,
            )
        else:
            message = f"Successfully generated {completed} {self.template_type.value} images."
            if failed:
                message += f" {failed} failed."
            self._notifications.notify(
                NotificationKind.SUCCESS, "Bulk Processing Complete!", message, duration_ms=8000, **meta,
            )
        self._schedule_cleanup(run)

    def _schedule_cleanup(self, run: QueueRun) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._discard(run)
            return
        self._cleanup = asyncio.create_task(self._discard_after_grace(run))

    async def _discard_after_grace(self, run: QueueRun) -> None:
        if self._grace > 0:
            await self._sleep(self._grace)
        self._discard(run)

    def _discard(self, run: QueueRun) -> None:
        """Forget a finished run; items stay in memory for review and export."""
        if self.run is not run:
            return
        self.run = None
        self._repo.clear_run_state(self.template_type)

    # ------------------------------------------------------------------
    # Progress and staleness
    # ------------------------------------------------------------------

    def get_estimated_time_remaining(self, now: datetime | None = None) -> int | None:
        """
        Seconds left, extrapolated from the average time per processed item.
        A resumed run only counts time and items since it was resumed.
        """
        run = self.run
        if run is None or not run.is_active:
            return None
        since = run.resumed_at or run.start_time
        done = run.processed_count - (run.processed_at_resume if run.resumed_at else 0)
        if done <= 0:
            return None
        elapsed = ((now or utcnow()) - since).total_seconds()
        per_item = elapsed / done
        return max(0, math.ceil(per_item * (run.total_count - run.processed_count)))

    def check_staleness(self, now: datetime | None = None) -> bool:
        """Force-reset an active run that has gone quiet for longer than the threshold."""
        run = self.run
        if run is None or not is_stale(run, self._repo.stale_after, now):
            return False
        logger.warning("Resetting stale %s run %s (last update %s)", self.template_type.value, run.run_id, run.updated_at)
        if self._task is not None and not self._task.done() and self._task is not asyncio.current_task():
            self._task.cancel()
        for item in self.items:
            if item.id in run.item_ids and item.status is ItemStatus.IN_PROGRESS:
                self._fail(item, STALE_RESET_MESSAGE)
        run.is_active = False
        self.run = None
        self.current_item_id = None
        self._repo.clear_run_state(self.template_type)
        self._notifications.notify(
            NotificationKind.WARNING,
            "Bulk Processing Reset",
            f"The {self.template_type.value} bulk run stopped reporting progress and was reset.",
            related_run_id=run.run_id,
            template_type=self.template_type,
            is_bulk=True,
        )
        return True

    async def _watch_staleness(self, run: QueueRun) -> None:
        while self.run is run and run.is_active:
            await asyncio.sleep(self._stale_interval)
            if self.check_staleness():
                return
