"""Pytest configuration and shared fixtures."""

import asyncio
from collections.abc import Callable

import httpx
import pytest

from seoimg.config import Settings
from seoimg.credits.ledger import FileCreditLedger
from seoimg.notifications.log import NotificationLog
from seoimg.queue.bulk import BulkQueue
from seoimg.queue.store import FileRunStateRepository
from seoimg.schemas.models import TemplateType

ACCOUNT = "acct-test"
WEBHOOK_URL = "https://hooks.example.test/generate"


class FakeGenerator:
    """Scripted ImageGenerator: each call pops the next outcome (image string or exception)."""

    def __init__(self, outcomes=None, default="QUJD"):
        self.outcomes = list(outcomes or [])
        self.default = default
        self.payloads: list[dict] = []
        self.on_call: Callable[[int], None] | None = None

    async def generate(self, payload):
        self.payloads.append(payload)
        if self.on_call is not None:
            self.on_call(len(self.payloads))
        await asyncio.sleep(0)
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def webhook_transport(responses: list[httpx.Response], seen: list | None = None) -> httpx.MockTransport:
    """MockTransport replaying ``responses`` in order, recording requests into ``seen``."""
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return queue.pop(0)

    return httpx.MockTransport(handler)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        seoimg_data_dir=str(tmp_path / "data"),
        seoimg_webhook_url=WEBHOOK_URL,
        seoimg_inter_request_delay=0,
        seoimg_completion_grace=0,
        seoimg_stale_check_interval=0,
        seoimg_api_tokens="",
    )


@pytest.fixture
def ledger(tmp_path):
    return FileCreditLedger(tmp_path / "ledger", welcome_credits=50)


@pytest.fixture
def notifications(tmp_path):
    return NotificationLog(tmp_path / "notifications.json")


@pytest.fixture
def repository(tmp_path):
    return FileRunStateRepository(tmp_path / "runs", stale_after=3600)


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def make_queue(ledger, notifications, repository, generator):
    """Factory for BulkQueue wired to the shared fixtures; kwargs override any collaborator."""

    def _make(template_type=TemplateType.BLOG, **kwargs) -> BulkQueue:
        options = dict(
            ledger=ledger,
            notifications=notifications,
            generator=generator,
            repository=repository,
            inter_request_delay=0,
            completion_grace=0,
            stale_check_interval=0,
        )
        options.update(kwargs)
        return BulkQueue(template_type, ACCOUNT, **options)

    return _make


def add_blog(queue: BulkQueue, title: str = "Ten SEO tips", intro: str = "How to rank in 2025") -> str:
    item_id = queue.add_item(TemplateType.BLOG)
    queue.update_item_fields(item_id, {"title": title, "intro": intro})
    return item_id


def titles(notifications: NotificationLog) -> list[str]:
    return [n.title for n in notifications.list()]
