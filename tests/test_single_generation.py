"""Tests for one-off generation outside the bulk queue."""

import asyncio

import pytest

from conftest import ACCOUNT, FakeGenerator, titles
from seoimg.errors import (
    GenerationCallError,
    InsufficientCreditsError,
    RunActiveError,
    ValidationError,
)
from seoimg.generation.single import INVALID_FORMAT, generate_single
from seoimg.schemas.models import TemplateType

BLOG_FIELDS = {"title": "Ten SEO tips", "intro": "How to rank", "style": "custom", "custom_style": "flat"}


def _generate(ledger, notifications, generator, template=TemplateType.BLOG, fields=None, **kwargs):
    return asyncio.run(generate_single(
        template,
        BLOG_FIELDS if fields is None else fields,
        account_id=ACCOUNT,
        ledger=ledger,
        generator=generator,
        notifications=notifications,
        **kwargs,
    ))


def test_success_debits_and_notifies(ledger, notifications, generator):
    image = _generate(ledger, notifications, generator)

    assert image == "QUJD"
    assert ledger.get_balance(ACCOUNT) == 45
    assert generator.payloads == [{
        "image_type": "Featured Image",
        "image_detail": "Blog post title: 'Ten SEO tips', Content: How to rank, Style: flat",
    }]
    done = notifications.list()[0]
    assert done.title == "Image Generated Successfully!"
    assert done.image_count == 1
    assert done.message == "Your blog featured image is ready for download. 5 credits used."


def test_configured_cost(ledger, notifications, generator):
    _generate(
        ledger, notifications, generator,
        template=TemplateType.INFOGRAPHIC, fields={"content": "Stats"}, costs={"blog": 5, "infographic": 20},
    )
    assert ledger.get_balance(ACCOUNT) == 30


def test_missing_fields(ledger, notifications, generator):
    with pytest.raises(ValidationError, match="intro"):
        _generate(ledger, notifications, generator, fields={"title": "Only title"})
    assert generator.payloads == []
    assert ledger.get_balance(ACCOUNT) == 50
    assert titles(notifications) == ["Missing Fields"]


def test_insufficient_credits(ledger, notifications, generator):
    ledger.set_balance(ACCOUNT, 4)
    with pytest.raises(InsufficientCreditsError):
        _generate(ledger, notifications, generator)
    assert ledger.get_balance(ACCOUNT) == 4
    assert titles(notifications) == ["Insufficient Credits"]


def test_blocked_during_bulk_run(ledger, notifications, generator):
    with pytest.raises(RunActiveError):
        _generate(ledger, notifications, generator, bulk_active=True)
    assert titles(notifications) == ["Bulk Processing Active"]


def test_webhook_failure_is_not_refunded(ledger, notifications):
    generator = FakeGenerator([GenerationCallError("HTTP error! status: 503", status_code=503)])
    with pytest.raises(GenerationCallError):
        _generate(ledger, notifications, generator)
    assert ledger.get_balance(ACCOUNT) == 45
    failed = notifications.list()[0]
    assert failed.title == "Generation Failed"
    assert failed.message == "HTTP error! status: 503"


def test_json_errors_get_friendly_message(ledger, notifications):
    generator = FakeGenerator([GenerationCallError("Invalid JSON in webhook response: x")])
    with pytest.raises(GenerationCallError):
        _generate(ledger, notifications, generator)
    assert notifications.list()[0].message == INVALID_FORMAT
