"""Tests for run-state snapshots and the staleness policy."""

from datetime import timedelta

import pytest

from seoimg.errors import PersistenceCorruptionError
from seoimg.queue.store import FileRunStateRepository, is_stale, parse_snapshot
from seoimg.schemas.models import (
    GenerationRequest,
    ItemStatus,
    QueueRun,
    QueueSnapshot,
    TemplateType,
    utcnow,
)


def _snapshot(processed=1, total=3, active=True, updated_at=None) -> QueueSnapshot:
    items = [
        GenerationRequest(template_type=TemplateType.BLOG, fields={"title": f"T{n}", "intro": "I"})
        for n in range(total)
    ]
    for item in items[:processed]:
        item.status = ItemStatus.COMPLETED
        item.result_image = "QUJD"
    run = QueueRun(
        template_type=TemplateType.BLOG,
        total_count=total,
        processed_count=processed,
        is_active=active,
        item_ids=[i.id for i in items],
    )
    if updated_at is not None:
        run.updated_at = updated_at
    return QueueSnapshot(template_type=TemplateType.BLOG, run=run, items=items)


def test_round_trip(repository):
    snapshot = _snapshot()
    repository.save_run_state(TemplateType.BLOG, snapshot)
    loaded = repository.load_run_state(TemplateType.BLOG)
    assert loaded is not None
    assert loaded.run.run_id == snapshot.run.run_id
    assert loaded.run.processed_count == 1
    assert loaded.run.item_ids == snapshot.run.item_ids
    assert [i.status for i in loaded.items] == [ItemStatus.COMPLETED, ItemStatus.PENDING, ItemStatus.PENDING]


def test_templates_are_stored_separately(repository):
    repository.save_run_state(TemplateType.BLOG, _snapshot())
    assert repository.load_run_state(TemplateType.INFOGRAPHIC) is None


def test_missing_state(repository):
    assert repository.load_run_state(TemplateType.BLOG) is None


def test_completed_run_is_discarded(repository, tmp_path):
    repository.save_run_state(TemplateType.BLOG, _snapshot(processed=3, total=3))
    assert repository.load_run_state(TemplateType.BLOG) is None
    assert not (tmp_path / "runs" / "blog.json").exists()


def test_stale_run_is_discarded(repository):
    repository.save_run_state(TemplateType.BLOG, _snapshot(updated_at=utcnow() - timedelta(hours=2)))
    assert repository.load_run_state(TemplateType.BLOG) is None


def test_inactive_old_run_is_not_stale(repository):
    snapshot = _snapshot(active=False, updated_at=utcnow() - timedelta(hours=2))
    repository.save_run_state(TemplateType.BLOG, snapshot)
    assert repository.load_run_state(TemplateType.BLOG) is not None


def test_corrupt_state_is_discarded(repository, tmp_path):
    path = tmp_path / "runs" / "blog.json"
    path.write_text('{"template_type": "blog", "run": {"total_count": -1', encoding="utf-8")
    assert repository.load_run_state(TemplateType.BLOG) is None
    assert not path.exists()


def test_clear(repository):
    repository.save_run_state(TemplateType.BLOG, _snapshot())
    repository.clear_run_state(TemplateType.BLOG)
    repository.clear_run_state(TemplateType.BLOG)
    assert repository.load_run_state(TemplateType.BLOG) is None


def test_parse_snapshot_rejects_garbage():
    with pytest.raises(PersistenceCorruptionError):
        parse_snapshot("[]")


class TestIsStale:

    def test_threshold(self):
        run = QueueRun(template_type=TemplateType.BLOG, total_count=2)
        assert not is_stale(run, 3600, now=run.updated_at + timedelta(minutes=59))
        assert is_stale(run, 3600, now=run.updated_at + timedelta(minutes=61))

    def test_inactive_never_stale(self):
        run = QueueRun(template_type=TemplateType.BLOG, total_count=2, is_active=False)
        assert not is_stale(run, 3600, now=run.updated_at + timedelta(days=1))


def test_repository_creates_directory(tmp_path):
    FileRunStateRepository(tmp_path / "deep" / "runs")
    assert (tmp_path / "deep" / "runs").is_dir()


def test_zero_total_run_is_discarded(repository):
    run = QueueRun(template_type=TemplateType.BLOG, total_count=0, processed_count=0)
    repository.save_run_state(TemplateType.BLOG, QueueSnapshot(template_type=TemplateType.BLOG, run=run))
    assert repository.load_run_state(TemplateType.BLOG) is None
