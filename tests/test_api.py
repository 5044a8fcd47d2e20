"""API tests: auth, queue lifecycle, single generation, credits and notifications."""

import time

import pytest
from fastapi.testclient import TestClient

from conftest import ACCOUNT, FakeGenerator
from seoimg.errors import GenerationCallError
from seoimg.queue.store import FileRunStateRepository
from seoimg.schemas.models import GenerationRequest, QueueRun, QueueSnapshot, TemplateType
from seoimg.session import StudioSession

TOKEN = "test-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}


@pytest.fixture
def studio(settings, ledger, generator, notifications):
    return StudioSession(ACCOUNT, settings=settings, ledger=ledger, generator=generator, notifications=notifications)


@pytest.fixture
def client(tmp_path, monkeypatch, studio):
    monkeypatch.setenv("SEOIMG_API_TOKENS", f"{TOKEN}:{ACCOUNT}")
    monkeypatch.setenv("SEOIMG_DATA_DIR", str(tmp_path / "data"))
    from backend import main, ratelimit, sessions

    ratelimit.reset_limiter()
    sessions.reset_sessions()
    sessions._sessions[ACCOUNT] = studio
    with TestClient(main.app) as c:
        yield c
    sessions.reset_sessions()
    ratelimit.reset_limiter()


def _wait_idle(client, template="blog", timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        state = client.get(f"/api/queues/{template}", headers=AUTH).json()
        if not state["is_running"] and state["run"] is None:
            return state
        time.sleep(0.02)
    raise AssertionError("queue did not finish in time")


class TestAuth:

    def test_health_is_public(self, client):
        assert client.get("/health").json()["status"] == "ok"

    def test_missing_token(self, client):
        assert client.get("/api/credits").status_code == 401

    def test_unknown_token(self, client):
        assert client.get("/api/credits", headers={"Authorization": "Bearer nope"}).status_code == 401

    def test_me(self, client):
        assert client.get("/api/auth/me", headers=AUTH).json() == {"account_id": ACCOUNT, "credits": 50}


class TestQueues:

    def test_full_bulk_run(self, client, generator):
        for title in ("First", "Second"):
            r = client.post(
                "/api/queues/blog/items",
                json={"fields": {"title": title, "intro": "Intro"}},
                headers=AUTH,
            )
            assert r.status_code == 201
        state = client.get("/api/queues/blog", headers=AUTH).json()
        assert state["valid_count"] == 2
        assert state["batch_cost"] == 10

        r = client.post("/api/queues/blog/run", headers=AUTH)
        assert r.status_code == 202
        assert r.json()["total_count"] == 2

        state = _wait_idle(client)
        assert [i["status"] for i in state["items"]] == ["completed", "completed"]
        assert len(generator.payloads) == 2
        assert client.get("/api/credits", headers=AUTH).json()["credits"] == 40

        txns = client.get("/api/credits/transactions", headers=AUTH).json()
        assert txns[0]["kind"] == "usage"
        assert txns[0]["amount"] == -10

        titles = [n["title"] for n in client.get("/api/notifications", headers=AUTH).json()["notifications"]]
        assert titles[:2] == ["Bulk Processing Complete!", "Bulk Processing Started"]

    def test_run_without_valid_items(self, client):
        client.post("/api/queues/infographic/items", json={}, headers=AUTH)
        assert client.post("/api/queues/infographic/run", headers=AUTH).status_code == 400

    def test_run_without_credits(self, client, ledger):
        ledger.set_balance(ACCOUNT, 5)
        client.post("/api/queues/infographic/items", json={"fields": {"content": "Stats"}}, headers=AUTH)
        r = client.post("/api/queues/infographic/run", headers=AUTH)
        assert r.status_code == 402
        assert ledger.get_balance(ACCOUNT) == 5

    def test_edit_and_remove_items(self, client):
        item_id = client.post("/api/queues/blog/items", json={}, headers=AUTH).json()["item_id"]
        r = client.put(
            f"/api/queues/blog/items/{item_id}",
            json={"fields": {"title": "T", "intro": "I"}},
            headers=AUTH,
        )
        assert r.status_code == 200
        assert client.get("/api/queues/blog", headers=AUTH).json()["valid_count"] == 1
        assert client.delete(f"/api/queues/blog/items/{item_id}", headers=AUTH).status_code == 200
        assert client.get("/api/queues/blog", headers=AUTH).json()["items"] == []

    def test_unknown_item(self, client):
        r = client.put("/api/queues/blog/items/item_missing", json={"fields": {}}, headers=AUTH)
        assert r.status_code == 404
        assert client.delete("/api/queues/blog/items/item_missing", headers=AUTH).status_code == 404

    def test_edit_refused_while_restored_run_active(self, client, settings):
        item = GenerationRequest(template_type=TemplateType.BLOG, fields={"title": "T", "intro": "I"})
        run = QueueRun(template_type=TemplateType.BLOG, total_count=1, item_ids=[item.id])
        FileRunStateRepository(settings.runs_dir / ACCOUNT).save_run_state(
            TemplateType.BLOG, QueueSnapshot(template_type=TemplateType.BLOG, run=run, items=[item])
        )
        r = client.put(
            f"/api/queues/blog/items/{item.id}",
            json={"fields": {"title": "", "intro": ""}},
            headers=AUTH,
        )
        assert r.status_code == 409
        assert client.get("/api/queues/blog", headers=AUTH).json()["items"][0]["fields"]["title"] == "T"

    def test_cancel_without_run(self, client):
        assert client.post("/api/queues/blog/cancel", headers=AUTH).status_code == 404

    def test_unknown_template(self, client):
        assert client.get("/api/queues/poster", headers=AUTH).status_code == 422


class TestGenerate:

    def test_generate(self, client):
        r = client.post(
            "/api/generate",
            json={"template_type": "blog", "fields": {"title": "T", "intro": "I"}},
            headers=AUTH,
        )
        assert r.status_code == 200
        assert r.json() == {"image": "QUJD", "credits": 45}

    def test_generate_missing_fields(self, client):
        r = client.post("/api/generate", json={"template_type": "infographic", "fields": {}}, headers=AUTH)
        assert r.status_code == 400

    def test_generate_webhook_failure(self, client, studio):
        studio.generator = FakeGenerator([GenerationCallError("HTTP error! status: 500")])
        r = client.post(
            "/api/generate",
            json={"template_type": "blog", "fields": {"title": "T", "intro": "I"}},
            headers=AUTH,
        )
        assert r.status_code == 502


class TestNotifications:

    def test_read_and_clear(self, client, notifications):
        a = notifications.notify("info", "A")
        notifications.notify("info", "B")
        assert client.get("/api/notifications", headers=AUTH).json()["unread_count"] == 2

        assert client.post(f"/api/notifications/{a}/read", headers=AUTH).status_code == 200
        assert client.get("/api/notifications?unread_only=true", headers=AUTH).json()["unread_count"] == 1
        assert client.post("/api/notifications/read", headers=AUTH).status_code == 200
        assert client.delete(f"/api/notifications/{a}", headers=AUTH).status_code == 200
        assert client.delete(f"/api/notifications/{a}", headers=AUTH).status_code == 404
        assert client.delete("/api/notifications", headers=AUTH).status_code == 200
        assert client.get("/api/notifications", headers=AUTH).json()["notifications"] == []


class TestGenerationLimit:

    def test_generate_limited_per_account(self, client, monkeypatch):
        from backend import ratelimit

        monkeypatch.setenv("SEOIMG_RATE_LIMIT_MAX", "2")
        ratelimit.reset_limiter()
        body = {"template_type": "blog", "fields": {"title": "T", "intro": "I"}}

        assert client.post("/api/generate", json=body, headers=AUTH).status_code == 200
        assert client.post("/api/generate", json=body, headers=AUTH).status_code == 200
        r = client.post("/api/generate", json=body, headers=AUTH)
        assert r.status_code == 429
        assert int(r.headers["Retry-After"]) >= 1
        assert client.get("/api/credits", headers=AUTH).json()["credits"] == 40

    def test_reads_are_not_limited(self, client, monkeypatch):
        from backend import ratelimit

        monkeypatch.setenv("SEOIMG_RATE_LIMIT_MAX", "1")
        ratelimit.reset_limiter()
        for _ in range(5):
            assert client.get("/api/credits", headers=AUTH).status_code == 200
