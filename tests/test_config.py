"""Tests for settings parsing."""

from pathlib import Path

from seoimg.config import Settings


def test_defaults():
    s = Settings(seoimg_data_dir="/tmp/seoimg-test")
    assert s.credit_costs == {"blog": 5, "infographic": 10}
    assert s.seoimg_welcome_credits == 50
    assert s.seoimg_inter_request_delay == 2.0
    assert s.seoimg_run_stale_after == 3600
    assert s.runs_dir == Path("/tmp/seoimg-test/runs").resolve()


def test_api_token_map_skips_malformed_pairs():
    s = Settings(seoimg_api_tokens="abc:alice, def:bob,broken,:nobody")
    assert s.api_token_map == {"abc": "alice", "def": "bob"}


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SEOIMG_BLOG_COST", "7")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
    s = Settings()
    assert s.credit_costs["blog"] == 7
    assert s.cors_origin_list == ["https://a.example", "https://b.example"]


def test_relative_data_dir_resolves_against_project_root():
    s = Settings(seoimg_data_dir="data")
    assert s.data_dir.is_absolute()
    assert s.data_dir.name == "data"
