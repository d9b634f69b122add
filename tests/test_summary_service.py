"""
Tests for core/summary_service.py — the cache-or-generate-and-upsert flow.

The generation backend is a MagicMock; the cache is a real SQLite store in a
temp directory unless a test needs it to fail.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from config.settings import Settings
from core.db import Database
from core.errors import GenerationEmpty, GenerationFailed, InvalidRequest, ServerMisconfigured
from core.models import SummaryRecord, SummaryRequest, SummaryTarget
from core.summary_service import SummaryService
from core.summary_store import SummaryStore

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(anthropic_api_key="test-key", db_path=tmp_path / "atlas.db")


@pytest.fixture
def store(settings) -> SummaryStore:
    db = Database(settings.db_path)
    db.init_schema()
    return SummaryStore(db)


@pytest.fixture
def summarizer() -> MagicMock:
    fake = MagicMock()
    fake.model_id = "claude-haiku-4-5"
    fake.generate.return_value = "A freshly generated summary."
    return fake


@pytest.fixture
def service(settings, store, summarizer) -> SummaryService:
    return SummaryService(settings, store, summarizer, clock=lambda: NOW)


def request(**body) -> SummaryRequest:
    return SummaryRequest.model_validate(body)


def cached(target: SummaryTarget, age: timedelta, text: str = "Cached summary.") -> SummaryRecord:
    return SummaryRecord(
        target=target,
        country_id=625,
        title="Sudan: Government",
        text=text,
        model_id="older-model",
        generated_at=NOW - age,
    )


class TestCacheHit:
    def test_fresh_row_skips_generation(self, service, store, summarizer):
        store.upsert(cached(SummaryTarget.conflict(5), age=timedelta(days=29)))

        result = service.get_or_generate(request(conflictId=5))

        assert result.cached is True
        assert result.text == "Cached summary."
        assert result.model_id == "older-model"
        summarizer.generate.assert_not_called()

    def test_country_level_row_hit(self, service, store, summarizer):
        store.upsert(cached(SummaryTarget.country(7), age=timedelta(hours=1)))

        result = service.get_or_generate(request(countryId=7))

        assert result.cached is True
        summarizer.generate.assert_not_called()


class TestRegeneration:
    def test_miss_generates_and_stores(self, service, store, summarizer):
        result = service.get_or_generate(
            request(conflictId=5, countryId=625, conflictName="Sudan: Government", countryName="Sudan")
        )

        assert result.cached is False
        assert result.text == "A freshly generated summary."
        assert result.model_id == "claude-haiku-4-5"
        summarizer.generate.assert_called_once()

        record = store.get(SummaryTarget.conflict(5))
        assert record.text == "A freshly generated summary."
        assert record.country_id == 625
        assert record.title == "Sudan: Government"
        assert record.generated_at == NOW

    def test_stale_row_regenerates(self, service, store, summarizer):
        store.upsert(cached(SummaryTarget.conflict(5), age=timedelta(days=30)))

        result = service.get_or_generate(request(conflictId=5))

        assert result.cached is False
        summarizer.generate.assert_called_once()
        assert store.get(SummaryTarget.conflict(5)).text == "A freshly generated summary."

    def test_force_refresh_always_generates(self, service, store, summarizer):
        store.upsert(cached(SummaryTarget.conflict(5), age=timedelta(minutes=1)))

        result = service.get_or_generate(request(conflictId=5, forceRefresh=True))

        assert result.cached is False
        summarizer.generate.assert_called_once()

    def test_cached_title_reused_in_prompt(self, service, store, summarizer):
        store.upsert(cached(SummaryTarget.conflict(5), age=timedelta(days=60)))

        service.get_or_generate(request(conflictId=5))

        prompt = summarizer.generate.call_args.args[0]
        assert '"Sudan: Government"' in prompt
        assert "country ID 625" in prompt

    def test_country_request_uses_country_prompt(self, service, store, summarizer):
        service.get_or_generate(request(countryId=652, countryName="Syria"))

        prompt = summarizer.generate.call_args.args[0]
        assert "Syria" in prompt
        assert "whole country" in prompt
        record = store.get(SummaryTarget.country(652))
        assert record.country_id == 652
        assert record.title == "Syria"


class TestFailures:
    def test_missing_ids_do_no_io(self, settings, summarizer):
        store = MagicMock()
        service = SummaryService(settings, store, summarizer, clock=lambda: NOW)

        with pytest.raises(InvalidRequest):
            service.get_or_generate(request(conflictId=float("nan")))

        store.get.assert_not_called()
        store.upsert.assert_not_called()
        summarizer.generate.assert_not_called()

    def test_missing_api_key_fails_before_io(self, tmp_path, summarizer):
        store = MagicMock()
        service = SummaryService(
            Settings(anthropic_api_key="", db_path=tmp_path / "x.db"),
            store,
            summarizer,
            clock=lambda: NOW,
        )

        with pytest.raises(ServerMisconfigured):
            service.get_or_generate(request(conflictId=5))

        store.get.assert_not_called()
        summarizer.generate.assert_not_called()

    def test_generation_failure_writes_nothing(self, service, store, summarizer):
        summarizer.generate.side_effect = GenerationFailed(500, "upstream exploded")

        with pytest.raises(GenerationFailed):
            service.get_or_generate(request(conflictId=5))

        assert store.get(SummaryTarget.conflict(5)) is None

    def test_empty_generation_writes_nothing(self, service, store, summarizer):
        summarizer.generate.side_effect = GenerationEmpty()

        with pytest.raises(GenerationEmpty):
            service.get_or_generate(request(conflictId=5))

        assert store.get(SummaryTarget.conflict(5)) is None

    def test_generation_failure_does_not_fall_back_to_stale_cache(self, service, store, summarizer):
        store.upsert(cached(SummaryTarget.conflict(5), age=timedelta(days=90)))
        summarizer.generate.side_effect = GenerationFailed(429, "rate limited")

        with pytest.raises(GenerationFailed):
            service.get_or_generate(request(conflictId=5))

    def test_upsert_failure_still_returns_summary(self, settings, summarizer):
        store = MagicMock()
        store.get.return_value = None
        store.upsert.side_effect = sqlite3.OperationalError("database is locked")
        service = SummaryService(settings, store, summarizer, clock=lambda: NOW)

        result = service.get_or_generate(request(conflictId=5))

        assert result.cached is False
        assert result.text == "A freshly generated summary."
        store.upsert.assert_called_once()

    def test_read_failure_counts_as_miss(self, settings, summarizer):
        store = MagicMock()
        store.get.side_effect = sqlite3.OperationalError("no such table")
        service = SummaryService(settings, store, summarizer, clock=lambda: NOW)

        result = service.get_or_generate(request(conflictId=5))

        assert result.cached is False
        summarizer.generate.assert_called_once()
