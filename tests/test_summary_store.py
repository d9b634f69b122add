"""
Tests for core/summary_store.py

Uses a temporary SQLite file so the real database is never touched.

Run with: pytest tests/test_summary_store.py
"""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from core.db import Database
from core.models import SummaryRecord, SummaryTarget
from core.summary_store import SummaryStore

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db(tmp_path) -> Database:
    database = Database(tmp_path / "test_atlas.db")
    database.init_schema()
    return database


@pytest.fixture
def store(db) -> SummaryStore:
    return SummaryStore(db)


def make_record(target: SummaryTarget, text: str = "A summary.", **overrides) -> SummaryRecord:
    fields = dict(
        target=target,
        country_id=490,
        title="DR Congo: Government",
        text=text,
        model_id="claude-haiku-4-5",
        generated_at=NOW,
    )
    fields.update(overrides)
    return SummaryRecord(**fields)


class TestGet:
    def test_missing_returns_none(self, store):
        assert store.get(SummaryTarget.conflict(99999)) is None

    def test_round_trips_fields(self, store):
        target = SummaryTarget.conflict(333)
        store.upsert(make_record(target))

        record = store.get(target)

        assert record is not None
        assert record.target == target
        assert record.country_id == 490
        assert record.title == "DR Congo: Government"
        assert record.text == "A summary."
        assert record.generated_at == NOW

    @pytest.mark.parametrize("stamp", ["2026-05-01T12:00:00", "2026-05-01T12:00:00Z"])
    def test_naive_or_zulu_timestamps_read_as_utc(self, store, db, stamp):
        with db.connect() as conn:
            conn.execute(
                "INSERT INTO conflict_summaries (kind, target_id, storage_key, summary_text, "
                "model, last_generated_at) VALUES ('conflict', 42, 42, 'Imported.', 'legacy', ?)",
                (stamp,),
            )

        record = store.get(SummaryTarget.conflict(42))

        assert record.generated_at == NOW
        assert record.is_fresh(NOW + timedelta(days=1), timedelta(days=30))


class TestUpsert:
    def test_overwrites_in_place(self, store, db):
        target = SummaryTarget.conflict(333)
        store.upsert(make_record(target, text="Old."))
        store.upsert(make_record(target, text="New.", generated_at=NOW + timedelta(days=31)))

        record = store.get(target)
        assert record.text == "New."
        assert record.generated_at == NOW + timedelta(days=31)

        with db.connect() as conn:
            count = conn.execute("SELECT COUNT(*) FROM conflict_summaries").fetchone()[0]
        assert count == 1

    def test_conflict_and_country_rows_are_separate(self, store):
        store.upsert(make_record(SummaryTarget.conflict(7), text="Conflict seven."))
        store.upsert(make_record(SummaryTarget.country(7), text="Country seven."))

        assert store.get(SummaryTarget.conflict(7)).text == "Conflict seven."
        assert store.get(SummaryTarget.country(7)).text == "Country seven."

    def test_stores_signed_storage_key(self, store, db):
        store.upsert(make_record(SummaryTarget.country(652)))
        with db.connect() as conn:
            key = conn.execute("SELECT storage_key FROM conflict_summaries").fetchone()[0]
        assert key == -652

    def test_keeps_known_title_when_regenerated_without_one(self, store):
        target = SummaryTarget.conflict(333)
        store.upsert(make_record(target))
        store.upsert(make_record(target, title=None, country_id=None))

        record = store.get(target)
        assert record.title == "DR Congo: Government"
        assert record.country_id == 490

    def test_missing_table_raises(self, tmp_path):
        store = SummaryStore(Database(tmp_path / "empty.db"))
        with pytest.raises(sqlite3.OperationalError):
            store.get(SummaryTarget.conflict(1))
