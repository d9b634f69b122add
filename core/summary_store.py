"""Cached conflict and country summaries, one row per target."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from core.db import Database
from core.models import SummaryRecord, SummaryTarget, TargetKind

logger = logging.getLogger(__name__)


def _parse_timestamp(value: str) -> datetime:
    """Parse a stored ISO timestamp; naive values are taken as UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SummaryStore:
    """Read and upsert rows of the ``conflict_summaries`` table."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def get(self, target: SummaryTarget) -> Optional[SummaryRecord]:
        """Fetch the cached summary for *target*.

        Returns:
            A SummaryRecord, or None when nothing has been generated yet.
        """
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT kind, target_id, country_id, title, summary_text, model, "
                "last_generated_at FROM conflict_summaries "
                "WHERE kind = ? AND target_id = ?",
                (target.kind.value, target.id),
            ).fetchone()

        if row is None:
            return None

        return SummaryRecord(
            target=SummaryTarget(kind=TargetKind(row["kind"]), id=row["target_id"]),
            country_id=row["country_id"],
            title=row["title"],
            text=row["summary_text"],
            model_id=row["model"],
            generated_at=_parse_timestamp(row["last_generated_at"]),
        )

    def upsert(self, record: SummaryRecord) -> None:
        """Insert *record*, or overwrite the existing row for its target."""
        target = record.target
        with self.db.connect() as conn:
            conn.execute(
                """
                INSERT INTO conflict_summaries (
                    kind, target_id, storage_key, country_id, title,
                    summary_text, model, last_generated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (kind, target_id) DO UPDATE SET
                    country_id        = COALESCE(excluded.country_id, country_id),
                    title             = COALESCE(excluded.title, title),
                    summary_text      = excluded.summary_text,
                    model             = excluded.model,
                    last_generated_at = excluded.last_generated_at
                """,
                (
                    target.kind.value,
                    target.id,
                    target.storage_key,
                    record.country_id,
                    record.title,
                    record.text,
                    record.model_id,
                    record.generated_at.isoformat(),
                ),
            )
        logger.info(
            "Upserted summary for %s %d (storage_key=%d)",
            target.kind.value,
            target.id,
            target.storage_key,
        )
