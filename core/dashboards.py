"""Per-user dashboard layouts, one row per (user, conflict-or-country)."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from core.db import Database
from core.models import DashboardLayout, GridLayoutItem, SummaryTarget

logger = logging.getLogger(__name__)


class DashboardStore:
    def __init__(self, db: Database) -> None:
        self.db = db

    def get(self, user_id: str, target: SummaryTarget) -> Optional[DashboardLayout]:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT layout, updated_at FROM dashboards "
                "WHERE user_id = ? AND kind = ? AND target_id = ?",
                (user_id, target.kind.value, target.id),
            ).fetchone()

        if row is None:
            return None

        return DashboardLayout(
            user_id=user_id,
            target=target,
            layout=[GridLayoutItem.model_validate(item) for item in json.loads(row["layout"])],
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def save(
        self, user_id: str, target: SummaryTarget, layout: list[GridLayoutItem]
    ) -> DashboardLayout:
        """Insert or replace the user's layout for *target*."""
        dashboard = DashboardLayout(
            user_id=user_id,
            target=target,
            layout=layout,
            updated_at=datetime.now(timezone.utc),
        )
        layout_json = json.dumps([item.model_dump() for item in layout])

        with self.db.connect() as conn:
            conn.execute(
                """
                INSERT INTO dashboards (user_id, kind, target_id, layout, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (user_id, kind, target_id) DO UPDATE SET
                    layout     = excluded.layout,
                    updated_at = excluded.updated_at
                """,
                (
                    user_id,
                    target.kind.value,
                    target.id,
                    layout_json,
                    dashboard.updated_at.isoformat(),
                ),
            )

        logger.info(
            "Saved dashboard layout for user=%r %s %d (%d tiles)",
            user_id,
            target.kind.value,
            target.id,
            len(layout),
        )
        return dashboard
