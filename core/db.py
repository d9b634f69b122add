"""
SQLite persistence for Conflict Atlas.

Schema
──────
table: conflict_summaries
  kind              TEXT NOT NULL      ('conflict' | 'country')
  target_id         INTEGER NOT NULL
  storage_key       INTEGER NOT NULL UNIQUE  (signed legacy key, never 0)
  country_id        INTEGER
  title             TEXT
  summary_text      TEXT NOT NULL
  model             TEXT NOT NULL
  last_generated_at TEXT NOT NULL      (ISO-8601 UTC)
  PRIMARY KEY (kind, target_id)

table: dashboards
  user_id    TEXT NOT NULL
  kind       TEXT NOT NULL
  target_id  INTEGER NOT NULL
  layout     TEXT NOT NULL   (grid layout serialised as JSON)
  updated_at TEXT NOT NULL
  PRIMARY KEY (user_id, kind, target_id)

table: country_iso3
  country_id  INTEGER PRIMARY KEY
  iso3        TEXT NOT NULL
  source      TEXT NOT NULL
  resolved_at TEXT NOT NULL
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS conflict_summaries (
        kind              TEXT NOT NULL,
        target_id         INTEGER NOT NULL,
        storage_key       INTEGER NOT NULL UNIQUE CHECK (storage_key != 0),
        country_id        INTEGER,
        title             TEXT,
        summary_text      TEXT NOT NULL,
        model             TEXT NOT NULL,
        last_generated_at TEXT NOT NULL,
        PRIMARY KEY (kind, target_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS dashboards (
        user_id    TEXT NOT NULL,
        kind       TEXT NOT NULL,
        target_id  INTEGER NOT NULL,
        layout     TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (user_id, kind, target_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS country_iso3 (
        country_id  INTEGER PRIMARY KEY,
        iso3        TEXT NOT NULL,
        source      TEXT NOT NULL,
        resolved_at TEXT NOT NULL
    )
    """,
)


class Database:
    """Opens short-lived connections to a single SQLite file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connected sqlite3.Connection, creating the file/dir if needed."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_schema(self) -> None:
        """Create all tables that don't exist yet."""
        with self.connect() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)
        logger.info("Database initialised at %s", self.path)
