"""Database helpers: connection pool, watch-run tracking, repository upserts."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Generator, Optional, Sequence

import psycopg2
import psycopg2.extras
import psycopg2.pool

from scripts.watcher.config import DatabaseConfig
from scripts.watcher.models import RepositorySummary

logger = logging.getLogger("watcher.db")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS watch_runs (
    id              UUID PRIMARY KEY,
    watcher         TEXT NOT NULL,
    status          TEXT NOT NULL,
    organisations   JSONB NOT NULL DEFAULT '[]'::jsonb,
    started_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    finished_at     TIMESTAMPTZ,
    scan_started_at TIMESTAMPTZ,
    repos_found     INTEGER NOT NULL DEFAULT 0,
    failed_orgs     JSONB,
    error_message   TEXT
);

CREATE INDEX IF NOT EXISTS watch_runs_watcher_started_idx
    ON watch_runs (watcher, started_at DESC);

CREATE TABLE IF NOT EXISTS discovered_repositories (
    full_name     TEXT PRIMARY KEY,
    name          TEXT NOT NULL,
    owner         TEXT NOT NULL,
    html_url      TEXT,
    created_at    TIMESTAMPTZ NOT NULL,
    first_run_id  UUID NOT NULL REFERENCES watch_runs (id),
    raw_response  JSONB NOT NULL,
    discovered_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at    TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


class Database:
    """Thin wrapper around a ThreadedConnectionPool with run-tracking helpers."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._pool = psycopg2.pool.ThreadedConnectionPool(
            minconn=config.min_connections,
            maxconn=config.max_connections,
            dsn=config.url,
        )

    def close(self) -> None:
        self._pool.closeall()

    @contextmanager
    def connection(self) -> Generator:
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Generator:
        """Yield a cursor inside an auto-commit/rollback transaction."""
        with self.connection() as conn:
            try:
                with conn.cursor() as cur:
                    yield cur
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def ensure_schema(self) -> None:
        with self.transaction() as cur:
            cur.execute(SCHEMA_SQL)
        logger.info("Schema ready")

    # ------------------------------------------------------------------
    # Watch run tracking
    # ------------------------------------------------------------------

    def record_run_start(self, watcher: str, organisations: Sequence[str]) -> str:
        """Insert a new watch_runs row with status RUNNING. Returns the run id."""
        run_id = str(uuid.uuid4())
        with self.transaction() as cur:
            cur.execute(
                """INSERT INTO watch_runs (id, watcher, status, organisations)
                   VALUES (%s, %s, 'RUNNING', %s)""",
                (run_id, watcher, psycopg2.extras.Json(list(organisations))),
            )
        return run_id

    def record_run_end(
        self,
        run_id: str,
        status: str,
        scan_started_at: Optional[datetime] = None,
        repos_found: int = 0,
        failed_orgs: Optional[list[str]] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """Finalise a watch_runs row."""
        with self.transaction() as cur:
            cur.execute(
                """UPDATE watch_runs
                   SET status = %s,
                       finished_at = NOW(),
                       scan_started_at = %s,
                       repos_found = %s,
                       failed_orgs = %s,
                       error_message = %s
                   WHERE id = %s""",
                (
                    status,
                    scan_started_at,
                    repos_found,
                    psycopg2.extras.Json(failed_orgs) if failed_orgs else None,
                    error_message,
                    run_id,
                ),
            )

    def get_last_check_date(self, watcher: str) -> Optional[datetime]:
        """Scan start time of the latest run that reached GitHub successfully."""
        with self.transaction() as cur:
            cur.execute(
                """SELECT scan_started_at FROM watch_runs
                   WHERE watcher = %s
                     AND status IN ('SUCCESS', 'PARTIAL')
                     AND scan_started_at IS NOT NULL
                   ORDER BY scan_started_at DESC LIMIT 1""",
                (watcher,),
            )
            row = cur.fetchone()
        return row[0] if row else None

    def get_recent_runs(self, watcher: str, limit: int = 10) -> list[dict[str, Any]]:
        """Fetch recent watch runs for status display."""
        with self.transaction() as cur:
            cur.execute(
                """SELECT id, status, started_at, finished_at, scan_started_at,
                          repos_found, failed_orgs, error_message
                   FROM watch_runs
                   WHERE watcher = %s
                   ORDER BY started_at DESC LIMIT %s""",
                (watcher, limit),
            )
            cols = [d[0] for d in cur.description]
            return [dict(zip(cols, row)) for row in cur.fetchall()]

    # ------------------------------------------------------------------
    # Discovered repositories
    # ------------------------------------------------------------------

    def upsert_repositories(self, run_id: str, repos: Sequence[RepositorySummary]) -> int:
        """Store discovered repositories; a repo seen again keeps its first run id.

        Returns the number of rows affected.
        """
        if not repos:
            return 0

        rows = [
            (
                r.full_name,
                r.name,
                r.owner,
                r.html_url,
                r.created_at,
                run_id,
                psycopg2.extras.Json(r.raw),
            )
            for r in repos
        ]
        sql = (
            "INSERT INTO discovered_repositories "
            "(full_name, name, owner, html_url, created_at, first_run_id, raw_response) "
            "VALUES %s "
            "ON CONFLICT (full_name) DO UPDATE SET "
            "html_url = EXCLUDED.html_url, "
            "raw_response = EXCLUDED.raw_response, "
            "updated_at = NOW()"
        )
        with self.transaction() as cur:
            psycopg2.extras.execute_values(cur, sql, rows, page_size=500)
            return cur.rowcount
