"""Tests for Database run tracking and repository upserts.

The psycopg2 connection pool is replaced with a MagicMock so the SQL and
parameters can be inspected without a live PostgreSQL.
"""

from unittest.mock import MagicMock, patch

import psycopg2.extras
import pytest

from conftest import BASE_TIME, make_repos
from scripts.watcher.config import DatabaseConfig
from scripts.watcher.db import SCHEMA_SQL, Database
from scripts.watcher.models import RepositorySummary


@pytest.fixture
def pool():
    with patch("psycopg2.pool.ThreadedConnectionPool") as MockPool:
        yield MockPool


@pytest.fixture
def db(pool):
    return Database(DatabaseConfig(url="postgresql://u:p@db/watch", min_connections=1, max_connections=2))


@pytest.fixture
def conn(pool):
    return pool.return_value.getconn.return_value


@pytest.fixture
def cur(conn):
    return conn.cursor.return_value.__enter__.return_value


class TestPool:
    def test_pool_built_from_config(self, db, pool):
        pool.assert_called_once_with(minconn=1, maxconn=2, dsn="postgresql://u:p@db/watch")

    def test_transaction_commits_and_returns_connection(self, db, pool, conn):
        with db.transaction():
            pass

        conn.commit.assert_called_once()
        pool.return_value.putconn.assert_called_once_with(conn)

    def test_transaction_rolls_back_on_error(self, db, pool, conn, cur):
        cur.execute.side_effect = RuntimeError("syntax error")

        with pytest.raises(RuntimeError):
            db.ensure_schema()

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        pool.return_value.putconn.assert_called_once_with(conn)

    def test_ensure_schema(self, db, cur):
        db.ensure_schema()
        cur.execute.assert_called_once_with(SCHEMA_SQL)

    def test_close(self, db, pool):
        db.close()
        pool.return_value.closeall.assert_called_once()


class TestRunTracking:
    def test_record_run_start(self, db, cur):
        run_id = db.record_run_start("mozilla", ["orgA", "orgB"])

        sql, params = cur.execute.call_args.args
        assert "INSERT INTO watch_runs" in sql
        assert "'RUNNING'" in sql
        assert params[0] == run_id
        assert params[1] == "mozilla"
        assert isinstance(params[2], psycopg2.extras.Json)
        assert params[2].adapted == ["orgA", "orgB"]

    def test_record_run_end_with_failed_orgs(self, db, cur):
        db.record_run_end(
            run_id="run-1",
            status="PARTIAL",
            scan_started_at=BASE_TIME,
            repos_found=3,
            failed_orgs=["orgB"],
        )

        sql, params = cur.execute.call_args.args
        assert "UPDATE watch_runs" in sql
        assert params[:3] == ("PARTIAL", BASE_TIME, 3)
        assert params[3].adapted == ["orgB"]
        assert params[4:] == (None, "run-1")

    def test_record_run_end_without_failures_stores_null(self, db, cur):
        db.record_run_end(run_id="run-1", status="SUCCESS", failed_orgs=[])

        params = cur.execute.call_args.args[1]
        assert params[3] is None

    def test_last_check_date_only_counts_runs_that_reached_github(self, db, cur):
        cur.fetchone.return_value = (BASE_TIME,)

        assert db.get_last_check_date("mozilla") == BASE_TIME

        sql, params = cur.execute.call_args.args
        assert "status IN ('SUCCESS', 'PARTIAL')" in sql
        assert "ORDER BY scan_started_at DESC" in sql
        assert params == ("mozilla",)

    def test_last_check_date_none_without_runs(self, db, cur):
        cur.fetchone.return_value = None
        assert db.get_last_check_date("mozilla") is None

    def test_recent_runs_as_dicts(self, db, cur):
        cur.description = [("id",), ("status",), ("repos_found",)]
        cur.fetchall.return_value = [("run-2", "SUCCESS", 4), ("run-1", "FAILED", 0)]

        runs = db.get_recent_runs("mozilla", limit=2)

        assert runs == [
            {"id": "run-2", "status": "SUCCESS", "repos_found": 4},
            {"id": "run-1", "status": "FAILED", "repos_found": 0},
        ]
        assert cur.execute.call_args.args[1] == ("mozilla", 2)


class TestUpsertRepositories:
    def test_empty_list_skips_the_database(self, db, pool):
        assert db.upsert_repositories("run-1", []) == 0
        pool.return_value.getconn.assert_not_called()

    def test_rows_and_conflict_clause(self, db, cur):
        repos = [RepositorySummary.from_api(r, "orgA") for r in make_repos("orgA", 2)]
        cur.rowcount = 2

        with patch("psycopg2.extras.execute_values") as mock_execute_values:
            assert db.upsert_repositories("run-1", repos) == 2

        called_cur, sql, rows = mock_execute_values.call_args.args
        assert called_cur is cur
        assert "ON CONFLICT (full_name) DO UPDATE" in sql
        assert "first_run_id" not in sql.split("DO UPDATE SET", 1)[1]
        assert len(rows) == 2
        full_name, name, owner, html_url, created_at, run_id, raw = rows[0]
        assert (full_name, name, owner) == ("orgA/repo-0", "repo-0", "orgA")
        assert html_url == "https://github.com/orgA/repo-0"
        assert created_at == BASE_TIME
        assert run_id == "run-1"
        assert isinstance(raw, psycopg2.extras.Json)
        assert raw.adapted == repos[0].raw
