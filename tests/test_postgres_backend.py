from __future__ import annotations

import uuid
from datetime import UTC, datetime

import psycopg
import pytest
from psycopg.types.json import Jsonb

from app.db.postgres import PostgresBackend, PostgresTxRunner
from app.errors import BackendError


class FakeCursor:
    def __init__(self, conn):
        self._conn = conn

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, query: str, params=None):
        self._conn.statements.append((query, params))
        if self._conn.error is not None:
            raise self._conn.error

    def fetchall(self):
        return self._conn.rows


class FakeConnection:
    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.statements: list[tuple[str, list]] = []

    def cursor(self, row_factory=None):
        return FakeCursor(self)


class FakeRunner:
    def __init__(self, conn: FakeConnection):
        self.conn = conn

    def run_in_tx(self, fn):
        return fn(self.conn)


def _backend(rows=None, error=None) -> tuple[PostgresBackend, FakeConnection]:
    conn = FakeConnection(rows=rows, error=error)
    return PostgresBackend(tx_runner=FakeRunner(conn)), conn


def test_tx_runner_rejects_empty_dsn():
    with pytest.raises(ValueError, match="POSTGRES_DSN must not be empty"):
        PostgresTxRunner("  ")


def test_select_builds_filtered_ordered_query():
    backend, conn = _backend(rows=[{"id": "b1"}])
    rows = backend.select(
        "basis_entries",
        columns="id,theme",
        filters={"approved": True, "theme": "focus"},
        order_by="created_at",
        ascending=False,
        limit=1,
    )
    assert rows == [{"id": "b1"}]
    sql, params = conn.statements[0]
    assert sql == (
        "SELECT id, theme FROM basis_entries WHERE approved = %s AND theme = %s"
        " ORDER BY created_at DESC LIMIT %s"
    )
    assert params == [True, "focus", 1]


def test_insert_wraps_json_values_and_normalizes_rows():
    job_id = uuid.uuid4()
    created_at = datetime(2024, 1, 1, tzinfo=UTC)
    backend, conn = _backend(rows=[{"id": job_id, "status": "queued", "created_at": created_at}])

    row = backend.insert("content_jobs", {"type": "x", "payload": {"a": 1}}, returning="id,status,created_at")

    assert row == {"id": str(job_id), "status": "queued", "created_at": "2024-01-01T00:00:00+00:00"}
    sql, params = conn.statements[0]
    assert sql == "INSERT INTO content_jobs (type, payload) VALUES (%s, %s) RETURNING id, status, created_at"
    assert params[0] == "x"
    assert isinstance(params[1], Jsonb)


def test_conditional_update_sql():
    backend, conn = _backend(rows=[])
    rows = backend.update(
        "content_jobs",
        {"status": "failed", "result": None, "error": "boom"},
        filters={"id": "j1", "status": "processing"},
        returning="id",
    )
    assert rows == []
    sql, params = conn.statements[0]
    assert sql == (
        "UPDATE content_jobs SET status = %s, result = %s, error = %s"
        " WHERE id = %s AND status = %s RETURNING id"
    )
    assert params == ["failed", None, "boom", "j1", "processing"]


def test_update_requires_filters():
    backend, _ = _backend()
    with pytest.raises(ValueError):
        backend.update("content_jobs", {"status": "failed"}, filters={})


def test_rpc_uses_named_arguments_and_drops_null_rows():
    backend, conn = _backend(rows=[{"id": None, "status": None}])
    assert backend.rpc("claim_next_job", {"worker_id": "w1"}) == []
    sql, params = conn.statements[0]
    assert sql == "SELECT * FROM claim_next_job(worker_id => %s)"
    assert params == ["w1"]


def test_database_errors_become_backend_errors():
    backend, _ = _backend(error=psycopg.OperationalError("server closed the connection"))
    with pytest.raises(BackendError, match="server closed the connection"):
        backend.ping()


def test_identifiers_are_validated():
    backend, _ = _backend()
    with pytest.raises(ValueError, match="invalid SQL identifier"):
        backend.select("jobs;drop table jobs")
