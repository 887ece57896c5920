from __future__ import annotations

import logging

import pytest

from app.db.memory import InMemoryBackend
from app.errors import BackendError
from app.worker_runtime import NO_BASIS_MESSAGE, create_worker, synthesize_thought


def _seed_basis(backend: InMemoryBackend, *, approved: bool = True, **fields) -> str:
    row = {
        "basis_type": "quote",
        "reference": "ref",
        "source_text": "Slow is smooth.",
        "theme": "craft",
        "approved": approved,
    }
    row.update(fields)
    return backend.insert("basis_entries", row)["id"]


def _seed_job(backend: InMemoryBackend) -> str:
    return backend.insert("content_jobs", {"type": "personal_thought", "payload": {}})["id"]


def _job(backend: InMemoryBackend, job_id: str) -> dict:
    return backend.select("content_jobs", filters={"id": job_id})[0]


def test_synthesize_thought_uses_theme_and_source_text():
    draft = synthesize_thought({"id": "b1", "theme": "craft", "source_text": "Slow is smooth."})
    assert draft.title == "Draft thought on craft"
    assert draft.category == "craft"
    assert draft.body == "This thought is derived from the following basis:\n\nSlow is smooth."
    assert draft.status == "draft"


def test_synthesize_thought_falls_back_to_general_theme():
    draft = synthesize_thought({"id": "b1", "theme": None, "source_text": "x"})
    assert draft.title == "Draft thought on general"
    assert draft.category == "general"


def test_run_once_is_idle_without_jobs():
    backend = InMemoryBackend()
    result = create_worker(backend).run_once(worker_id="w")
    assert result.idle


def test_run_once_creates_draft_from_oldest_approved_basis():
    backend = InMemoryBackend()
    _seed_basis(backend, approved=False, theme="hidden")
    oldest = _seed_basis(backend, theme="craft")
    _seed_basis(backend, theme="later")
    job_id = _seed_job(backend)

    result = create_worker(backend).run_once(worker_id="w1")

    assert result.outcome == "completed"
    assert result.job_id == job_id
    thought = backend.select("personal_thoughts", filters={"id": result.thought_id})[0]
    assert thought["basis_id"] == oldest
    assert thought["status"] == "draft"
    assert thought["title"] == "Draft thought on craft"
    job = _job(backend, job_id)
    assert job["status"] == "completed"
    assert job["result"] == {"thought_id": result.thought_id}
    assert job["completed_at"]


def test_run_once_fails_job_without_approved_basis():
    backend = InMemoryBackend()
    _seed_basis(backend, approved=False)
    job_id = _seed_job(backend)

    result = create_worker(backend).run_once(worker_id="w1")

    assert result.outcome == "no_basis"
    assert result.as_dict() == {"ok": False, "error": NO_BASIS_MESSAGE, "job_id": job_id}
    job = _job(backend, job_id)
    assert job["status"] == "failed"
    assert job["error"] == NO_BASIS_MESSAGE
    assert backend.select("personal_thoughts") == []


def test_run_once_fails_claimed_job_when_thought_insert_breaks(monkeypatch):
    backend = InMemoryBackend()
    _seed_basis(backend)
    job_id = _seed_job(backend)
    original_insert = backend.insert

    def _insert(table, row, *, returning="*"):
        if table == "personal_thoughts":
            raise BackendError("insert rejected")
        return original_insert(table, row, returning=returning)

    monkeypatch.setattr(backend, "insert", _insert)

    with pytest.raises(BackendError):
        create_worker(backend).run_once(worker_id="w1")

    job = _job(backend, job_id)
    assert job["status"] == "failed"
    assert job["error"] == "insert rejected"


def test_run_once_rejects_claimed_row_without_id(monkeypatch):
    backend = InMemoryBackend()
    monkeypatch.setattr(backend, "rpc", lambda name, params: [{"status": "processing"}])
    with pytest.raises(RuntimeError, match="Claimed job has an invalid id."):
        create_worker(backend).run_once(worker_id="w1")


def test_run_forever_aggregates_outcomes():
    backend = InMemoryBackend()
    _seed_basis(backend)
    _seed_job(backend)
    _seed_job(backend)
    worker = create_worker(backend, poll_interval_ms=1)

    stats = worker.run_forever(worker_id="w1", stop_after_iterations=3)

    assert stats == {"iterations": 3, "completed": 2, "failed": 0, "idle": 1, "errors": 0}


def test_run_once_endpoint_no_basis_reports_job(client, backend):
    job_id = _seed_job(backend)

    resp = client.post("/workers/personal-thought/run-once", json={"worker_id": "w1"})

    assert resp.status_code == 200
    assert resp.json() == {"ok": False, "error": "No approved basis entries available.", "job_id": job_id}
    assert _job(backend, job_id)["status"] == "failed"


def test_run_once_endpoint_success_and_idle(client, backend):
    _seed_basis(backend)
    job_id = _seed_job(backend)

    resp = client.post("/workers/personal-thought/run-once")
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["job_id"] == job_id
    assert _job(backend, job_id)["locked_by"] == "local-worker"

    resp = client.post("/workers/personal-thought/run-once", content=b"not json")
    assert resp.status_code == 204


def test_run_once_endpoint_reports_unexpected_errors(client, backend, monkeypatch):
    def _boom(name, params):
        raise BackendError("claim procedure missing")

    monkeypatch.setattr(backend, "rpc", _boom)
    resp = client.post("/workers/personal-thought/run-once", json={})
    assert resp.status_code == 500
    assert resp.json() == {"ok": False, "error": "claim procedure missing"}


def test_run_once_keeps_original_error_when_release_also_fails(monkeypatch, caplog):
    backend = InMemoryBackend()
    _seed_basis(backend)
    job_id = _seed_job(backend)

    def _insert(table, row, *, returning="*"):
        raise BackendError("insert rejected")

    def _update(table, values, *, filters, returning="*"):
        raise BackendError("update rejected")

    monkeypatch.setattr(backend, "insert", _insert)
    monkeypatch.setattr(backend, "update", _update)

    with caplog.at_level(logging.ERROR, logger="app.worker_runtime"):
        with pytest.raises(BackendError, match="insert rejected"):
            create_worker(backend).run_once(worker_id="w1")

    assert any("job_release_failed" in record.getMessage() for record in caplog.records)
    assert _job(backend, job_id)["status"] == "processing"
