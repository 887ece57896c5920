from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

JOB_STATUS_PROCESSING = "processing"
JOB_STATUS_COMPLETED = "completed"
JOB_STATUS_FAILED = "failed"


def _utcnow_iso() -> str:
    return datetime.now(UTC).isoformat()


class ContentJobsRepository:
    """Content jobs over the storage backend; claim atomicity stays in ``claim_next_job``."""

    CLAIM_PROCEDURE = "claim_next_job"

    def __init__(self, backend: Any, *, table_name: str = "content_jobs") -> None:
        self._backend = backend
        self._table_name = table_name

    def create(self, *, job_type: str, payload: dict[str, Any]) -> dict[str, Any] | None:
        return self._backend.insert(
            self._table_name,
            {"type": job_type, "payload": payload},
            returning="id,status",
        )

    def claim_next(self, *, worker_id: str) -> dict[str, Any] | None:
        rows = self._backend.rpc(self.CLAIM_PROCEDURE, {"worker_id": worker_id})
        if not rows:
            return None
        return rows[0]

    def get_status(self, *, job_id: str) -> str | None:
        rows = self._backend.select(self._table_name, columns="status", filters={"id": job_id}, limit=1)
        if not rows:
            return None
        return str(rows[0].get("status"))

    def _finish(
        self,
        *,
        job_id: str,
        values: dict[str, Any],
        require_processing: bool,
    ) -> bool:
        filters: dict[str, Any] = {"id": job_id}
        if require_processing:
            filters["status"] = JOB_STATUS_PROCESSING
        rows = self._backend.update(
            self._table_name,
            {**values, "completed_at": _utcnow_iso()},
            filters=filters,
            returning="id",
        )
        return bool(rows)

    def complete(self, *, job_id: str, result: dict[str, Any], require_processing: bool = True) -> bool:
        return self._finish(
            job_id=job_id,
            values={"status": JOB_STATUS_COMPLETED, "result": result, "error": None},
            require_processing=require_processing,
        )

    def fail(self, *, job_id: str, error: str, require_processing: bool = True) -> bool:
        return self._finish(
            job_id=job_id,
            values={"status": JOB_STATUS_FAILED, "result": None, "error": error},
            require_processing=require_processing,
        )
