from __future__ import annotations

import copy
import threading
import uuid
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from app.errors import BackendError


def _parse_columns(columns: str) -> list[str] | None:
    cols = [x.strip() for x in columns.split(",") if x.strip()]
    if not cols or cols == ["*"]:
        return None
    return cols


class InMemoryBackend:
    """Process-local stand-in for the storage service.

    Applies the same column defaults the hosted schema does and emulates the
    ``claim_next_job`` procedure under a lock, so the at-most-one-claim
    guarantee holds across threads.
    """

    TABLE_DEFAULTS: dict[str, dict[str, Any]] = {
        "basis_entries": {
            "angle": None,
            "notes": None,
            "source_link": None,
            "approved": False,
        },
        "content_jobs": {
            "status": "queued",
            "result": None,
            "error": None,
            "locked_by": None,
            "locked_at": None,
            "completed_at": None,
        },
        "personal_thoughts": {
            "basis_id": None,
            "status": "draft",
            "strength_score": None,
        },
    }

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tables: dict[str, list[dict[str, Any]]] = {name: [] for name in self.TABLE_DEFAULTS}
        self._last_ts: datetime | None = None
        self._procedures: dict[str, Callable[[Mapping[str, Any]], list[dict[str, Any]]]] = {
            "claim_next_job": self._claim_next_job,
        }

    def _now_iso(self) -> str:
        now = datetime.now(UTC)
        if self._last_ts is not None and now <= self._last_ts:
            now = self._last_ts + timedelta(microseconds=1)
        self._last_ts = now
        return now.isoformat(timespec="microseconds")

    def _table(self, table: str) -> list[dict[str, Any]]:
        rows = self._tables.get(table)
        if rows is None:
            raise BackendError(f'relation "public.{table}" does not exist', code="42P01")
        return rows

    @staticmethod
    def _project(row: dict[str, Any], columns: str) -> dict[str, Any]:
        cols = _parse_columns(columns)
        if cols is None:
            return copy.deepcopy(row)
        return {col: copy.deepcopy(row.get(col)) for col in cols}

    @staticmethod
    def _matches(row: dict[str, Any], filters: Mapping[str, Any] | None) -> bool:
        if not filters:
            return True
        return all(row.get(key) == value for key, value in filters.items())

    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        ascending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            rows = [row for row in self._table(table) if self._matches(row, filters)]
            if order_by is not None:
                rows.sort(key=lambda row: (row.get(order_by) is None, row.get(order_by) or ""), reverse=not ascending)
            if limit is not None:
                rows = rows[: max(0, int(limit))]
            return [self._project(row, columns) for row in rows]

    def insert(self, table: str, row: Mapping[str, Any], *, returning: str = "*") -> dict[str, Any] | None:
        with self._lock:
            rows = self._table(table)
            now = self._now_iso()
            record: dict[str, Any] = {"id": str(uuid.uuid4())}
            record.update(copy.deepcopy(self.TABLE_DEFAULTS[table]))
            record.update({"created_at": now, "updated_at": now})
            record.update(copy.deepcopy(dict(row)))
            rows.append(record)
            return self._project(record, returning)

    def update(
        self,
        table: str,
        values: Mapping[str, Any],
        *,
        filters: Mapping[str, Any],
        returning: str = "*",
    ) -> list[dict[str, Any]]:
        with self._lock:
            updated: list[dict[str, Any]] = []
            now = self._now_iso()
            for row in self._table(table):
                if not self._matches(row, filters):
                    continue
                row.update(copy.deepcopy(dict(values)))
                row["updated_at"] = now
                updated.append(self._project(row, returning))
            return updated

    def rpc(self, name: str, params: Mapping[str, Any]) -> list[dict[str, Any]]:
        procedure = self._procedures.get(name)
        if procedure is None:
            raise BackendError(f"Could not find the function public.{name}", code="PGRST202")
        with self._lock:
            return procedure(params)

    def _claim_next_job(self, params: Mapping[str, Any]) -> list[dict[str, Any]]:
        worker_id = str(params.get("worker_id") or "")
        queued = [row for row in self._tables["content_jobs"] if row.get("status") == "queued"]
        if not queued:
            return []
        job = min(queued, key=lambda row: str(row.get("created_at") or ""))
        now = self._now_iso()
        job.update({"status": "processing", "locked_by": worker_id, "locked_at": now, "updated_at": now})
        return [copy.deepcopy(job)]

    def ping(self) -> None:
        return None

    def close(self) -> None:
        return None
