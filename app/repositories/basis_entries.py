from __future__ import annotations

from typing import Any

BASIS_LIST_COLUMNS = (
    "id,basis_type,reference,source_text,theme,angle,notes,approved,source_link,created_at,updated_at"
)


class BasisEntriesRepository:
    def __init__(self, backend: Any, *, table_name: str = "basis_entries") -> None:
        self._backend = backend
        self._table_name = table_name

    def create(self, *, entry: dict[str, Any]) -> dict[str, Any] | None:
        return self._backend.insert(self._table_name, entry, returning="id")

    def list_approved(self, *, theme: str | None = None, basis_type: str | None = None) -> list[dict[str, Any]]:
        filters: dict[str, Any] = {"approved": True}
        if theme:
            filters["theme"] = theme
        if basis_type:
            filters["basis_type"] = basis_type
        return self._backend.select(
            self._table_name,
            columns=BASIS_LIST_COLUMNS,
            filters=filters,
            order_by="created_at",
            ascending=True,
        )

    def oldest_approved(self) -> dict[str, Any] | None:
        rows = self._backend.select(
            self._table_name,
            filters={"approved": True},
            order_by="created_at",
            ascending=True,
            limit=1,
        )
        return rows[0] if rows else None
