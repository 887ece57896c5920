from __future__ import annotations

from typing import Any

THOUGHT_LIST_COLUMNS = "id,basis_id,title,body,category,status,strength_score,created_at,updated_at"


class PersonalThoughtsRepository:
    def __init__(self, backend: Any, *, table_name: str = "personal_thoughts") -> None:
        self._backend = backend
        self._table_name = table_name

    def create(self, *, thought: dict[str, Any], returning: str = "id,status") -> dict[str, Any] | None:
        return self._backend.insert(self._table_name, {**thought, "status": "draft"}, returning=returning)

    def list_by_status(self, *, status: str = "draft", category: str | None = None) -> list[dict[str, Any]]:
        filters: dict[str, Any] = {"status": status}
        if category:
            filters["category"] = category
        return self._backend.select(
            self._table_name,
            columns=THOUGHT_LIST_COLUMNS,
            filters=filters,
            order_by="created_at",
            ascending=False,
        )
