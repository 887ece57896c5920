from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable, Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from app.errors import BackendError

logger = logging.getLogger(__name__)


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


def _column_list(columns: str) -> str:
    cols = [x.strip() for x in columns.split(",") if x.strip()]
    if not cols or cols == ["*"]:
        return "*"
    return ", ".join(_validate_identifier(col) for col in cols)


def _adapt(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return Jsonb(value)
    return value


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value)
    if isinstance(value, dict):
        return {str(key): _json_safe(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return str(value)


def _where(filters: Mapping[str, Any] | None) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    for key, value in (filters or {}).items():
        column = _validate_identifier(key)
        if value is None:
            clauses.append(f"{column} IS NULL")
        else:
            clauses.append(f"{column} = %s")
            params.append(_adapt(value))
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


class PostgresTxRunner:
    """Run callback logic in one PostgreSQL transaction."""

    def __init__(self, dsn: str) -> None:
        if not dsn.strip():
            raise ValueError("POSTGRES_DSN must not be empty")
        self._dsn = dsn.strip()

    def run_in_tx(self, fn: Callable[[Any], Any]) -> Any:
        with psycopg.connect(self._dsn) as conn:
            result = fn(conn)
            conn.commit()
            return result


class PostgresBackend:
    """Storage client issuing SQL directly against the content schema.

    Named procedures are called with named-argument notation, so
    ``claim_next_job`` keeps its locking inside the database.
    """

    def __init__(self, *, tx_runner: Any) -> None:
        self._tx_runner = tx_runner

    def _fetch(self, sql: str, params: list[Any]) -> list[dict[str, Any]]:
        def _op(conn: Any) -> list[dict[str, Any]]:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(sql, params)
                rows = cur.fetchall()
            return [_json_safe(dict(row)) for row in rows]

        try:
            return self._tx_runner.run_in_tx(_op)
        except psycopg.Error as exc:
            logger.warning("postgres_error sqlstate=%s", getattr(exc, "sqlstate", None))
            raise BackendError(str(exc).strip() or type(exc).__name__, code=getattr(exc, "sqlstate", None)) from exc

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
        where_sql, params = _where(filters)
        sql = f"SELECT {_column_list(columns)} FROM {_validate_identifier(table)}{where_sql}"
        if order_by is not None:
            sql += f" ORDER BY {_validate_identifier(order_by)} {'ASC' if ascending else 'DESC'}"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(max(0, int(limit)))
        return self._fetch(sql, params)

    def insert(self, table: str, row: Mapping[str, Any], *, returning: str = "*") -> dict[str, Any] | None:
        table_name = _validate_identifier(table)
        if row:
            columns = [_validate_identifier(key) for key in row]
            placeholders = ", ".join(["%s"] * len(columns))
            sql = f"INSERT INTO {table_name} ({', '.join(columns)}) VALUES ({placeholders})"
            params = [_adapt(value) for value in row.values()]
        else:
            sql = f"INSERT INTO {table_name} DEFAULT VALUES"
            params = []
        sql += f" RETURNING {_column_list(returning)}"
        rows = self._fetch(sql, params)
        return rows[0] if rows else None

    def update(
        self,
        table: str,
        values: Mapping[str, Any],
        *,
        filters: Mapping[str, Any],
        returning: str = "*",
    ) -> list[dict[str, Any]]:
        if not filters:
            raise ValueError("update requires at least one filter")
        if not values:
            raise ValueError("update requires at least one value")
        assignments = ", ".join(f"{_validate_identifier(key)} = %s" for key in values)
        params = [_adapt(value) for value in values.values()]
        where_sql, where_params = _where(filters)
        sql = (
            f"UPDATE {_validate_identifier(table)} SET {assignments}{where_sql}"
            f" RETURNING {_column_list(returning)}"
        )
        return self._fetch(sql, params + where_params)

    def rpc(self, name: str, params: Mapping[str, Any]) -> list[dict[str, Any]]:
        arguments = ", ".join(f"{_validate_identifier(key)} => %s" for key in params)
        sql = f"SELECT * FROM {_validate_identifier(name)}({arguments})"
        rows = self._fetch(sql, [_adapt(value) for value in params.values()])
        # A function returning a NULL composite still yields one all-NULL row.
        return [row for row in rows if any(value is not None for value in row.values())]

    def ping(self) -> None:
        self._fetch("SELECT 1 AS ok", [])

    def close(self) -> None:
        return None
