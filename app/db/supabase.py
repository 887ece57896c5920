from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

import requests

from app.errors import BackendError

logger = logging.getLogger(__name__)


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


def _select_param(columns: str) -> str:
    cols = [x.strip() for x in columns.split(",") if x.strip()]
    if not cols or cols == ["*"]:
        return "*"
    return ",".join(_validate_identifier(col) for col in cols)


def _filter_value(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{'true' if value else 'false'}"
    return f"eq.{value}"


def _error_details(resp: requests.Response) -> tuple[str, str | None]:
    try:
        body = resp.json()
    except ValueError:
        body = None
    code = None
    if isinstance(body, dict):
        if body.get("code") is not None:
            code = str(body["code"])
        for key in ("message", "error_description", "error", "msg"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip(), code
    text = resp.text.strip()
    return text or f"backend request failed with HTTP {resp.status_code}", code


class SupabaseBackend:
    """Storage client speaking to Supabase's PostgREST and Storage HTTP APIs."""

    def __init__(
        self,
        *,
        url: str,
        service_role_key: str,
        timeout_s: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        if not url.strip():
            raise ValueError("SUPABASE_URL must not be empty")
        if not service_role_key.strip():
            raise ValueError("SUPABASE_SERVICE_ROLE_KEY must not be empty")
        self._url = url.strip().rstrip("/")
        self._timeout_s = timeout_s
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "apikey": service_role_key.strip(),
                "Authorization": f"Bearer {service_role_key.strip()}",
                "Accept": "application/json",
            }
        )

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: list[tuple[str, str]] | None = None,
        json_body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        headers: dict[str, str] = {}
        if prefer:
            headers["Prefer"] = prefer
        try:
            resp = self._session.request(
                method,
                f"{self._url}{path}",
                params=params,
                json=json_body,
                headers=headers,
                timeout=self._timeout_s,
            )
        except requests.RequestException as exc:
            logger.warning("supabase_request_failed method=%s path=%s error=%s", method, path, type(exc).__name__)
            raise BackendError(str(exc)) from exc

        if resp.status_code >= 400:
            message, code = _error_details(resp)
            logger.warning("supabase_error method=%s path=%s status=%s code=%s", method, path, resp.status_code, code)
            raise BackendError(message, code=code, status=resp.status_code)

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise BackendError("backend returned a non-JSON response") from exc

    @staticmethod
    def _filter_params(filters: Mapping[str, Any] | None) -> list[tuple[str, str]]:
        return [(_validate_identifier(key), _filter_value(value)) for key, value in (filters or {}).items()]

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
        params = [("select", _select_param(columns))]
        params.extend(self._filter_params(filters))
        if order_by is not None:
            params.append(("order", f"{_validate_identifier(order_by)}.{'asc' if ascending else 'desc'}"))
        if limit is not None:
            params.append(("limit", str(max(0, int(limit)))))
        data = self._request("GET", f"/rest/v1/{_validate_identifier(table)}", params=params)
        return list(data or [])

    def insert(self, table: str, row: Mapping[str, Any], *, returning: str = "*") -> dict[str, Any] | None:
        data = self._request(
            "POST",
            f"/rest/v1/{_validate_identifier(table)}",
            params=[("select", _select_param(returning))],
            json_body=dict(row),
            prefer="return=representation",
        )
        if isinstance(data, list):
            return data[0] if data else None
        return data if isinstance(data, dict) else None

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
        params = [("select", _select_param(returning))]
        params.extend(self._filter_params(filters))
        data = self._request(
            "PATCH",
            f"/rest/v1/{_validate_identifier(table)}",
            params=params,
            json_body=dict(values),
            prefer="return=representation",
        )
        return list(data or [])

    def rpc(self, name: str, params: Mapping[str, Any]) -> list[dict[str, Any]]:
        data = self._request("POST", f"/rest/v1/rpc/{_validate_identifier(name)}", json_body=dict(params))
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        return [row for row in data if isinstance(row, dict)]

    def ping(self) -> None:
        self._request("GET", "/storage/v1/bucket")

    def close(self) -> None:
        self._session.close()
