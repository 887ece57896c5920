from __future__ import annotations

import json
import uuid
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from app.config import Settings
from app.errors import validation_error
from app.repositories.basis_entries import BasisEntriesRepository
from app.repositories.jobs import ContentJobsRepository
from app.repositories.personal_thoughts import PersonalThoughtsRepository
from app.schemas import error_body
from app.worker_runtime import PersonalThoughtWorker, create_worker


def trace_id_from_request(request: Request) -> str:
    trace_id = getattr(request.state, "trace_id", None)
    if trace_id:
        return trace_id
    return uuid.uuid4().hex


def request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return request_id
    return f"req_{uuid.uuid4().hex[:12]}"


def error_response(request: Request, *, code: str, message: str, status_code: int) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content=error_body(message))
    response.headers["x-error-code"] = code
    response.headers["x-trace-id"] = trace_id_from_request(request)
    response.headers["x-request-id"] = request_id_from_request(request)
    return response


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_backend(request: Request) -> Any:
    return request.app.state.backend


def get_jobs(request: Request) -> ContentJobsRepository:
    return ContentJobsRepository(get_backend(request))


def get_basis_entries(request: Request) -> BasisEntriesRepository:
    return BasisEntriesRepository(get_backend(request))


def get_thoughts(request: Request) -> PersonalThoughtsRepository:
    return PersonalThoughtsRepository(get_backend(request))


def get_worker(request: Request) -> PersonalThoughtWorker:
    return create_worker(get_backend(request), poll_interval_ms=get_settings(request).worker_poll_interval_ms)


async def read_json_body(request: Request) -> Any:
    """Parse the raw request body as JSON whatever its declared content type."""
    raw = await request.body()
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise validation_error("Invalid JSON payload.", code="REQ_INVALID_JSON") from exc
