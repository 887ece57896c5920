from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from app.config import Settings
from app.db.factory import create_backend
from app.errors import ApiError, BackendError
from app.routes import basis, health, jobs, thoughts, workers
from app.routes._deps import error_response, request_id_from_request, trace_id_from_request

logger = logging.getLogger(__name__)


def create_app(*, settings: Settings | None = None, backend: Any | None = None) -> FastAPI:
    """Build the API around one backend client.

    Without an explicit ``backend`` the client is created from ``settings``
    (or the environment), and missing configuration aborts startup.
    """
    if settings is None:
        settings = Settings.from_env({"CONTENT_ENGINE_BACKEND": "memory"}) if backend is not None else Settings.from_env()
    if backend is None:
        backend = create_backend(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        backend.close()

    app = FastAPI(title="Content Pipeline API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.backend = backend

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def add_trace_id(request: Request, call_next):
        incoming_trace_id = request.headers.get("x-trace-id", "").strip()
        request.state.trace_id = incoming_trace_id or uuid.uuid4().hex
        request.state.request_id = request.headers.get("x-request-id", f"req_{uuid.uuid4().hex[:12]}")
        response = await call_next(request)
        response.headers["x-trace-id"] = trace_id_from_request(request)
        response.headers["x-request-id"] = request_id_from_request(request)
        return response

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        if exc.http_status >= 500:
            logger.warning("api_error code=%s path=%s", exc.code, request.url.path)
        return error_response(request, code=exc.code, message=exc.message, status_code=exc.http_status)

    @app.exception_handler(BackendError)
    async def handle_backend_error(request: Request, exc: BackendError):
        logger.warning("backend_error code=%s path=%s message=%s", exc.code, request.url.path, exc.message)
        return error_response(request, code="BACKEND_ERROR", message=exc.message, status_code=500)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        for err in exc.errors():
            if err.get("type") == "json_invalid":
                return error_response(
                    request,
                    code="REQ_INVALID_JSON",
                    message="Invalid JSON payload.",
                    status_code=400,
                )
        return error_response(request, code="REQ_VALIDATION_FAILED", message="Invalid request.", status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(request, code="REQ_NOT_FOUND", message="Not found.", status_code=404)
        return error_response(request, code="REQ_HTTP_ERROR", message=str(exc.detail), status_code=exc.status_code)

    app.include_router(basis.router)
    app.include_router(jobs.router)
    app.include_router(thoughts.router)
    app.include_router(workers.router)
    app.include_router(health.router)
    return app
