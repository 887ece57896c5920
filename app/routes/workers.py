from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from app.routes._deps import get_worker
from app.schemas import error_body
from app.worker_runtime import DEFAULT_WORKER_ID, PersonalThoughtWorker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["workers"])


async def _worker_id_from_request(request: Request) -> str:
    # The body is optional here; anything unreadable falls back to the default worker.
    raw = await request.body()
    try:
        body = json.loads(raw) if raw else {}
    except ValueError:
        body = {}
    worker_id = body.get("worker_id") if isinstance(body, dict) else None
    if isinstance(worker_id, str) and worker_id:
        return worker_id
    return DEFAULT_WORKER_ID


@router.post("/workers/personal-thought/run-once")
async def run_personal_thought_worker_once(
    request: Request,
    worker: PersonalThoughtWorker = Depends(get_worker),
):
    worker_id = await _worker_id_from_request(request)
    try:
        result = await run_in_threadpool(worker.run_once, worker_id=worker_id)
    except Exception as exc:
        logger.exception("worker_run_once_failed worker_id=%s", worker_id)
        return JSONResponse(status_code=500, content=error_body(str(exc) or "Unknown error"))
    if result.idle:
        return Response(status_code=204)
    return result.as_dict()
