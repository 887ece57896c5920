from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from starlette.concurrency import run_in_threadpool

from app.config import Settings
from app.errors import ApiError
from app.job_lifecycle import complete_job, fail_job
from app.repositories.jobs import ContentJobsRepository
from app.routes._deps import get_jobs, get_settings, read_json_body
from app.validation import (
    validate_job_claim,
    validate_job_complete,
    validate_job_create,
    validate_job_fail,
    validate_job_id,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["jobs"])

SCHEDULER_HEADER = "x-vercel-cron"


def require_scheduler_call(request: Request, settings: Settings) -> None:
    """On the hosted platform only its cron scheduler may enqueue jobs."""
    if settings.vercel and request.headers.get(SCHEDULER_HEADER) != "1":
        raise ApiError(
            code="AUTH_UNAUTHORIZED",
            message="unauthorized",
            error_class="security_sensitive",
            retryable=False,
            http_status=401,
        )


@router.post("/jobs", status_code=201)
async def create_job(
    request: Request,
    settings: Settings = Depends(get_settings),
    jobs: ContentJobsRepository = Depends(get_jobs),
):
    require_scheduler_call(request, settings)
    job = validate_job_create(await read_json_body(request))
    created = await run_in_threadpool(jobs.create, job_type=job.type, payload=job.payload)
    if not created:
        raise ApiError(
            code="JOB_CREATE_FAILED",
            message="Failed to create job.",
            error_class="transient",
            retryable=True,
            http_status=500,
        )
    logger.info("job_created job_id=%s type=%s", created["id"], job.type)
    return {"job_id": created["id"], "status": created["status"]}


@router.post("/jobs/claim")
async def claim_job(
    request: Request,
    jobs: ContentJobsRepository = Depends(get_jobs),
):
    claim = validate_job_claim(await read_json_body(request))
    job = await run_in_threadpool(jobs.claim_next, worker_id=claim.worker_id)
    if job is None:
        return Response(status_code=204)
    logger.info("job_claimed job_id=%s worker_id=%s", job.get("id"), claim.worker_id)
    return job


@router.post("/jobs/{job_id}/complete")
async def complete_content_job(
    job_id: str,
    request: Request,
    jobs: ContentJobsRepository = Depends(get_jobs),
):
    validate_job_id(job_id)
    body = validate_job_complete(await read_json_body(request))
    await run_in_threadpool(complete_job, jobs, job_id=job_id, result=body.result)
    return {"ok": True}


@router.post("/jobs/{job_id}/fail")
async def fail_content_job(
    job_id: str,
    request: Request,
    jobs: ContentJobsRepository = Depends(get_jobs),
):
    validate_job_id(job_id)
    body = validate_job_fail(await read_json_body(request))
    await run_in_threadpool(fail_job, jobs, job_id=job_id, error=body.error)
    return {"ok": True}
