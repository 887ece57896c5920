from __future__ import annotations

import logging
from typing import Any

from app.errors import ApiError
from app.repositories.jobs import JOB_STATUS_PROCESSING, ContentJobsRepository

logger = logging.getLogger(__name__)


def _raise_unapplied_transition(jobs: ContentJobsRepository, *, job_id: str) -> None:
    """A guarded update touched no row: report whether the job is missing or in another state."""
    status = jobs.get_status(job_id=job_id)
    if status is None:
        raise ApiError(
            code="JOB_NOT_FOUND",
            message="Job not found.",
            error_class="validation",
            retryable=False,
            http_status=404,
        )
    raise ApiError(
        code="JOB_STATUS_CONFLICT",
        message=f'Job status is "{status}". Expected "{JOB_STATUS_PROCESSING}".',
        error_class="business_rule",
        retryable=False,
        http_status=409,
    )


def complete_job(jobs: ContentJobsRepository, *, job_id: str, result: dict[str, Any]) -> None:
    if not jobs.complete(job_id=job_id, result=result):
        _raise_unapplied_transition(jobs, job_id=job_id)
    logger.info("job_completed job_id=%s", job_id)


def fail_job(jobs: ContentJobsRepository, *, job_id: str, error: str) -> None:
    if not jobs.fail(job_id=job_id, error=error):
        _raise_unapplied_transition(jobs, job_id=job_id)
    logger.info("job_failed job_id=%s", job_id)
