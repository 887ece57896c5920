from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from app.repositories.basis_entries import BasisEntriesRepository
from app.repositories.jobs import ContentJobsRepository
from app.repositories.personal_thoughts import PersonalThoughtsRepository
from app.schemas import ClaimedJob, ThoughtDraft

logger = logging.getLogger(__name__)

DEFAULT_WORKER_ID = "local-worker"
NO_BASIS_MESSAGE = "No approved basis entries available."
FALLBACK_THEME = "general"
BODY_PREFIX = "This thought is derived from the following basis:\n\n"


def synthesize_thought(basis: dict[str, Any]) -> ThoughtDraft:
    theme = basis.get("theme") or FALLBACK_THEME
    return ThoughtDraft(
        title=f"Draft thought on {theme}",
        body=f"{BODY_PREFIX}{basis.get('source_text') or ''}",
        category=theme,
        basis_id=str(basis["id"]),
    )


@dataclass
class RunOnceResult:
    outcome: str
    job_id: str | None = None
    thought_id: str | None = None
    error: str | None = None

    @property
    def idle(self) -> bool:
        return self.outcome == "idle"

    def as_dict(self) -> dict[str, Any]:
        if self.outcome == "completed":
            return {"ok": True, "job_id": self.job_id, "thought_id": self.thought_id}
        return {"ok": False, "error": self.error, "job_id": self.job_id}


@dataclass
class WorkerRunStats:
    iterations: int = 0
    completed: int = 0
    failed: int = 0
    idle: int = 0
    errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "iterations": self.iterations,
            "completed": self.completed,
            "failed": self.failed,
            "idle": self.idle,
            "errors": self.errors,
        }


class PersonalThoughtWorker:
    """Turns one claimed content job into one draft personal thought."""

    def __init__(
        self,
        *,
        jobs: ContentJobsRepository,
        basis_entries: BasisEntriesRepository,
        thoughts: PersonalThoughtsRepository,
        poll_interval_ms: int = 1000,
    ) -> None:
        self.jobs = jobs
        self.basis_entries = basis_entries
        self.thoughts = thoughts
        self.poll_interval_ms = max(1, int(poll_interval_ms))

    def run_once(self, *, worker_id: str = DEFAULT_WORKER_ID) -> RunOnceResult:
        row = self.jobs.claim_next(worker_id=worker_id)
        if row is None:
            return RunOnceResult(outcome="idle")
        try:
            job_id = ClaimedJob.model_validate(row).id
        except ValidationError as exc:
            raise RuntimeError("Claimed job has an invalid id.") from exc
        logger.info("job_claimed job_id=%s worker_id=%s", job_id, worker_id)

        try:
            return self._process(job_id=job_id)
        except Exception as exc:
            self._release_failed_job(job_id=job_id, exc=exc)
            raise

    def _process(self, *, job_id: str) -> RunOnceResult:
        basis = self.basis_entries.oldest_approved()
        if basis is None:
            self.jobs.fail(job_id=job_id, error=NO_BASIS_MESSAGE, require_processing=False)
            logger.info("job_failed_no_basis job_id=%s", job_id)
            return RunOnceResult(outcome="no_basis", job_id=job_id, error=NO_BASIS_MESSAGE)

        draft = synthesize_thought(basis)
        created = self.thoughts.create(thought=draft.model_dump(exclude={"status"}), returning="id")
        if not created or not created.get("id"):
            raise RuntimeError("Failed to create thought.")
        thought_id = str(created["id"])

        self.jobs.complete(job_id=job_id, result={"thought_id": thought_id}, require_processing=False)
        logger.info("job_completed job_id=%s thought_id=%s", job_id, thought_id)
        return RunOnceResult(outcome="completed", job_id=job_id, thought_id=thought_id)

    def _release_failed_job(self, *, job_id: str, exc: Exception) -> None:
        # Only a job still held in processing is moved to failed.
        message = str(exc) or "Unknown error"
        try:
            self.jobs.fail(job_id=job_id, error=message)
        except Exception:
            logger.exception("job_release_failed job_id=%s", job_id)
            return
        logger.warning("job_failed_after_error job_id=%s error=%s", job_id, message)

    def run_forever(
        self,
        *,
        worker_id: str = DEFAULT_WORKER_ID,
        stop_after_iterations: int | None = None,
    ) -> dict[str, int]:
        stats = WorkerRunStats()
        while True:
            try:
                result = self.run_once(worker_id=worker_id)
            except Exception:
                # Keep worker loop alive on unexpected execution failures.
                logger.exception("worker_iteration_failed worker_id=%s", worker_id)
                stats.errors += 1
                result = None
            if result is not None:
                if result.idle:
                    stats.idle += 1
                elif result.outcome == "completed":
                    stats.completed += 1
                else:
                    stats.failed += 1
            stats.iterations += 1
            if stop_after_iterations is not None and stats.iterations >= max(1, stop_after_iterations):
                break
            if result is None or result.idle:
                time.sleep(self.poll_interval_ms / 1000.0)
        return stats.as_dict()


def create_worker(backend: Any, *, poll_interval_ms: int = 1000) -> PersonalThoughtWorker:
    return PersonalThoughtWorker(
        jobs=ContentJobsRepository(backend),
        basis_entries=BasisEntriesRepository(backend),
        thoughts=PersonalThoughtsRepository(backend),
        poll_interval_ms=poll_interval_ms,
    )
