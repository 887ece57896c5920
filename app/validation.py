"""Request validation for the content API.

Every validator returns a typed model built only from the keys the client
sent, so ``model_dump(exclude_unset=True)`` keeps the difference between an
omitted optional field and an explicit ``null``. The first failing field
raises an ``ApiError`` with a single human-readable message.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from app.errors import validation_error
from app.schemas import (
    THOUGHT_STATUSES,
    BasisEntryCreate,
    BasisListQuery,
    JobClaim,
    JobComplete,
    JobCreate,
    JobFail,
    ThoughtCreate,
    ThoughtListQuery,
)

UUID_RE = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}",
    re.IGNORECASE,
)

MISSING: Any = object()

BASIS_FIELDS = frozenset(
    {"basis_type", "reference", "source_text", "theme", "angle", "notes", "approved", "source_link"}
)
JOB_CREATE_FIELDS = frozenset({"type", "payload"})
JOB_CLAIM_FIELDS = frozenset({"worker_id"})
JOB_COMPLETE_FIELDS = frozenset({"result"})
JOB_FAIL_FIELDS = frozenset({"error"})
THOUGHT_FIELDS = frozenset({"basis_id", "title", "body", "category"})


def is_plain_object(value: Any) -> bool:
    return isinstance(value, dict)


def is_uuid(value: Any) -> bool:
    return isinstance(value, str) and UUID_RE.fullmatch(value) is not None


def require_object(body: Any, allowed: Iterable[str]) -> dict[str, Any]:
    if not is_plain_object(body):
        raise validation_error("Body must be a JSON object.")
    allowed_keys = set(allowed)
    unknown = sorted(str(key) for key in body if key not in allowed_keys)
    if unknown:
        raise validation_error(f"Unexpected fields: {', '.join(unknown)}.")
    return body


def require_string(value: Any, field: str, *, type_message: bool = True) -> str:
    if not isinstance(value, str):
        if type_message:
            raise validation_error(f'Field "{field}" must be a string.')
        raise validation_error(f'Field "{field}" must be a non-empty string.')
    trimmed = value.strip()
    if not trimmed:
        raise validation_error(f'Field "{field}" must be a non-empty string.')
    return trimmed


def optional_string(value: Any, field: str) -> Any:
    """Return MISSING when absent, None for explicit null, else the trimmed string."""
    if value is MISSING or value is None:
        return value
    return require_string(value, field)


def optional_boolean(value: Any, field: str) -> Any:
    if value is MISSING:
        return value
    if not isinstance(value, bool):
        raise validation_error(f'Field "{field}" must be a boolean.')
    return value


def require_json_object(value: Any, field: str) -> dict[str, Any]:
    if not is_plain_object(value):
        raise validation_error(f'Field "{field}" must be a JSON object.')
    return value


def optional_uuid(value: Any, field: str) -> Any:
    if value is MISSING:
        return value
    if not is_uuid(value):
        raise validation_error(f'Field "{field}" must be a UUID.')
    return value


def query_param(value: str | None, name: str) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    if not trimmed:
        raise validation_error(f'Query "{name}" must be a non-empty string.')
    return trimmed


def _present(**fields: Any) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not MISSING}


def validate_basis_entry(body: Any) -> BasisEntryCreate:
    data = require_object(body, BASIS_FIELDS)
    basis_type = require_string(data.get("basis_type", MISSING), "basis_type")
    reference = require_string(data.get("reference", MISSING), "reference")
    source_text = require_string(data.get("source_text", MISSING), "source_text")
    theme = require_string(data.get("theme", MISSING), "theme")
    angle = optional_string(data.get("angle", MISSING), "angle")
    notes = optional_string(data.get("notes", MISSING), "notes")
    source_link = optional_string(data.get("source_link", MISSING), "source_link")
    approved = optional_boolean(data.get("approved", MISSING), "approved")
    return BasisEntryCreate(
        **_present(
            basis_type=basis_type,
            reference=reference,
            source_text=source_text,
            theme=theme,
            angle=angle,
            notes=notes,
            approved=approved,
            source_link=source_link,
        )
    )


def validate_basis_query(*, theme: str | None, basis_type: str | None) -> BasisListQuery:
    return BasisListQuery(
        theme=query_param(theme, "theme"),
        basis_type=query_param(basis_type, "basis_type"),
    )


def validate_job_create(body: Any) -> JobCreate:
    data = require_object(body, JOB_CREATE_FIELDS)
    job_type = require_string(data.get("type", MISSING), "type", type_message=False)
    payload = require_json_object(data.get("payload", MISSING), "payload")
    return JobCreate(type=job_type, payload=payload)


def validate_job_claim(body: Any) -> JobClaim:
    data = require_object(body, JOB_CLAIM_FIELDS)
    worker_id = require_string(data.get("worker_id", MISSING), "worker_id", type_message=False)
    return JobClaim(worker_id=worker_id)


def validate_job_complete(body: Any) -> JobComplete:
    data = require_object(body, JOB_COMPLETE_FIELDS)
    return JobComplete(result=require_json_object(data.get("result", MISSING), "result"))


def validate_job_fail(body: Any) -> JobFail:
    data = require_object(body, JOB_FAIL_FIELDS)
    return JobFail(error=require_string(data.get("error", MISSING), "error", type_message=False))


def validate_job_id(job_id: str) -> str:
    if not is_uuid(job_id):
        raise validation_error("Invalid job id.", code="JOB_ID_INVALID")
    return job_id


def validate_thought(body: Any) -> ThoughtCreate:
    data = require_object(body, THOUGHT_FIELDS)
    title = require_string(data.get("title", MISSING), "title")
    text = require_string(data.get("body", MISSING), "body")
    category = require_string(data.get("category", MISSING), "category")
    basis_id = optional_uuid(data.get("basis_id", MISSING), "basis_id")
    return ThoughtCreate(**_present(basis_id=basis_id, title=title, body=text, category=category))


def validate_thought_query(*, status: str | None, category: str | None) -> ThoughtListQuery:
    status_value = query_param(status, "status")
    category_value = query_param(category, "category")
    status_value = status_value or "draft"
    if status_value not in THOUGHT_STATUSES:
        raise validation_error(f'Query "status" must be one of: {", ".join(THOUGHT_STATUSES)}.')
    return ThoughtListQuery(status=status_value, category=category_value)
