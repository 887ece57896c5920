from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from starlette.concurrency import run_in_threadpool

from app.errors import ApiError
from app.repositories.personal_thoughts import PersonalThoughtsRepository
from app.routes._deps import get_thoughts, read_json_body
from app.validation import validate_thought, validate_thought_query

router = APIRouter(tags=["thoughts"])


@router.post("/thoughts", status_code=201)
async def create_thought(
    request: Request,
    thoughts: PersonalThoughtsRepository = Depends(get_thoughts),
):
    thought = validate_thought(await read_json_body(request))
    # basis_id is only sent when the client supplied one.
    created = await run_in_threadpool(thoughts.create, thought=thought.model_dump(exclude_unset=True))
    if not created:
        raise ApiError(
            code="THOUGHT_CREATE_FAILED",
            message="Failed to create thought.",
            error_class="transient",
            retryable=True,
            http_status=500,
        )
    return {"id": created["id"], "status": created["status"]}


@router.get("/thoughts")
def list_thoughts(
    status: str | None = Query(default=None),
    category: str | None = Query(default=None),
    thoughts: PersonalThoughtsRepository = Depends(get_thoughts),
):
    query = validate_thought_query(status=status, category=category)
    return {"items": thoughts.list_by_status(status=query.status, category=query.category)}
