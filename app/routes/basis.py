from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from starlette.concurrency import run_in_threadpool

from app.errors import ApiError
from app.repositories.basis_entries import BasisEntriesRepository
from app.routes._deps import get_basis_entries, read_json_body
from app.validation import validate_basis_entry, validate_basis_query

router = APIRouter(tags=["basis"])


@router.post("/basis", status_code=201)
async def create_basis_entry(
    request: Request,
    basis_entries: BasisEntriesRepository = Depends(get_basis_entries),
):
    entry = validate_basis_entry(await read_json_body(request))
    created = await run_in_threadpool(basis_entries.create, entry=entry.model_dump(exclude_unset=True))
    if not created:
        raise ApiError(
            code="BASIS_CREATE_FAILED",
            message="Failed to create basis entry.",
            error_class="transient",
            retryable=True,
            http_status=500,
        )
    return {"id": created["id"]}


@router.get("/basis")
def list_basis_entries(
    theme: str | None = Query(default=None),
    basis_type: str | None = Query(default=None),
    basis_entries: BasisEntriesRepository = Depends(get_basis_entries),
):
    query = validate_basis_query(theme=theme, basis_type=basis_type)
    items = basis_entries.list_approved(theme=query.theme, basis_type=query.basis_type)
    return {"items": items}
