from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ThoughtStatus = Literal["draft", "active", "archived"]

THOUGHT_STATUSES: tuple[str, ...] = ("draft", "active", "archived")


class _Input(BaseModel):
    model_config = ConfigDict(extra="forbid")


class BasisEntryCreate(_Input):
    basis_type: str
    reference: str
    source_text: str
    theme: str
    angle: str | None = None
    notes: str | None = None
    approved: bool | None = None
    source_link: str | None = None


class BasisListQuery(_Input):
    theme: str | None = None
    basis_type: str | None = None


class JobCreate(_Input):
    type: str
    payload: dict[str, Any]


class JobClaim(_Input):
    worker_id: str


class JobComplete(_Input):
    result: dict[str, Any]


class JobFail(_Input):
    error: str


class ThoughtCreate(_Input):
    basis_id: str | None = None
    title: str
    body: str
    category: str


class ThoughtListQuery(_Input):
    status: ThoughtStatus = "draft"
    category: str | None = None


class ThoughtDraft(BaseModel):
    """Draft synthesized by the run-once worker from one basis entry."""

    title: str
    body: str
    category: str
    basis_id: str
    status: ThoughtStatus = "draft"


class ClaimedJob(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    type: str | None = None
    status: str | None = None


def error_body(message: str) -> dict[str, Any]:
    return {"ok": False, "error": message}
