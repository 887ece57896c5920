from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.errors import BackendError
from app.routes._deps import get_backend

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.get("/health")
def health(backend: Any = Depends(get_backend)):
    timestamp = _timestamp()
    try:
        backend.ping()
    except BackendError as exc:
        logger.warning("health_backend_unreachable error=%s", exc.message)
        return JSONResponse(
            status_code=503,
            content={"ok": False, "supabase": "error", "timestamp": timestamp},
        )
    return {"ok": True, "supabase": "connected", "timestamp": timestamp}
