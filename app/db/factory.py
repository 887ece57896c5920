from __future__ import annotations

import logging

from app.config import Settings
from app.db.memory import InMemoryBackend
from app.db.postgres import PostgresBackend, PostgresTxRunner
from app.db.supabase import SupabaseBackend

logger = logging.getLogger(__name__)


def create_backend(settings: Settings) -> InMemoryBackend | PostgresBackend | SupabaseBackend:
    logger.info("backend_selected backend=%s", settings.backend)
    if settings.backend == "supabase":
        return SupabaseBackend(
            url=settings.supabase_url,
            service_role_key=settings.supabase_service_role_key,
            timeout_s=settings.supabase_timeout_s,
        )
    if settings.backend == "postgres":
        return PostgresBackend(tx_runner=PostgresTxRunner(settings.postgres_dsn))
    return InMemoryBackend()
