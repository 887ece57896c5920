from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from app.errors import ConfigError

SUPPORTED_BACKENDS = ("supabase", "postgres", "memory")


def _split_csv(raw: str) -> list[str]:
    return [x.strip() for x in raw.split(",") if x.strip()]


def _env_float(env: Mapping[str, str], name: str, *, default: float, minimum: float = 0.0) -> float:
    raw = str(env.get(name, "")).strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return max(minimum, value)


def _env_int(env: Mapping[str, str], name: str, *, default: int, minimum: int = 0) -> int:
    raw = str(env.get(name, "")).strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, value)


def require_env(env: Mapping[str, str], *names: str) -> str:
    """Return the first non-empty value among ``names``; fail on the first name otherwise."""
    for name in names:
        value = str(env.get(name, "")).strip()
        if value:
            return value
    raise ConfigError(f"Missing required environment variable: {names[0]}")


@dataclass(frozen=True)
class Settings:
    backend: str
    supabase_url: str
    supabase_service_role_key: str
    supabase_timeout_s: float
    postgres_dsn: str
    vercel: bool
    cors_allow_origins: list[str]
    worker_id: str
    worker_poll_interval_ms: int

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        backend = str(env.get("CONTENT_ENGINE_BACKEND", "supabase")).strip().lower() or "supabase"
        if backend not in SUPPORTED_BACKENDS:
            raise ConfigError(f"unsupported backend: {backend}")

        supabase_url = ""
        service_role_key = ""
        postgres_dsn = ""
        if backend == "supabase":
            supabase_url = require_env(env, "SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL").rstrip("/")
            service_role_key = require_env(env, "SUPABASE_SERVICE_ROLE_KEY")
        elif backend == "postgres":
            postgres_dsn = require_env(env, "POSTGRES_DSN")

        return cls(
            backend=backend,
            supabase_url=supabase_url,
            supabase_service_role_key=service_role_key,
            supabase_timeout_s=_env_float(env, "SUPABASE_TIMEOUT_S", default=10.0, minimum=0.1),
            postgres_dsn=postgres_dsn,
            vercel=bool(str(env.get("VERCEL", "")).strip()),
            cors_allow_origins=_split_csv(str(env.get("CORS_ALLOW_ORIGINS", ""))),
            worker_id=str(env.get("WORKER_ID", "")).strip() or "local-worker",
            worker_poll_interval_ms=_env_int(env, "WORKER_POLL_INTERVAL_MS", default=1000, minimum=1),
        )
