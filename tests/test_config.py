import pytest

from app.config import Settings
from app.db.factory import create_backend
from app.db.memory import InMemoryBackend
from app.db.postgres import PostgresBackend
from app.db.supabase import SupabaseBackend
from app.errors import ConfigError
from app.main import create_app


def test_supabase_backend_requires_url_and_key():
    with pytest.raises(ConfigError, match="Missing required environment variable: SUPABASE_URL"):
        Settings.from_env({})
    with pytest.raises(ConfigError, match="SUPABASE_SERVICE_ROLE_KEY"):
        Settings.from_env({"SUPABASE_URL": "https://example.supabase.co"})


def test_supabase_url_falls_back_to_public_variable():
    settings = Settings.from_env(
        {
            "NEXT_PUBLIC_SUPABASE_URL": "https://example.supabase.co/",
            "SUPABASE_SERVICE_ROLE_KEY": "service-key",
        }
    )
    assert settings.backend == "supabase"
    assert settings.supabase_url == "https://example.supabase.co"
    assert isinstance(create_backend(settings), SupabaseBackend)


def test_postgres_backend_requires_dsn():
    with pytest.raises(ConfigError, match="POSTGRES_DSN"):
        Settings.from_env({"CONTENT_ENGINE_BACKEND": "postgres"})
    settings = Settings.from_env({"CONTENT_ENGINE_BACKEND": "postgres", "POSTGRES_DSN": "postgresql://localhost/db"})
    assert isinstance(create_backend(settings), PostgresBackend)


def test_unknown_backend_is_rejected():
    with pytest.raises(ConfigError, match="unsupported backend: sqlite"):
        Settings.from_env({"CONTENT_ENGINE_BACKEND": "sqlite"})


def test_defaults_and_numeric_parsing():
    settings = Settings.from_env(
        {
            "CONTENT_ENGINE_BACKEND": "memory",
            "SUPABASE_TIMEOUT_S": "oops",
            "WORKER_POLL_INTERVAL_MS": "250",
            "CORS_ALLOW_ORIGINS": "http://a.test, ,http://b.test",
        }
    )
    assert settings.vercel is False
    assert settings.supabase_timeout_s == 10.0
    assert settings.worker_poll_interval_ms == 250
    assert settings.worker_id == "local-worker"
    assert settings.cors_allow_origins == ["http://a.test", "http://b.test"]
    assert isinstance(create_backend(settings), InMemoryBackend)


def test_create_app_fails_fast_without_configuration(monkeypatch):
    monkeypatch.delenv("CONTENT_ENGINE_BACKEND", raising=False)
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("NEXT_PUBLIC_SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
    with pytest.raises(ConfigError):
        create_app()
