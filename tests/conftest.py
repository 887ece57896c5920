import pathlib
import sys

import pytest
from fastapi.testclient import TestClient

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.config import Settings
from app.db.memory import InMemoryBackend
from app.main import create_app


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def settings() -> Settings:
    return Settings.from_env({"CONTENT_ENGINE_BACKEND": "memory"})


@pytest.fixture
def client(backend: InMemoryBackend, settings: Settings) -> TestClient:
    app = create_app(settings=settings, backend=backend)
    return TestClient(app)

