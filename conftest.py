from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from database import build_engine
from local_storage import LocalStorage, MemoryKeyValueStore
from main import app
from settings import Settings, get_settings
from storage import DatabaseStorage, get_storage


class FixedClock:
    """Deterministic clock: each call returns the current instant, then advances by ``step``."""

    def __init__(self, start=datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc), step=timedelta(minutes=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


@pytest.fixture(scope="function")
def clock():
    return FixedClock()


@pytest.fixture(scope="function")
def db_storage(tmp_path, clock):
    """Relational backend on a throwaway SQLite file, schema created and seeded."""
    engine = build_engine(f"sqlite:///{tmp_path / 'job-sessions-test.db'}")
    storage = DatabaseStorage(engine, clock=clock)
    storage.initialize()
    yield storage
    engine.dispose()


@pytest.fixture(scope="function")
def local_storage(clock):
    """Local backend on an in-memory key-value store, seeded."""
    storage = LocalStorage(MemoryKeyValueStore(), clock=clock)
    storage.initialize()
    return storage


@pytest.fixture(scope="function", params=["db", "local"])
def storage(request):
    """Runs the test once per backend; both must satisfy the same contract."""
    return request.getfixturevalue(f"{request.param}_storage")


@pytest.fixture(scope="function")
def test_settings():
    return Settings(storage_backend="local", auth_enabled=False, local_user_id="local-user")


@pytest.fixture(scope="function")
def test_client(db_storage, test_settings):
    """Provides a test client wired to the relational test backend."""
    app.dependency_overrides[get_storage] = lambda: db_storage
    app.dependency_overrides[get_settings] = lambda: test_settings

    yield TestClient(app)

    app.dependency_overrides.pop(get_storage, None)
    app.dependency_overrides.pop(get_settings, None)
