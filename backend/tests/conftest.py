import time

import pytest
from fastapi.testclient import TestClient

from readspeed.db import init_db, make_engine
from readspeed.errors import PersistenceError
from readspeed.main import app
from readspeed.routers.auth import create_access_token
from readspeed.settings import settings
from readspeed.store import DurableStore, MemoryStore, get_fallback_store, get_store

ANSWERS = [1, 1, 1, 2]


class FailingWriteStore(DurableStore):
    """Durable store whose writes always fail."""

    def save_assessment(self, record):
        raise PersistenceError("write refused")

    def update_stats_exact(self, user_id, speed_score, *, assessment_id):
        raise PersistenceError("write refused")


class StallingStore(DurableStore):
    """Durable store whose writes hang longer than any test timeout."""

    delay = 0.5

    def save_assessment(self, record):
        time.sleep(self.delay)
        return super().save_assessment(record)

    def update_stats_exact(self, user_id, speed_score, *, assessment_id):
        time.sleep(self.delay)
        return super().update_stats_exact(user_id, speed_score, assessment_id=assessment_id)


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def durable(engine):
    return DurableStore(engine)


@pytest.fixture
def unreachable(tmp_path):
    # Parent directory does not exist, so every connection attempt fails
    eng = make_engine(f"sqlite:///{tmp_path / 'missing' / 'nope.db'}")
    yield DurableStore(eng)
    eng.dispose()


@pytest.fixture
def memory():
    return MemoryStore()


@pytest.fixture
def short_timeout(monkeypatch):
    monkeypatch.setattr(settings, "persistence_timeout_seconds", 0.1)
    return 0.1


@pytest.fixture
def make_client(memory):
    def _make(store):
        app.dependency_overrides[get_store] = lambda: store
        app.dependency_overrides[get_fallback_store] = lambda: memory
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


def auth_header(user_id):
    return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}


def signup(client, email="reader@example.com", password="secret123"):
    resp = client.post("/auth/signup", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return body["user"], {"Authorization": f"Bearer {body['token']}"}
