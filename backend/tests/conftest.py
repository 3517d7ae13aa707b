"""
Fixtures partagees : base SQLite en memoire, store, client API authentifie.
"""
import os

# Configuration minimale avant tout import de app.* (Settings exige ces variables)
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("RECOMPUTE_LOCK_BACKEND", "local")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import app.domain.entities  # noqa: F401
from app.core.locks import LocalLockProvider
from app.domain.entities import ActivityType, CanonicalActivity
from app.domain.services.activity_store import ActivityStore
from app.domain.services.aggregation_service import AggregationService


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def store(session):
    return ActivityStore(session)


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def aggregation(store):
    return AggregationService(lock_provider=LocalLockProvider(wait_s=0.1), tz_name="UTC")


@pytest.fixture
def make_activity(store, user_id):
    """Insere une activite canonique minimale."""
    def _make(start_ts: datetime, **fields):
        values = {
            "user_id": user_id,
            "dedup_hash": uuid4().hex,
            "canonical_source": "manual",
            "activity_type": ActivityType.RUN,
            "start_ts": start_ts,
            "duration_s": 3600,
            "distance_m": 10000.0,
        }
        values.update(fields)
        return store.insert_activity(CanonicalActivity(**values))
    return _make


@pytest.fixture
def client(engine):
    from app.core.database import get_session
    from app.main import app

    def _override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _override_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user_id):
    from app.auth.jwt import jwt_manager
    token = jwt_manager.create_access_token({"sub": str(user_id)})
    return {"Authorization": f"Bearer {token}"}
