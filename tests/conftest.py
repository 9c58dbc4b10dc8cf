import os

# settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OPENROUTER_API_KEY"] = "sk-or-v1-test0123456789abcdef"
os.environ["DEMO_MODE"] = "false"
os.environ["DEMO_PASSWORD"] = "recess2024"
os.environ.pop("RECOMMENDATION_ENGINE_URL", None)

from datetime import datetime, timezone
from typing import Dict

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from recess_poc.adapters.engine.client import get_engine
from recess_poc.db.core import get_session
from recess_poc.db.models import Event, Provider
from recess_poc.main import app

from tests.fakes import FakeEngine, FakeLLM


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def session(db_engine):
    with Session(db_engine) as s:
        yield s


@pytest.fixture
def seeded(session):
    now = datetime(2024, 9, 1, 12, 0, 0, tzinfo=timezone.utc)
    session.add(Provider(id=1, name="Brooklyn Youth Soccer", contact_name="Coach Dana",
                         rating=4.8, review_count=120, verified=True, experience_years=8,
                         neighborhood="Park Slope", city="Brooklyn", created_at=now, updated_at=now))
    session.add(Provider(id=2, name="Heights Art Studio", city="Brooklyn", created_at=now, updated_at=now))
    session.add(Event(id=10, provider_id=1, name="Teen Soccer Skills", description="Footwork and games. " * 20,
                      category="sports", interests=["soccer", "teamwork"], tags=["outdoor"],
                      days=["Saturday"], times=["10:00 AM"], ages="13+", price=40,
                      pricing_type="per_session", created_at=now, updated_at=now))
    session.add(Event(id=11, provider_id=1, name="Little Kickers", description="Intro soccer",
                      category="sports", interests=["soccer"], ages="4-6", is_free=True,
                      created_at=now, updated_at=now))
    session.add(Event(id=20, provider_id=2, name="Dance Discovery - Evolution: Teens", description="Hip hop",
                      category="dance", interests=["dance"], ages="Teens", price=150,
                      pricing_type="per_month", created_at=now, updated_at=now))
    session.commit()
    return session


@pytest.fixture(autouse=True)
def memory_cache(monkeypatch) -> Dict[str, object]:
    store: Dict[str, object] = {}
    for module in ("recommendation", "outreach"):
        monkeypatch.setattr(f"recess_poc.domain.services.{module}.cache_get", store.get)
        monkeypatch.setattr(
            f"recess_poc.domain.services.{module}.cache_set",
            lambda key, value, ttl_seconds=60: store.__setitem__(key, value),
        )
    return store


@pytest.fixture
def llm(monkeypatch) -> FakeLLM:
    fake = FakeLLM()
    monkeypatch.setattr("recess_poc.domain.services.family_parsing.chat_complete", fake)
    monkeypatch.setattr("recess_poc.domain.services.recommendation.chat_complete", fake)
    monkeypatch.setattr("recess_poc.domain.services.outreach.chat_complete", fake)
    return fake


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def client(session, fake_engine):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_engine] = lambda: fake_engine
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def profile_json() -> dict:
    return {
        "adults": [{"name": "Sarah", "email": "sarah@example.com", "role": "parent"}],
        "children": [{"name": "Emma", "age": 7, "interests": ["soccer", "art"], "allergies": []}],
        "location": {"neighborhood": "Park Slope", "city": "Brooklyn"},
        "preferences": {
            "budget": {"min": 100, "max": 200},
            "schedule": ["weekday_afternoon"],
            "activityTypes": ["sports"],
            "languages": ["English"],
        },
    }
