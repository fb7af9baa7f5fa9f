import random
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from savevibe.app import build_services, create_app
from savevibe.config import Settings
from savevibe.database import init_db, make_engine, make_session_factory
from savevibe.schemas import Transaction
from savevibe.storage import DatabaseStorage, MemStorage


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", seed_demo_data=False, secret_key="test-secret")


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def storage():
    return MemStorage()


@pytest.fixture
def db_storage():
    engine = make_engine("sqlite://")
    init_db(engine)
    return DatabaseStorage(make_session_factory(engine))


@pytest.fixture
def services(storage, settings, rng):
    return build_services(storage, settings, rng)


@pytest.fixture
def client(settings, storage, services):
    app = create_app(settings=settings, storage=storage, services=services)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_client(client):
    resp = client.post("/api/auth/register", json={"username": "priya", "password": "secret123", "nickname": "Priya"})
    assert resp.status_code == 201
    return client


def make_tx(category, amount, date, type="expense", is_want=True, merchant=None, id=1, user_id=1):
    return Transaction(
        id=id,
        user_id=user_id,
        amount=amount,
        category=category,
        description=f"{category} purchase",
        date=date,
        type=type,
        is_want=is_want,
        merchant=merchant,
    )


@pytest.fixture
def march():
    return datetime(2024, 3, 5, 12, 0)
