import random

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from imposters.database import init_db
from imposters.game_manager import GameManager
from imposters.main import app
from imposters.routes.game import get_game_manager


@pytest.fixture
def session_factory():
    """A fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def manager(session_factory):
    return GameManager(session_factory, rng=random.Random(1234), strict=True)


@pytest.fixture
def lax_manager(session_factory):
    return GameManager(session_factory, rng=random.Random(1234), strict=False)


@pytest.fixture
def client(manager):
    app.dependency_overrides[get_game_manager] = lambda: manager
    # No context manager: the lifespan would create tables in the configured database
    yield TestClient(app)
    app.dependency_overrides.clear()
