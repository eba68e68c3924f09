import pytest
from fastapi.testclient import TestClient

from userapi.api import create_app
from userapi.config import Settings
from userapi.database import Database


@pytest.fixture
def database():
    """Provide an isolated in-memory database for each test."""
    db = Database("sqlite:///:memory:")
    yield db
    db.close()


@pytest.fixture
def app(database):
    return create_app(Settings(database_url="sqlite:///:memory:"), database)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
