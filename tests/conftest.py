"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.main import create_app

TEST_NAME = "Ann"
TEST_EMAIL = "ann@x.com"
TEST_PASSWORD = "Abcd123!"


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway SQLite file and upload directory."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        upload_dir=str(tmp_path / "uploads"),
        upload_chunk_size=1024,
        # cheap hashing keeps the suite fast
        password_hash_method="pbkdf2:sha256:1000",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """Test client with the app lifespan running."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def registered_user(client):
    response = client.post(
        "/register",
        data={"name": TEST_NAME, "email": TEST_EMAIL, "password": TEST_PASSWORD},
    )
    assert response.status_code == 201
    return {"name": TEST_NAME, "email": TEST_EMAIL, "password": TEST_PASSWORD}


@pytest.fixture
def logged_in_client(client, registered_user):
    """Client carrying a valid session cookie."""
    response = client.post(
        "/login",
        data={"email": registered_user["email"], "password": registered_user["password"]},
        follow_redirects=False,
    )
    assert response.status_code == 303
    return client
