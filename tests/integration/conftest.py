import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client(services):
    from app import create_app

    with TestClient(create_app(services)) as client:
        yield client


@pytest.fixture
def owner_token(session_validator):
    return session_validator.issue("user-1")


@pytest.fixture
def other_token(session_validator):
    return session_validator.issue("user-2")


@pytest.fixture
def auth():
    def _auth(token):
        return {"Authorization": f"Bearer {token}"}

    return _auth
