"""
Shared fixtures: an app on a fresh in-memory database, one user per role,
and bearer headers for each of them.
"""
import pytest
from fastapi.testclient import TestClient

from outreach.auth import create_access_token, get_password_hash
from outreach.config import Settings
from outreach.main import create_app
from outreach.models import User
from outreach.policy import Role

PASSWORD = "testpass123"
# hashed once; bcrypt is slow
PASSWORD_HASH = get_password_hash(PASSWORD)


def demographic_payload(**overrides):
    payload = {
        "firstName": "Ama",
        "middleName": "Esi",
        "surname": "Mensah",
        "gender": "female",
        "maritalStatus": "single",
        "religion": "Christian",
        "dateOfBirth": "1990-03-14",
        "phoneNumber": "+233200000001",
        "occupation": "Trader",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", secret_key="test-secret", log_level="WARNING")


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def session_factory(app, client):
    return app.state.session_factory


@pytest.fixture
def users(session_factory):
    """Ids of one user per role, keyed by role name."""
    with session_factory() as db:
        for role in Role:
            db.add(User(
                email=f"{role.value}@test.com",
                password_hash=PASSWORD_HASH,
                name=f"Test {role.value.title()}",
                role=role.value,
            ))
        db.commit()
        return {u.role: u.id for u in db.query(User).all()}


@pytest.fixture
def headers(users, settings):
    """Authorization headers keyed by role name."""
    return {
        role: {"Authorization": f"Bearer {create_access_token({'sub': str(uid)}, settings)}"}
        for role, uid in users.items()
    }


@pytest.fixture
def entry(client, headers):
    """An entry created by the plain user, demographics only."""
    resp = client.post("/api/entries", json=demographic_payload(), headers=headers["user"])
    assert resp.status_code == 201
    return resp.json()
