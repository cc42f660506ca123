"""
Shared pytest fixtures for the Donor Oversight Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB reset + cache flush (autouse)
    - client: Flask test client (function-scoped)
    - make_user / auth_headers: user factory and Bearer header helper
    - admin, pm, finance, committee, auditor: one user per role
    - objective, activity: pre-created domain entities
"""

import pytest

from oversight import create_app
from oversight.models import db as _db
from oversight.models.user import User
from oversight.services import cache_service, settings_service
from oversight.services.jwt_service import generate_access_token
from oversight.utils.crypto import hash_password

TEST_PASSWORD = "Passw0rd!"

_password_hash = None


def _hashed_test_password():
    """bcrypt at 12 rounds is slow; hash the shared test password once."""
    global _password_hash
    if _password_hash is None:
        _password_hash = hash_password(TEST_PASSWORD)
    return _password_hash


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        cache_service.clear_all()
        settings_service.clear_cache()
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()
        cache_service.clear_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Users & tokens ───────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    """Factory: ``make_user("Finance", full_name="Bola Ade")`` → persisted User."""
    counter = {"n": 0}

    def _make(role="ProjectManager", *, full_name=None, email=None, is_active=True, **prefs):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=email or f"{role.lower()}{n}@oversight.org",
            password_hash=_hashed_test_password(),
            full_name=full_name or f"{role} User {n}",
            role=role,
            is_active=is_active,
            **prefs,
        )
        _db.session.add(user)
        _db.session.commit()
        return user

    return _make


def auth_headers(user):
    """Authorization header carrying a fresh access token for *user*."""
    return {"Authorization": f"Bearer {generate_access_token(user)}"}


@pytest.fixture()
def headers():
    """``headers(user)`` → Authorization header dict."""
    return auth_headers


@pytest.fixture()
def admin(make_user):
    return make_user("Admin", full_name="Amaka Admin")


@pytest.fixture()
def pm(make_user):
    return make_user("ProjectManager", full_name="Ada Obi")


@pytest.fixture()
def finance(make_user):
    return make_user("Finance", full_name="Bola Ade")


@pytest.fixture()
def committee(make_user):
    return make_user("CommitteeMember", full_name="Chidi Eze")


@pytest.fixture()
def auditor(make_user):
    return make_user("Auditor", full_name="Dayo Bello")


# ── Domain fixtures ──────────────────────────────────────────────────────


@pytest.fixture()
def objective(client, pm):
    """Create and return a test objective via the API."""
    res = client.post(
        "/api/v1/objectives",
        json={
            "title": "Primary Health Care Expansion",
            "short_description": "Rural clinic network",
            "states": ["Kano", "Lagos"],
            "tags": ["health"],
            "overall_start_year": 2024,
            "overall_end_year": 2027,
        },
        headers=auth_headers(pm),
    )
    assert res.status_code == 201, res.get_json()
    return res.get_json()


@pytest.fixture()
def activity(client, pm, objective):
    """Create and return a test activity (estimate 20,000 over 2024-2025)."""
    res = client.post(
        "/api/v1/activities",
        json={
            "objective_id": objective["id"],
            "title": "Borehole drilling",
            "start_date": "2024-01-15",
            "end_date": "2025-06-30",
            "lead": "Ada Obi",
            "estimated_spend_usd_total": 20000,
            "annual_estimates": {"2024": 12000, "2025": 8000},
        },
        headers=auth_headers(pm),
    )
    assert res.status_code == 201, res.get_json()
    return res.get_json()
