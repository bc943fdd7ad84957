"""
Shared pytest fixtures for the readiness test suite.

Provides:
    - app: Flask application (session-scoped, in-memory SQLite)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - actors: one Actor per role tier
    - org / workstream: pre-created Client → Program → Workstream chain
    - make_unit: factory creating units through the service layer
    - headers: build X-Actor-* headers for API calls
"""

from datetime import datetime, timedelta, timezone

import pytest

from readiness import create_app
from readiness.models import db as _db
from readiness.models.hierarchy import Client, Program, Workstream
from readiness.services.audit_emitter import audit
from readiness.services.authority import Actor
from readiness.services.unit_service import create_unit

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


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
        yield
        audit.use_sink(None)
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Actors ───────────────────────────────────────────────────────────────


@pytest.fixture()
def actors():
    return {
        "viewer": Actor("viewer-1", "CLIENT_VIEWER"),
        "contributor": Actor("field-1", "FIELD_CONTRIBUTOR"),
        "contributor2": Actor("field-2", "FIELD_CONTRIBUTOR"),
        "lead": Actor("lead-1", "WORKSTREAM_LEAD"),
        "lead2": Actor("lead-2", "WORKSTREAM_LEAD"),
        "owner": Actor("owner-1", "PROGRAM_OWNER"),
        "admin": Actor("admin-1", "PLATFORM_ADMIN"),
    }


def actor_headers(actor):
    return {"X-Actor-Id": actor.user_id, "X-Actor-Role": actor.role}


@pytest.fixture()
def headers():
    return actor_headers


# ── Hierarchy ────────────────────────────────────────────────────────────


@pytest.fixture()
def org():
    """Client + Program, flushed via the ORM."""
    c = Client(name="Acme Build", slug="acme-build")
    _db.session.add(c)
    _db.session.flush()
    p = Program(client_id=c.id, name="Tower A Fit-out")
    _db.session.add(p)
    _db.session.commit()
    return c, p


@pytest.fixture()
def workstream(org):
    _, program = org
    ws = Workstream(program_id=program.id, name="Electrical", overall_status="EMPTY")
    _db.session.add(ws)
    _db.session.commit()
    return ws


@pytest.fixture()
def make_unit(workstream, actors):
    """Factory: create a unit via the service with sensible defaults."""

    def _make(actor=None, now=T0, **overrides):
        data = {
            "title": "Install distribution board",
            "deadline": (now + timedelta(days=10)).isoformat(),
            "required_proof_count": 1,
            "required_proof_types": ["photo"],
        }
        data.update(overrides)
        ws_id = data.pop("workstream_id", workstream.id)
        return create_unit(ws_id, actor or actors["lead"], data, now=now)

    return _make
