"""
Shared pytest fixtures for the Campaign Engine test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - business / playbook / campaign: pre-created tenant chain (ORM, flushed)
"""

import pytest

from campaign_engine import create_app
from campaign_engine.models import db as _db
from campaign_engine.models.business import Business, Playbook
from campaign_engine.models.campaign import Campaign


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


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
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def business():
    """A committed Business (slug ``acme``)."""
    b = Business(name="Acme Outdoors", slug="acme")
    _db.session.add(b)
    _db.session.commit()
    return b


@pytest.fixture()
def playbook(business):
    p = Playbook(business_id=business.id, name="Spring Playbook", status="active")
    _db.session.add(p)
    _db.session.commit()
    return p


@pytest.fixture()
def campaign(playbook):
    """A committed Campaign in ``setup`` with no tasks or content."""
    c = Campaign(playbook_id=playbook.id, name="Spring Launch", status="setup")
    _db.session.add(c)
    _db.session.commit()
    return c
