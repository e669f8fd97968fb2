"""
Shared pytest fixtures.

The `app` fixture pushes one application context for the whole test and
creates the schema in an in-memory SQLite database. Tests use that context
directly; test-client requests run in their own context against the same
database.
"""
from datetime import date

import pytest

from ledenbeheer import create_app
from ledenbeheer.extensions import db as _db
from ledenbeheer.services import MembershipService, ActivityService, AttendanceService

ACTOR = 'user-1'
ADMIN_EMAIL = 'admin@example.com'


@pytest.fixture
def app():
    """Application on a fresh in-memory database."""
    app = create_app('testing')
    ctx = app.app_context()
    ctx.push()
    _db.create_all()

    yield app

    _db.session.remove()
    _db.drop_all()
    ctx.pop()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers():
    """Identity headers of an admin caller."""
    return {
        'X-User-Id': ACTOR,
        'X-User-Email': ADMIN_EMAIL,
        'Content-Type': 'application/json',
    }


@pytest.fixture
def member_headers():
    """Identity headers of a regular (non-admin) caller."""
    return {
        'X-User-Id': 'user-2',
        'X-User-Email': 'leader@example.com',
        'Content-Type': 'application/json',
    }


@pytest.fixture
def directory(app):
    return MembershipService(actor=ACTOR)


@pytest.fixture
def scheduler(app):
    return ActivityService(actor=ACTOR)


@pytest.fixture
def ledger(app):
    return AttendanceService(actor=ACTOR)


@pytest.fixture
def sample_group(directory):
    return directory.create_group('Juniors', '#3b82f6', description='Under 12')


@pytest.fixture
def other_group(directory):
    return directory.create_group('Seniors', '#ef4444')


@pytest.fixture
def sample_member(directory):
    return directory.create_member('Anna', 'Peeters', email='anna@example.com')


@pytest.fixture
def other_member(directory):
    return directory.create_member('Bram', 'Janssens', email='bram@example.com')


@pytest.fixture
def sample_activity(scheduler):
    return scheduler.create_activity(
        name='Training',
        date=date(2024, 3, 1),
        start_time='18:00',
        end_time='19:30',
        location='Hall A',
    )


@pytest.fixture
def weekly_series(scheduler):
    """Weekly series 2024-01-01 .. 2024-01-22: head plus three instances."""
    return scheduler.create_activity(
        name='Rehearsal',
        date=date(2024, 1, 1),
        start_time='19:00',
        end_time='21:00',
        type='recurring',
        location='Room A',
        recurrence_rule='weekly',
        recurrence_end=date(2024, 1, 22),
    )
