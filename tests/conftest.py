"""
Pytest configuration and fixtures.
Ensures tests use an isolated test database, not the production database.
"""

import os
import pytest
import tempfile
from datetime import datetime, timedelta, timezone

# Set test database path BEFORE importing app
# This ensures all tests use an isolated database
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), 'rentalhub_test.db')
os.environ['DATABASE_PATH'] = TEST_DB_PATH

# Monday, 2 June 2025, 12:00 UTC
NOW = datetime(2025, 6, 2, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock for the CLOCK config key."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def set(self, now):
        self.now = now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope='session', autouse=True)
def setup_test_environment():
    """Set up test environment before any tests run."""
    os.environ['DATABASE_PATH'] = TEST_DB_PATH
    os.environ['FLASK_ENV'] = 'test'

    yield

    # Cleanup: remove test database and its WAL files after all tests
    for suffix in ('', '-wal', '-shm'):
        path = TEST_DB_PATH + suffix
        if os.path.exists(path):
            try:
                os.remove(path)
            except PermissionError:
                pass  # Windows may have file locked


@pytest.fixture
def clock():
    """Clock pinned to NOW; tests move it with set()/advance()."""
    return FrozenClock(NOW)


@pytest.fixture
def app(clock):
    """
    Create test application with a freshly initialized database.

    The app context used for init_db is closed before the test runs, so each
    request and each ``ctx`` block gets its own connection and login state.
    """
    from app import create_app
    from database import init_db

    os.environ['DATABASE_PATH'] = TEST_DB_PATH

    app = create_app('test')
    app.config['TESTING'] = True
    app.config['DATABASE_PATH'] = TEST_DB_PATH
    app.config['CLOCK'] = clock

    with app.app_context():
        init_db()

    yield app


@pytest.fixture
def ctx(app):
    """Application context for calling model functions directly."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


def auth(user_id):
    """Identity header as set by the API gateway."""
    return {'X-User-Id': str(user_id)}


@pytest.fixture
def actors(app):
    """
    Users and a vehicle shared by most tests.

    Returns a dict with host, other_host, renter, other_renter, admin and
    vehicle (owned by host, daily rate 300).
    """
    from models.user import create_user, get_user_by_username
    from models.vehicle import create_vehicle

    with app.app_context():
        host = create_user('host_a', role='host', full_name='Host A')
        other_host = create_user('host_b', role='host', full_name='Host B')
        renter = create_user('renter_a', role='renter', full_name='Renter A')
        other_renter = create_user('renter_b', role='renter', full_name='Renter B')
        admin = get_user_by_username('admin')['id']
        vehicle = create_vehicle(host, 'Toyota', 'Yaris', 300.0, year=2023)

    return {
        'host': host,
        'other_host': other_host,
        'renter': renter,
        'other_renter': other_renter,
        'admin': admin,
        'vehicle': vehicle,
    }


@pytest.fixture
def set_policy(app):
    """Write a host policy row directly."""
    from database import get_db

    def _set_policy(host_id, enabled=True, max_amount=10000.0, min_advance_hours=24,
                    require_verification=True, min_renter_score=70):
        with app.app_context():
            db = get_db()
            db.execute('DELETE FROM host_policies WHERE host_id = ?', (host_id,))
            db.execute('''
                INSERT INTO host_policies
                (host_id, auto_approval_enabled, max_auto_approve_amount, min_advance_hours,
                 require_verification, min_renter_score)
                VALUES (?, ?, ?, ?, ?, ?)
            ''', (host_id, 1 if enabled else 0, max_amount, min_advance_hours,
                  1 if require_verification else 0, min_renter_score))
            db.commit()

    return _set_policy


@pytest.fixture
def set_trust(app):
    """Write a renter trust row directly."""
    from database import get_db

    def _set_trust(renter_id, verification_score=80, booking_history_score=75,
                   cancellation_rate=0.0, dispute_count=0):
        with app.app_context():
            db = get_db()
            db.execute('DELETE FROM renter_trust WHERE renter_id = ?', (renter_id,))
            db.execute('''
                INSERT INTO renter_trust
                (renter_id, verification_score, booking_history_score, cancellation_rate, dispute_count)
                VALUES (?, ?, ?, ?, ?)
            ''', (renter_id, verification_score, booking_history_score, cancellation_rate, dispute_count))
            db.commit()

    return _set_trust


@pytest.fixture
def make_reservation(app, actors):
    """
    Create a reservation through the engine.

    Defaults: the shared vehicle and renter, starting 10 days after NOW at
    10:00 for two days, total 600.
    """
    from models.reservation_crud import create_reservation

    def _make(start=None, end=None, vehicle_id=None, renter_id=None, total_amount=600.0, **kwargs):
        start = start or datetime(2025, 6, 12, 10, 0, tzinfo=timezone.utc)
        end = end or start + timedelta(days=2)
        with app.app_context():
            return create_reservation(
                vehicle_id=vehicle_id or actors['vehicle'],
                renter_id=renter_id or actors['renter'],
                start_at=start,
                end_at=end,
                total_amount=total_amount,
                **kwargs
            )

    return _make


@pytest.fixture
def fetch(app):
    """Read one row as a dict in a fresh context."""
    from database import get_db

    def _fetch(query, params=()):
        with app.app_context():
            row = get_db().execute(query, params).fetchone()
            return dict(row) if row else None

    return _fetch
