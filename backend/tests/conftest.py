"""
Pytest fixtures for Efectivio backend tests.

Provides the application on in-memory SQLite, a per-test table wipe, users
for each role, and auth helpers.
"""

import base64

import pytest
from efectivio import create_app
from efectivio.extensions import db
from efectivio.models import Client, ClientPortalUser, User
from efectivio.services.auth_service import hash_password
from efectivio.services.email_service import get_email_sender
from efectivio.services.object_storage import get_object_storage

PASSWORD = "Password123!"
WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"efectivio-test-webhook-key").decode("ascii")


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'AUTH_PROVIDER': 'local',
        'STORAGE_BACKEND': 'memory',
        'SENDGRID_API_KEY': None,
        'IDENTITY_WEBHOOK_SECRET': WEBHOOK_SECRET,
        'APP_URL': 'http://portal.test',
        'MAX_UPLOAD_BYTES': 1024,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        get_object_storage().objects.clear()
        get_email_sender().sent.clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(db_session, username: str, role: str) -> User:
    user = User(
        username=username,
        email=f"{username}@efectivio.test",
        password_hash=hash_password(PASSWORD),
        role=role,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user(db_session, "admin", "admin")


@pytest.fixture(scope='function')
def staff_user(db_session):
    return _make_user(db_session, "staff", "user")


@pytest.fixture(scope='function')
def acme(db_session):
    """A company client."""
    record = Client(
        client_type="company",
        name="Acme SA de CV",
        company_name="Acme",
        contact_name="Laura Pérez",
        email="laura@acme.test",
        payment_terms_days=30,
    )
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture(scope='function')
def other_client(db_session):
    record = Client(client_type="individual", name="Beto Ramírez", email="beto@example.test")
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture(scope='function')
def portal_user(db_session, acme):
    """A client-role user linked to acme."""
    user = _make_user(db_session, "acme_portal", "client")
    db_session.add(ClientPortalUser(client_id=acme.id, user_id=user.id))
    acme.has_portal_access = True
    db_session.commit()
    return user


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, "staff"))


@pytest.fixture(scope='function')
def portal_headers(client, portal_user):
    return auth_headers(get_auth_token(client, "acme_portal"))
