"""
Pytest fixtures for fine ledger tests.

Provides test database setup, identity and provision fixtures, a fine
factory that drives fines into any lifecycle state, and a test client.
"""

import itertools

import pytest

from fineledger import create_app
from fineledger.extensions import db
from fineledger.models import (
    ROLE_ADMIN,
    ROLE_DEPARTMENT_OFFICIAL,
    ROLE_DRIVER,
    ROLE_OFFICER,
    FINE_STATUS_PENDING,
    FINE_STATUS_PAID,
    FINE_STATUS_DISPUTED,
    FINE_STATUS_VOID,
)
from fineledger.services import fine_service, identity_service, provision_service
from fineledger.services.gateway_service import SandboxGateway


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'LEDGER_RETRY_BACKOFF': 0,
    'GATEWAY_CALLBACK_TOKEN': 'test-gateway-token',
}

SPEEDING_CENTS = 500_000
PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def gateway(app):
    """Fresh sandbox gateway installed on the app."""
    gw = SandboxGateway()
    app.extensions["payment_gateway"] = gw
    return gw


def _register(role, external_id, name, contact, password=PASSWORD):
    return identity_service.register(role, {
        "external_id": external_id,
        "name": name,
        "contact": contact,
        "password": password,
    })


@pytest.fixture(scope='function')
def admin(db_session):
    return _register(ROLE_ADMIN, "ADMIN-001", "Ada Admin", "admin@fines.local")


@pytest.fixture(scope='function')
def officer(db_session):
    return _register(ROLE_OFFICER, "BADGE-1042", "Sgt. Nimal Perera", "perera@police.local")


@pytest.fixture(scope='function')
def other_officer(db_session):
    return _register(ROLE_OFFICER, "BADGE-2077", "Cst. Kamala Silva", "silva@police.local")


@pytest.fixture(scope='function')
def driver(db_session):
    return _register(ROLE_DRIVER, "B1234567", "Dinesh Fernando", "dinesh@example.com")


@pytest.fixture(scope='function')
def other_driver(db_session):
    return _register(ROLE_DRIVER, "B7654321", "Ruwan Jayasuriya", "ruwan@example.com")


@pytest.fixture(scope='function')
def official(db_session):
    return _register(ROLE_DEPARTMENT_OFFICIAL, "DMT-0009", "Dept. Official", "official@dmt.local")


@pytest.fixture(scope='function')
def speeding(db_session, admin):
    return provision_service.upsert("SPEEDING", "Exceeding the speed limit", SPEEDING_CENTS, admin.id)


@pytest.fixture(scope='function')
def fine_factory(db_session, officer, driver, admin, speeding):
    """
    Issue a fine and drive it into the requested status.

    PAID fines are settled with a unique confirmation id per call.
    """
    confirmations = itertools.count(1)

    def _make(status=FINE_STATUS_PENDING, *, driver_id=None, officer_id=None, vehicle_number="WP CAB-1234"):
        fine = fine_service.issue(
            officer_id=officer_id or officer.id,
            driver_id=driver_id or driver.id,
            provision_code="SPEEDING",
            vehicle_number=vehicle_number,
            location="Galle Road, Colombo 03",
        )
        ref = fine.reference_number
        if status == FINE_STATUS_PAID:
            fine_service.record_payment(ref, fine.amount_cents, "CARD", f"conf-{next(confirmations)}")
        elif status == FINE_STATUS_DISPUTED:
            fine_service.dispute(ref, driver_id or driver.id, reason="Not my vehicle")
        elif status == FINE_STATUS_VOID:
            fine_service.void(ref, admin.id, "Issued in error")
        return fine_service.get_fine(ref)

    return _make


@pytest.fixture(scope='function')
def pending_fine(fine_factory):
    return fine_factory()


def actor_headers(identity) -> dict:
    """Helper to create the actor header the upstream auth layer would set."""
    return {'X-Identity-Id': str(identity.id)}


def gateway_headers(token: str = 'test-gateway-token') -> dict:
    return {'X-Gateway-Token': token}
