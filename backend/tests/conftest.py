"""
Pytest fixtures for lotledger backend tests.

Provides test database setup, two-tenant fixtures, lot helpers, and test client.
"""

import pytest
from lotledger import create_app
from lotledger.extensions import db
from lotledger.models import Tenant, User, ROLE_ADMIN, ROLE_STAFF
from lotledger.schemas import LotInput, SaleInput
from lotledger.services import lot_service, sales_service
from lotledger.services.auth_service import hash_password
from lotledger.services.session_service import create_session


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SALE_LOCK_BACKOFF_SECONDS': 0,
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

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(PASSWORD)


def _make_tenant(db_session, name: str, email: str, prefix: str = "LOT-") -> Tenant:
    tenant = Tenant(business_name=name, email=email, lot_prefix=prefix, is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


def _make_user(db_session, tenant: Tenant, name: str, email: str, role: str, password_hash: str) -> User:
    user = User(
        tenant_id=tenant.id,
        name=name,
        email=email,
        password_hash=password_hash,
        role=role,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Tenant A (first business)."""
    return _make_tenant(db_session, "Tenant A - Acme Textiles", "owner@acme.test")


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Tenant B (second business)."""
    return _make_tenant(db_session, "Tenant B - Beta Fabrics", "owner@beta.test", prefix="BETA-")


@pytest.fixture(scope='function')
def admin_a(db_session, tenant_a, password_hash):
    return _make_user(db_session, tenant_a, "Alice Admin", "owner@acme.test", ROLE_ADMIN, password_hash)


@pytest.fixture(scope='function')
def staff_a(db_session, tenant_a, password_hash):
    return _make_user(db_session, tenant_a, "Sam Staff", "sam@acme.test", ROLE_STAFF, password_hash)


@pytest.fixture(scope='function')
def staff_a2(db_session, tenant_a, password_hash):
    return _make_user(db_session, tenant_a, "Sue Staff", "sue@acme.test", ROLE_STAFF, password_hash)


@pytest.fixture(scope='function')
def admin_b(db_session, tenant_b, password_hash):
    return _make_user(db_session, tenant_b, "Bob Admin", "owner@beta.test", ROLE_ADMIN, password_hash)


def lot_payload(lot_number: str = "LOT-0001", items: list | None = None) -> dict:
    """Red/M x10 bought at 5.00, sold at 8.00 unless items are given."""
    if items is None:
        items = [
            {
                "color": "Red",
                "sizes": [
                    {"size": "M", "quantity": 10, "purchase_cost_cents": 500, "sell_cost_cents": 800},
                ],
            }
        ]
    return {"lot_number": lot_number, "items": items}


def multi_lot_payload(lot_number: str = "LOT-0002") -> dict:
    """Two colors, three sizes."""
    return lot_payload(lot_number, [
        {
            "color": "Red",
            "sizes": [
                {"size": "M", "quantity": 5, "purchase_cost_cents": 500, "sell_cost_cents": 800},
                {"size": "L", "quantity": 4, "purchase_cost_cents": 600, "sell_cost_cents": 1000},
            ],
        },
        {
            "color": "Blue",
            "sizes": [
                {"size": "S", "quantity": 3, "purchase_cost_cents": 400, "sell_cost_cents": 700},
            ],
        },
    ])


def create_lot(tenant, user, payload: dict | None = None):
    data = LotInput.from_payload(payload or lot_payload())
    return lot_service.create_lot(tenant.id, user.id, data.lot_number, data.items)


def sell(tenant, user, lot_id: int, lines: list, **extra):
    data = SaleInput.from_payload({"items": lines, **extra}, lot_id=lot_id)
    return sales_service.record_sale(
        tenant.id,
        user.id,
        data.lot_id,
        data.items,
        customer_name=data.customer_name,
        invoice_number=data.invoice_number,
    )


@pytest.fixture(scope='function')
def lot_a(admin_a, tenant_a):
    """LOT-0001 in tenant A, created by the admin."""
    return create_lot(tenant_a, admin_a)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user: User) -> dict:
    """Open a session for user directly and return its Authorization headers."""
    _, token = create_session(user)
    return auth_headers(token)
