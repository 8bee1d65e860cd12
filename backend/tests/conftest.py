"""
Pytest fixtures for InvenBill backend tests.

Provides test database setup, entity factories, and a test client that
sends the trusted caller header.
"""

import pytest
from invenbill import create_app
from invenbill.extensions import db
from invenbill.models import Customer, Product, Profile, Vendor
from invenbill.services import stock_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RETRY_ATTEMPTS': 1,
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


@pytest.fixture(scope='function')
def admin(db_session):
    profile = Profile(email="admin@invenbill.test", role="admin", is_active=True)
    db_session.add(profile)
    db_session.commit()
    return profile


@pytest.fixture(scope='function')
def staff(db_session):
    profile = Profile(email="staff@invenbill.test", role="user", is_active=True)
    db_session.add(profile)
    db_session.commit()
    return profile


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: product with optional opening stock (posted through the ledger)."""
    counter = {"n": 0}

    def _make(name=None, price_cents=1000, cost_cents=600, stock=0, low_stock_threshold=10, status="active"):
        counter["n"] += 1
        product = Product(
            sku=f"SKU-{counter['n']:03d}",
            name=name or f"Product {counter['n']}",
            price_cents=price_cents,
            cost_cents=cost_cents,
            stock=0,
            low_stock_threshold=low_stock_threshold,
            status=status,
        )
        db_session.add(product)
        db_session.commit()
        if stock:
            stock_service.record_stock_movement(
                product_id=product.id,
                movement_type="adjustment",
                quantity_change=stock,
                reason="Opening stock",
            )
        return product

    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    def _make(name="Acme Ltd", email="billing@acme.test"):
        customer = Customer(name=name, email=email, address="1 Main St")
        db_session.add(customer)
        db_session.commit()
        return customer

    return _make


@pytest.fixture(scope='function')
def vendor(db_session):
    v = Vendor(name="Parts Supply Co", contact_person="Dana")
    db_session.add(v)
    db_session.commit()
    return v


def auth_headers(profile) -> dict:
    """Helper to create the trusted caller header."""
    return {'X-User-Id': str(profile.id)}
