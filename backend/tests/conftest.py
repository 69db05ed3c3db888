"""
Pytest fixtures for storepos backend tests.

Provides test database setup, catalog/register/shift fixtures, and test client.
"""

import pytest
from storepos import create_app
from storepos.extensions import db
from storepos.models import Product, ProductVariant, CashRegister
from storepos.services import shift_service
from storepos.services.sales_service import SaleLineInput, PaymentInput


STAFF_ID = 7
OTHER_STAFF_ID = 8
ADMIN_ID = 1


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SIDE_EFFECTS_MODE': 'sync',
        'CASH_DIFF_TOLERANCE_CENTS': 5000,
        'REFUND_REASON_MIN_LENGTH': 3,
        'TAX_RATE_BPS': 0,
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
def product(db_session):
    """Product priced at ₱100.00 with 10 on hand."""
    product = Product(sku="TEE-BLK-M", name="Black Tee (M)", price_cents=10000, stock_quantity=10, is_active=True)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def second_product(db_session):
    """Product priced at ₱250.00 with 5 on hand."""
    product = Product(sku="CAP-RED", name="Red Cap", price_cents=25000, stock_quantity=5, is_active=True)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def variant(db_session, product):
    """Large variant of the tee at ₱120.00 with 4 on hand."""
    variant = ProductVariant(
        product_id=product.id,
        sku="TEE-BLK-L",
        label="Large",
        price_cents=12000,
        stock_quantity=4,
        is_active=True,
    )
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def register(db_session):
    """Create an active cash register."""
    register = CashRegister(name="Front Counter 1", location="Main Floor", is_active=True)
    db_session.add(register)
    db_session.commit()
    return register


@pytest.fixture(scope='function')
def open_shift(db_session, register):
    """Shift for STAFF_ID with a ₱1,000.00 opening float."""
    return shift_service.clock_in(staff_id=STAFF_ID, register_id=register.id, opening_cash_cents=100000)


@pytest.fixture(scope='function')
def make_sale(open_shift):
    """Record a cash sale on the open shift: make_sale((product_id, qty), ...)."""
    from storepos.services import sales_service

    def _make(*lines, method="cash", amount_received_cents=None):
        inputs = [SaleLineInput(product_id=product_id, quantity=qty) for product_id, qty in lines]
        total = sum(
            qty * db_session_price(product_id)
            for product_id, qty in lines
        )
        return sales_service.record_sale(
            lines=inputs,
            payments=[PaymentInput(method=method, amount_cents=total, amount_received_cents=amount_received_cents)],
            shift_id=open_shift.id,
            staff_id=open_shift.staff_id,
        )

    return _make


def db_session_price(product_id: int) -> int:
    return db.session.get(Product, product_id).price_cents


def staff_headers(staff_id: int = STAFF_ID, role: str = "staff") -> dict:
    return {"X-Staff-Id": str(staff_id), "X-Staff-Role": role}
