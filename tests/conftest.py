"""
Shared pytest fixtures and configuration for all tests.

Provides common fixtures for Flask application testing, database sessions,
authentication, and test data initialization.
"""

import pytest
from decimal import Decimal

from shoppos import create_app
from shoppos.models import db


@pytest.fixture(scope='session')
def app_factory():
    """Factory fixture for creating test app instances."""
    def _create_app(config='testing'):
        app = create_app(config)
        app.config['WTF_CSRF_ENABLED'] = False
        app.config['TESTING'] = True
        return app
    return _create_app


@pytest.fixture(scope='function')
def fresh_app(app_factory):
    """Create a fresh application for each test with clean database."""
    app = app_factory()

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(fresh_app):
    """Create a test client for each test."""
    return fresh_app.test_client()


@pytest.fixture(scope='function')
def db_session(fresh_app):
    """Provide a database session for testing."""
    yield db.session
    db.session.rollback()


@pytest.fixture(scope='function')
def init_database(fresh_app):
    """
    Initialize database with store test data.

    Creates:
    - Users (admin, cashier, customer, inactive cashier)
    - Stock locations (inactive back room, active store)
    - Shipping methods (courier, POS)
    - Payment methods (cash, card)
    - Variants with stock at the store

    Returns a dict of the created records.
    """
    from shoppos.models import (
        User, StockLocation, ShippingMethod, PaymentMethod, Variant
    )

    admin = User(email='admin@test.com', full_name='Admin User', role='admin', is_active=True)
    admin.set_password('admin123')
    cashier = User(email='cashier@test.com', full_name='Cashier User', role='cashier', is_active=True)
    cashier.set_password('cashier123')
    customer = User(email='test-user@pos.com', full_name='Test Customer', role='customer', is_active=True)
    customer.set_password('customer123')
    inactive = User(email='inactive@test.com', full_name='Inactive User', role='cashier', is_active=False)
    inactive.set_password('inactive123')
    db.session.add_all([admin, cashier, customer, inactive])

    back_room = StockLocation(name='Back Room', code='BACK', is_active=False)
    store = StockLocation(name='Main Store', code='STORE', is_active=True)
    db.session.add_all([back_room, store])

    courier = ShippingMethod(name='Courier', code='courier', is_active=True)
    pos_method = ShippingMethod(name='POS', code='pos', is_active=True)
    db.session.add_all([courier, pos_method])

    cash = PaymentMethod(name='Cash', method_type='cash', is_active=True)
    card = PaymentMethod(name='Card', method_type='card', is_active=True)
    db.session.add_all([cash, card])

    shirt = Variant(sku='TSHIRT-M', name='T-Shirt (M)', price=Decimal('100.00'), is_active=True)
    mug = Variant(sku='MUG-01', name='Coffee Mug', price=Decimal('19.99'), is_active=True)
    db.session.add_all([shirt, mug])
    db.session.flush()

    store.restock(shirt, 10, reference='initial')
    store.restock(mug, 10, reference='initial')

    db.session.commit()

    yield {
        'admin': admin,
        'cashier': cashier,
        'customer': customer,
        'inactive': inactive,
        'back_room': back_room,
        'store': store,
        'courier': courier,
        'pos_method': pos_method,
        'cash': cash,
        'card': card,
        'shirt': shirt,
        'mug': mug
    }


@pytest.fixture
def pos_order(init_database):
    """
    POS order with one shirt (total 100.00), its counter shipment and a
    cash payment in checkout state.
    """
    from shoppos.models import Order

    order = Order(is_pos=True, state='cart')
    db.session.add(order)
    db.session.flush()

    shipment = order.assign_shipment_for_pos()
    order.contents.add(init_database['shirt'], 1, shipment)
    db.session.commit()

    order.save_payment_for_pos(init_database['cash'].id)
    return order


@pytest.fixture
def auth_cashier(client, init_database):
    """
    Login as cashier user and return authenticated client.
    """
    client.post('/auth/login', json={
        'email': 'cashier@test.com',
        'password': 'cashier123'
    })
    return client


@pytest.fixture
def auth_customer(client, init_database):
    """
    Login as a customer account, which may not run the POS.
    """
    client.post('/auth/login', json={
        'email': 'test-user@pos.com',
        'password': 'customer123'
    })
    return client


# Pytest configuration
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "api: marks tests as API endpoint tests"
    )
    config.addinivalue_line(
        "markers", "auth: marks tests as authentication tests"
    )


def pytest_collection_modifyitems(config, items):
    """Automatically add markers based on test module/function names."""
    for item in items:
        if 'routes' in item.nodeid:
            item.add_marker(pytest.mark.api)

        if 'auth' in item.name.lower() or 'login' in item.name.lower():
            item.add_marker(pytest.mark.auth)
