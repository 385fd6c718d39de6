"""
Pytest fixtures for tillkit backend tests.

Provides test database setup, a demo shop with products, and test client.
"""

import pytest

from tillkit import create_app
from tillkit.extensions import db
from tillkit.models import Shop, Product, ProductVariant


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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
def shop(db_session):
    """Shop with a 5% tax rate."""
    shop = Shop(name="Corner Store", address="1 Main Street", phone="555-0100", tax_rate_bps=500)
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def other_shop(db_session):
    shop = Shop(name="Other Store", tax_rate_bps=0)
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def widget(db_session, shop):
    """Create Widget (100.00) with 10 in stock."""
    product = Product(
        shop_id=shop.id,
        sku="WID-001",
        name="Widget",
        price_cents=10000,
        stock_quantity=10,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def shirt(db_session, shop):
    """Create T-Shirt (20.00) with an XL variant (+5.00)."""
    product = Product(
        shop_id=shop.id,
        sku="TSH-001",
        name="T-Shirt",
        price_cents=2000,
        stock_quantity=5,
        has_variants=True,
    )
    db_session.add(product)
    db_session.flush()

    variant = ProductVariant(product_id=product.id, name="Size", value="XL", price_modifier_cents=500, stock_quantity=5)
    db_session.add(variant)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def shirt_xl(db_session, shirt):
    return db_session.query(ProductVariant).filter_by(product_id=shirt.id).one()
