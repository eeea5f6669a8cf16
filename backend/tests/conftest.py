"""
Pytest fixtures for franchise POS backend tests.

Provides test database setup, outlet/user/material fixtures, actors and a test client.
"""

import pytest
from franchise_pos import create_app
from franchise_pos.extensions import db
from franchise_pos.models import Outlet, User, RawMaterial, Category, Product
from franchise_pos.models.auth import ROLE_OWNER, ROLE_STAFF
from franchise_pos.services.access_policy import Actor
from franchise_pos.services.auth_service import hash_password
from franchise_pos.services import session_service


TEST_PASSWORD = "Password123"


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
def outlet_a(db_session):
    outlet = Outlet(name="Outlet A - Kemang", address="Jl. Kemang 1")
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def outlet_b(db_session):
    outlet = Outlet(name="Outlet B - Depok", address="Jl. Margonda 2")
    db_session.add(outlet)
    db_session.commit()
    return outlet


def _make_user(db_session, username, role, outlet_id=None):
    user = User(
        name=username.title(),
        username=username,
        email=f"{username}@franchise.test",
        # Low bcrypt cost keeps the suite fast
        password_hash=hash_password(TEST_PASSWORD, rounds=4),
        role=role,
        outlet_id=outlet_id,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner(db_session):
    return _make_user(db_session, "owner", ROLE_OWNER)


@pytest.fixture(scope='function')
def staff_a(db_session, outlet_a):
    return _make_user(db_session, "staff_a", ROLE_STAFF, outlet_a.id)


@pytest.fixture(scope='function')
def staff_b(db_session, outlet_b):
    return _make_user(db_session, "staff_b", ROLE_STAFF, outlet_b.id)


@pytest.fixture(scope='function')
def owner_actor(owner):
    return Actor.from_user(owner)


@pytest.fixture(scope='function')
def staff_a_actor(staff_a):
    return Actor.from_user(staff_a)


@pytest.fixture(scope='function')
def staff_b_actor(staff_b):
    return Actor.from_user(staff_b)


@pytest.fixture(scope='function')
def material_a(db_session):
    material = RawMaterial(name="Coffee beans", unit="kg", price=1000, purchase_price=800, stock=10)
    db_session.add(material)
    db_session.commit()
    return material


@pytest.fixture(scope='function')
def material_b(db_session):
    material = RawMaterial(name="Palm sugar", unit="kg", price=500, purchase_price=400, stock=10)
    db_session.add(material)
    db_session.commit()
    return material


@pytest.fixture(scope='function')
def beverage_product(db_session):
    """Product in category id 2 (the configured beverage category)."""
    db_session.add(Category(id=1, name="Food"))
    db_session.add(Category(id=2, name="Beverage"))
    db_session.commit()
    product = Product(category_id=2, name="Iced coffee", price=2500)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def food_product(db_session, beverage_product):
    product = Product(category_id=1, name="Fried rice", price=4000)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def auth_headers(db_session):
    """Return a function that issues a bearer header for a user."""
    def _headers(user):
        _, token = session_service.create_session(user.id)
        return {"Authorization": f"Bearer {token}"}
    return _headers
