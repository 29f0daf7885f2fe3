import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from streetbites import crud, orders, schemas
from streetbites.config import Settings, get_settings
from streetbites.db import Base, get_db
from streetbites.main import app

TEST_SECRET = "test-secret"


@pytest.fixture
def settings():
    return Settings(secret_key=TEST_SECRET, database_url="sqlite://")


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def menu(db):
    category = crud.create_menu_category(db, "Street Food")
    return {
        "burger": crud.create_menu_item(
            db,
            {"name": "Smash Burger", "price": "50.00", "preparation_time": 10, "category_id": category.id},
        ),
        "fries": crud.create_menu_item(
            db,
            {"name": "Loaded Fries", "price": "30.00", "preparation_time": 20, "category_id": category.id},
        ),
        "lemonade": crud.create_menu_item(
            db,
            {"name": "Lemonade", "price": "12.50", "category_id": category.id},
        ),
        "sold_out": crud.create_menu_item(
            db,
            {"name": "Lobster Roll", "price": "189.00", "preparation_time": 15, "is_available": False},
        ),
    }


@pytest.fixture
def order_factory(db, menu, settings):
    """Submit an order through the service; lines are (menu key, quantity)."""

    def make(*lines, now=None, **fields):
        lines = lines or (("burger", 1),)
        payload = {
            "customer_name": "Ada Lovelace",
            "phone": "070-123 45 67",
            "items": [
                {"menu_item_id": menu[key].id, "quantity": quantity} for key, quantity in lines
            ],
        }
        payload.update(fields)
        return orders.submit_order(db, schemas.OrderCreate(**payload), settings=settings, now=now)

    return make


@pytest.fixture
def client(session_factory, settings):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_token(claims, secret=TEST_SECRET):
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def admin_headers():
    token = make_token({"sub": "1", "username": "admin"})
    return {"Authorization": f"Bearer {token}"}
