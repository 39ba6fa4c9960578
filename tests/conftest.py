import pytest
from fastapi.testclient import TestClient

from natours.domain.roles import UserRole
from natours.infrastructure.db.session import Database
from natours.main import create_app
from tests.helpers.factories import create_tour, create_user
from tests.helpers.settings import build_test_settings


@pytest.fixture
def settings():
    return build_test_settings()


@pytest.fixture
def database():
    database = Database("sqlite://")
    database.create_all()
    try:
        yield database
    finally:
        database.close()


@pytest.fixture
def db_session(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app(settings, database):
    return create_app(settings=settings, database=database)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def dev_client(database):
    app = create_app(settings=build_test_settings(node_env="development"), database=database)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def seeded_users(db_session):
    return {
        "admin": create_user(db_session, "admin@example.com", role=UserRole.admin, name="Admin One"),
        "lead_guide": create_user(db_session, "lead@example.com", role=UserRole.lead_guide, name="Lead Guide"),
        "guide": create_user(db_session, "guide@example.com", role=UserRole.guide, name="Tour Guide"),
        "user": create_user(db_session, "user@example.com", name="Sophie Traveller"),
        "other_user": create_user(db_session, "other@example.com", name="Ayla Traveller"),
    }


@pytest.fixture
def seeded_tours(db_session, seeded_users):
    forest = create_tour(
        db_session,
        "The Forest Hiker",
        guides=[seeded_users["lead_guide"], seeded_users["guide"]],
        price=397,
        difficulty="easy",
        ratings_average=4.7,
        ratings_quantity=37,
        duration=5,
    )
    sea = create_tour(
        db_session,
        "The Sea Explorer",
        price=497,
        difficulty="medium",
        ratings_average=4.8,
        ratings_quantity=23,
        duration=7,
        start_location={"type": "Point", "coordinates": [-80.185942, 25.774772], "description": "Miami, USA"},
    )
    snow = create_tour(
        db_session,
        "The Snow Adventurer",
        price=997,
        difficulty="difficult",
        ratings_average=4.5,
        ratings_quantity=13,
        duration=4,
        start_location={"type": "Point", "coordinates": [-106.822318, 39.190872], "description": "Aspen, USA"},
    )
    city = create_tour(
        db_session,
        "The City Wanderer",
        price=1197,
        difficulty="easy",
        ratings_average=4.2,
        ratings_quantity=6,
        duration=9,
        start_location={"type": "Point", "coordinates": [-73.985141, 40.75894], "description": "NYC, USA"},
    )
    secret = create_tour(db_session, "The Hidden Valley Trek", price=2997, secret_tour=True)
    return {"forest": forest, "sea": sea, "snow": snow, "city": city, "secret": secret}
