import pytest
from fastapi.testclient import TestClient

from database import Database, get_db
from identity import IdentityProvider
from ledger import BookingLedger
from main import app, get_ledger


@pytest.fixture
def db():
    store = Database(":memory:")
    yield store
    store.close()


@pytest.fixture
def ledger(db):
    return BookingLedger(db)


def make_user(db, name, email, role, password="password123", **profile):
    return IdentityProvider(db).register(
        {"name": name, "email": email, "password": password, "role": role, **profile}
    )


@pytest.fixture
def organizer(db):
    return make_user(db, "Olivia Organizer", "organizer@example.com", "organizer")


@pytest.fixture
def other_organizer(db):
    return make_user(db, "Oscar Organizer", "oscar@example.com", "organizer")


@pytest.fixture
def attendee(db):
    return make_user(db, "Ada Attendee", "attendee@example.com", "attendee", city="Berlin")


@pytest.fixture
def second_attendee(db):
    return make_user(db, "Vic Visitor", "vic@example.com", "attendee")


@pytest.fixture
def event_data():
    return {
        "title": "Jazz Night",
        "description": "Live jazz by the river",
        "date": "2025-05-01",
        "time": "19:30",
        "location": "Riverside Hall",
        "price": 25.0,
        "category": "Music",
        "image_url": "",
        "capacity": 2,
    }


@pytest.fixture
def client(db, ledger):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_ledger] = lambda: ledger
    yield TestClient(app)
    app.dependency_overrides.clear()
