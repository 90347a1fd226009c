import mongomock
import pytest
from fastapi.testclient import TestClient

from database import get_db
from main import app
from pathstore import PathStore

ADMIN_HEADERS = {"X-User-Email": "owner@admin.com"}

ADDRESS = {
    "fullName": "Asha Verma",
    "phone": "9876543210",
    "email": "asha@example.com",
    "address1": "12 MG Road",
    "address2": "",
    "city": "Jaipur",
    "state": "Rajasthan",
    "pincode": "302001",
}


class RecordingStore(PathStore):
    """PathStore that remembers every write it was asked to make."""

    def __init__(self, database):
        super().__init__(database, use_transactions=False)
        self.writes = []

    def set(self, path, value):
        self.writes.append(("set", path))
        super().set(path, value)

    def update(self, path, fields, expected_version=None, versioned=False):
        self.writes.append(("update", path))
        super().update(path, fields, expected_version=expected_version, versioned=versioned)

    def update_paths(self, updates):
        self.writes.append(("update_paths", tuple(updates)))
        super().update_paths(updates)


@pytest.fixture
def mongo():
    return mongomock.MongoClient()["storefront_test"]


@pytest.fixture
def store(mongo):
    return RecordingStore(mongo)


@pytest.fixture
def client(mongo):
    app.dependency_overrides[get_db] = lambda: mongo
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin():
    return dict(ADMIN_HEADERS)


@pytest.fixture
def address():
    return dict(ADDRESS)
