import random
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient

from auth import create_token, hash_password
from config import Settings
from database import DuplicateEmail
from main import create_app
from models import Location, UserRecord
from scheduler import VirtualClock
from simulator import RideSimulation

TEST_SECRET = "test-secret"


class FakeUserStore:
    """In-memory stand-in for the users table"""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.next_id = 1
        self.fail = False

    def _check(self):
        if self.fail:
            raise RuntimeError("connection refused")

    def email_exists(self, email: str) -> bool:
        self._check()
        return email in self.users

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        self._check()
        return self.users.get(email)

    def insert_user(self, email, password_hash, user_type, first_name, last_name, phone):
        self._check()
        if email in self.users:
            raise DuplicateEmail(email)
        record = UserRecord(
            id=self.next_id, email=email, password_hash=password_hash, user_type=user_type,
            first_name=first_name, last_name=last_name, phone=phone,
        )
        self.users[email] = record
        self.next_id += 1
        return record

    def add(self, email: str, password: str, user_type: str) -> UserRecord:
        return self.insert_user(email, hash_password(password, rounds=4), user_type, "Test", "User", None)


@pytest.fixture
def settings():
    return Settings(jwt_secret=TEST_SECRET, bcrypt_rounds=4)


@pytest.fixture
def store():
    return FakeUserStore()


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def app(settings, store, clock):
    return create_app(settings, user_store=store, clock=clock, rng=random.Random(7))


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def admin_token(store):
    admin = store.add("admin@example.com", "secret123", "admin")
    return create_token(admin.id, "admin", TEST_SECRET)


@pytest.fixture
def driver_token(store):
    driver = store.add("driver@example.com", "secret123", "driver")
    return create_token(driver.id, "driver", TEST_SECRET)


@pytest.fixture
def sim(clock):
    simulation = RideSimulation(clock, random.Random(42))
    simulation.set_location(Location(lat=40.7128, lng=-74.0060, address="Times Square"))
    yield simulation
    simulation.close()
