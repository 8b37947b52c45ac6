from __future__ import annotations

import json
import os
from datetime import datetime, timedelta

# Point the app at a throwaway database before anything imports the engine.
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fieldtrack import models  # noqa: F401
from fieldtrack.core.dependencies import (
    get_clock,
    get_db,
    get_geocoder,
    get_tracking_registry,
)
from fieldtrack.core.security import hash_password
from fieldtrack.db.base import Base
from fieldtrack.main import app
from fieldtrack.models.client import Client
from fieldtrack.models.user import User
from fieldtrack.services.tracking_service import TrackingRegistry

# 2026-10-12 is a Monday
MONDAY_9AM = datetime(2026, 10, 12, 9, 0)

WEEKDAY_HOURS = {
    "days": ["mon", "tue", "wed", "thu", "fri"],
    "startTime": "08:00",
    "endTime": "17:00",
}

PASSWORD = "secret-password"


class FrozenClock:
    """Test clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, value: datetime) -> datetime:
        self.current = value
        return self.current


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FrozenClock(MONDAY_9AM)


def _make_user(db, username: str, business_hours=None, timezone: str = "UTC") -> User:
    user = User(
        username=username,
        hashed_password=hash_password(PASSWORD),
        business_type="Plumbing",
        business_hours=json.dumps(business_hours or WEEKDAY_HOURS),
        timezone=timezone,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db):
    return _make_user(db, "demo")


@pytest.fixture
def other_user(db):
    return _make_user(db, "other")


@pytest.fixture
def make_client(db):
    def _factory(owner: User, name: str = "Acme", latitude=40.0, longitude=-73.0, address="1 Main St"):
        client = Client(
            user_id=owner.id,
            name=name,
            address=address,
            latitude=latitude,
            longitude=longitude,
        )
        db.add(client)
        db.commit()
        db.refresh(client)
        return client

    return _factory


@pytest.fixture
def registry(clock):
    return TrackingRegistry(clock=clock, geocoder=None)


@pytest.fixture
def api(session_factory, clock, registry):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_geocoder] = lambda: None
    app.dependency_overrides[get_tracking_registry] = lambda: registry
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def login(api):
    def _login(username: str, password: str = PASSWORD) -> dict:
        response = api.post("/auth/login", data={"username": username, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login


@pytest.fixture
def auth_headers(login, user):
    return login(user.username)
