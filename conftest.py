"""Shared pytest fixtures: in-memory database and fake collaborators."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("OPENWEATHER_API_KEY", "")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from notifications import NotificationError


class RecordingNotifier:
    """Notification adapter that records calls instead of sending them."""

    def __init__(self, fail_fire=False, fail_schedule=False):
        self.scheduled = {}
        self.fired = []
        self.cancelled = []
        self.fail_fire = fail_fire
        self.fail_schedule = fail_schedule

    async def schedule_at(self, user_id, reminder_id, when, title, body):
        if self.fail_schedule:
            raise NotificationError("gateway down")
        self.scheduled[reminder_id] = (user_id, when, title, body)

    async def fire_now(self, user_id, title, body):
        if self.fail_fire:
            raise NotificationError("gateway down")
        self.fired.append((user_id, title, body))

    async def cancel(self, reminder_id):
        self.cancelled.append(reminder_id)
        self.scheduled.pop(reminder_id, None)


class StaticWeather:
    def __init__(self, label=None, error=None):
        self.label = label
        self.error = error
        self.calls = 0

    async def current_condition(self, latitude, longitude):
        self.calls += 1
        if self.error:
            raise self.error
        return self.label


class StaticPosition:
    def __init__(self, position=None, error=None):
        self.position = position
        self.error = error

    async def current_position(self, user_id):
        if self.error:
            raise self.error
        return self.position


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()
