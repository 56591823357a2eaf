"""Shared pytest fixtures.

The module-level engine in database.py is pointed at an in-memory SQLite
store, and the API server does not start its scheduler during tests.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["LOG_TO_FILE"] = "false"
for provider_setting in ("SENDGRID_API_KEY", "SENDER_EMAIL", "TWILIO_ACCOUNT_SID",
                         "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER"):
    os.environ.pop(provider_setting, None)

import asyncio  # noqa: E402
from dataclasses import dataclass  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402

import database  # noqa: E402
from reminder_scanner import ReminderScanEngine  # noqa: E402

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@dataclass
class SentNotification:
    channel: object
    target: object
    body: str
    subject: Optional[str]


class FakeDispatcher:
    """Records every send; can be told to fail, raise, stall or run a hook."""

    def __init__(self):
        self.calls = []
        self.result = True
        self.error: Optional[Exception] = None
        self.delay = 0.0
        self.on_send = None

    async def send(self, channel, target, body, subject=None):
        notification = SentNotification(channel, target, body, subject)
        self.calls.append(notification)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.on_send is not None:
            self.on_send(notification)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def session_factory():
    engine = database.build_engine("sqlite://")
    factory = database.build_session_factory(engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def scan_engine(session_factory, dispatcher, clock):
    return ReminderScanEngine(
        session_factory=session_factory,
        dispatcher=dispatcher,
        buffer_minutes=10,
        clock=clock,
    )
