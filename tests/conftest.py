"""Shared fixtures: a throwaway SQLite database, a fake HTTP transport, a fixed clock."""

import os
import threading
from datetime import datetime, timedelta

# The module-level app in bruin_webhooks.main must not touch ./webhooks.db
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
import requests

from bruin_webhooks import models, schemas
from bruin_webhooks.database import make_engine, make_session_factory
from bruin_webhooks.worker.delivery import DeliveryExecutor
from bruin_webhooks.worker.retry import RetryController, RetryPolicy


class FakeResponse:
    def __init__(self, status_code=200, text="ok"):
        self.status_code = status_code
        self.text = text


class FakeSession:
    """Stands in for requests.Session.

    ``responder`` maps a URL to a FakeResponse or an exception to raise;
    the default answers 200 everywhere.
    """

    def __init__(self, responder=None):
        self.responder = responder or (lambda url: FakeResponse())
        self.calls = []
        self._lock = threading.Lock()

    def post(self, url, data=None, headers=None, timeout=None):
        with self._lock:
            self.calls.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
        outcome = self.responder(url)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def calls_to(self, url):
        with self._lock:
            return [call for call in self.calls if call["url"] == url]


class FakeClock:
    """Returns a strictly increasing naive UTC time on every call."""

    def __init__(self, start=datetime(2026, 1, 1, 12, 0, 0)):
        self.now = start
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            self.now += timedelta(seconds=1)
            return self.now


def unreachable(url):
    return requests.ConnectionError(f"Failed to establish a new connection to {url}")


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'webhooks.db'}")
    models.Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def executor(fake_session):
    return DeliveryExecutor(session=fake_session, timeout=2)


@pytest.fixture
def controller(executor, session_factory, clock):
    return RetryController(
        executor,
        session_factory,
        policy=RetryPolicy(max_attempts=3, intervals=[0]),
        clock=clock,
    )


@pytest.fixture
def note_created():
    return schemas.DomainEvent(
        event_type="note_created",
        note_id="note-1",
        summary="Created note 'Groceries'",
        actor="user",
        timestamp=datetime(2026, 1, 1, 9, 30, 0),
    )


def locked_once(crud):
    """Patch crud.record_attempt so its first call fails like a busy SQLite database."""
    from unittest.mock import patch

    from sqlalchemy.exc import OperationalError

    original = crud.record_attempt
    calls = []

    def flaky(*args, **kwargs):
        if not calls:
            calls.append(args)
            raise OperationalError("UPDATE webhooks", {}, Exception("database is locked"))
        return original(*args, **kwargs)

    return patch.object(crud, "record_attempt", side_effect=flaky)
