"""Shared pytest fixtures for PresenceGate tests."""

from concurrent.futures import Executor, Future
from unittest.mock import MagicMock

import pytest

from presencegate.config import AppConfig
from presencegate.database import DatabaseManager
from presencegate.logger import StructuredLogger
from presencegate.models.identity import Identity
from presencegate.realtime_store import LocalRealtimeStore
from presencegate.schema import initialize_schema

# Fixed clock for deterministic server timestamps
FIXED_NOW_MS = 1_700_000_000_000

TEST_IDENTITY = Identity(
    id="user-1",
    email="ada@example.com",
    display_name="Ada Lovelace",
    photo_url="https://example.com/ada.png",
    provider="password",
)
TEST_IDENTITY_2 = Identity(
    id="user-2",
    email="grace@example.com",
    display_name="Grace Hopper",
    provider="facebook",
)


class ImmediateExecutor(Executor):
    """Runs submitted callables synchronously on the calling thread."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, /, *args, **kwargs):
        self.submitted += 1
        future = Future()
        try:
            result = fn(*args, **kwargs)
        except Exception as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)
        return future


class Recorder:
    """Event-bus subscriber that keeps every event it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    @property
    def names(self):
        return [event.name for event in self.events]


def make_logger():
    return MagicMock(spec=StructuredLogger)


def make_config(**overrides):
    return AppConfig(_env_file=None, **overrides)


@pytest.fixture
def logger():
    return make_logger()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def executor():
    return ImmediateExecutor()


@pytest.fixture
def db(tmp_path, logger):
    manager = DatabaseManager(
        supabase_url="",
        supabase_key="",
        sqlite_path=tmp_path / "store.db",
        logger=logger,
    )
    initialize_schema(manager.sqlite, logger)
    yield manager
    manager.close()


@pytest.fixture
def store(db, logger):
    local_store = LocalRealtimeStore(db=db, logger=logger, clock=lambda: FIXED_NOW_MS)
    yield local_store
    local_store.close()
