"""Shared fixtures for the CMS core test suite."""

from datetime import UTC, datetime, timedelta
import itertools

import pytest

from cms.config import CMSConfig
from cms.entries import EntryStore
from cms.manager import ContentManager
from cms.media import MediaRegistry
from cms.schema import SchemaRegistry
from cms.settings import SettingsRegistry
from cms.storage import MemoryStore

START = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Deterministic clock; advances only when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ids():
    """Sequential ids: id-1, id-2, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def config():
    return CMSConfig(environment="testing")


@pytest.fixture
def schema(store, clock, ids):
    return SchemaRegistry(store, clock=clock, id_factory=ids)


@pytest.fixture
def entries(store, schema, clock, ids):
    return EntryStore(store, schema, clock=clock, id_factory=ids)


@pytest.fixture
def media(store, config, clock, ids):
    return MediaRegistry(store, config, clock=clock, id_factory=ids)


@pytest.fixture
def settings(store, config, clock, ids):
    return SettingsRegistry(store, config, clock=clock, id_factory=ids)


@pytest.fixture
def manager(store, config, clock, ids):
    return ContentManager(store, config, clock=clock, id_factory=ids)
