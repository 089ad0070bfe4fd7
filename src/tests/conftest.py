"""Pytest configuration and fixtures."""

from types import SimpleNamespace

import pytest

from fieldsync import Config, FieldSync, TaskStore
from fieldsync.db import Task
from fieldsync.notifications import NullPushSender
from fieldsync.states import WorkerRole


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")


@pytest.fixture
def config(tmp_path):
    """Create test config backed by a throwaway SQLite file."""
    return Config(database_url=f"sqlite:///{tmp_path / 'fieldsync.db'}")


@pytest.fixture
def store(config):
    s = TaskStore(config)
    yield s
    s.close()


@pytest.fixture
def push():
    return NullPushSender()


@pytest.fixture
def fieldsync(store, push):
    return FieldSync(store, push)


@pytest.fixture
def workers(store):
    """One dispatcher, one admin and three drivers on the default 07:00-15:00 shift."""
    return SimpleNamespace(
        dispatcher=store.add_worker("Dorota", WorkerRole.DISPATCHER),
        admin=store.add_worker("Adam", WorkerRole.ADMIN),
        anna=store.add_worker("Anna"),
        ben=store.add_worker("Ben"),
        cara=store.add_worker("Cara"),
    )


@pytest.fixture
def make_task(store, workers):
    """Insert a task directly; defaults to a pending task created by the dispatcher for today."""

    def factory(**fields) -> Task:
        values = {
            "description": "Move pallets to hall B",
            "scheduled_date": store.today(),
            "created_by": workers.dispatcher.id,
            "created_at": store.now(),
        }
        values.update(fields)
        return store.add_task(Task(**values))

    return factory
