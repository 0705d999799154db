"""Shared fixtures: a fake driver installed in place of the real one."""

import pytest

from rethinkdb_helpers import driver
from tests.fakes import FakeConnection, FakeR, FakeServer


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def fake_r(server, monkeypatch):
    """Install FakeR as the shared driver instance."""
    r = FakeR(server)
    monkeypatch.setattr(driver, "_driver", r)
    return r


@pytest.fixture
def conn(server):
    server.databases["test"] = {}
    return FakeConnection(server, "test")
