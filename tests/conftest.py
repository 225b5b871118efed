"""Shared test fixtures for TaskFlow tests."""

import asyncio
import sys
from pathlib import Path

import pytest

# Ensure the project root (taskflow/, taskflow_server.py) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from taskflow.auth import User
from taskflow.notify import Notifier
from taskflow.remote import MemoryClient, RemoteError
from taskflow.store import TaskStore


class FlakyClient:
    """
    Wraps a MemoryClient and fails chosen operations.

    fail is a set of "table.op" strings, e.g. {"tasks.insert"}; calls records
    every operation that reached the wrapped client.
    """

    def __init__(self, inner=None):
        self.inner = inner or MemoryClient()
        self.fail = set()
        self.error = RemoteError("network down")
        self.calls = []

    def table(self, name):
        return _FlakyTable(self, name)


class _FlakyTable:
    def __init__(self, owner, name):
        self.owner = owner
        self.name = name

    def _call(self, op, *args):
        key = f"{self.name}.{op}"
        if key in self.owner.fail:
            raise self.owner.error
        self.owner.calls.append(key)
        return getattr(self.owner.inner.table(self.name), op)(*args)

    def select(self, *args):
        return self._call("select", *args)

    def insert(self, *args):
        return self._call("insert", *args)

    def update(self, *args):
        return self._call("update", *args)

    def delete(self, *args):
        return self._call("delete", *args)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def user():
    return User(id="user-1", email="ada@example.com", display_name="ada")


@pytest.fixture
def client():
    return FlakyClient()


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def store(client, notifier):
    return TaskStore(client, notifier)


@pytest.fixture
def signed_in_store(store, user):
    run(store.set_user(user))
    return store
