"""Pytest configuration and fixtures."""

import asyncio
import copy
import json

import pytest
from fastapi.testclient import TestClient

from core.db import ConnectionCache, ConnectionHandle
from core.documents import LOCATOR_FIELD
from core.locator import Locator
from main import create_app


def _rank(value):
    # Postgres jsonb ordering: null < string < number < boolean < array < object.
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (3, value)
    if isinstance(value, str):
        return (1, value)
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, list):
        return (4, json.dumps(value, sort_keys=True))
    return (5, json.dumps(value, sort_keys=True))


def _locator_rank(value):
    # Native locators rank above text locators.
    if isinstance(value, Locator):
        return (1, value.binary)
    return (0, value.encode("utf-8") if isinstance(value, str) else b"")


def sort_documents(documents, sort):
    ordered = list(documents)
    for key in reversed(sort):
        rank = _locator_rank if key.field == LOCATOR_FIELD else _rank
        ordered.sort(key=lambda d, f=key.field, r=rank: r(d.get(f)), reverse=key.descending)
    return ordered


class MemoryCollection:
    """In-memory stand-in for `DocumentCollection`; the document list is shared across handles."""

    def __init__(self, documents):
        self.documents = documents
        self.alive = True
        self.fail_with = None
        self.pings = 0

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def ping(self):
        self.pings += 1
        if not self.alive:
            raise ConnectionResetError("server closed the connection unexpectedly")

    async def find(self, where, sort=()):
        self._check()
        matched = [copy.deepcopy(d) for d in self.documents if where.matches(d)]
        return sort_documents(matched, sort)

    async def find_one(self, where=None):
        self._check()
        for document in self.documents:
            if where is None or where.matches(document):
                return copy.deepcopy(document)
        return None

    async def insert_one(self, document):
        self._check()
        body = copy.deepcopy(document)
        supplied = body.pop(LOCATOR_FIELD, None)
        locator = Locator.generate() if supplied is None else str(supplied)
        self.documents.append({LOCATOR_FIELD: locator, **body})
        return locator

    async def delete_one(self, where):
        self._check()
        for index, document in enumerate(self.documents):
            if where.matches(document):
                del self.documents[index]
                return 1
        return 0


class FakeConnector:
    """Connector that hands out `MemoryCollection` handles and counts connects."""

    def __init__(self):
        self.documents = []
        self.handles = []
        self.calls = 0
        self.error = None
        self.delay_s = 0.0
        self.pool = None

    async def __call__(self, settings):
        self.calls += 1
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        handle = ConnectionHandle(MemoryCollection(self.documents), pool=self.pool)
        self.handles.append(handle)
        return handle

    def seed(self, *documents):
        for document in documents:
            self.documents.append({LOCATOR_FIELD: Locator.generate(), **document})
        return self.documents[-len(documents):]


@pytest.fixture(autouse=True)
def store_env(monkeypatch):
    """Credentials for the store; tests that need them absent delete them."""
    monkeypatch.setenv("DB_USER", "parcels")
    monkeypatch.setenv("DB_PASSWORD", "p@ss:word/1")
    monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)
    monkeypatch.delenv("STRIPE_WEBHOOK_SECRET", raising=False)


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def connections(connector):
    return ConnectionCache(connect=connector)


@pytest.fixture
def client(connections):
    """Create a test client around an app backed by the in-memory store."""
    with TestClient(create_app(connections)) as test_client:
        yield test_client
