"""Shared fixtures: an in-process stand-in for the Mongo client."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

import bson
import pytest
from bson import ObjectId
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError
from pymongo.results import InsertOneResult

from nahui.config import MongoConfig


class FakeCollection:
    def __init__(self, name: str) -> None:
        self.name = name
        self.documents: list[dict[str, Any]] = []
        self.indexes: list[tuple[list[tuple[str, int]], str | None]] = []
        self.fail_inserts = False

    async def insert_one(self, document: dict[str, Any]) -> InsertOneResult:
        if self.fail_inserts:
            raise OperationFailure("insert rejected")
        # The real driver encodes before sending; surface the same errors
        bson.encode(document)
        oid = ObjectId()
        self.documents.append({**document, "_id": oid})
        return InsertOneResult(oid, acknowledged=True)

    async def create_index(self, keys: list[tuple[str, int]], name: str | None = None) -> str:
        self.indexes.append((keys, name))
        return name or ""


class FakeDatabase:
    def __init__(self, name: str) -> None:
        self.name = name
        self.collections: dict[str, FakeCollection] = {}

    async def list_collection_names(self, filter: dict[str, Any] | None = None) -> list[str]:
        names = list(self.collections)
        if filter and "name" in filter:
            names = [n for n in names if n == filter["name"]]
        return names

    async def create_collection(self, name: str) -> FakeCollection:
        collection = FakeCollection(name)
        self.collections[name] = collection
        return collection

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collections[name]


class FakeAdmin:
    def __init__(self, mongo: FakeMongo) -> None:
        self._mongo = mongo

    async def command(self, name: str) -> dict[str, Any]:
        if not self._mongo.reachable:
            raise ServerSelectionTimeoutError("localhost:27017: connection refused")
        return {"ok": 1}


class FakeClient:
    def __init__(self, mongo: FakeMongo, url: str, options: dict[str, Any]) -> None:
        self._mongo = mongo
        self.url = url
        self.options = options
        self.admin = FakeAdmin(mongo)
        self.closed = False

    def get_default_database(self, default: str | None = None) -> FakeDatabase:
        name = urlparse(self.url).path.strip("/") or default
        return self._mongo.database(name)

    async def close(self) -> None:
        self.closed = True


class FakeMongo:
    """Shared server state; ``client`` matches the AsyncMongoClient signature."""

    def __init__(self) -> None:
        self.reachable = True
        self.databases: dict[str, FakeDatabase] = {}
        self.clients: list[FakeClient] = []

    def client(self, url: str, **options: Any) -> FakeClient:
        client = FakeClient(self, url, options)
        self.clients.append(client)
        return client

    def database(self, name: str) -> FakeDatabase:
        return self.databases.setdefault(name, FakeDatabase(name))

    def collection(self, database: str = "webhook-server", name: str = "nahui-gpt-requests") -> FakeCollection:
        return self.databases[database].collections[name]


@pytest.fixture
def mongo():
    return FakeMongo()


@pytest.fixture
def mongo_config():
    return MongoConfig(url="mongodb://localhost:27017")
