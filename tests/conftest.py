import asyncio
import copy
from types import SimpleNamespace

import httpx
import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect, DuplicateKeyError, ServerSelectionTimeoutError, WriteError

from core.db import DocumentStore
from listings.dependencies import get_store
from main import app


def _matches(document: dict, filter: dict) -> bool:
    return all(key in document and document[key] == value for key, value in filter.items())


class FakeCursor:
    def __init__(self, documents: list[dict]):
        self._documents = documents
        self._limit = 0

    def limit(self, n: int) -> "FakeCursor":
        self._limit = n
        return self

    async def to_list(self, length=None) -> list[dict]:
        documents = self._documents[: self._limit] if self._limit else self._documents
        return [copy.deepcopy(d) for d in documents]


class FakeCollection:
    """
    In-memory stand-in for the subset of AsyncCollection the store uses.
    """

    def __init__(self, owner: "FakeMongoClient"):
        self._owner = owner
        self.documents: list[dict] = []

    def _check(self) -> None:
        if self._owner.op_error is not None:
            raise self._owner.op_error
        if self._owner.fail_ops:
            raise AutoReconnect("connection reset")

    def _first(self, filter: dict) -> dict | None:
        return next((d for d in self.documents if _matches(d, filter)), None)

    async def find_one(self, filter: dict):
        self._check()
        found = self._first(filter)
        return copy.deepcopy(found) if found is not None else None

    def find(self, filter: dict) -> FakeCursor:
        self._check()
        return FakeCursor([d for d in self.documents if _matches(d, filter)])

    async def insert_one(self, document: dict):
        self._check()
        document.setdefault("_id", ObjectId())
        if self._first({"_id": document["_id"]}) is not None:
            raise DuplicateKeyError("duplicate _id")
        self.documents.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document["_id"])

    async def update_one(self, filter: dict, update: dict):
        self._check()
        self._owner.updates.append((filter, update))
        target = self._first(filter)
        if target is None:
            return SimpleNamespace(matched_count=0, modified_count=0)
        if self._owner.drop_next_update:
            self._owner.drop_next_update = False
            return SimpleNamespace(matched_count=1, modified_count=0)

        modified = False
        for key, value in update.get("$set", {}).items():
            if key not in target or target[key] != value:
                target[key] = copy.deepcopy(value)
                modified = True
        for key, amount in update.get("$inc", {}).items():
            current = target.get(key, 0)
            if isinstance(current, bool) or not isinstance(current, (int, float)):
                raise WriteError("Cannot apply $inc to a value of non-numeric type", code=14)
            target[key] = current + amount
            modified = True
        if self._owner.vanish_after_update:
            self._owner.vanish_after_update = False
            self.documents.remove(target)
        return SimpleNamespace(matched_count=1, modified_count=1 if modified else 0)

    async def delete_one(self, filter: dict):
        self._check()
        target = self._first(filter)
        if target is None or self._owner.drop_next_delete:
            self._owner.drop_next_delete = False
            return SimpleNamespace(deleted_count=0)
        self.documents.remove(target)
        return SimpleNamespace(deleted_count=1)


class FakeMongoClient:
    """
    Plays the role of `AsyncMongoClient` for `DocumentStore(client_factory=...)`.
    """

    def __init__(self):
        self.collection = FakeCollection(self)
        self.created: list[tuple[str, dict]] = []
        self.pings = 0
        self.closed = 0
        self.fail_pings = 0
        self.fail_ops = False
        self.op_error: Exception | None = None
        self.drop_next_update = False
        self.drop_next_delete = False
        self.vanish_after_update = False
        self.updates: list[tuple[dict, dict]] = []
        self.database_name: str | None = None
        self.collection_name: str | None = None
        self.admin = SimpleNamespace(command=self._command)

    def factory(self, uri: str, **kwargs) -> "FakeMongoClient":
        self.created.append((uri, kwargs))
        return self

    async def _command(self, name: str):
        assert name == "ping"
        self.pings += 1
        await asyncio.sleep(0)
        if self.fail_pings > 0:
            self.fail_pings -= 1
            raise ServerSelectionTimeoutError("no servers available")
        return {"ok": 1}

    def __getitem__(self, database: str):
        self.database_name = database
        return _FakeDatabase(self)

    async def close(self) -> None:
        self.closed += 1


class _FakeDatabase:
    def __init__(self, client: FakeMongoClient):
        self._client = client

    def __getitem__(self, name: str) -> FakeCollection:
        self._client.collection_name = name
        return self._client.collection


@pytest.fixture
def mongo() -> FakeMongoClient:
    return FakeMongoClient()


@pytest.fixture
def store(mongo: FakeMongoClient) -> DocumentStore:
    return DocumentStore(
        "mongodb://test",
        database="roommateFinder",
        collection="roommateListings",
        client_factory=mongo.factory,
    )


@pytest.fixture
async def client(store: DocumentStore):
    """
    HTTP client whose listing routes use the fake-backed store.
    """
    app.dependency_overrides[get_store] = lambda: store

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def listing(client: httpx.AsyncClient) -> dict:
    body = {"email": "a@x.com", "userName": "A", "availability": "Available"}
    r = await client.post("/listings", json=body)
    assert r.status_code == 201
    return {"id": r.json()["insertedId"], **body}
