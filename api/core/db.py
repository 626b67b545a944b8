"""
Async document store access helpers using pymongo's asyncio client.

`DocumentStore` owns one client and one collection handle. FastAPI creates
the store on startup, hands it to routes through `Depends`, and closes it on
shutdown (see `api/main.py`).

Connecting is lazy: the first call that needs the collection performs the
handshake. A failed handshake raises `StoreUnavailableError` and leaves the
store disconnected, so the next request tries again. Once connected, commands
the server refuses raise `StoreRejectedError`; any other driver failure
raises `StoreUnavailableError`.
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator
from urllib.parse import quote_plus

from pymongo import AsyncMongoClient
from pymongo.errors import ExecutionTimeout, OperationFailure, PyMongoError, WTimeoutError
from pymongo.server_api import ServerApi

DEFAULT_DB_HOST = "cluster0.0evfqhu.mongodb.net"
DEFAULT_DATABASE = "roommateFinder"
DEFAULT_COLLECTION = "roommateListings"
DEFAULT_TIMEOUT_MS = 5000

logger = logging.getLogger(__name__)


# Store failures are explicit and separable from other runtime errors.
class StoreUnavailableError(ConnectionError):
    pass


# The server was reachable but refused the command (duplicate key, bad operator, type mismatch).
class StoreRejectedError(RuntimeError):
    pass


@contextmanager
def _driver_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (ExecutionTimeout, WTimeoutError) as exc:
        raise StoreUnavailableError(f"{operation} timed out.") from exc
    except OperationFailure as exc:
        raise StoreRejectedError(f"{operation} rejected: {exc}") from exc
    except PyMongoError as exc:
        raise StoreUnavailableError(f"{operation} failed.") from exc


@dataclass(frozen=True)
class UpdateOutcome:
    matched: int
    modified: int


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def mongodb_uri() -> str:
    uri = os.environ.get("MONGODB_URI", "").strip()
    if uri:
        return uri

    user = os.environ.get("DB_USER", "").strip()
    password = os.environ.get("DB_PASS", "").strip()
    if not user or not password:
        raise RuntimeError("MONGODB_URI is not set (or DB_USER/DB_PASS).")

    host = os.environ.get("DB_HOST", DEFAULT_DB_HOST).strip() or DEFAULT_DB_HOST
    return (
        f"mongodb+srv://{quote_plus(user)}:{quote_plus(password)}@{host}/"
        "?retryWrites=true&w=majority&appName=Cluster0"
    )


def database_name() -> str:
    return os.environ.get("MONGODB_DATABASE", DEFAULT_DATABASE).strip() or DEFAULT_DATABASE


def collection_name() -> str:
    return os.environ.get("MONGODB_COLLECTION", DEFAULT_COLLECTION).strip() or DEFAULT_COLLECTION


def timeout_ms() -> int:
    return _env_int("MONGODB_TIMEOUT_MS", DEFAULT_TIMEOUT_MS)


class DocumentStore:
    """
    One lazily connected collection shared by every request of the process.
    """

    def __init__(
        self,
        uri: str,
        *,
        database: str = DEFAULT_DATABASE,
        collection: str = DEFAULT_COLLECTION,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        client_factory: Callable[..., Any] = AsyncMongoClient,
    ) -> None:
        self._uri = uri
        self._database = database
        self._collection_name = collection
        self._timeout_ms = timeout_ms
        self._client_factory = client_factory
        self._client: Any = None
        self._collection: Any = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_env(cls) -> DocumentStore:
        return cls(
            mongodb_uri(),
            database=database_name(),
            collection=collection_name(),
            timeout_ms=timeout_ms(),
        )

    @property
    def is_connected(self) -> bool:
        return self._collection is not None

    async def connect(self) -> Any:
        """
        Return the collection handle, connecting first if needed.
        """
        if self._collection is not None:
            return self._collection

        async with self._lock:
            # Another request may have finished the handshake while we waited.
            if self._collection is not None:
                return self._collection

            client = None
            try:
                client = self._client_factory(
                    self._uri,
                    server_api=ServerApi("1", strict=True, deprecation_errors=True),
                    serverSelectionTimeoutMS=self._timeout_ms,
                )
                await client.admin.command("ping")
            except PyMongoError as exc:
                logger.error("store_connect_failed database=%s error=%s", self._database, exc)
                if client is not None:
                    await client.close()
                raise StoreUnavailableError("Failed to connect to the document store.") from exc

            self._client = client
            self._collection = client[self._database][self._collection_name]
            logger.info(
                "store_connected database=%s collection=%s",
                self._database,
                self._collection_name,
            )
            return self._collection

    async def close(self) -> None:
        if self._client is None:
            return None
        client = self._client
        self._client = None
        self._collection = None
        await client.close()
        logger.info("store_disconnected database=%s", self._database)

    async def find_one(self, filter: dict[str, Any]) -> dict[str, Any] | None:
        collection = await self.connect()
        with _driver_errors("find_one"):
            return await collection.find_one(filter)

    async def find_many(self, filter: dict[str, Any], *, limit: int | None = None) -> list[dict[str, Any]]:
        """
        Return every document matching `filter`, capped at `limit` when given.
        """
        collection = await self.connect()
        with _driver_errors("find"):
            cursor = collection.find(filter)
            if limit is not None:
                cursor = cursor.limit(limit)
            return await cursor.to_list(length=None)

    async def insert_one(self, document: dict[str, Any]) -> Any:
        collection = await self.connect()
        with _driver_errors("insert_one"):
            result = await collection.insert_one(document)
        return result.inserted_id

    async def update_one(self, filter: dict[str, Any], update: dict[str, Any]) -> UpdateOutcome:
        """
        Apply an update document (`$set`, `$inc`, ...) to the first match.
        """
        collection = await self.connect()
        with _driver_errors("update_one"):
            result = await collection.update_one(filter, update)
        return UpdateOutcome(matched=result.matched_count, modified=result.modified_count)

    async def delete_one(self, filter: dict[str, Any]) -> int:
        collection = await self.connect()
        with _driver_errors("delete_one"):
            result = await collection.delete_one(filter)
        return result.deleted_count
