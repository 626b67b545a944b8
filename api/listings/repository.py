"""
Listing persistence helpers (document filters and update operators).
"""

from __future__ import annotations

from typing import Any

from bson import ObjectId

from core.db import DocumentStore

from .schemas import ListingFields

FEATURED_AVAILABILITY = "Available"
FEATURED_LIMIT = 6


def parse_listing_id(raw: str) -> ObjectId:
    """
    Parse the string form of a store identifier; ValueError if malformed.
    """
    raw = (raw or "").strip()
    if not ObjectId.is_valid(raw):
        raise ValueError(f"Invalid listing id: {raw!r}")
    return ObjectId(raw)


def to_public(document: dict[str, Any]) -> dict[str, Any]:
    out = dict(document)
    if isinstance(out.get("_id"), ObjectId):
        out["_id"] = str(out["_id"])
    return out


async def list_by_email(store: DocumentStore, email: str) -> list[ListingFields]:
    return await store.find_many({"email": email})


async def list_featured(store: DocumentStore, *, limit: int = FEATURED_LIMIT) -> list[ListingFields]:
    return await store.find_many({"availability": FEATURED_AVAILABILITY}, limit=limit)


async def list_all(store: DocumentStore) -> list[ListingFields]:
    return await store.find_many({})


async def insert_listing(store: DocumentStore, document: dict[str, Any]) -> ObjectId:
    return await store.insert_one(document)


async def get_listing(store: DocumentStore, listing_id: ObjectId) -> ListingFields | None:
    return await store.find_one({"_id": listing_id})


async def set_fields(store: DocumentStore, listing_id: ObjectId, fields: dict[str, Any]) -> bool:
    """
    Partial update; True when at least one stored value changed.
    """
    outcome = await store.update_one({"_id": listing_id}, {"$set": fields})
    return outcome.modified > 0


async def increment_likes(store: DocumentStore, listing_id: ObjectId) -> bool:
    outcome = await store.update_one({"_id": listing_id}, {"$inc": {"likeCount": 1}})
    return outcome.modified > 0


async def delete_listing(store: DocumentStore, listing_id: ObjectId) -> bool:
    return await store.delete_one({"_id": listing_id}) > 0
