"""
Listing business logic.

Ownership is a plain comparison between the email a client sends and the
email stored on the listing at creation. There is no authentication behind
it: any caller who knows the owner's email can act as the owner.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from bson import ObjectId
from fastapi import HTTPException, status

from core.db import DocumentStore, StoreRejectedError, StoreUnavailableError

from . import repository, schemas

STORE_UNAVAILABLE = "Database not ready. Try again later."

# Fields a general update never touches.
READ_ONLY_FIELDS = ("_id", "email", "userName", "likeCount")

logger = logging.getLogger(__name__)


@contextmanager
def _store_guard(operation: str, *, rejected: str = "Invalid request") -> Iterator[None]:
    try:
        yield
    except StoreRejectedError as exc:
        logger.warning("store_rejected operation=%s error=%s", operation, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=rejected) from exc
    except StoreUnavailableError as exc:
        logger.error("store_unavailable operation=%s error=%s", operation, exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=STORE_UNAVAILABLE,
        ) from exc


def _listing_id(raw: str) -> ObjectId:
    try:
        return repository.parse_listing_id(raw)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid ID") from exc


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Listing not found")


async def listings_for_owner(email: str | None, *, store: DocumentStore) -> list[dict]:
    if not email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")
    with _store_guard("list_by_email"):
        rows = await repository.list_by_email(store, email)
    return [repository.to_public(row) for row in rows]


async def featured_listings(*, store: DocumentStore) -> list[dict]:
    with _store_guard("list_featured"):
        rows = await repository.list_featured(store)
    return [repository.to_public(row) for row in rows]


async def all_listings(*, store: DocumentStore) -> list[dict]:
    with _store_guard("list_all"):
        rows = await repository.list_all(store)
    return [repository.to_public(row) for row in rows]


async def create_listing(payload: dict[str, Any] | None, *, store: DocumentStore) -> schemas.InsertResponse:
    """
    Store the body as-is. No field is required.
    """
    document = dict(payload or {})
    with _store_guard("create", rejected="Invalid listing"):
        inserted_id = await repository.insert_listing(store, document)
    return schemas.InsertResponse(insertedId=str(inserted_id))


async def get_listing(raw_id: str, *, store: DocumentStore) -> dict:
    listing_id = _listing_id(raw_id)
    with _store_guard("get"):
        listing = await repository.get_listing(store, listing_id)
    if listing is None:
        raise _not_found()
    return repository.to_public(listing)


async def update_listing(
    raw_id: str,
    payload: dict[str, Any] | None,
    *,
    store: DocumentStore,
) -> schemas.MessageResponse:
    listing_id = _listing_id(raw_id)
    update_data = dict(payload or {})
    logger.info("listing_update_requested id=%s fields=%s", listing_id, sorted(update_data))

    with _store_guard("update"):
        listing = await repository.get_listing(store, listing_id)
    if listing is None:
        raise _not_found()

    email = update_data.get("email")
    if not email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email required for update authorization",
        )
    if listing.get("email") != email:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized to update this listing",
        )

    patch = {key: value for key, value in update_data.items() if key not in READ_ONLY_FIELDS}
    if not patch:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    with _store_guard("update", rejected="Invalid ID or update failed"):
        modified = await repository.set_fields(store, listing_id, patch)

    if modified:
        return schemas.MessageResponse(message="Listing updated")
    return schemas.MessageResponse(message="No changes made")


async def delete_listing(raw_id: str, email: str | None, *, store: DocumentStore) -> schemas.MessageResponse:
    logger.info("listing_delete_requested id=%s", raw_id)
    if not email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email query parameter required",
        )
    listing_id = _listing_id(raw_id)

    with _store_guard("delete"):
        listing = await repository.get_listing(store, listing_id)
    if listing is None:
        raise _not_found()

    if listing.get("email") != email:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized to delete this listing",
        )

    with _store_guard("delete"):
        deleted = await repository.delete_listing(store, listing_id)
    if not deleted:
        # Removed by someone else between the lookup and the delete.
        raise _not_found()
    return schemas.MessageResponse(message="Listing deleted")


async def like_listing(
    raw_id: str,
    request: schemas.LikeRequest | None,
    *,
    store: DocumentStore,
) -> schemas.LikeResponse:
    user_email = request.userEmail if request is not None else None
    if not user_email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User email is required")
    listing_id = _listing_id(raw_id)

    with _store_guard("like"):
        listing = await repository.get_listing(store, listing_id)
    if listing is None:
        raise _not_found()

    if listing.get("email") == user_email:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You cannot like your own post")

    with _store_guard("like"):
        incremented = await repository.increment_likes(store, listing_id)
        updated = await repository.get_listing(store, listing_id) if incremented else None

    if updated is None:
        # The listing existed a moment ago; losing it here is a server-side failure.
        logger.error("listing_like_failed id=%s incremented=%s", listing_id, incremented)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update like count",
        )
    return schemas.LikeResponse(message="Liked", likeCount=updated.get("likeCount"))
