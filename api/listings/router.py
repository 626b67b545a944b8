"""
Listing API endpoints.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status

from core.db import DocumentStore

from . import dependencies, schemas, service

router = APIRouter()


@router.get("/listings")
async def list_owner_listings(
    email: str | None = Query(default=None),
    store: DocumentStore = Depends(dependencies.get_store),
) -> list[dict]:
    return await service.listings_for_owner(email, store=store)


# Static paths are declared before `/listings/{listing_id}` so they win the match.
@router.get("/listings/featured")
async def list_featured_listings(
    store: DocumentStore = Depends(dependencies.get_store),
) -> list[dict]:
    return await service.featured_listings(store=store)


@router.get("/listings/all")
async def list_all_listings(
    store: DocumentStore = Depends(dependencies.get_store),
) -> list[dict]:
    return await service.all_listings(store=store)


@router.post("/listings", status_code=status.HTTP_201_CREATED)
async def create_listing(
    payload: dict[str, Any] | None = Body(default=None),
    store: DocumentStore = Depends(dependencies.get_store),
) -> schemas.InsertResponse:
    return await service.create_listing(payload, store=store)


@router.get("/listings/{listing_id}")
async def get_listing(
    listing_id: str,
    store: DocumentStore = Depends(dependencies.get_store),
) -> dict:
    return await service.get_listing(listing_id, store=store)


@router.put("/listings/{listing_id}")
async def update_listing(
    listing_id: str,
    payload: dict[str, Any] | None = Body(default=None),
    store: DocumentStore = Depends(dependencies.get_store),
) -> schemas.MessageResponse:
    """
    Owner-only partial update. The body's `email` proves ownership.
    """
    return await service.update_listing(listing_id, payload, store=store)


@router.delete("/listings/{listing_id}")
async def delete_listing(
    listing_id: str,
    email: str | None = Query(default=None),
    store: DocumentStore = Depends(dependencies.get_store),
) -> schemas.MessageResponse:
    return await service.delete_listing(listing_id, email, store=store)


@router.put("/listings/{listing_id}/like")
async def like_listing(
    listing_id: str,
    request: schemas.LikeRequest | None = Body(default=None),
    store: DocumentStore = Depends(dependencies.get_store),
) -> schemas.LikeResponse:
    return await service.like_listing(listing_id, request, store=store)
