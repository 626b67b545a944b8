"""
Listing API schemas (request/response models).
"""

from __future__ import annotations

from typing import Any, TypedDict

from pydantic import BaseModel, ConfigDict, Field


class ListingFields(TypedDict, total=False):
    """
    Typed core of a listing document.

    Listings are open field maps: anything else a client sends on create
    (title, description, location, ...) is stored alongside these keys.
    """

    _id: Any
    email: str
    userName: str
    availability: str
    likeCount: int


class LikeRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # Any JSON value is compared as sent; a missing or falsy one gets the
    # listing-specific 400 message.
    userEmail: Any = None


class MessageResponse(BaseModel):
    message: str


class LikeResponse(MessageResponse):
    # Echoes the stored counter, which create may have seeded with any number.
    likeCount: int | float | None = None


class InsertResponse(BaseModel):
    acknowledged: bool = True
    insertedId: str = Field(..., min_length=1)
