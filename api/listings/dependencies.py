"""
Store dependency for listing routes.
"""

from __future__ import annotations

from fastapi import Request

from core.db import DocumentStore


async def get_store(request: Request) -> DocumentStore:
    # Created once in the app lifespan; connects lazily on first use.
    return request.app.state.store
