"""
Parcel dependencies for FastAPI routes.
"""

from __future__ import annotations

from fastapi import Depends

from core.db import ConnectionCache, get_connections

from .repository import ParcelRepository


async def get_repository(connections: ConnectionCache = Depends(get_connections)) -> ParcelRepository:
    return ParcelRepository(connections)
