"""
Parcel persistence.

This is the only place that issues store operations for parcels. Every call
acquires the shared connection first; store failures after that point are
reported as `UpstreamError`.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from core.db import STORE_ERRORS, ConnectionCache
from core.errors import UpstreamError
from core.locator import Locator

from .query import build_email_filter, default_sort
from .resolver import Deleted, Found, IdentifierResolver, NotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InsertResult:
    inserted_id: Locator | str
    acknowledged: bool = True


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except STORE_ERRORS as exc:
        logger.error("store_operation_failed op=%s error_type=%s error=%s", operation, type(exc).__name__, exc)
        raise UpstreamError(f"{operation} failed: {exc}") from exc


class ParcelRepository:
    def __init__(self, connections: ConnectionCache, resolver: IdentifierResolver | None = None) -> None:
        self._connections = connections
        self._resolver = resolver or IdentifierResolver()

    async def list_parcels(self, email: str | None = None) -> list[dict[str, Any]]:
        handle = await self._connections.acquire()
        with _store_errors("find"):
            return await handle.collection.find(build_email_filter(email), default_sort())

    async def get_parcel(self, identifier: Any) -> Found | NotFound:
        handle = await self._connections.acquire()
        with _store_errors("find_one"):
            return await self._resolver.find(handle.collection, identifier)

    async def insert_parcel(self, document: dict[str, Any]) -> InsertResult:
        handle = await self._connections.acquire()
        with _store_errors("insert_one"):
            inserted_id = await handle.collection.insert_one(document)
        logger.info("parcel_inserted id=%s", inserted_id)
        return InsertResult(inserted_id=inserted_id)

    async def delete_parcel(self, identifier: Any) -> Deleted | NotFound:
        handle = await self._connections.acquire()
        with _store_errors("delete_one"):
            result = await self._resolver.delete(handle.collection, identifier)
        if isinstance(result, Deleted):
            logger.info("parcel_deleted id=%s strategy=%s count=%s", identifier, result.strategy, result.count)
        return result

    async def probe(self) -> None:
        """One full store round trip (used by the health check)."""
        handle = await self._connections.acquire()
        with _store_errors("probe"):
            await handle.collection.find_one()
