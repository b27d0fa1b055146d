"""
Parcel API endpoints.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request

from . import service
from .dependencies import get_repository
from .repository import ParcelRepository

router = APIRouter()


@router.get("/parcels/test")
async def sample_parcels() -> list[dict]:
    """
    Static payload for checking that a client can read parcel arrays.
    """
    return service.SAMPLE_PARCELS


@router.get("/parcels")
async def list_parcels(
    email: str | None = Query(default=None),
    repository: ParcelRepository = Depends(get_repository),
) -> list[dict]:
    return await service.list_parcels(repository, email=email)


@router.get("/parcels/user/{email}")
async def list_parcels_for_user(
    email: str,
    repository: ParcelRepository = Depends(get_repository),
) -> list[dict]:
    return await service.list_parcels(repository, email=email)


@router.get("/parcels/{parcel_id}")
async def get_parcel(
    parcel_id: str,
    repository: ParcelRepository = Depends(get_repository),
) -> dict:
    return await service.get_parcel(repository, parcel_id)


@router.post("/parcels", status_code=201)
async def create_parcel(
    document: dict[str, Any] = Body(...),
    repository: ParcelRepository = Depends(get_repository),
) -> dict:
    return await service.create_parcel(repository, document)


@router.delete("/parcels/{parcel_id}")
@router.delete("/api/parcels/{parcel_id}")
async def delete_parcel(
    parcel_id: str,
    repository: ParcelRepository = Depends(get_repository),
) -> dict:
    return await service.delete_parcel(repository, parcel_id)


@router.delete("/parcels")
async def delete_parcel_by_body(
    request: Request,
    repository: ParcelRepository = Depends(get_repository),
) -> dict:
    """
    Delete with the id in the JSON body (`id` / `_id`) or the query string,
    for callers that cannot put it in the path.
    """
    body: Any = None
    raw = await request.body()
    if raw:
        try:
            body = json.loads(raw)
        except ValueError:
            body = None
    parcel_id = service.parcel_id_from_request(body, dict(request.query_params))
    return await service.delete_parcel(repository, parcel_id)
