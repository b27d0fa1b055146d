"""
Parcel business logic.

This file is independent of FastAPI's routing layer:
- serialize stored records for JSON responses
- turn resolver outcomes into responses or errors
- pick the parcel id out of a DELETE body / query string
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from core import config
from core.documents import contains_nul
from core.errors import ConfigurationError, NotFoundError, ParcelsError, ValidationError, failure_label

from .repository import ParcelRepository
from .resolver import NotFound

SAMPLE_PARCELS: list[dict[str, Any]] = [
    {"id": "1", "_id": "1", "test": True, "message": "Test parcel 1"},
    {"id": "2", "_id": "2", "test": True, "message": "Test parcel 2"},
    {"id": "3", "_id": "3", "test": True, "message": "Test parcel 3"},
]

MISSING_ID_HINT = "Provide id in request body or use DELETE /parcels/:id"


def serialize_parcel(record: dict[str, Any]) -> dict[str, Any]:
    locator = str(record["_id"])
    return {**record, "_id": locator, "id": locator}


def _not_found_error(result: NotFound) -> ParcelsError:
    # Without a locator-shaped id there was nothing to look up natively.
    if not result.locator_formatted:
        return ValidationError(
            f"No parcel matches non-locator id {result.identifier!r}",
            receivedId=result.identifier,
        )
    return NotFoundError(f"No parcel with id {result.identifier!r}", parcelId=result.identifier)


async def list_parcels(repository: ParcelRepository, *, email: str | None = None) -> list[dict[str, Any]]:
    with failure_label("Failed to fetch parcels"):
        records = await repository.list_parcels(email)
    return [serialize_parcel(r) for r in records]


async def get_parcel(repository: ParcelRepository, parcel_id: str) -> dict[str, Any]:
    with failure_label("Failed to fetch parcel"):
        result = await repository.get_parcel(parcel_id)
    if isinstance(result, NotFound):
        raise _not_found_error(result)
    return serialize_parcel(result.record)


async def create_parcel(repository: ParcelRepository, document: dict[str, Any]) -> dict[str, Any]:
    if contains_nul(document):
        raise ValidationError("Parcel body contains U+0000", error="Invalid parcel data")
    with failure_label("Failed to insert parcel"):
        result = await repository.insert_parcel(document)
    return {
        "insertedId": str(result.inserted_id),
        "acknowledged": result.acknowledged,
    }


async def delete_parcel(repository: ParcelRepository, parcel_id: Any) -> dict[str, Any]:
    with failure_label("Failed to delete parcel"):
        result = await repository.delete_parcel(parcel_id)
    if isinstance(result, NotFound):
        raise _not_found_error(result)
    return {
        "message": "Parcel deleted successfully",
        "deletedId": parcel_id,
        "deletedCount": result.count,
    }


def _is_present(value: Any) -> bool:
    # Falsy scalars (null, false, 0, "") mean "no id"; empty lists and objects do not.
    if value is None or isinstance(value, (bool, int, float, str)):
        return bool(value)
    return True


def parcel_id_from_request(body: Any, query: dict[str, str]) -> Any:
    """
    Pick the parcel id for `DELETE /parcels`: body `id`, body `_id`,
    then query `id`, query `_id`.
    """
    candidates: list[Any] = []
    if isinstance(body, dict):
        candidates += [body.get("id"), body.get("_id")]
    candidates += [query.get("id"), query.get("_id")]

    for value in candidates:
        if _is_present(value):
            return value
    raise ValidationError(
        "DELETE /parcels without an id",
        error="Parcel ID is required",
        hint=MISSING_ID_HINT,
    )


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


async def check_health(repository: ParcelRepository) -> dict[str, Any]:
    has_env_vars = config.store_credentials_present()
    database = "disconnected"
    error: str | None = None

    if has_env_vars:
        try:
            await repository.probe()
            database = "connected"
        except ConfigurationError:
            error = "DB_USER or DB_PASSWORD environment variables not set"
        except ParcelsError as exc:
            database = "error"
            error = exc.message or exc.error
    else:
        error = "DB_USER or DB_PASSWORD environment variables not set"

    return {
        "status": "ok",
        "database": database,
        "hasEnvVars": has_env_vars,
        "error": error,
        "timestamp": _iso_now(),
    }
