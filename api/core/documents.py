"""
JSONB document collection (raw SQL) on top of an asyncpg pool.

Each document is one row:

    oid        bytea  native locator (12 bytes), or NULL
    legacy_id  text   locator persisted as plain text by older writers, or NULL
    doc        jsonb  the document body, without its locator

Exactly one of `oid` / `legacy_id` is set. When a row is read back, its
locator is returned under `_id` as a `Locator` (native) or `str` (legacy).

Filters and matches render themselves to SQL through `to_sql(first_param)`,
which returns a boolean expression plus its positional arguments ($n style).
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Protocol

import asyncpg

from .locator import Locator

LOCATOR_FIELD = "_id"

_TABLE_NAME_RE = re.compile(r"^[a-z_][a-z0-9_]*$")


def contains_nul(value: Any) -> bool:
    """
    True if any string in `value`, object keys included, holds U+0000.
    Postgres `text` and `jsonb` cannot store that character.
    """
    if isinstance(value, str):
        return "\x00" in value
    if isinstance(value, dict):
        return any(contains_nul(k) or contains_nul(v) for k, v in value.items())
    if isinstance(value, list):
        return any(contains_nul(v) for v in value)
    return False


class SqlExpression(Protocol):
    def to_sql(self, first_param: int) -> tuple[str, list[Any]]: ...


@dataclass(frozen=True)
class MatchAll:
    def to_sql(self, first_param: int) -> tuple[str, list[Any]]:
        return "TRUE", []

    def matches(self, document: dict[str, Any]) -> bool:
        return True


@dataclass(frozen=True)
class LocatorMatch:
    """Record whose native locator equals `locator`."""

    locator: Locator

    def to_sql(self, first_param: int) -> tuple[str, list[Any]]:
        return f"oid = ${first_param}", [self.locator.binary]

    def matches(self, document: dict[str, Any]) -> bool:
        return document.get(LOCATOR_FIELD) == self.locator


@dataclass(frozen=True)
class TextLocatorMatch:
    """Record whose locator was stored as the plain text `text`."""

    text: str

    def to_sql(self, first_param: int) -> tuple[str, list[Any]]:
        if contains_nul(self.text):
            return "FALSE", []
        return f"legacy_id = ${first_param}", [self.text]

    def matches(self, document: dict[str, Any]) -> bool:
        value = document.get(LOCATOR_FIELD)
        return isinstance(value, str) and value == self.text


def scalar_text(value: Any) -> str | None:
    """
    Text form of a string or number field, as Postgres `->>` renders it.
    Other JSON types have no scalar text form here.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


@dataclass(frozen=True)
class FieldMatch:
    """Record whose top-level `field` (string or number) equals `value` as text."""

    field: str
    value: str

    def to_sql(self, first_param: int) -> tuple[str, list[Any]]:
        # Stored text never holds NUL, and binding one is an error.
        if contains_nul(self.value):
            return "FALSE", []
        key, value = f"${first_param}::text", f"${first_param + 1}"
        return (
            f"(jsonb_typeof(doc -> {key}) IN ('string', 'number') AND doc ->> {key} = {value})",
            [self.field, self.value],
        )

    def matches(self, document: dict[str, Any]) -> bool:
        return scalar_text(document.get(self.field)) == self.value


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = True


def render_sort(keys: tuple[SortKey, ...], first_param: int) -> tuple[str, list[Any]]:
    """
    ORDER BY clause for a compound sort. Missing fields sort last under
    descending order, first under ascending.
    """
    parts: list[str] = []
    args: list[Any] = []
    for key in keys:
        direction = "DESC NULLS LAST" if key.descending else "ASC NULLS FIRST"
        if key.field == LOCATOR_FIELD:
            # Native locators rank above text locators.
            parts.append(f"oid {direction}")
            parts.append(f"legacy_id {direction}")
            continue
        parts.append(f"doc -> ${first_param + len(args)}::text {direction}")
        args.append(key.field)
    return ", ".join(parts), args


def _row_to_document(row: asyncpg.Record) -> dict[str, Any]:
    body = row["doc"]
    if isinstance(body, str):
        body = json.loads(body)
    locator: Locator | str = Locator(row["oid"]) if row["oid"] is not None else row["legacy_id"]
    return {LOCATOR_FIELD: locator, **body}


class DocumentCollection:
    """
    One table of JSONB documents.

    All calls go through the pool, so each is bounded by the pool's
    `command_timeout`.
    """

    def __init__(self, pool: asyncpg.Pool, table: str) -> None:
        if not _TABLE_NAME_RE.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self._pool = pool
        self.table = table

    async def ensure_table(self) -> None:
        await self._pool.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
              oid bytea UNIQUE CHECK (oid IS NULL OR octet_length(oid) = 12),
              legacy_id text UNIQUE,
              doc jsonb NOT NULL,
              CHECK ((oid IS NULL) <> (legacy_id IS NULL))
            )
            """
        )

    async def ping(self) -> None:
        await self._pool.fetchval("SELECT 1")

    async def find(self, where: SqlExpression, sort: tuple[SortKey, ...] = ()) -> list[dict[str, Any]]:
        clause, args = where.to_sql(1)
        sql = f"SELECT oid, legacy_id, doc FROM {self.table} WHERE {clause}"
        if sort:
            order, order_args = render_sort(sort, len(args) + 1)
            sql += f" ORDER BY {order}"
            args = args + order_args
        rows = await self._pool.fetch(sql, *args)
        return [_row_to_document(r) for r in rows]

    async def find_one(self, where: SqlExpression | None = None) -> dict[str, Any] | None:
        clause, args = (where or MatchAll()).to_sql(1)
        row = await self._pool.fetchrow(
            f"SELECT oid, legacy_id, doc FROM {self.table} WHERE {clause} LIMIT 1",
            *args,
        )
        return _row_to_document(row) if row is not None else None

    async def insert_one(self, document: dict[str, Any]) -> Locator | str:
        """
        Insert `document` verbatim. A caller-supplied `_id` is kept as a text
        locator; otherwise a native locator is generated. Documents for
        which `contains_nul` holds are rejected by the server.
        """
        body = dict(document)
        supplied = body.pop(LOCATOR_FIELD, None)
        if supplied is None:
            locator: Locator | str = Locator.generate()
            oid, legacy_id = locator.binary, None
        else:
            locator = str(supplied)
            oid, legacy_id = None, locator

        # asyncpg does not encode dicts for jsonb parameters; pass text and cast.
        await self._pool.execute(
            f"INSERT INTO {self.table} (oid, legacy_id, doc) VALUES ($1, $2, $3::jsonb)",
            oid,
            legacy_id,
            json.dumps(body, ensure_ascii=True),
        )
        return locator

    async def delete_one(self, where: SqlExpression) -> int:
        clause, args = where.to_sql(1)
        rows = await self._pool.fetch(
            f"""
            DELETE FROM {self.table}
            WHERE ctid IN (SELECT ctid FROM {self.table} WHERE {clause} LIMIT 1)
            RETURNING 1
            """,
            *args,
        )
        return len(rows)
