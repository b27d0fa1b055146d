"""
Identifier resolution for single-parcel lookup and delete.

Parcels written over the years identify themselves in different ways, so a
caller-supplied identifier is tried, in order, as:

1. a native locator (only when it is locator-formatted),
2. a locator stored as plain text,
3. the separate `id` field.

The first strategy that finds (or deletes) a record wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

from core.documents import FieldMatch, LocatorMatch, TextLocatorMatch
from core.errors import ValidationError
from core.locator import Locator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchStrategy:
    name: str
    match: Union[LocatorMatch, TextLocatorMatch, FieldMatch]


@dataclass(frozen=True)
class Found:
    record: dict[str, Any]
    strategy: str


@dataclass(frozen=True)
class Deleted:
    count: int
    strategy: str


@dataclass(frozen=True)
class NotFound:
    identifier: str
    locator_formatted: bool


class IdentifierResolver:
    def strategies(self, identifier: Any) -> list[MatchStrategy]:
        if not isinstance(identifier, str) or not identifier.strip():
            raise ValidationError(f"Unusable parcel identifier: {identifier!r}", receivedId=identifier)

        strategies: list[MatchStrategy] = []
        if Locator.is_valid(identifier):
            strategies.append(MatchStrategy("native-locator", LocatorMatch(Locator.from_hex(identifier))))
        strategies.append(MatchStrategy("text-locator", TextLocatorMatch(identifier)))
        strategies.append(MatchStrategy("id-field", FieldMatch("id", identifier)))
        return strategies

    async def find(self, collection: Any, identifier: Any) -> Found | NotFound:
        for strategy in self.strategies(identifier):
            record = await collection.find_one(strategy.match)
            if record is not None:
                logger.debug("parcel_resolved identifier=%s strategy=%s", identifier, strategy.name)
                return Found(record=record, strategy=strategy.name)
        return NotFound(identifier=identifier, locator_formatted=Locator.is_valid(identifier))

    async def delete(self, collection: Any, identifier: Any) -> Deleted | NotFound:
        for strategy in self.strategies(identifier):
            count = await collection.delete_one(strategy.match)
            if count > 0:
                return Deleted(count=count, strategy=strategy.name)
        return NotFound(identifier=identifier, locator_formatted=Locator.is_valid(identifier))
