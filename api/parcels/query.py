"""
Email search filter and default ordering for parcel listings.

Parcels carry the sender/owner email under several historical field names,
so a search term is matched against all of them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from core.documents import SortKey, contains_nul

EMAIL_ALIAS_FIELDS: tuple[str, ...] = (
    "email",
    "userEmail",
    "senderEmail",
    "recipientEmail",
    "creatorEmail",
)

# Compound sort, applied key by key; it is not a per-record "first present field" fallback.
DEFAULT_SORT: tuple[SortKey, ...] = (
    SortKey("createdAt"),
    SortKey("date"),
    SortKey("timestamp"),
    SortKey("_id"),
)

_LIKE_ESCAPE = "\\"


def escape_like(term: str) -> str:
    """Escape LIKE metacharacters so `term` is matched literally."""
    return (
        term.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


@dataclass(frozen=True)
class EmailFilter:
    """
    Case-insensitive substring match of `term` against any alias field.
    A field holding an array matches when any of its string elements does.
    An empty term matches every record.
    """

    term: str = ""
    fields: tuple[str, ...] = EMAIL_ALIAS_FIELDS

    @property
    def matches_all(self) -> bool:
        return not self.term

    def to_sql(self, first_param: int) -> tuple[str, list[Any]]:
        if self.matches_all:
            return "TRUE", []
        # No stored string holds NUL.
        if contains_nul(self.term):
            return "FALSE", []

        pattern = f"${first_param + len(self.fields)}"
        like = f"ILIKE {pattern} ESCAPE '\\'"
        clauses: list[str] = []
        for offset in range(len(self.fields)):
            value = f"doc -> ${first_param + offset}::text"
            clauses.append(
                f"(CASE jsonb_typeof({value}) "
                f"WHEN 'string' THEN {value} #>> '{{}}' {like} "
                f"WHEN 'array' THEN EXISTS (SELECT 1 FROM jsonb_array_elements({value}) AS item(value) "
                f"WHERE jsonb_typeof(item.value) = 'string' AND item.value #>> '{{}}' {like}) "
                "ELSE FALSE END)"
            )
        return "(" + " OR ".join(clauses) + ")", [*self.fields, f"%{escape_like(self.term)}%"]

    def matches(self, document: dict[str, Any]) -> bool:
        if self.matches_all:
            return True
        if contains_nul(self.term):
            return False
        needle = self.term.lower()
        for field in self.fields:
            value = document.get(field)
            candidates = value if isinstance(value, list) else [value]
            if any(isinstance(c, str) and needle in c.lower() for c in candidates):
                return True
        return False


def build_email_filter(term: str | None = None) -> EmailFilter:
    return EmailFilter(term=term or "")


def default_sort() -> tuple[SortKey, ...]:
    return DEFAULT_SORT
