"""
Query shaping helpers: pagination, sorting, filters, search expressions.

All helpers raise ValueError on bad input; callers run them through
`RequestOrchestrator.validate` so the failure surfaces as a ValidationError.
"""

import re
from dataclasses import dataclass
from typing import Any, Literal

_COLUMN = re.compile(r"[a-z_][a-z0-9_]*")
_FORBIDDEN_SEQUENCES = (";", "--", "/*")

DEFAULT_PAGE_SIZE = 20


@dataclass(frozen=True)
class Pagination:
    """Inclusive row range for a page."""

    from_: int
    to: int
    limit: int

    @property
    def range(self) -> tuple[int, int]:
        return self.from_, self.to


@dataclass(frozen=True)
class Sorting:
    column: str
    ascending: bool

    @property
    def order(self) -> tuple[str, bool]:
        return self.column, self.ascending


def build_pagination(page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> Pagination:
    """Row range for a 1-based page number."""
    if page < 1:
        raise ValueError("page must be >= 1")
    if limit < 1:
        raise ValueError("limit must be >= 1")
    offset = (page - 1) * limit
    return Pagination(from_=offset, to=offset + limit - 1, limit=limit)


def build_offset_pagination(
    limit: int = DEFAULT_PAGE_SIZE, offset: int = 0
) -> Pagination:
    """Row range for a limit/offset pair."""
    if limit < 1:
        raise ValueError("limit must be >= 1")
    if offset < 0:
        raise ValueError("offset must be >= 0")
    return Pagination(from_=offset, to=offset + limit - 1, limit=limit)


def build_sorting(
    sort_by: str, sort_order: Literal["asc", "desc"] = "desc"
) -> Sorting:
    if not _COLUMN.fullmatch(sort_by or ""):
        raise ValueError(f"Invalid sort column: {sort_by!r}")
    if sort_order not in ("asc", "desc"):
        raise ValueError(f"Invalid sort order: {sort_order!r}")
    return Sorting(column=sort_by, ascending=sort_order == "asc")


def build_filters(filters: dict[str, Any]) -> dict[str, Any]:
    """Drop None and empty-string values."""
    return {k: v for k, v in filters.items() if v is not None and v != ""}


def build_search_query(search_term: str, search_fields: list[str]) -> str | None:
    """
    Build a PostgREST `or` body matching `search_term` in any field.

    build_search_query("Jazz", ["title", "city"])
        -> "title.ilike.%jazz%,city.ilike.%jazz%"
    """
    if not search_term or not search_term.strip():
        return None

    term = validate_query(search_term).lower()
    # Commas and parentheses would split or close the `or=(...)` group
    term = re.sub(r"[,()]", " ", term).strip()
    if not term:
        return None
    return ",".join(f"{field}.ilike.%{term}%" for field in search_fields)


def validate_query(query: str) -> str:
    """Reject empty queries and SQL comment/terminator sequences."""
    if not query or not query.strip():
        raise ValueError("Query cannot be empty")

    if any(seq in query for seq in _FORBIDDEN_SEQUENCES):
        raise ValueError("Invalid query characters detected")

    return query.strip()
