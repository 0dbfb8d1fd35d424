"""Search and ordering for club and request lists.

Pure functions over anything with name/city/state (and created_at for
ordering): ORM rows, pydantic models or SimpleNamespace in tests.
"""

from collections.abc import Iterable
from typing import Literal, TypeVar

T = TypeVar("T")

SortOrder = Literal["all", "recent", "oldest"]

SEARCH_FIELDS = ("name", "city", "state")


def matches(item: object, term: str) -> bool:
    """Case-insensitive substring match of term against name, city or state."""
    needle = term.strip().lower()
    if not needle:
        return True
    return any(needle in (getattr(item, field, None) or "").lower() for field in SEARCH_FIELDS)


def filter_clubs(items: Iterable[T], term: str | None) -> list[T]:
    if not term:
        return list(items)
    return [item for item in items if matches(item, term)]


def sort_requests(items: Iterable[T], order: SortOrder = "all") -> list[T]:
    """Order by created_at: newest first for "recent", oldest first for "oldest".

    "all" keeps the incoming order.
    """
    items = list(items)
    if order == "recent":
        return sorted(items, key=lambda item: item.created_at, reverse=True)
    if order == "oldest":
        return sorted(items, key=lambda item: item.created_at)
    return items
