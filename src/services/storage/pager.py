"""
Cursor pagination over blob listings.

Applied identically to candidates from every backend: the cursor is the key
of the last entry returned, and the next page starts at the first key strictly
greater than it.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from src.services.storage.base import ListedEntry

DEFAULT_PAGE_SIZE = 100


@dataclass
class Page:
    """A slice of sorted listing entries."""

    entries: list[ListedEntry] = field(default_factory=list)
    has_more: bool = False
    cursor: str | None = None


def normalize_limit(limit: int | None) -> int:
    """Resolve a requested page size, defaulting to 100 and never below 1."""
    if limit is None or isinstance(limit, bool):
        return DEFAULT_PAGE_SIZE
    try:
        value = int(limit)
    except (TypeError, ValueError):
        return DEFAULT_PAGE_SIZE
    if value == 0:
        return DEFAULT_PAGE_SIZE
    return max(1, value)


def paginate(
    entries: Iterable[ListedEntry],
    limit: int | None = None,
    cursor: str | None = None,
) -> Page:
    """
    Deduplicate, sort and slice listing entries into one page.

    Args:
        entries: Unordered candidates; the first entry seen for a key wins.
        limit: Page size (see ``normalize_limit``).
        cursor: Key of the last entry of the previous page.

    Returns:
        Page with ``cursor`` set only when more entries remain.
    """
    page_size = normalize_limit(limit)

    unique: dict[str, ListedEntry] = {}
    for entry in entries:
        unique.setdefault(entry.pathname, entry)
    ordered = sorted(unique.values(), key=lambda entry: entry.pathname)

    start = 0
    if cursor:
        start = next(
            (index for index, entry in enumerate(ordered) if entry.pathname > cursor),
            len(ordered),
        )

    window = ordered[start:start + page_size]
    has_more = start + len(window) < len(ordered)
    next_cursor = window[-1].pathname if has_more and window else None
    return Page(entries=window, has_more=has_more, cursor=next_cursor)


def filter_by_prefix(entries: Iterable[ListedEntry], prefix: str) -> list[ListedEntry]:
    """Keep entries whose key starts with the prefix (all entries for an empty prefix)."""
    if not prefix:
        return list(entries)
    return [entry for entry in entries if entry.pathname.startswith(prefix)]
