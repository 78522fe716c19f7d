"""
Cursor resolution for Blogger's "updated-max" pagination.

Blogger cannot jump to page N directly. It can only list posts strictly older than a
timestamp, so the link to page N carries the timestamp of the last post of page N-1.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Union
from urllib.parse import urlsplit, parse_qs, quote, urlencode

from context import Home, Label, Search, PaginationContext, parse_positive_int


PAGE_FRAGMENT_MARKER = "PageNo="
_SUBSECOND_RE = re.compile(r"(T\d{2}:\d{2}:\d{2})\.\d+")


def normalize_timestamp(timestamp: Optional[str]) -> Optional[str]:
    """
    Strip the sub-second part of an ISO-8601 timestamp.

    2024-03-10T08:15:00.001-05:00 -> 2024-03-10T08:15:00-05:00
    """
    if not isinstance(timestamp, str) or not timestamp:
        return None
    return _SUBSECOND_RE.sub(r"\1", timestamp.strip())


class TimestampSequence:
    """
    Newest-first publication timestamps, one slot per post.

    Slots whose batch could not be fetched are None, so a partially loaded sequence
    still answers for every index it does know.
    """

    def __init__(self, timestamps: Iterable[Optional[str]] = ()):
        self._timestamps: List[Optional[str]] = [normalize_timestamp(t) for t in timestamps]

    @classmethod
    def from_batches(cls, batches: Dict[int, List[str]], total_items: int) -> "TimestampSequence":
        """
        Join batches by their 0-based start offset (never by arrival order).

        Args:
            batches: Mapping of start offset -> timestamps of that batch
            total_items: Length of the full sequence

        Returns:
            TimestampSequence with None wherever no batch supplied a value
        """
        timestamps: List[Optional[str]] = [None] * max(total_items, 0)
        for start in sorted(batches):
            for i, value in enumerate(batches[start]):
                index = start + i
                if 0 <= index < len(timestamps):
                    timestamps[index] = value
        return cls(timestamps)

    def __len__(self) -> int:
        return len(self._timestamps)

    def get(self, index: int) -> Optional[str]:
        """Timestamp at index, or None when out of bounds or not yet loaded."""
        if 0 <= index < len(self._timestamps):
            return self._timestamps[index]
        return None

    def index_of(self, cursor: Optional[str]) -> Optional[int]:
        """Index of the post whose timestamp equals cursor (sub-seconds ignored)."""
        cursor = normalize_timestamp(cursor)
        if cursor is None:
            return None
        for index, value in enumerate(self._timestamps):
            if value == cursor:
                return index
        return None

    @property
    def is_complete(self) -> bool:
        return all(value is not None for value in self._timestamps)

    def to_list(self) -> List[Optional[str]]:
        return list(self._timestamps)


@dataclass(frozen=True)
class Deferred:
    """A page whose cursor is not known yet; ordinal is the post needed to resolve it."""
    page: int
    ordinal: int


ResourceLocator = str


def cursor_ordinal(target_page: int, items_per_page: int) -> int:
    """0-based position of the last post before target_page."""
    return (target_page - 1) * items_per_page - 1


def canonical_root(context: PaginationContext) -> ResourceLocator:
    """
    URL of page 1 for the context's scope.

    Page 1 is the natural starting state of the backend, so it only needs the
    sizing parameter.
    """
    scope = context.scope
    size = urlencode({"max-results": context.items_per_page})

    if isinstance(scope, Label):
        return f"{context.home_url}search/label/{quote(scope.name, safe='')}?{size}"
    if isinstance(scope, Search):
        return f"{context.home_url}search?{urlencode({'q': scope.query})}&{size}"
    if isinstance(scope, Home):
        return f"{context.home_url}?{size}"
    raise TypeError(f"Unknown scope: {scope!r}")


def cursor_url(context: PaginationContext, target_page: int, cursor: str) -> ResourceLocator:
    """URL of target_page given the timestamp of the last post before it."""
    scope = context.scope
    params = {
        "updated-max": cursor,
        "max-results": context.items_per_page,
        "start": (target_page - 1) * context.items_per_page,
    }

    if isinstance(scope, Label):
        base = f"{context.home_url}search/label/{quote(scope.name, safe='')}"
    elif isinstance(scope, Search):
        base = f"{context.home_url}search"
        params["q"] = scope.query
        params["by-date"] = "false"
    elif isinstance(scope, Home):
        base = f"{context.home_url}search"
    else:
        raise TypeError(f"Unknown scope: {scope!r}")

    return f"{base}?{urlencode(params)}#{PAGE_FRAGMENT_MARKER}{target_page}"


def resolve(
    target_page: int,
    context: PaginationContext,
    sequence: TimestampSequence,
) -> Union[ResourceLocator, Deferred]:
    """
    Map a page number to a navigable URL.

    Args:
        target_page: Page to link to (values below 1 are treated as 1)
        context: Current pagination context
        sequence: Newest-first post timestamps (possibly incomplete)

    Returns:
        The page URL, or Deferred when the needed timestamp has not been fetched
    """
    target_page = parse_positive_int(target_page) or 1
    if target_page == 1:
        return canonical_root(context)

    ordinal = cursor_ordinal(target_page, context.items_per_page)
    cursor = sequence.get(ordinal)
    if cursor is None:
        return Deferred(page=target_page, ordinal=ordinal)
    return cursor_url(context, target_page, cursor)


def _page_from_fragment(fragment: str) -> Optional[int]:
    if PAGE_FRAGMENT_MARKER not in fragment:
        return None
    value = fragment.split(PAGE_FRAGMENT_MARKER, 1)[1].split("&", 1)[0]
    return parse_positive_int(value)


def detect_current_page(
    url: str,
    items_per_page: int,
    sequence: Optional[TimestampSequence] = None,
) -> int:
    """
    Determine which page the URL shows.

    Checked in order: an explicit #PageNo= marker, a numeric start offset, then the
    updated-max cursor looked up in the sequence. Anything unusable falls through,
    and the default is page 1.

    Args:
        url: URL of the page being viewed
        items_per_page: Posts per page
        sequence: Newest-first post timestamps, if loaded

    Returns:
        Current page number (>= 1)
    """
    parts = urlsplit(url or "")
    params = parse_qs(parts.query)
    per_page = parse_positive_int(items_per_page) or 1

    page = _page_from_fragment(parts.fragment)
    if page is not None:
        return page

    start_values = params.get("start")
    if start_values:
        try:
            offset = int(start_values[0])
        except ValueError:
            offset = None
        if offset is not None and offset >= 0:
            return offset // per_page + 1

    cursor_values = params.get("updated-max")
    if cursor_values and sequence is not None:
        # an unencoded "+01:00" offset arrives as a space
        index = sequence.index_of(cursor_values[0].replace(" ", "+"))
        if index is not None:
            # index (N-1)*ipp - 1 is the boundary just before page N
            return (index + 1) // per_page + 1

    return 1
