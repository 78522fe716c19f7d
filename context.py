"""
Pagination context: which collection is being paginated and where we are in it.
"""

import math
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import urlsplit, parse_qs, unquote


LABEL_PATH_MARKER = "/search/label/"


@dataclass(frozen=True)
class Home:
    """The whole blog (home page and archive listings)."""


@dataclass(frozen=True)
class Label:
    """Posts filed under one label."""
    name: str


@dataclass(frozen=True)
class Search:
    """Posts matching a search query."""
    query: str


Scope = Union[Home, Label, Search]


def scope_token(scope: Scope) -> str:
    """Stable string identifying a scope, used for cache keys and logging."""
    if isinstance(scope, Label):
        return f"label:{scope.name}"
    if isinstance(scope, Search):
        return f"search:{scope.query}"
    if isinstance(scope, Home):
        return "home"
    raise TypeError(f"Unknown scope: {scope!r}")


def detect_scope(url: str) -> Scope:
    """
    Work out the scope from the current page URL.

    Label pages live under /search/label/<name>; search pages carry a non-empty q
    parameter; everything else is the home listing.

    Args:
        url: Full URL of the page being viewed

    Returns:
        Home, Label or Search
    """
    parts = urlsplit(url)

    if LABEL_PATH_MARKER in parts.path:
        name = parts.path.split(LABEL_PATH_MARKER, 1)[1].strip("/")
        if name:
            return Label(unquote(name))

    query = parse_qs(parts.query).get("q", [""])[0].strip()
    if query:
        return Search(query)

    return Home()


def home_url_from(url: str, fallback: str) -> str:
    """Blog root (scheme://host/) of a page URL, or fallback for relative URLs."""
    parts = urlsplit(url or "")
    if parts.scheme and parts.netloc:
        return f"{parts.scheme}://{parts.netloc}/"
    return fallback


def parse_positive_int(value) -> Optional[int]:
    """Parse a positive integer, returning None for anything else."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        value = int(value)
    try:
        number = int(str(value).strip())
    except ValueError:
        return None
    return number if number > 0 else None


def items_per_page_from_url(url: str) -> Optional[int]:
    """Read the max-results sizing parameter from a URL, if it has a usable one."""
    if not url:
        return None
    values = parse_qs(urlsplit(url).query).get("max-results")
    if not values:
        return None
    return parse_positive_int(values[0])


def effective_total(reported, items_per_page: int) -> int:
    """
    Total item count with the degraded fallback applied.

    Blogger sometimes reports 0 (or nothing usable) for the total. Substituting one
    page worth of items keeps total_pages at 1 so the control simply stays hidden.
    """
    total = parse_positive_int(reported)
    if total is None:
        return items_per_page
    return total


@dataclass(frozen=True)
class PaginationContext:
    """Everything derived once per page load."""
    home_url: str
    scope: Scope
    items_per_page: int
    current_page: int
    total_items: int

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total_items / self.items_per_page))


def build_context(
    home_url: str,
    scope: Scope,
    items_per_page,
    current_page,
    total_items,
    default_items_per_page: int = 10,
) -> PaginationContext:
    """
    Build a PaginationContext, clamping every anomalous input to a usable value.

    Args:
        home_url: Blog root URL
        scope: Home, Label or Search
        items_per_page: Posts per page (falls back to default_items_per_page)
        current_page: Detected current page (falls back to 1)
        total_items: Total reported by the feed (degraded fallback applied)
        default_items_per_page: Fallback page size

    Returns:
        PaginationContext
    """
    per_page = parse_positive_int(items_per_page) or default_items_per_page
    page = parse_positive_int(current_page) or 1
    total = effective_total(total_items, per_page)

    if not home_url.endswith("/"):
        home_url += "/"

    return PaginationContext(
        home_url=home_url,
        scope=scope,
        items_per_page=per_page,
        current_page=page,
        total_items=total,
    )
