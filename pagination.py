"""
Pagination utilities: page-window planning and prev/next bookkeeping.
"""

import math
from dataclasses import dataclass
from typing import Dict, Any, List, Union

from context import parse_positive_int


MIN_VISIBLE = 3
DEFAULT_MAX_VISIBLE = 5


@dataclass(frozen=True)
class PageSlot:
    """A clickable page number."""
    number: int
    is_active: bool = False


@dataclass(frozen=True)
class EllipsisSlot:
    """A gap in the number strip; clicking it jumps to jump_target."""
    jump_target: int


DisplaySlot = Union[PageSlot, EllipsisSlot]


def total_pages_for(total_items, items_per_page) -> int:
    """Number of pages needed for total_items, never less than 1."""
    per_page = parse_positive_int(items_per_page) or 1
    total = parse_positive_int(total_items) or 0
    return max(1, math.ceil(total / per_page))


def _window(current_page: int, total_pages: int, max_visible: int) -> range:
    if total_pages <= max_visible:
        return range(1, total_pages + 1)

    half = max_visible // 2
    if current_page <= half:
        return range(1, max_visible + 1)
    if current_page >= total_pages - half:
        return range(total_pages - max_visible + 1, total_pages + 1)
    start = current_page - half
    return range(start, start + max_visible)


def plan(current_page, total_pages, max_visible=DEFAULT_MAX_VISIBLE) -> List[DisplaySlot]:
    """
    Plan the slots of the page-number strip.

    The strip is hidden (empty plan) when there is only one page, and on page 1,
    since page 1 is always reachable through the blog's home link.

    Args:
        current_page: Page being viewed (clamped to 1..total_pages)
        total_pages: Total number of pages (clamped to >= 1)
        max_visible: Width of the window of consecutive numbers (raised to >= 3)

    Returns:
        Ordered list of PageSlot / EllipsisSlot, left to right
    """
    total_pages = parse_positive_int(total_pages) or 1
    current_page = min(parse_positive_int(current_page) or 1, total_pages)
    max_visible = max(parse_positive_int(max_visible) or MIN_VISIBLE, MIN_VISIBLE)

    if total_pages == 1 or current_page == 1:
        return []

    window = _window(current_page, total_pages, max_visible)
    first, last = window[0], window[-1]

    slots: List[DisplaySlot] = []
    if first > 1:
        slots.append(PageSlot(1))
        if first > 2:
            slots.append(EllipsisSlot(max(first - 1, 2)))

    for number in window:
        slots.append(PageSlot(number, is_active=number == current_page))

    if last < total_pages:
        if last < total_pages - 1:
            slots.append(EllipsisSlot(min(last + 1, total_pages - 1)))
        slots.append(PageSlot(total_pages))

    return slots


class Paginator:
    """
    Prev/next bookkeeping for a single page of a listing.
    """

    def __init__(self, page: int = 1, per_page: int = 10):
        """
        Initialize paginator.

        Args:
            page: Current page number (1-indexed)
            per_page: Number of items per page
        """
        self.page = parse_positive_int(page) or 1
        self.per_page = parse_positive_int(per_page) or 1

    def get_offset(self) -> int:
        """
        Number of items that precede this page (Blogger's "start" parameter).

        Returns:
            The offset value
        """
        return (self.page - 1) * self.per_page

    def get_page_info(self, total: int) -> Dict[str, Any]:
        """
        Get pagination info for templates.

        Args:
            total: Total number of items

        Returns:
            Dictionary with pagination details
        """
        total_pages = total_pages_for(total, self.per_page)
        page = min(self.page, total_pages)

        return {
            "current_page": page,
            "per_page": self.per_page,
            "total_items": total,
            "total_pages": total_pages,
            "has_prev": page > 1,
            "has_next": page < total_pages,
            "prev_page": page - 1 if page > 1 else None,
            "next_page": page + 1 if page < total_pages else None,
        }
