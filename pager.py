"""
Builds the numbered pagination for one page load.

Detects the scope and current page, fetches the post count and timestamps (through
the cache), plans the number strip, resolves every link and renders the HTML.
Feed failures never escape: the result is simply "no pagination".
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from cache import CacheEntry, TimestampCache, cache_key, is_stale
from config import config
from context import (
    PaginationContext, Scope, build_context, detect_scope, effective_total,
    home_url_from, items_per_page_from_url,
)
from cursor import Deferred, TimestampSequence, cursor_url, detect_current_page, resolve
from feed_client import FeedError, FeedSummary, fetch_feed_summary, fetch_timestamp_at, fetch_timestamp_sequence
from pagination import DisplaySlot, EllipsisSlot, PageSlot, Paginator, plan, total_pages_for
from render import PageLink, find_items_per_page, render_pagination


logger = logging.getLogger(__name__)

ELLIPSIS_LABEL = "..."


@dataclass
class PaginationResult:
    """Everything produced for one page load."""
    context: PaginationContext
    slots: List[DisplaySlot]
    links: List[PageLink]
    page_info: Dict[str, Any]
    prev_link: Optional[PageLink] = None
    next_link: Optional[PageLink] = None
    html: str = ""
    sequence_complete: bool = True
    from_cache: bool = False

    @property
    def visible(self) -> bool:
        return bool(self.slots)

    def to_dict(self) -> Dict[str, Any]:
        scope = self.context.scope
        return {
            "visible": self.visible,
            "scope": type(scope).__name__.lower(),
            "label": getattr(scope, "name", None),
            "query": getattr(scope, "query", None),
            "current_page": self.context.current_page,
            "total_pages": self.context.total_pages,
            "total_items": self.context.total_items,
            "items_per_page": self.context.items_per_page,
            "links": [link.to_dict() for link in self.links],
            "prev": self.prev_link.to_dict() if self.prev_link else None,
            "next": self.next_link.to_dict() if self.next_link else None,
            "sequence_complete": self.sequence_complete,
            "from_cache": self.from_cache,
        }


@asynccontextmanager
async def _http_client(client: Optional[httpx.AsyncClient]):
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient() as own_client:
        yield own_client


def _href(target_page: int, context: PaginationContext, sequence: TimestampSequence) -> Optional[str]:
    target = resolve(target_page, context, sequence)
    if isinstance(target, Deferred):
        logger.debug(f"Page {target.page} deferred, post #{target.ordinal} not loaded")
        return None
    return target


def build_links(
    slots: List[DisplaySlot],
    context: PaginationContext,
    sequence: TimestampSequence,
) -> List[PageLink]:
    """Resolve planned slots into renderable links."""
    links = []
    for slot in slots:
        if isinstance(slot, EllipsisSlot):
            links.append(PageLink(
                kind="ellipsis",
                label=ELLIPSIS_LABEL,
                page=slot.jump_target,
                href=_href(slot.jump_target, context, sequence),
            ))
        elif isinstance(slot, PageSlot) and slot.is_active:
            links.append(PageLink(kind="current", label=str(slot.number), page=slot.number))
        elif isinstance(slot, PageSlot):
            links.append(PageLink(
                kind="page",
                label=str(slot.number),
                page=slot.number,
                href=_href(slot.number, context, sequence),
            ))
        else:
            raise TypeError(f"Unknown slot: {slot!r}")
    return links


async def _load_sequence(
    client: httpx.AsyncClient,
    home_url: str,
    scope: Scope,
    summary: FeedSummary,
    total_items: int,
    cache: Optional[TimestampCache],
    settings,
):
    """Returns (sequence, from_cache)."""
    key = cache_key(settings.CACHE_NAMESPACE, home_url, scope)
    entry = cache.get(key) if cache is not None else None

    if not is_stale(entry, summary.updated) and entry.total_items == total_items:
        logger.debug(f"Using cached timestamps for {key}")
        return TimestampSequence(entry.timestamps), True

    sequence = await fetch_timestamp_sequence(
        client, home_url, scope, total_items,
        batch_size=settings.FEED_BATCH_SIZE,
        first_batch=summary.timestamps,
    )

    # Partial sequences are not cached so the next load retries the missing batches
    if cache is not None and sequence.is_complete:
        cache.put(key, CacheEntry(updated=summary.updated, total_items=total_items, timestamps=sequence.to_list()))

    return sequence, False


async def build_pagination(
    page_url: str,
    document_html: Optional[str] = None,
    *,
    cache: Optional[TimestampCache] = None,
    settings=config,
    home_url: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[PaginationResult]:
    """
    Build the pagination for the page at page_url.

    Args:
        page_url: URL of the page being viewed
        document_html: Page markup, used to discover the posts-per-page setting
        cache: Timestamp cache (read once, written once)
        settings: Config
        home_url: Blog root; defaults to the origin of page_url
        client: Shared httpx client, mostly for tests

    Returns:
        PaginationResult (possibly hidden), or None if the feed could not be read
    """
    home_url = home_url or home_url_from(page_url, settings.BLOG_HOME_URL)
    scope = detect_scope(page_url)
    items_per_page = (
        find_items_per_page(document_html, settings=settings)
        or items_per_page_from_url(page_url)
        or settings.ITEMS_PER_PAGE
    )

    try:
        async with _http_client(client) as http:
            summary = await fetch_feed_summary(http, home_url, scope, max_results=settings.FEED_BATCH_SIZE)
            total_items = effective_total(summary.total_results, items_per_page)

            if total_pages_for(total_items, items_per_page) > 1:
                sequence, from_cache = await _load_sequence(
                    http, home_url, scope, summary, total_items, cache, settings
                )
            else:
                sequence, from_cache = TimestampSequence(), False
    except FeedError as e:
        logger.warning(f"Pagination skipped for {page_url}: {e}")
        return None

    current_page = min(
        detect_current_page(page_url, items_per_page, sequence),
        total_pages_for(total_items, items_per_page),
    )
    context = build_context(
        home_url, scope, items_per_page, current_page, total_items,
        default_items_per_page=settings.ITEMS_PER_PAGE,
    )

    slots = plan(context.current_page, context.total_pages, settings.MAX_VISIBLE_PAGES)
    page_info = Paginator(context.current_page, context.items_per_page).get_page_info(context.total_items)

    result = PaginationResult(
        context=context,
        slots=slots,
        links=build_links(slots, context, sequence),
        page_info=page_info,
        sequence_complete=sequence.is_complete,
        from_cache=from_cache,
    )

    if result.visible:
        if page_info["has_prev"]:
            result.prev_link = PageLink(
                kind="prev",
                label=settings.PREV_LABEL,
                page=page_info["prev_page"],
                href=_href(page_info["prev_page"], context, sequence),
            )
        if page_info["has_next"]:
            result.next_link = PageLink(
                kind="next",
                label=settings.NEXT_LABEL,
                page=page_info["next_page"],
                href=_href(page_info["next_page"], context, sequence),
            )
        result.html = render_pagination(
            result.links, page_info, result.prev_link, result.next_link, settings=settings
        )

    logger.info(
        f"Pagination for {page_url}: page {context.current_page}/{context.total_pages}, "
        f"{len(slots)} slots, cached={from_cache}"
    )
    return result


async def resolve_page_url(
    page_url: str,
    target_page: int,
    *,
    sequence: Optional[TimestampSequence] = None,
    cache: Optional[TimestampCache] = None,
    settings=config,
    home_url: Optional[str] = None,
) -> Optional[str]:
    """
    Resolve one page link, fetching the single timestamp it needs if necessary.

    Args:
        page_url: URL of the page the link is on (gives scope and page size)
        target_page: Page to resolve
        sequence: Already-loaded timestamps, if any
        cache: Timestamp cache consulted when no sequence is given
        settings: Config
        home_url: Blog root; defaults to the origin of page_url

    Returns:
        The page URL, or None if the feed has no post at that position or failed
    """
    home_url = home_url or home_url_from(page_url, settings.BLOG_HOME_URL)
    context = build_context(
        home_url,
        detect_scope(page_url),
        items_per_page_from_url(page_url) or settings.ITEMS_PER_PAGE,
        1,
        None,
        default_items_per_page=settings.ITEMS_PER_PAGE,
    )

    if sequence is None and cache is not None:
        entry = cache.get(cache_key(settings.CACHE_NAMESPACE, context.home_url, context.scope))
        if entry is not None:
            sequence = TimestampSequence(entry.timestamps)

    target = resolve(target_page, context, sequence or TimestampSequence())
    if not isinstance(target, Deferred):
        return target

    try:
        timestamp = await fetch_timestamp_at(context.home_url, context.scope, target.ordinal)
    except FeedError as e:
        logger.warning(f"Could not resolve page {target.page} for {page_url}: {e}")
        return None

    if timestamp is None:
        logger.info(f"No post at position {target.ordinal} for {page_url}")
        return None

    return cursor_url(context, target.page, timestamp)
