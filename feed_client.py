"""
Blogger JSON feed client for post counts and publication timestamps.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from config import config
from context import Home, Label, Search, Scope, parse_positive_int
from cursor import TimestampSequence, normalize_timestamp


logger = logging.getLogger(__name__)

FEED_PATH = "feeds/posts/summary"
USER_AGENT = "BloggerPagination/1.0"


class FeedError(Exception):
    """Exception for Blogger feed errors."""
    pass


@dataclass
class FeedSummary:
    """What one feed request tells us about a collection."""
    total_results: Optional[int]
    updated: Optional[str]
    timestamps: List[str] = field(default_factory=list)


def feed_url(home_url: str, scope: Scope) -> str:
    """
    Feed endpoint for a scope.

    Labels are addressed by path (/-/<label>); search queries go in the q parameter.
    """
    if not home_url.endswith("/"):
        home_url += "/"
    if isinstance(scope, Label):
        return f"{home_url}{FEED_PATH}/-/{quote(scope.name, safe='')}"
    if isinstance(scope, (Home, Search)):
        return f"{home_url}{FEED_PATH}"
    raise TypeError(f"Unknown scope: {scope!r}")


def feed_params(scope: Scope, max_results: int, start_index: Optional[int] = None) -> Dict[str, Any]:
    """Query parameters for a feed request. start_index is 1-based, as Blogger expects."""
    params: Dict[str, Any] = {"alt": "json", "max-results": max_results}
    if start_index is not None:
        params["start-index"] = start_index
    if isinstance(scope, Search):
        params["q"] = scope.query
    return params


def _feed(data: Any) -> Dict[str, Any]:
    if isinstance(data, dict) and isinstance(data.get("feed"), dict):
        return data["feed"]
    return {}


def parse_total_results(data: Any) -> Optional[int]:
    """Read feed.openSearch$totalResults.$t; None if missing, zero or unparseable."""
    node = _feed(data).get("openSearch$totalResults")
    if not isinstance(node, dict):
        return None
    return parse_positive_int(node.get("$t"))


def parse_updated(data: Any) -> Optional[str]:
    """Read the collection-level last-updated marker (feed.updated.$t)."""
    node = _feed(data).get("updated")
    if not isinstance(node, dict):
        return None
    return normalize_timestamp(node.get("$t"))


def parse_entry_timestamps(data: Any) -> List[str]:
    """Read feed.entry[].published.$t in feed order, with sub-seconds stripped."""
    entries = _feed(data).get("entry")
    if not isinstance(entries, list):
        return []

    timestamps = []
    for entry in entries:
        published = entry.get("published") if isinstance(entry, dict) else None
        value = normalize_timestamp(published.get("$t")) if isinstance(published, dict) else None
        if value:
            timestamps.append(value)
    return timestamps


async def _get_feed_json(client: httpx.AsyncClient, url: str, params: Dict[str, Any]) -> Any:
    try:
        response = await client.get(
            url,
            params=params,
            headers={"User-Agent": USER_AGENT},
            timeout=config.FEED_TIMEOUT,
            follow_redirects=True,
        )
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise FeedError(f"HTTP error: {e}")

    try:
        return response.json()
    except ValueError as e:
        raise FeedError(f"Invalid feed JSON: {e}")


async def fetch_feed_summary(
    client: httpx.AsyncClient,
    home_url: str,
    scope: Scope,
    max_results: int = 1,
) -> FeedSummary:
    """
    Fetch the total count, last-updated marker and the first posts of a collection.

    Args:
        client: Shared httpx client
        home_url: Blog root URL
        scope: Collection to query
        max_results: How many leading timestamps to bring back with the summary

    Returns:
        FeedSummary

    Raises:
        FeedError: If the request fails or the response is not JSON
    """
    data = await _get_feed_json(client, feed_url(home_url, scope), feed_params(scope, max_results))
    return FeedSummary(
        total_results=parse_total_results(data),
        updated=parse_updated(data),
        timestamps=parse_entry_timestamps(data),
    )


async def fetch_timestamp_batch(
    client: httpx.AsyncClient,
    home_url: str,
    scope: Scope,
    start: int,
    size: int,
) -> List[str]:
    """
    Fetch the timestamps of posts start..start+size-1 (0-based).

    Raises:
        FeedError: If the request fails or the response is not JSON
    """
    data = await _get_feed_json(
        client,
        feed_url(home_url, scope),
        feed_params(scope, size, start_index=start + 1),
    )
    return parse_entry_timestamps(data)[:size]


async def fetch_timestamp_sequence(
    client: httpx.AsyncClient,
    home_url: str,
    scope: Scope,
    total_items: int,
    batch_size: Optional[int] = None,
    first_batch: Optional[List[str]] = None,
) -> TimestampSequence:
    """
    Fetch every post timestamp of a collection, newest first.

    All batches are requested concurrently. A failed batch is logged and leaves a
    gap in the sequence instead of failing the whole fetch.

    Args:
        client: Shared httpx client
        home_url: Blog root URL
        scope: Collection to query
        total_items: Number of posts in the collection
        batch_size: Posts per request (capped by Blogger at 150)
        first_batch: Timestamps already known from offset 0 (e.g. from the summary)

    Returns:
        TimestampSequence of length total_items
    """
    batch_size = parse_positive_int(batch_size) or config.FEED_BATCH_SIZE
    batches: Dict[int, List[str]] = {}

    starts = list(range(0, max(total_items, 0), batch_size))
    if first_batch and starts:
        batches[0] = list(first_batch[:batch_size])
        if len(first_batch) >= min(batch_size, total_items):
            starts = starts[1:]

    results = await asyncio.gather(
        *(fetch_timestamp_batch(client, home_url, scope, start, batch_size) for start in starts),
        return_exceptions=True,
    )

    for start, result in zip(starts, results):
        if isinstance(result, FeedError):
            logger.warning(f"Timestamp batch at offset {start} failed: {result}")
            continue
        if isinstance(result, BaseException):
            raise result
        batches[start] = result

    sequence = TimestampSequence.from_batches(batches, total_items)
    if not sequence.is_complete:
        logger.info(f"Timestamp sequence for {home_url} is incomplete ({len(starts)} batches requested)")
    return sequence


async def fetch_timestamp_at(home_url: str, scope: Scope, ordinal: int) -> Optional[str]:
    """
    Fetch the timestamp of the single post at a 0-based position.

    Used to resolve one page link on demand when the full sequence is not available.

    Returns:
        Normalized timestamp, or None if the feed has no post there

    Raises:
        FeedError: If the request fails or the response is not JSON
    """
    if ordinal < 0:
        return None

    async with httpx.AsyncClient() as client:
        timestamps = await fetch_timestamp_batch(client, home_url, scope, ordinal, 1)

    return timestamps[0] if timestamps else None
