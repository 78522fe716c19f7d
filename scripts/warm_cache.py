#!/usr/bin/env python3
"""
Standalone script that prefetches timestamp sequences into the cache.

Run it after publishing so the first visitor of each listing gets complete page
links without waiting for the feed.

Usage:
    python -m scripts.warm_cache
    python -m scripts.warm_cache --label Recetas --label Viajes
"""

import asyncio
import logging
import sys
import os
from urllib.parse import quote

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cache import SqliteTimestampCache
from config import config
from pager import build_pagination

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def listing_urls(home_url: str, labels) -> list:
    """Listing page URLs for the home scope and each label."""
    urls = [home_url]
    for label in labels:
        urls.append(f"{home_url}search/label/{quote(label, safe='')}")
    return urls


def parse_labels(argv) -> list:
    labels = []
    args = list(argv)
    while args:
        arg = args.pop(0)
        if arg == "--label" and args:
            labels.append(args.pop(0))
    return labels


async def main(argv=None):
    """Warm the cache for the home listing and any labels given on the command line."""
    cache = SqliteTimestampCache(config.CACHE_DATABASE_PATH)
    labels = parse_labels(sys.argv[1:] if argv is None else argv)

    results = {}
    for url in listing_urls(config.BLOG_HOME_URL, labels):
        logger.info(f"Warming cache for {url}")
        result = await build_pagination(url, cache=cache, home_url=config.BLOG_HOME_URL)
        if result is None:
            logger.warning(f"Feed unavailable for {url}")
            results[url] = "failed"
        else:
            results[url] = "complete" if result.sequence_complete else "partial"

    logger.info(f"Cache warm complete: {results}")
    return results


if __name__ == "__main__":
    asyncio.run(main())
