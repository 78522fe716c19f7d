"""
Tests for building the pagination of a page load end to end.
"""

import pytest
import respx
import httpx
from urllib.parse import quote

from bs4 import BeautifulSoup

from cache import MemoryTimestampCache, cache_key
from config import Config
from conftest import make_feed, make_timestamps
from context import Home, Label
from cursor import normalize_timestamp
from pager import build_pagination, resolve_page_url


BLOG = "https://myblog.blogspot.com/"
FEED = f"{BLOG}feeds/posts/summary"


class SmallBatches(Config):
    FEED_BATCH_SIZE = 100


def feed_handler(timestamps, total=None, updated="2024-06-01T12:00:00.000-05:00", fail_starts=()):
    """respx side effect serving a blog with the given newest-first timestamps."""
    reported = len(timestamps) if total is None else total

    def handler(request):
        start = int(request.url.params.get("start-index", "1")) - 1
        size = int(request.url.params["max-results"])
        if start in fail_starts:
            return httpx.Response(503, text="Service Unavailable")
        return httpx.Response(
            200,
            json=make_feed(total=reported, updated=updated, published=timestamps[start:start + size]),
        )
    return handler


def cursor_page_url(timestamps, page, items_per_page=10, base=f"{BLOG}search"):
    cursor = normalize_timestamp(timestamps[(page - 1) * items_per_page - 1])
    return f"{base}?updated-max={quote(cursor)}&max-results={items_per_page}"


class TestBuildPagination:
    """Test the whole page-load flow."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_hidden_on_first_page(self):
        """Test 47 posts at 10 per page shows nothing on page 1."""
        respx.get(FEED).mock(side_effect=feed_handler(make_timestamps(47)))

        result = await build_pagination(BLOG)

        assert result is not None
        assert result.visible is False
        assert result.html == ""
        assert result.context.total_pages == 5
        assert result.context.current_page == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_cursor_page_in_small_blog(self):
        """Test page 3 of 5 lists every page with 3 active and resolvable links."""
        timestamps = make_timestamps(47)
        respx.get(FEED).mock(side_effect=feed_handler(timestamps))

        result = await build_pagination(cursor_page_url(timestamps, 3))

        assert result.context.current_page == 3
        assert [link.label for link in result.links] == ["1", "2", "3", "4", "5"]
        assert [link.kind for link in result.links] == ["page", "page", "current", "page", "page"]
        assert all(link.href for link in result.links if link.kind == "page")
        assert result.links[0].href == f"{BLOG}?max-results=10"
        assert result.links[3].href.endswith("#PageNo=4")
        # The summary already carried every timestamp
        assert len(respx.calls) == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_prev_next_and_html(self):
        timestamps = make_timestamps(47)
        respx.get(FEED).mock(side_effect=feed_handler(timestamps))

        result = await build_pagination(cursor_page_url(timestamps, 3))

        assert result.prev_link.page == 2
        assert result.next_link.page == 4
        assert result.prev_link.href.endswith("#PageNo=2")
        soup = BeautifulSoup(result.html, "html.parser")
        assert soup.select_one("span.totalpages").get_text() == "Hoja 3 de 5"
        assert soup.select_one("span.current").get_text() == "3"

    @pytest.mark.asyncio
    @respx.mock
    async def test_large_blog_window(self):
        """Test page 10 of 20 gets first/last pages and both ellipses."""
        timestamps = make_timestamps(200)
        respx.get(FEED).mock(side_effect=feed_handler(timestamps))

        result = await build_pagination(f"{BLOG}search?max-results=10#PageNo=10")

        assert [link.label for link in result.links] == ["1", "...", "8", "9", "10", "11", "12", "...", "20"]
        assert result.links[1].page == 7
        assert result.links[7].page == 13
        assert result.links[1].href.endswith("#PageNo=7")

    @pytest.mark.asyncio
    @respx.mock
    async def test_degraded_total(self):
        """Test a zero total falls back to one page and hides the control."""
        respx.get(FEED).mock(side_effect=feed_handler(make_timestamps(5), total=0))

        result = await build_pagination(f"{BLOG}search?max-results=10#PageNo=2")

        assert result.context.total_items == 10
        assert result.context.total_pages == 1
        assert result.visible is False
        assert len(respx.calls) == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_network_failure_means_no_pagination(self):
        respx.get(FEED).mock(side_effect=httpx.ConnectError("Connection failed"))

        assert await build_pagination(f"{BLOG}#PageNo=3") is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_updated_marker(self):
        """Test a numeric feed updated marker still yields pagination."""
        respx.get(FEED).mock(side_effect=feed_handler(make_timestamps(47), updated=20240601))

        result = await build_pagination(f"{BLOG}#PageNo=3")

        assert result is not None
        assert result.visible is True
        assert result.context.current_page == 3

    @pytest.mark.asyncio
    @respx.mock
    async def test_items_per_page_from_markup(self):
        timestamps = make_timestamps(47)
        respx.get(FEED).mock(side_effect=feed_handler(timestamps))
        page = '<div id="blog-pager"><a class="blog-pager-older-link" href="/search?max-results=5">Older</a></div>'

        result = await build_pagination(f"{BLOG}#PageNo=2", page)

        assert result.context.items_per_page == 5
        assert result.context.total_pages == 10

    @pytest.mark.asyncio
    @respx.mock
    async def test_label_scope(self):
        timestamps = make_timestamps(30)
        respx.get(f"{FEED}/-/Recetas").mock(side_effect=feed_handler(timestamps))

        result = await build_pagination(f"{BLOG}search/label/Recetas?max-results=10#PageNo=2")

        assert result.context.scope == Label("Recetas")
        assert result.links[0].href == f"{BLOG}search/label/Recetas?max-results=10"
        assert result.links[2].href.startswith(f"{BLOG}search/label/Recetas?updated-max=")

    @pytest.mark.asyncio
    @respx.mock
    async def test_to_dict(self):
        timestamps = make_timestamps(47)
        respx.get(FEED).mock(side_effect=feed_handler(timestamps))

        data = (await build_pagination(f"{BLOG}search?q=pan&max-results=10#PageNo=2")).to_dict()

        assert data["visible"] is True
        assert data["scope"] == "search"
        assert data["query"] == "pan"
        assert data["label"] is None
        assert data["current_page"] == 2
        assert data["links"][1] == {"kind": "current", "label": "2", "page": 2, "href": None}


class TestBuildPaginationBatches:
    """Test sequence fetching, partial failures and caching."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_remaining_batches_fetched(self):
        timestamps = make_timestamps(320)
        respx.get(FEED).mock(side_effect=feed_handler(timestamps))

        result = await build_pagination(f"{BLOG}#PageNo=2", settings=SmallBatches)

        # Summary carries the first 100, then 100..199, 200..299 and 300..319
        assert len(respx.calls) == 4
        assert result.sequence_complete
        assert result.links[-1].label == "32"
        assert result.links[-1].href.endswith("#PageNo=32")

    @pytest.mark.asyncio
    @respx.mock
    async def test_failed_batch_defers_affected_links(self):
        """Test links whose cursor sits in a failed batch render inert."""
        timestamps = make_timestamps(320)
        respx.get(FEED).mock(side_effect=feed_handler(timestamps, fail_starts={100}))

        result = await build_pagination(f"{BLOG}#PageNo=15", settings=SmallBatches)

        by_label = {link.label: link for link in result.links}
        assert result.sequence_complete is False
        assert by_label["1"].href is not None
        # Pages 13..17 need posts 119..159, all in the failed batch
        for label in ("13", "14", "16", "17"):
            assert by_label[label].href is None
        assert by_label["32"].href is not None

    @pytest.mark.asyncio
    @respx.mock
    async def test_cache_reused_while_feed_unchanged(self):
        timestamps = make_timestamps(320)
        respx.get(FEED).mock(side_effect=feed_handler(timestamps))
        cache = MemoryTimestampCache()

        first = await build_pagination(f"{BLOG}#PageNo=2", cache=cache, settings=SmallBatches)
        calls_after_first = len(respx.calls)
        second = await build_pagination(f"{BLOG}#PageNo=5", cache=cache, settings=SmallBatches)

        assert first.from_cache is False
        assert second.from_cache is True
        assert len(respx.calls) == calls_after_first + 1
        assert cache.get(cache_key(SmallBatches.CACHE_NAMESPACE, BLOG, Home())).total_items == 320

    @pytest.mark.asyncio
    @respx.mock
    async def test_cache_refetched_when_feed_updated(self):
        timestamps = make_timestamps(320)
        route = respx.get(FEED).mock(side_effect=feed_handler(timestamps))
        cache = MemoryTimestampCache()

        await build_pagination(f"{BLOG}#PageNo=2", cache=cache, settings=SmallBatches)
        route.side_effect = feed_handler(timestamps, updated="2024-07-01T00:00:00.000-05:00")
        result = await build_pagination(f"{BLOG}#PageNo=2", cache=cache, settings=SmallBatches)

        assert result.from_cache is False
        entry = cache.get(cache_key(SmallBatches.CACHE_NAMESPACE, BLOG, Home()))
        assert entry.updated == "2024-07-01T00:00:00-05:00"

    @pytest.mark.asyncio
    @respx.mock
    async def test_partial_sequence_not_cached(self):
        timestamps = make_timestamps(320)
        respx.get(FEED).mock(side_effect=feed_handler(timestamps, fail_starts={200}))
        cache = MemoryTimestampCache()

        await build_pagination(f"{BLOG}#PageNo=2", cache=cache, settings=SmallBatches)

        assert cache.get(cache_key(SmallBatches.CACHE_NAMESPACE, BLOG, Home())) is None


class TestResolvePageUrl:
    """Test resolving a single page on demand."""

    @pytest.mark.asyncio
    async def test_page_one(self):
        url = await resolve_page_url(f"{BLOG}search/label/Recetas?max-results=10", 1)
        assert url == f"{BLOG}search/label/Recetas?max-results=10"

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetches_single_timestamp(self):
        timestamps = make_timestamps(30)
        respx.get(FEED).mock(side_effect=feed_handler(timestamps))

        url = await resolve_page_url(f"{BLOG}?max-results=10", 3)

        assert url.endswith("#PageNo=3")
        assert quote(normalize_timestamp(timestamps[19]), safe="") in url
        assert respx.calls[0].request.url.params["start-index"] == "20"

    @pytest.mark.asyncio
    @respx.mock
    async def test_page_past_the_end(self):
        respx.get(FEED).mock(side_effect=feed_handler(make_timestamps(30)))

        assert await resolve_page_url(f"{BLOG}?max-results=10", 9) is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_feed_failure(self):
        respx.get(FEED).mock(side_effect=httpx.ConnectError("Connection failed"))

        assert await resolve_page_url(f"{BLOG}?max-results=10", 3) is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_uses_cached_sequence(self):
        """Test a cached sequence resolves the page without a feed request."""
        timestamps = make_timestamps(30)
        route = respx.get(FEED).mock(side_effect=feed_handler(timestamps))
        cache = MemoryTimestampCache()
        await build_pagination(f"{BLOG}#PageNo=2", cache=cache)
        calls_after_load = route.call_count

        url = await resolve_page_url(f"{BLOG}?max-results=10", 3, cache=cache)

        assert url.endswith("#PageNo=3")
        assert quote(normalize_timestamp(timestamps[19]), safe="") in url
        assert route.call_count == calls_after_load

    @pytest.mark.asyncio
    @respx.mock
    async def test_cache_miss_fetches(self):
        timestamps = make_timestamps(30)
        respx.get(FEED).mock(side_effect=feed_handler(timestamps))

        url = await resolve_page_url(f"{BLOG}?max-results=10", 3, cache=MemoryTimestampCache())

        assert url.endswith("#PageNo=3")
        assert len(respx.calls) == 1
