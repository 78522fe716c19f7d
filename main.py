"""
Blogger Pagination - FastAPI Application

Serves the numbered pagination for Blogger listing pages as an HTML fragment, as
JSON, or injected into a page's markup, plus a redirect that resolves a single page
on demand.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse, RedirectResponse, JSONResponse
from pydantic import BaseModel, field_validator

from cache import SqliteTimestampCache, TimestampCache
from config import config
from pager import build_pagination, resolve_page_url
from render import find_items_per_page, inject_pagination

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

__version__ = "1.0.0"

_cache: Optional[TimestampCache] = None


def get_cache() -> TimestampCache:
    """Shared timestamp cache, created on first use."""
    global _cache
    if _cache is None:
        _cache = SqliteTimestampCache(config.CACHE_DATABASE_PATH)
    return _cache


def _validate_page_url(value: str) -> str:
    value = value.strip()
    if not value.startswith(("http://", "https://")):
        raise ValueError("url must be an absolute http(s) URL")
    return value


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    get_cache()
    logger.info(f"Pagination service started (cache: {config.CACHE_DATABASE_PATH})")
    yield


app = FastAPI(
    title="Blogger Pagination",
    version=__version__,
    lifespan=lifespan,
)


class InjectRequest(BaseModel):
    url: str
    html: str

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return _validate_page_url(v)


def _page_url(url: str) -> str:
    try:
        return _validate_page_url(url)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@app.get("/pagination", response_class=HTMLResponse)
async def pagination_fragment(url: str, cache: TimestampCache = Depends(get_cache)):
    """Pagination HTML fragment for a page; empty when hidden or the feed is unavailable."""
    result = await build_pagination(_page_url(url), cache=cache)
    return HTMLResponse(result.html if result else "")


@app.get("/api/pagination")
async def pagination_json(url: str, cache: TimestampCache = Depends(get_cache)):
    """Planned slots and resolved links for a page."""
    result = await build_pagination(_page_url(url), cache=cache)
    if result is None:
        return JSONResponse({"visible": False, "error": "feed unavailable"})
    return JSONResponse(result.to_dict())


@app.get("/go")
async def go_to_page(url: str, page: int = Query(..., ge=1), cache: TimestampCache = Depends(get_cache)):
    """Redirect to a page of the listing url belongs to, resolving its cursor on demand."""
    target = await resolve_page_url(_page_url(url), page, cache=cache)
    if target is None:
        raise HTTPException(status_code=404, detail=f"Page {page} is not available")
    return RedirectResponse(url=target, status_code=302)


@app.post("/inject", response_class=HTMLResponse)
async def inject(body: InjectRequest, cache: TimestampCache = Depends(get_cache)):
    """Return the submitted page markup with the pagination placed in its pager."""
    result = await build_pagination(body.url, body.html, cache=cache)
    if result is None:
        return HTMLResponse(inject_pagination(body.html, "", items_per_page=find_items_per_page(body.html)))
    return HTMLResponse(inject_pagination(body.html, result.html, items_per_page=result.context.items_per_page))
