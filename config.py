"""
Centralized configuration for Blogger numbered pagination.

All configurable values are loaded from environment variables with sensible defaults.
"""

import os


def _normalize_home_url(url: str) -> str:
    """Blog root URLs are always joined against, so they must end in a slash."""
    url = url.strip()
    if not url.endswith("/"):
        url += "/"
    return url


def _positive_int_env(name: str, default: int) -> int:
    """
    Read a positive integer from the environment.

    Falls back to the default when the value is missing, non-numeric or not positive.
    """
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


class Config:
    """Application configuration loaded from environment variables."""

    # Blog being paginated (e.g. https://myblog.blogspot.com/)
    BLOG_HOME_URL: str = _normalize_home_url(os.getenv("BLOG_HOME_URL", "https://example.blogspot.com/"))

    # Pagination
    ITEMS_PER_PAGE: int = _positive_int_env("ITEMS_PER_PAGE", 10)
    MAX_VISIBLE_PAGES: int = _positive_int_env("MAX_VISIBLE_PAGES", 5)

    # Feed endpoint
    FEED_BATCH_SIZE: int = _positive_int_env("FEED_BATCH_SIZE", 150)  # Blogger caps max-results at 150
    FEED_TIMEOUT: float = float(_positive_int_env("FEED_TIMEOUT", 30))

    # Markup hooks
    PAGER_SELECTOR: str = os.getenv("PAGER_SELECTOR", "#blog-pager")
    NUMBERS_WRAPPER_CLASS: str = os.getenv("NUMBERS_WRAPPER_CLASS", "pagination-numbers-wrapper")
    OLDER_LINK_SELECTOR: str = os.getenv("OLDER_LINK_SELECTOR", ".blog-pager-older-link")
    NEWER_LINK_SELECTOR: str = os.getenv("NEWER_LINK_SELECTOR", ".blog-pager-newer-link")

    # Labels
    PREV_LABEL: str = os.getenv("PREV_LABEL", "Artículos más recientes")
    NEXT_LABEL: str = os.getenv("NEXT_LABEL", "Artículos anteriores")
    PAGE_INDICATOR: str = os.getenv("PAGE_INDICATOR", "Hoja {current} de {total}")

    # Timestamp cache
    CACHE_NAMESPACE: str = os.getenv("CACHE_NAMESPACE", "blogger-pagination")
    CACHE_DATABASE_PATH: str = os.getenv("CACHE_DATABASE_PATH", "pagination_cache.db")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Testing mode
    TESTING: bool = bool(os.getenv("TESTING", ""))


# Global config instance
config = Config()
