"""
Pytest configuration and fixtures.
"""

import os
import sys
import tempfile

# Add app directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

# Set test environment
_test_db_fd, _test_db_path = tempfile.mkstemp(suffix=".db")
os.close(_test_db_fd)
os.environ["TESTING"] = "1"
os.environ["CACHE_DATABASE_PATH"] = _test_db_path

import pytest


@pytest.fixture(scope="session", autouse=True)
def cleanup_db():
    """Remove the test cache database after all tests."""
    yield
    if os.path.exists(_test_db_path):
        os.remove(_test_db_path)


def make_feed(total=None, updated="2024-06-01T12:00:00.000-05:00", published=()):
    """Build a Blogger JSON feed payload."""
    feed = {
        "updated": {"$t": updated},
        "entry": [{"published": {"$t": ts}} for ts in published],
    }
    if total is not None:
        feed["openSearch$totalResults"] = {"$t": str(total)}
    return {"feed": feed}


def make_timestamps(count):
    """count distinct timestamps with millisecond parts."""
    return [
        f"2024-05-{(i // 24) % 28 + 1:02d}T{23 - i % 24:02d}:{59 - (i // 672) % 60:02d}:00.{i % 1000:03d}-05:00"
        for i in range(count)
    ]
