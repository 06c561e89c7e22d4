import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from fetcher import FetchResponse
from library import LibraryService
from storage import LibraryStore, MemoryStore


class FakeFetcher:
    """Serves canned landing pages; unknown URLs answer 404."""

    def __init__(self, pages=None, error=None):
        self.pages = pages or {}
        self.error = error
        self.calls = []
        self.closed = False

    async def fetch(self, url):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        if url not in self.pages:
            return FetchResponse(url=url, status=404, text="")
        return FetchResponse(url=url, status=200, text=self.pages[url])

    async def close(self):
        self.closed = True


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def library(store):
    return LibraryService(LibraryStore(store, key="lnTracker.library"))


@pytest.fixture
def make_fetcher():
    def _make(pages=None, error=None):
        return FakeFetcher(pages=pages, error=error)
    return _make
