"""Adapter for tabs.ultimate-guitar.com tab pages and title search.

Parsing is delegated to :class:`~tabsheet.document.TabDocumentParser` (tab
pages) and :mod:`tabsheet.search` (search pages).  When a
:class:`~tabsheet.cache.Cache` is attached, parsed songs and search results
are stored as plain JSON data under ``tab_<url>`` and
``search_<query>_<pages>``.
"""

import logging

from .base import SiteAdapter
from ..cache import Cache, CacheOptions
from ..document import TabDocumentParser
from ..exceptions import FetchError, ParseError
from ..models import SearchResult, Song, song_from_dict, song_to_dict
from ..search import search_pages, search_url, to_search_result

logger = logging.getLogger(__name__)

# Bump when the cached song layout changes.
SONG_CACHE_VERSION = "1"


class UltimateGuitarAdapter(SiteAdapter):
    """Fetch, parse and cache Ultimate Guitar tabs."""

    def __init__(
        self,
        parser: TabDocumentParser | None = None,
        cache: Cache | None = None,
        cache_options: CacheOptions | None = None,
        timeout: float = 15,
    ):
        super().__init__(timeout)
        self.parser = parser or TabDocumentParser()
        self.cache = cache
        self.cache_options = cache_options or CacheOptions(version=SONG_CACHE_VERSION)

    @classmethod
    def can_handle(cls, url: str) -> bool:
        return "ultimate-guitar.com/tab/" in url

    def extract(self, payload: str, url: str) -> Song:
        song = self.parser.parse(payload)
        if song is None:
            raise ParseError(url, "no song body found (tried js-store, __NEXT_DATA__ and text markers)")
        if not song.metadata.tab_url:
            song.metadata.tab_url = url
        return song

    # ------------------------------------------------------------------
    # Cached entry points
    # ------------------------------------------------------------------

    def get_song(self, url: str) -> Song | None:
        """Return the song at *url*, from the cache when possible.

        Fetch and parse failures are logged and give None.
        """
        if self.cache is None:
            try:
                return self.scrape(url)
            except (FetchError, ParseError) as exc:
                logger.error("Could not load %s: %s", url, exc)
                return None

        data = self.cache.get_or_fetch(
            f"tab_{url}",
            lambda: self.fetch(url),
            lambda payload: song_to_dict(self.extract(payload, url)),
            self.cache_options,
        )
        return song_from_dict(data) if data is not None else None

    def search(self, query: str, pages: int = 1) -> list[SearchResult]:
        """Title search over the first *pages* result pages."""
        key = f"search_{query.strip().lower()}_{pages}"
        records = self.cache.get(key, self.cache_options) if self.cache else None
        if records is None:
            records = search_pages(search_url(query), pages, self.fetch)
            # An aborted search is not worth remembering.
            if records and self.cache is not None:
                self.cache.set(key, records, self.cache_options)
        return [to_search_result(r) for r in records]
