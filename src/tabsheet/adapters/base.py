"""HTTP retrieval shared by site adapters.

A site adapter owns one site: it says which URLs it accepts, retrieves
pages over HTTP and turns a tab page into a :class:`~tabsheet.models.Song`.
:meth:`SiteAdapter.fetch` is also the ``fetch_text`` callable that
:func:`tabsheet.search.search_pages` pulls result pages through.
"""

import logging
from abc import ABC, abstractmethod

import httpx

from ..exceptions import FetchError, UnsupportedSiteError
from ..models import Song

logger = logging.getLogger(__name__)

# Tab sites answer 403 to clients that do not look like a browser.
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


class SiteAdapter(ABC):
    headers: dict[str, str] = BROWSER_HEADERS

    def __init__(self, timeout: float = 15):
        self.timeout = timeout

    @classmethod
    @abstractmethod
    def can_handle(cls, url: str) -> bool:
        """Return True if *url* belongs to this adapter's site."""

    @classmethod
    def check_url(cls, url: str) -> None:
        """Raise UnsupportedSiteError unless :meth:`can_handle` accepts *url*."""
        if not cls.can_handle(url):
            raise UnsupportedSiteError(url)

    def fetch(self, url: str) -> str:
        """GET *url* and return the response body.

        Raises FetchError with the HTTP status, or status 0 when the request
        never got an answer.
        """
        logger.debug("Fetching %s", url)
        try:
            resp = httpx.get(url, headers=self.headers, follow_redirects=True, timeout=self.timeout)
        except httpx.RequestError as exc:
            raise FetchError(url, 0) from exc
        if resp.status_code != 200:
            raise FetchError(url, resp.status_code)
        return resp.text

    @abstractmethod
    def extract(self, payload: str, url: str) -> Song:
        """Turn a fetched page into a Song; ParseError when it holds none."""

    def scrape(self, url: str) -> Song:
        return self.extract(self.fetch(url), url)
