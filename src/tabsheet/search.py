"""Search results page → deduplicated result records.

The search page embeds its results as a JSON list of flat records::

    [{"id":1,"song_id":123,"song_name":"...","votes":100,...},{"id":2,...}]

Records are cut out with :func:`~tabsheet.adapters.utils.iter_json_objects`
and kept as plain dicts so no field is lost.  Several records can share a
``song_id`` (different versions of a song); :func:`dedupe` keeps the one with
the most votes.
"""

import json
import logging
from collections.abc import Callable, Iterable
from urllib.parse import quote_plus

from .adapters.utils import decode_html, iter_json_objects
from .exceptions import FetchError
from .models import SearchResult

logger = logging.getLogger(__name__)

SEARCH_BASE_URL = "https://www.ultimate-guitar.com/search.php"

# The first record of the list follows "[", every later one follows ",".
RESULT_MARKERS = ('[{"id"', ',{"id"')
REQUIRED_FIELDS = ("id", "song_id", "song_name")


def extract_results(payload: str) -> list[dict]:
    """Return every raw result record embedded in *payload*.

    Fragments that fail to decode or lack ``id``/``song_id``/``song_name``
    are dropped.  Records come out in document order.  Never raises.
    """
    if not payload:
        return []
    text = decode_html(payload)

    hits = sorted(hit for marker in RESULT_MARKERS for hit in iter_json_objects(text, marker))

    results: list[dict] = []
    for _, fragment in hits:
        record = json.loads(fragment)
        if isinstance(record, dict) and all(f in record for f in REQUIRED_FIELDS):
            results.append(record)
    return results


def _votes(record: dict) -> int:
    try:
        return int(record.get("votes") or 0)
    except (TypeError, ValueError):
        return 0


def dedupe(results: Iterable[dict]) -> list[dict]:
    """Keep one record per ``song_id``: the one with the most votes.

    On a tie the record seen last wins.  Output follows the order in which
    each ``song_id`` first appeared.
    """
    best: dict = {}
    for record in results:
        key = record.get("song_id")
        current = best.get(key)
        if current is None or _votes(record) >= _votes(current):
            best[key] = record
    return list(best.values())


def page_url(base_url: str, page: int) -> str:
    return f"{base_url}page={page}&search_type=title&"


def search_url(query: str) -> str:
    """Base URL for a title search, ready for :func:`page_url`."""
    return f"{SEARCH_BASE_URL}?value={quote_plus(query)}&"


def search_pages(
    base_url: str, page_count: int, fetch_text: Callable[[str], str]
) -> list[dict]:
    """Fetch pages ``1..page_count`` in order, extract and dedupe once.

    Any failed page aborts the search and gives ``[]``.
    """
    results: list[dict] = []
    for page in range(1, page_count + 1):
        url = page_url(base_url, page)
        try:
            payload = fetch_text(url)
        except FetchError as exc:
            logger.error("Search aborted, could not fetch page %d: %s", page, exc)
            return []
        found = extract_results(payload)
        logger.info("Found %d results on page %d", len(found), page)
        results.extend(found)
    return dedupe(results)


def to_search_result(record: dict) -> SearchResult:
    """Summarise a raw record for display."""
    cover = (record.get("album_cover") or {}).get("web_album_cover") or {}
    return SearchResult(
        id=record["id"],
        song_id=record["song_id"],
        song_name=record["song_name"],
        artist_name=record.get("artist_name") or "",
        artist_id=record.get("artist_id"),
        votes=_votes(record),
        rating=float(record.get("rating") or 0),
        type=record.get("type") or "",
        tab_url=record.get("tab_url") or "",
        image_url=cover.get("small"),
    )
