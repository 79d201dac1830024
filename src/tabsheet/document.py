"""Tab page → :class:`~tabsheet.models.Song`.

Ultimate Guitar ships the whole tab inside a JSON blob:

    <div class="js-store" data-content="<html-entity-encoded JSON>">
    JSON path:
        store.page.data.tab
            .song_name / .artist_name / .votes / .tonality_name ...
        store.page.data.tab_view
            .wiki_tab.content → song body with [ch]..[/ch] and [tab]..[/tab]
            .versions         → other versions of the song
            .strummings       → strumming patterns
            .meta.capo / .meta.tuning

When that blob is missing or broken, the same fields are scraped out of the
entity-decoded text by literal markers (``"content":"`` ... ``","revision_id``
and friends), so partial pages still give partial songs.

The body is then split into ``[Title]`` sections, each section into rows, and
every row goes through :func:`~tabsheet.lines.parse_line`.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from bs4 import BeautifulSoup

from .adapters.utils import (
    find_json_objects,
    find_text_between,
    normalize_text,
    simplify_newlines,
    unescape_json_string,
)
from .exceptions import ChordError
from .lines import parse_line
from .models import Section, Song, SongMetadata, Strumming, Version

logger = logging.getLogger(__name__)

TAB_MARKER = ',"tab":{"id":'
TAB_OBJECT_MARKER = ',"tab":'
CONTENT_MARKER = '"content":"'
REVISION_MARKER = '","revision_id'
STRUMMINGS_MARKER = ',"strummings":'

INTRO_RE = re.compile(r"\[\s*intro\s*\]", re.IGNORECASE)

# [Verse 1], [Chorus] ... but not the [ch] / [tab] notation tags
SECTION_HEADER_RE = re.compile(r"\[(?!/?(?:ch|tab)\])([^\[\]\n]+)\]", re.IGNORECASE)

TAB_BLOCK_RE = re.compile(r"\[tab\](.*?)\[/tab\]", re.IGNORECASE | re.DOTALL)
STRAY_TAB_TAG_RE = re.compile(r"\[/?tab\]", re.IGNORECASE)


@dataclass
class Regions:
    """Raw text regions located by literal markers."""

    metadata: str
    body: str


class TabDocumentParser:
    """Parse raw tab pages into songs.

    With ``strict=False`` a row holding a malformed chord is logged and
    dropped instead of aborting the whole parse.
    """

    def __init__(self, strict: bool = True):
        self.strict = strict

    def parse(self, raw_payload: str) -> Song | None:
        """Return the song in *raw_payload*, or None when no body is found."""
        if not raw_payload:
            return None

        page_data = extract_page_data(raw_payload)
        text = normalize_text(raw_payload)
        regions = locate_regions(text)

        tab_view = _dict(page_data.get("tab_view"))
        tab_meta = _dict(page_data.get("tab")) or tab_view

        body = _dict(tab_view.get("wiki_tab")).get("content")
        if isinstance(body, str) and body:
            body = simplify_newlines(body)
        else:
            body = regions.body
        if not body.strip():
            logger.warning("No song body found in payload")
            return None

        pre_intro, song_text = split_by_intro(body)

        if not tab_meta:
            tab_meta = _scraped_tab_object(text, regions.metadata)
        strummings = tab_view.get("strummings")
        if not isinstance(strummings, list):
            strummings = _decode_after(text, STRUMMINGS_MARKER)
        if not isinstance(strummings, list):
            strummings = []
        versions = tab_view.get("versions")
        if not isinstance(versions, list):
            versions = []

        return Song(
            metadata=build_metadata(tab_meta, _dict(tab_view.get("meta"))),
            pre_intro=pre_intro,
            sections=[
                self.parse_section(title, content)
                for title, content in split_to_sections(song_text)
            ],
            versions=[build_version(v) for v in versions if isinstance(v, dict)],
            strummings=[build_strumming(s) for s in strummings if isinstance(s, dict)],
        )

    def parse_section(self, title: str | None, content: str) -> Section:
        section = Section(title=title)
        for row in split_to_lines(content):
            try:
                section.lines.append(parse_line(row))
            except ChordError as exc:
                if self.strict:
                    raise
                logger.warning("Skipping row %r in section %r: %s", row, title, exc)
        return section


# ---------------------------------------------------------------------------
# Locating regions
# ---------------------------------------------------------------------------


def extract_page_data(raw_payload: str) -> dict:
    """Return ``store.page.data`` from the page JSON, or ``{}``.

    Tries the ``js-store`` ``data-content`` attribute first, then the legacy
    ``__NEXT_DATA__`` script.
    """
    if "data-content" not in raw_payload and "__NEXT_DATA__" not in raw_payload:
        return {}
    soup = BeautifulSoup(raw_payload, "html.parser")

    store_div = soup.find("div", class_="js-store") or soup.find(attrs={"data-content": True})
    if store_div and store_div.get("data-content"):
        try:
            data = json.loads(store_div["data-content"])
            return _dict(data["store"]["page"]["data"])
        except (KeyError, TypeError, ValueError):
            logger.debug("data-content attribute holds no page data")

    script_tag = soup.find("script", id="__NEXT_DATA__")
    if script_tag and script_tag.string:
        try:
            data = json.loads(script_tag.string)
            return _dict(data["props"]["pageProps"]["data"])
        except (KeyError, TypeError, ValueError):
            logger.debug("__NEXT_DATA__ holds no page data")

    return {}


def locate_regions(text: str) -> Regions:
    """Cut the tab metadata and the song body out of decoded page text.

    Every lookup fails soft: a missing marker gives an empty region.  The
    pre-intro text is the part of the body before ``[Intro]``, see
    :func:`split_by_intro`.
    """
    body = find_text_between(CONTENT_MARKER, REVISION_MARKER, text)
    return Regions(
        metadata=find_text_between(TAB_MARKER, CONTENT_MARKER, text),
        body=simplify_newlines(unescape_json_string(body)),
    )


def split_by_intro(content: str) -> tuple[str, str]:
    """Split at the first ``[Intro]`` marker; ``("", content)`` if there is none."""
    m = INTRO_RE.search(content)
    if not m:
        return "", content
    return content[:m.start()], content[m.start():]


def _scraped_tab_object(text: str, metadata_region: str) -> dict:
    """Recover the ``tab`` record when there is no page JSON to read it from."""
    for candidate in find_json_objects(text, TAB_OBJECT_MARKER, string_aware=True):
        return json.loads(candidate)
    if not metadata_region.strip():
        return {}
    # The region starts right after '"id":', e.g. '123,"song_id":9,'
    try:
        record = json.loads('{"id":' + metadata_region.strip().rstrip(",") + "}")
    except ValueError:
        logger.debug("Could not decode scraped tab metadata")
        return {}
    return record if isinstance(record, dict) else {}


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _decode_after(text: str, marker: str) -> Any:
    index = text.find(marker)
    if index == -1:
        return None
    try:
        value, _ = json.JSONDecoder().raw_decode(text, index + len(marker))
    except ValueError:
        logger.debug("Could not decode JSON after %r", marker)
        return None
    return value


# ---------------------------------------------------------------------------
# Sections and rows
# ---------------------------------------------------------------------------


def split_to_sections(content: str) -> list[tuple[str | None, str]]:
    """Split a song body into ``(title, text)`` pairs.

    Text before the first header becomes an untitled section.  Blank input
    gives a single empty placeholder section.
    """
    if not content.strip():
        return [(None, "")]

    headers = [m for m in SECTION_HEADER_RE.finditer(content) if m.group(1).strip()]
    sections: list[tuple[str | None, str]] = []

    lead = content[:headers[0].start()] if headers else content
    if lead.strip():
        sections.append((None, lead))

    for i, m in enumerate(headers):
        end = headers[i + 1].start() if i + 1 < len(headers) else len(content)
        sections.append((m.group(1).strip(), content[m.end():end]))

    return sections


def split_to_lines(content: str) -> list[str]:
    """Split section text into rows.

    A ``[tab]...[/tab]`` span is one row with its inner newlines kept;
    elsewhere every non-blank line is a row of its own.
    """
    rows: list[str] = []
    pos = 0
    for m in TAB_BLOCK_RE.finditer(content):
        rows.extend(_plain_rows(content[pos:m.start()]))
        if m.group(1).strip():
            rows.append(m.group(1))
        pos = m.end()
    rows.extend(_plain_rows(content[pos:]))
    return rows


def _plain_rows(chunk: str) -> list[str]:
    chunk = STRAY_TAB_TAG_RE.sub("", chunk)
    return [line.strip() for line in chunk.split("\n") if line.strip()]


# ---------------------------------------------------------------------------
# Metadata records
# ---------------------------------------------------------------------------


def _int(value: Any, default: int | None = 0) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float(value: Any, default: float | None = 0.0) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _str(value: Any) -> str | None:
    return str(value) if value not in (None, "") else None


def _tuning(value: Any) -> str | None:
    if isinstance(value, dict):
        return _str(value.get("value") or value.get("name"))
    return _str(value)


def build_metadata(tab: dict, meta: dict) -> SongMetadata:
    return SongMetadata(
        id=_int(tab.get("id")),
        song_id=_int(tab.get("song_id")),
        song_name=tab.get("song_name") or "",
        artist_id=_int(tab.get("artist_id")),
        artist_name=tab.get("artist_name") or "",
        votes=_int(tab.get("votes")),
        type=tab.get("type") or "",
        tab_url=tab.get("tab_url") or "",
        tonality_name=_str(tab.get("tonality_name")),
        capo=_int(meta.get("capo", tab.get("capo")), None),
        tuning=_tuning(meta.get("tuning", tab.get("tuning"))),
        difficulty=_str(tab.get("difficulty")),
        rating=_float(tab.get("rating"), None),
        version=_int(tab.get("version"), None),
        version_description=_str(tab.get("version_description")),
    )


def build_version(record: dict) -> Version:
    return Version(
        id=_int(record.get("id")),
        version=_int(record.get("version")),
        votes=_int(record.get("votes")),
        rating=_float(record.get("rating")),
        type=record.get("type") or "",
        tab_url=record.get("tab_url") or "",
        tonality_name=_str(record.get("tonality_name")),
        capo=_int(record.get("capo"), None),
        tuning=_tuning(record.get("tuning")),
        version_description=_str(record.get("version_description")),
    )


def build_strumming(record: dict) -> Strumming:
    measures = []
    for item in record.get("measures") or []:
        value = item.get("measure") if isinstance(item, dict) else item
        if _int(value, None) is not None:
            measures.append(int(value))
    return Strumming(
        part=record.get("part") or "",
        denominator=_int(record.get("denuminator", record.get("denominator")), 4),
        bpm=_int(record.get("bpm")),
        is_triplet=bool(record.get("is_triplet")),
        measures=measures,
    )
