"""Shared scraping utilities used by the parsers and site adapters.

  1. decode_html() / simplify_newlines() / normalize_text(): clean raw payloads
  2. find_text_between(): substring between two literal delimiters
  3. unescape_json_string(): undo JSON string escaping of scraped text
  4. find_json_objects(): balanced-brace JSON objects inside arbitrary text

None of these raise on missing content: absence is an empty string or list.
"""

import html as html_module
import json
import logging
import re
from collections.abc import Iterator

logger = logging.getLogger(__name__)

_JSON_ESCAPE_RE = re.compile(r'\\(["\\/bfnrt]|u[0-9a-fA-F]{4})')
_JSON_ESCAPES = {"b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t"}


# ---------------------------------------------------------------------------
# Text normalisation
# ---------------------------------------------------------------------------


def decode_html(text: str | None) -> str:
    """Decode HTML entities (``&amp;``, ``&quot;``, ``&#39;`` ...)."""
    if not text:
        return ""
    return html_module.unescape(text)


def simplify_newlines(text: str | None) -> str:
    """Normalise ``\\r\\n`` and bare ``\\r`` to ``\\n``."""
    if not text:
        return ""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def normalize_text(text: str | None) -> str:
    return simplify_newlines(decode_html(text))


def find_text_between(start: str, end: str, text: str) -> str:
    """Return the text between the first *start* and the next *end* after it.

    Returns ``""`` if either delimiter is missing.
    """
    start_index = text.find(start)
    if start_index == -1:
        return ""
    end_index = text.find(end, start_index + len(start))
    if end_index == -1:
        return ""
    return text[start_index + len(start):end_index]


def unescape_json_string(text: str) -> str:
    """Undo JSON string escaping (``\\n``, ``\\"``, ``\\u00e9`` ...).

    Used on text cut straight out of a JSON document rather than decoded by
    :mod:`json`.  Unknown escapes are left as they are.
    """

    def _replace(m: re.Match) -> str:
        esc = m.group(1)
        if esc[0] == "u":
            return chr(int(esc[1:], 16))
        return _JSON_ESCAPES.get(esc, esc)

    return _JSON_ESCAPE_RE.sub(_replace, text)


# ---------------------------------------------------------------------------
# JSON fragments
# ---------------------------------------------------------------------------


def find_json_objects(text: str, marker: str, *, string_aware: bool = False) -> list[str]:
    """Return every well-formed JSON object that follows an occurrence of *marker*.

    From each occurrence of *marker* the scan skips to the first ``{`` and
    counts brace depth until it returns to zero.  Candidates that
    :func:`json.loads` rejects are skipped.  Scanning resumes one character
    after the marker occurrence, not after the object, so overlapping
    candidates are still seen.

    By default every brace counts, including braces inside JSON string
    values.  Pass ``string_aware=True`` to ignore braces inside ``"..."``.
    """
    return [fragment for _, fragment in iter_json_objects(text, marker, string_aware=string_aware)]


def iter_json_objects(text: str, marker: str, *, string_aware: bool = False) -> Iterator[tuple[int, str]]:
    """Like :func:`find_json_objects`, yielding ``(marker_offset, fragment)`` pairs."""
    if not text or not marker:
        return

    pos = text.find(marker)
    while pos != -1:
        candidate = _extract_object(text, pos, string_aware)
        if candidate is not None:
            try:
                json.loads(candidate)
            except ValueError:
                logger.debug("Skipping malformed JSON fragment at offset %d", pos)
            else:
                yield pos, candidate
        pos = text.find(marker, pos + 1)


def _extract_object(text: str, start: int, string_aware: bool) -> str | None:
    open_pos = text.find("{", start)
    if open_pos == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(open_pos, len(text)):
        char = text[i]
        if string_aware:
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
                continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[open_pos:i + 1]
    return None
