"""Row classifier: one printed row of a tab sheet → one typed :class:`Line`.

A row may span several physical lines, e.g. a chord line over a lyric line,
or the six strings of a ``[tab]`` block.  The pipeline:

  1. drop blank lines; a row of only ``*`` is a legend border
  2. pull out ``// comments`` and one repeat marker (``x3`` / ``3x``)
  3. rows made only of ``|`` dividers and chords are bar charts
  4. per physical line: extract_tab() → extract_chords() → lyric text
  5. combine the lines, rebasing every chord/tab offset onto the combined
     lyric string, and pick the line type from the feature table

Chord tokens use the ``[ch]Am[/ch]`` markup; tab strings look like
``e|--0--3--|``.
"""

import re

from .chords import parse_chord
from .exceptions import EmptyInputError
from .models import Bar, ChordPosition, Line, LineType, TabPosition, TabTechnique

# ---------------------------------------------------------------------------
# Regexes
# ---------------------------------------------------------------------------

CHORD_TOKEN_RE = re.compile(r"\[ch\](.*?)\[/ch\]")

REPEAT_RE = re.compile(r"(?:^|\s)(\d+[xX]|[xX]\d+)(?=\s|$)")

# "// play softly" at the end of a line.  Must follow whitespace so slides in
# tab strings ("5//7") are left alone.
COMMENT_RE = re.compile(r"(?:^|\s)//\s*(.*)$")

# What is left of a bar-chart line once its chords are removed.
BARS_RESIDUE_RE = re.compile(r"^[|\s()\[\]{}]*$")

EMPTY_PAIRS_RE = re.compile(r"\(\s*\)|\[\s*\]|\{\s*\}|''|\"\"")

LYRIC_CHARS_RE = re.compile(r"[^a-zA-Z0-9\s.,!?'-]")

STRING_NAMES = [
    "C", "C#", "Db", "D", "D#", "Eb", "E", "F", "F#",
    "Gb", "G", "G#", "Ab", "A", "A#", "Bb", "B", "e",
]  # fmt: skip

_FRET_CHARS = r"\d\-xgnhprtbsPMTRN()>/\\~"
_NAME_ALT = "|".join(re.escape(n) for n in sorted(STRING_NAMES, key=len, reverse=True))

# e|--0--3--|  or multi-measure e|--0--|--3--|
TAB_STRING_RE = re.compile(
    rf"(?<![A-Za-z#])({_NAME_ALT})\|([{_FRET_CHARS}]+(?:\|[{_FRET_CHARS}]+)*)\|?"
)

_DIGITS = "0123456789"
_TECHNIQUES = sorted(TabTechnique, key=lambda t: len(t.value), reverse=True)

# (has_chords, has_tabs, has_lyrics, is_repeat_only) → type; None = don't care
_PATTERNS: list[tuple[tuple[bool, bool, bool, bool | None], LineType]] = [
    ((True, True, True, None), LineType.ALL),
    ((True, True, False, None), LineType.CHORDS_AND_TABS),
    ((True, False, True, None), LineType.CHORDS_AND_LYRICS),
    ((True, False, False, None), LineType.CHORDS),
    ((False, True, True, None), LineType.TABS_AND_LYRICS),
    ((False, True, False, None), LineType.TABS),
    ((False, False, True, None), LineType.LYRICS),
    ((False, False, False, True), LineType.REPEATS),
]

_WITH_LYRICS = {
    LineType.LYRICS,
    LineType.CHORDS_AND_LYRICS,
    LineType.TABS_AND_LYRICS,
    LineType.ALL,
}
_WITH_CHORDS = {
    LineType.CHORDS,
    LineType.CHORDS_AND_LYRICS,
    LineType.CHORDS_AND_TABS,
    LineType.ALL,
}
_WITH_TABS = {
    LineType.TABS,
    LineType.TABS_AND_LYRICS,
    LineType.CHORDS_AND_TABS,
    LineType.ALL,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def parse_line(raw_row: str) -> Line:
    """Classify and parse one row of notation text.

    Raises :class:`~tabsheet.exceptions.EmptyInputError` for an empty row and
    lets chord grammar errors from :func:`~tabsheet.chords.parse_chord` through.
    """
    lines = [line for line in raw_row.split("\n") if line.strip()]
    if not lines:
        raise EmptyInputError("line string")

    if all(set(line.strip()) == {"*"} for line in lines):
        return Line(type=LineType.LEGEND_BORDER)

    lines, comments = extract_comments(lines)
    lines, repeats = extract_repeats(lines)

    if is_bars_row(lines):
        return Line(
            type=LineType.BARS, bars=parse_bars_row(lines), repeats=repeats, comments=comments
        )

    lyrics, chords, tabs = _combine([_extract_content(line) for line in lines])

    has_chords = bool(chords)
    has_tabs = bool(tabs)
    has_lyrics = bool(LYRIC_CHARS_RE.sub("", lyrics).strip())
    is_repeat = repeats is not None and not (has_chords or has_tabs or has_lyrics)
    line_type = determine_line_type(has_chords, has_tabs, has_lyrics, is_repeat)

    if lyrics and has_chords:
        # A chord past the end of its lyric sits on the last character.
        for c in chords:
            c.position = min(c.position, len(lyrics))

    return Line(
        type=line_type,
        lyrics=lyrics if line_type in _WITH_LYRICS else None,
        chords=chords if line_type in _WITH_CHORDS else None,
        tabs=tabs if line_type in _WITH_TABS else None,
        repeats=repeats,
        comments=comments,
    )


def determine_line_type(
    has_chords: bool, has_tabs: bool, has_lyrics: bool, is_repeat: bool
) -> LineType:
    """Look the feature key up in the pattern table; unmapped keys are lyrics."""
    for (chords, tabs, lyrics, repeat), line_type in _PATTERNS:
        if (chords, tabs, lyrics) != (has_chords, has_tabs, has_lyrics):
            continue
        if repeat is None or repeat == is_repeat:
            return line_type
    return LineType.LYRICS


# ---------------------------------------------------------------------------
# Comments and repeats
# ---------------------------------------------------------------------------


def extract_comments(lines: list[str]) -> tuple[list[str], str | None]:
    found: list[str] = []
    result: list[str] = []
    for line in lines:
        m = COMMENT_RE.search(line)
        if m:
            if m.group(1).strip():
                found.append(m.group(1).strip())
            line = line[:m.start()]
        result.append(line)
    return result, (" ".join(found) if found else None)


def extract_repeats(lines: list[str]) -> tuple[list[str], int | None]:
    """Remove the first repeat marker found and return its count."""
    for i, line in enumerate(lines):
        m = REPEAT_RE.search(line)
        if m:
            count = int(m.group(1).strip("xX"))
            result = list(lines)
            result[i] = line[:m.start()] + line[m.end():]
            return result, count
    return list(lines), None


# ---------------------------------------------------------------------------
# Bar charts
# ---------------------------------------------------------------------------


def is_bars_row(lines: list[str]) -> bool:
    """True when the row is only ``|`` dividers, chords, whitespace and brackets."""
    if not any("|" in line for line in lines):
        return False
    return all(BARS_RESIDUE_RE.match(CHORD_TOKEN_RE.sub("", line)) for line in lines)


def parse_bars_row(lines: list[str]) -> list[Bar]:
    segments = [s.strip() for s in " ".join(lines).split("|")]
    while segments and not segments[0]:
        segments.pop(0)
    while segments and not segments[-1]:
        segments.pop()
    return [Bar(chords=[cp.chord for cp in extract_chords(s)[1]]) for s in segments]


# ---------------------------------------------------------------------------
# Tabs
# ---------------------------------------------------------------------------


def find_tab(line: str) -> tuple[str, str, str]:
    """Return ``(string_name, frets, rest_of_line)``.

    ``("", "", line)`` when the line holds no tab string.  The rest of the line
    is stripped once a tab string has been cut out of it.
    """
    m = TAB_STRING_RE.search(line)
    if not m:
        return "", "", line
    rest = (line[:m.start()] + line[m.end():]).strip()
    return m.group(1), m.group(2), rest


def parse_frets(frets: str) -> list[TabPosition]:
    """Decode a fret field such as ``--0--12h14--x-``.

    ``-`` and ``|`` are rests, a run of digits is one fret placed at the run's
    first character, anything else is the longest matching technique marker.
    Unknown characters are skipped.
    """
    positions: list[TabPosition] = []
    i = 0
    while i < len(frets):
        char = frets[i]
        if char in "-|":
            i += 1
            continue
        if char in _DIGITS:
            end = i
            while end < len(frets) and frets[end] in _DIGITS:
                end += 1
            positions.append(TabPosition(fret=int(frets[i:end]), position=i))
            i = end
            continue
        for technique in _TECHNIQUES:
            if frets.startswith(technique.value, i):
                positions.append(TabPosition(fret=technique, position=i))
                i += len(technique.value)
                break
        else:
            i += 1
    return positions


# ---------------------------------------------------------------------------
# Chords
# ---------------------------------------------------------------------------


def extract_chords(line: str) -> tuple[str, list[ChordPosition]]:
    """Cut ``[ch]..[/ch]`` tokens out of *line*.

    Each chord's position is the centre of its token measured in the
    chord-free text, i.e. after every earlier token has been removed.
    """
    chords: list[ChordPosition] = []
    removed = 0
    for m in CHORD_TOKEN_RE.finditer(line):
        token = m.group(1)
        position = m.start() - removed + len(token) // 2
        chords.append(ChordPosition(chord=parse_chord(token.strip()), position=position))
        removed += len(m.group())
    return CHORD_TOKEN_RE.sub("", line), chords


# ---------------------------------------------------------------------------
# Combining physical lines
# ---------------------------------------------------------------------------


def _extract_content(line: str) -> tuple[str, list[ChordPosition], dict[str, list[TabPosition]]]:
    name, frets, rest = find_tab(line)
    tabs = {name: parse_frets(frets)} if name else {}
    rest, chords = extract_chords(rest)
    lyrics = EMPTY_PAIRS_RE.sub("", rest)
    return lyrics, chords, tabs


def _combine(contents):
    lyrics = ""
    chords: list[ChordPosition] = []
    tabs: dict[str, list[TabPosition]] = {}

    for text, line_chords, line_tabs in contents:
        text = text.rstrip()
        if text:
            offset = len(lyrics) + 1 if lyrics else 0
            lyrics = f"{lyrics} {text}" if lyrics else text
        else:
            offset = len(lyrics)

        for c in line_chords:
            chords.append(ChordPosition(chord=c.chord, position=c.position + offset))
        for name, positions in line_tabs.items():
            tabs.setdefault(name, []).extend(
                TabPosition(fret=p.fret, position=p.position + offset) for p in positions
            )

    return lyrics, chords, tabs
