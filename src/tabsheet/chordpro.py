"""ChordPro formatter.

Renders a :class:`~tabsheet.models.Song` to ChordPro (``.cho``) text.

Section title → ChordPro directive mapping
------------------------------------------

+--------------------------------------+------------------------------------+
| Title (case-insensitive first word)  | Directive pair                     |
+======================================+====================================+
| ``Verse``, ``Verse N``               | ``{start_of_verse: Verse N}`` /    |
|                                      | ``{end_of_verse}``                 |
+--------------------------------------+------------------------------------+
| ``Chorus``                           | ``{start_of_chorus}`` /            |
|                                      | ``{end_of_chorus}``                |
+--------------------------------------+------------------------------------+
| ``Bridge``                           | ``{start_of_bridge}`` /            |
|                                      | ``{end_of_bridge}``                |
+--------------------------------------+------------------------------------+
| anything else (Intro, Solo, ...)     | ``{comment: <title>}``             |
+--------------------------------------+------------------------------------+
| ``None`` / untitled                  | no wrapper directive               |
+--------------------------------------+------------------------------------+

Row rendering
-------------

* chords over lyrics are inlined: ``[Am]Hello [C]world``
* chord-only rows keep their spacing: ``[Am]    [C]``
* bar charts: ``| [Am] [C] | [G] |``
* tab strings go in a ``{start_of_tab}`` / ``{end_of_tab}`` block
* repeat counts are appended as ``x3``; ``//`` comments become
  ``{comment: ...}``; legend borders are dropped

Usage::

    from tabsheet.chordpro import ChordProFormatter
    text = ChordProFormatter().render(song)
    Path("output.cho").write_text(text)
"""

from .models import Line, LineType, Section, Song, TabPosition, TabTechnique

_STRUCTURED = {
    "verse": ("start_of_verse", "end_of_verse"),
    "chorus": ("start_of_chorus", "end_of_chorus"),
    "bridge": ("start_of_bridge", "end_of_bridge"),
}

_TAB_TYPES = {LineType.TABS, LineType.TABS_AND_LYRICS, LineType.CHORDS_AND_TABS, LineType.ALL}


class ChordProFormatter:
    """Render a :class:`~tabsheet.models.Song` to ChordPro text."""

    def render(self, song: Song) -> str:
        """Return ChordPro text for *song*.

        The returned string ends with a single newline and uses Unix line
        endings (``\\n``) throughout.
        """
        meta = song.metadata
        parts: list[str] = []

        # --- Metadata block ---
        parts.append(f"{{title: {meta.song_name}}}")
        parts.append(f"{{artist: {meta.artist_name}}}")
        if meta.tonality_name:
            parts.append(f"{{key: {meta.tonality_name}}}")
        if meta.capo:
            parts.append(f"{{capo: {meta.capo}}}")
        if meta.tuning:
            parts.append(f"{{tuning: {meta.tuning}}}")
        for strumming in song.strummings:
            if strumming.bpm:
                parts.append(f"{{tempo: {strumming.bpm}}}")
                break

        # --- Free text before the intro ---
        pre_intro = [line.strip() for line in song.pre_intro.split("\n") if line.strip()]
        if pre_intro:
            parts.append("")
            parts.extend(f"# {line}" for line in pre_intro)

        # --- Section blocks ---
        for section in song.sections:
            if section.title is None and not section.lines:
                continue
            parts.append("")  # blank line before every section
            parts.extend(_render_section(section))

        return "\n".join(parts) + "\n"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _render_section(section: Section) -> list[str]:
    """Return a list of lines for one section (no trailing blank line)."""
    lines: list[str] = []
    for line in section.lines:
        lines.extend(render_line(line))

    title = section.title
    if not title:
        return lines

    first_word = title.lower().split()[0]
    if first_word in _STRUCTURED:
        start_dir, end_dir = _STRUCTURED[first_word]
        # Verses keep their number, chorus and bridge take the bare directive
        start_line = f"{{{start_dir}: {title}}}" if first_word == "verse" else f"{{{start_dir}}}"
        return [start_line, *lines, f"{{{end_dir}}}"]

    return [f"{{comment: {title}}}", *lines]


def render_line(line: Line) -> list[str]:
    """Return the ChordPro lines for one parsed row."""
    if line.type is LineType.LEGEND_BORDER:
        return []

    out: list[str] = []
    if line.type is LineType.BARS:
        out.append(_render_bars(line))
    elif line.type in (LineType.CHORDS_AND_LYRICS, LineType.ALL):
        out.append(inline_chords(line.lyrics or "", line))
    elif line.type in (LineType.CHORDS, LineType.CHORDS_AND_TABS):
        width = max(c.position for c in line.chords) if line.chords else 0
        out.append(inline_chords(" " * width, line).rstrip())
    elif line.type in (LineType.LYRICS, LineType.TABS_AND_LYRICS):
        out.append(line.lyrics or "")

    if line.type in _TAB_TYPES and line.tabs:
        out.append("{start_of_tab}")
        out.extend(render_tab_string(name, positions) for name, positions in line.tabs.items())
        out.append("{end_of_tab}")

    if line.repeats is not None:
        if out and line.type is not LineType.REPEATS and not out[-1].startswith("{"):
            out[-1] = f"{out[-1]} x{line.repeats}"
        else:
            out.append(f"x{line.repeats}")

    if line.comments:
        out.append(f"{{comment: {line.comments}}}")
    return out


def inline_chords(text: str, line: Line) -> str:
    """Insert ``[chord]`` markers into *text* at each chord's position."""
    # Right to left so earlier offsets stay valid
    for cp in sorted(line.chords or [], key=lambda c: c.position, reverse=True):
        pos = min(cp.position, len(text))
        text = f"{text[:pos]}[{cp.chord}]{text[pos:]}"
    return text


def _render_bars(line: Line) -> str:
    cells = [" ".join(f"[{chord}]" for chord in bar.chords) for bar in line.bars or []]
    return "| " + " | ".join(cells) + " |"


def render_tab_string(name: str, positions: list[TabPosition]) -> str:
    """Rebuild a tab string such as ``e|--0--3--|`` from its positions."""
    cells: dict[int, str] = {}
    width = 0
    for p in positions:
        text = p.fret.value if isinstance(p.fret, TabTechnique) else str(p.fret)
        cells[p.position] = text
        width = max(width, p.position + len(text))

    grid = ["-"] * (width + 1)
    for pos, text in cells.items():
        grid[pos:pos + len(text)] = list(text)
    return f"{name}|{''.join(grid)}|"
