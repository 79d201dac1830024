from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ModifierType(Enum):
    ACCIDENTAL = "accidental"  # #, b
    QUALITY = "quality"  # m, aug, dim, +
    EXTENSION = "extension"  # 5, 6, 7, 9, 11, 13
    COMPOUND = "compound"  # maj7, dim7
    ADDITION = "addition"  # add9, add11
    SUSPENSION = "suspension"  # sus2, sus4
    ALTERATION = "alteration"  # b5, #5, b9, #9
    BASS = "bass"  # /G, /F#


@dataclass(frozen=True)
class Modifier:
    type: ModifierType
    value: str


@dataclass
class Chord:
    """A parsed chord symbol.

    ``modifiers`` keeps the order the spellings appeared in the source token so
    that ``str(chord)`` gives back exactly what was parsed.  A slash chord's
    bass note is stored both in ``bass`` and as a trailing ``BASS`` modifier.
    """

    base: str
    modifiers: list[Modifier] = field(default_factory=list)
    bass: str | None = None

    @property
    def values(self) -> list[str]:
        """Modifier spellings without the bass entry, e.g. ``["m", "7"]``."""
        return [m.value for m in self.modifiers if m.type is not ModifierType.BASS]

    def __str__(self) -> str:
        text = self.base + "".join(self.values)
        return f"{text}/{self.bass}" if self.bass else text


@dataclass
class ChordPosition:
    chord: Chord
    position: int


@dataclass
class Bar:
    chords: list[Chord] = field(default_factory=list)


class TabTechnique(Enum):
    DEAD_NOTE = "x"
    GRACE_NOTE = "g"
    GHOST_NOTE = "(n)"
    HAMMER_ON = "h"
    PULL_OFF = "p"
    RELEASE = "r"
    ACCENTED_NOTE = ">"
    TAPPING = "t"
    BEND = "b"
    BEND_RELEASE = "br"
    PRE_BEND = "pb"
    PRE_BEND_RELEASE = "pbr"
    SLIDE_UP = "/"
    SLIDE_DOWN = "\\"
    VIBRATO = "~"
    SLAP = "s"
    POP = "P"
    PALM_MUTE = "PM"
    TRILL = "TR"
    TREMOLO_PICKING = "N"


@dataclass
class TabPosition:
    fret: int | TabTechnique
    position: int


class LineType(Enum):
    LYRICS = "lyrics"
    CHORDS = "chords"
    BARS = "bars"
    TABS = "tabs"
    CHORDS_AND_LYRICS = "chordsAndLyrics"
    TABS_AND_LYRICS = "tabsAndLyrics"
    CHORDS_AND_TABS = "chordsAndTabs"
    ALL = "all"
    REPEATS = "repeats"
    LEGEND_BORDER = "legendBorder"


@dataclass
class Line:
    """One printed row of a tab sheet.

    Only the payload fields implied by ``type`` are set; the rest stay ``None``.
    Chord and tab positions are offsets into ``lyrics``.
    """

    type: LineType
    lyrics: str | None = None
    chords: list[ChordPosition] | None = None
    bars: list[Bar] | None = None
    tabs: dict[str, list[TabPosition]] | None = None
    repeats: int | None = None
    comments: str | None = None


@dataclass
class Section:
    """A titled group of rows.  ``title`` is None for untitled leading text."""

    title: str | None
    lines: list[Line] = field(default_factory=list)


@dataclass
class SongMetadata:
    id: int = 0
    song_id: int = 0
    song_name: str = ""
    artist_id: int = 0
    artist_name: str = ""
    votes: int = 0
    type: str = ""
    tab_url: str = ""
    tonality_name: str | None = None
    capo: int | None = None
    tuning: str | None = None  # e.g. "E A D G B E"
    difficulty: str | None = None
    rating: float | None = None
    version: int | None = None
    version_description: str | None = None


@dataclass
class Version:
    """Another published version of the same song."""

    id: int = 0
    version: int = 0
    votes: int = 0
    rating: float = 0.0
    type: str = ""
    tab_url: str = ""
    tonality_name: str | None = None
    capo: int | None = None
    tuning: str | None = None
    version_description: str | None = None


@dataclass
class Strumming:
    part: str = ""
    denominator: int = 4
    bpm: int = 0
    is_triplet: bool = False
    measures: list[int] = field(default_factory=list)


@dataclass
class Song:
    """Everything recovered from one tab page."""

    metadata: SongMetadata = field(default_factory=SongMetadata)
    pre_intro: str = ""
    sections: list[Section] = field(default_factory=list)
    versions: list[Version] = field(default_factory=list)
    strummings: list[Strumming] = field(default_factory=list)


@dataclass
class SearchResult:
    """Display summary of one raw search record."""

    id: int
    song_id: int
    song_name: str
    artist_name: str = ""
    artist_id: int | None = None
    votes: int = 0
    rating: float = 0.0
    type: str = ""
    tab_url: str = ""
    image_url: str | None = None


# ---------------------------------------------------------------------------
# Plain-data conversion (used to store parsed songs in the cache)
# ---------------------------------------------------------------------------


def chord_to_dict(chord: Chord) -> dict[str, Any]:
    return {
        "base": chord.base,
        "modifiers": [{"type": m.type.value, "value": m.value} for m in chord.modifiers],
        "bass": chord.bass,
    }


def chord_from_dict(data: dict[str, Any]) -> Chord:
    return Chord(
        base=data["base"],
        modifiers=[Modifier(ModifierType(m["type"]), m["value"]) for m in data["modifiers"]],
        bass=data.get("bass"),
    )


def _fret_to_json(fret: int | TabTechnique) -> int | str:
    return fret.value if isinstance(fret, TabTechnique) else fret


def _fret_from_json(fret: int | str) -> int | TabTechnique:
    return TabTechnique(fret) if isinstance(fret, str) else fret


def line_to_dict(line: Line) -> dict[str, Any]:
    data: dict[str, Any] = {"type": line.type.value}
    if line.lyrics is not None:
        data["lyrics"] = line.lyrics
    if line.chords is not None:
        data["chords"] = [
            {"chord": chord_to_dict(c.chord), "position": c.position} for c in line.chords
        ]
    if line.bars is not None:
        data["bars"] = [{"chords": [chord_to_dict(c) for c in bar.chords]} for bar in line.bars]
    if line.tabs is not None:
        data["tabs"] = {
            name: [{"fret": _fret_to_json(p.fret), "position": p.position} for p in positions]
            for name, positions in line.tabs.items()
        }
    if line.repeats is not None:
        data["repeats"] = line.repeats
    if line.comments is not None:
        data["comments"] = line.comments
    return data


def line_from_dict(data: dict[str, Any]) -> Line:
    chords = data.get("chords")
    bars = data.get("bars")
    tabs = data.get("tabs")
    return Line(
        type=LineType(data["type"]),
        lyrics=data.get("lyrics"),
        chords=(
            [ChordPosition(chord_from_dict(c["chord"]), c["position"]) for c in chords]
            if chords is not None
            else None
        ),
        bars=(
            [Bar([chord_from_dict(c) for c in bar["chords"]]) for bar in bars]
            if bars is not None
            else None
        ),
        tabs=(
            {
                name: [TabPosition(_fret_from_json(p["fret"]), p["position"]) for p in positions]
                for name, positions in tabs.items()
            }
            if tabs is not None
            else None
        ),
        repeats=data.get("repeats"),
        comments=data.get("comments"),
    )


def song_to_dict(song: Song) -> dict[str, Any]:
    return {
        "metadata": vars(song.metadata).copy(),
        "pre_intro": song.pre_intro,
        "sections": [
            {"title": s.title, "lines": [line_to_dict(line) for line in s.lines]}
            for s in song.sections
        ],
        "versions": [vars(v).copy() for v in song.versions],
        "strummings": [vars(s).copy() for s in song.strummings],
    }


def song_from_dict(data: dict[str, Any]) -> Song:
    return Song(
        metadata=SongMetadata(**data["metadata"]),
        pre_intro=data["pre_intro"],
        sections=[
            Section(title=s["title"], lines=[line_from_dict(line) for line in s["lines"]])
            for s in data["sections"]
        ],
        versions=[Version(**v) for v in data["versions"]],
        strummings=[Strumming(**s) for s in data["strummings"]],
    )
