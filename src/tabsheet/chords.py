"""Chord symbol grammar.

``parse_chord("Cmaj7/B")`` returns a :class:`~tabsheet.models.Chord` whose
modifiers keep their source order, so :func:`chord_to_string` gives back the
exact spelling that was parsed.

Modifier text is scanned against a fixed catalogue, longest spelling first
(``maj7`` wins over ``m``).  Each hit marks its span as consumed instead of
cutting it out of the string, so the indices of later hits stay relative to
the original token and the hits can be put back into source order at the end.
"""

import re

from .exceptions import (
    EmptyInputError,
    InvalidBassNoteError,
    InvalidCombinationError,
    InvalidModifierSequenceError,
    InvalidRootError,
    MultipleAccidentalsError,
)
from .models import Chord, Modifier, ModifierType

_ROOT_RE = re.compile(r"^[A-G][#b]?")
_BASS_RE = re.compile(r"^[A-G][#b]?$")
_DOUBLE_ACCIDENTAL_RE = re.compile(r"^[#b](?!\d)")

CATALOGUE: dict[str, ModifierType] = {
    # quality
    "m": ModifierType.QUALITY,
    "aug": ModifierType.QUALITY,
    "dim": ModifierType.QUALITY,
    "+": ModifierType.QUALITY,
    "maj": ModifierType.QUALITY,
    "ø": ModifierType.QUALITY,
    # compound
    "maj7": ModifierType.COMPOUND,
    "maj9": ModifierType.COMPOUND,
    "maj11": ModifierType.COMPOUND,
    "maj13": ModifierType.COMPOUND,
    "dim7": ModifierType.COMPOUND,
    # suspension
    "sus": ModifierType.SUSPENSION,
    "sus2": ModifierType.SUSPENSION,
    "sus4": ModifierType.SUSPENSION,
    # addition
    "add2": ModifierType.ADDITION,
    "add4": ModifierType.ADDITION,
    "add9": ModifierType.ADDITION,
    "add11": ModifierType.ADDITION,
    "add13": ModifierType.ADDITION,
    # extension
    "5": ModifierType.EXTENSION,
    "6": ModifierType.EXTENSION,
    "7": ModifierType.EXTENSION,
    "9": ModifierType.EXTENSION,
    "11": ModifierType.EXTENSION,
    "13": ModifierType.EXTENSION,
    # alteration
    "b5": ModifierType.ALTERATION,
    "#5": ModifierType.ALTERATION,
    "b9": ModifierType.ALTERATION,
    "#9": ModifierType.ALTERATION,
    "b11": ModifierType.ALTERATION,
    "#11": ModifierType.ALTERATION,
    "b13": ModifierType.ALTERATION,
    "#13": ModifierType.ALTERATION,
}

# Longest first; ties keep catalogue order.
SORTED_SPELLINGS: list[str] = sorted(CATALOGUE, key=len, reverse=True)

INVALID_COMBINATIONS: list[tuple[frozenset[str], str]] = [
    (frozenset({"m", "+"}), "Can't be minor and augmented"),
    (frozenset({"m", "aug"}), "Can't be minor and augmented"),
    (frozenset({"sus2", "sus4"}), "Can't have both sus2 and sus4"),
    (frozenset({"7", "maj7"}), "Can't have both 7 and maj7"),
    (frozenset({"dim", "maj"}), "Can't be diminished and major"),
    (frozenset({"dim", "+"}), "Can't be diminished and augmented"),
    (frozenset({"dim", "aug"}), "Can't be diminished and augmented"),
    (frozenset({"m", "dim"}), "Can't be minor and diminished"),
    (frozenset({"add2", "sus2"}), "Can't add2 when sus2 is already present"),
    (frozenset({"add4", "sus4"}), "Can't add4 when sus4 is already present"),
    (frozenset({"6", "13"}), "6 is redundant if 13 is already present"),
    (frozenset({"add9", "9"}), "Can't use add9 when 9 is already implied"),
    (frozenset({"add11", "11"}), "Can't use add11 when 11 is already implied"),
    (frozenset({"add13", "13"}), "Can't use add13 when 13 is already implied"),
    (frozenset({"ø", "dim"}), "Can't be both half-diminished and fully diminished"),
    (frozenset({"ø", "maj"}), "Can't be half-diminished and major"),
    (frozenset({"sus2", "m"}), "Can't have both sus2 and minor third"),
    (frozenset({"sus4", "m"}), "Can't have both sus4 and minor third"),
    (frozenset({"sus4", "maj"}), "Can't have both sus4 and major third"),
    (frozenset({"maj7", "m"}), "Can't have both major 7th and minor"),
    (frozenset({"dim", "add9"}), "Diminished chords can't have added 9th"),
    (frozenset({"dim", "add11"}), "Diminished chords can't have added 11th"),
    (frozenset({"dim", "add13"}), "Diminished chords can't have added 13th"),
    (frozenset({"maj13", "7"}), "Can't have both major 13th and dominant 7th"),
    (frozenset({"ø", "add13"}), "Half-diminished chords can't have added 13th"),
]


def parse_chord(token: str) -> Chord:
    """Parse a single chord token such as ``"Am7/F#"``.

    Raises a :class:`~tabsheet.exceptions.ChordError` subclass when the token
    is not a valid chord.
    """
    if not token:
        raise EmptyInputError()
    if not _ROOT_RE.match(token):
        raise InvalidRootError(token)

    chord_part, slash, bass_part = token.partition("/")
    base = _ROOT_RE.match(chord_part).group()
    raw_modifiers = chord_part[len(base):]

    if raw_modifiers.count("#") > 1 or raw_modifiers.count("b") > 1:
        raise MultipleAccidentalsError(token)
    # "C##", "Ebb": a second accidental on the root rather than an alteration
    if _DOUBLE_ACCIDENTAL_RE.match(raw_modifiers):
        raise MultipleAccidentalsError(token)

    modifiers = [
        Modifier(CATALOGUE[value], value) for value, _ in find_modifiers(raw_modifiers, token)
    ]

    bass = None
    if slash:
        if not _BASS_RE.match(bass_part):
            raise InvalidBassNoteError(token)
        bass = bass_part
        modifiers.append(Modifier(ModifierType.BASS, bass))

    validate_combinations(modifiers, token)
    return Chord(base=base, modifiers=modifiers, bass=bass)


def chord_to_string(chord: Chord) -> str:
    """Return the display spelling of *chord* (inverse of :func:`parse_chord`)."""
    return str(chord)


def find_modifiers(text: str, token: str = "") -> list[tuple[str, int]]:
    """Return ``(spelling, index)`` pairs for *text*, sorted by index.

    Raises InvalidModifierSequenceError if any character of *text* is not
    covered by a catalogue spelling.
    """
    consumed = [False] * len(text)
    found: list[tuple[str, int]] = []

    while not all(consumed):
        hit = _first_unconsumed_hit(text, consumed)
        if hit is None:
            leftover = "".join(ch for ch, used in zip(text, consumed) if not used)
            raise InvalidModifierSequenceError(token or text, leftover)
        spelling, index = hit
        found.append(hit)
        for i in range(index, index + len(spelling)):
            consumed[i] = True

    return sorted(found, key=lambda pair: pair[1])


def _first_unconsumed_hit(text: str, consumed: list[bool]) -> tuple[str, int] | None:
    for spelling in SORTED_SPELLINGS:
        start = text.find(spelling)
        while start != -1:
            if not any(consumed[start:start + len(spelling)]):
                return spelling, start
            start = text.find(spelling, start + 1)
    return None


def validate_combinations(modifiers: list[Modifier], token: str = "") -> None:
    """Raise InvalidCombinationError for mutually exclusive modifier sets."""
    values = [m.value for m in modifiers if m.type is not ModifierType.BASS]
    present = set(values)

    for combo, message in INVALID_COMBINATIONS:
        if combo <= present:
            raise InvalidCombinationError(token, message)

    alterations = [v for v in values if CATALOGUE[v] is ModifierType.ALTERATION]
    if len(alterations) != len(set(alterations)):
        raise InvalidCombinationError(token, "Duplicate alterations not allowed")
    if len(values) != len(present):
        raise InvalidCombinationError(token, "Duplicate modifiers not allowed")
