import json

from tabsheet.chords import parse_chord
from tabsheet.lines import parse_line
from tabsheet.models import (
    Chord,
    Line,
    LineType,
    Modifier,
    ModifierType,
    Section,
    Song,
    SongMetadata,
    Strumming,
    Version,
    song_from_dict,
    song_to_dict,
)


def test_chord_str_with_bass():
    chord = Chord(
        base="D",
        modifiers=[Modifier(ModifierType.QUALITY, "m"), Modifier(ModifierType.BASS, "C")],
        bass="C",
    )
    assert str(chord) == "Dm/C"
    assert chord.values == ["m"]


def test_line_defaults():
    line = Line(type=LineType.LYRICS, lyrics="la")
    assert line.chords is None
    assert line.bars is None
    assert line.tabs is None
    assert line.repeats is None
    assert line.comments is None


def test_section_none_title():
    section = Section(title=None)
    assert section.title is None
    assert section.lines == []


def test_song_defaults():
    song = Song()
    assert song.metadata.song_name == ""
    assert song.metadata.capo is None
    assert song.pre_intro == ""
    assert song.sections == []
    assert song.versions == []
    assert song.strummings == []


def test_strumming_defaults():
    assert Strumming().denominator == 4


def test_song_survives_json_round_trip():
    song = Song(
        metadata=SongMetadata(id=1, song_name="The Weight", capo=2, tuning="E A D G B E"),
        pre_intro="Tabbed by Robbie\n",
        sections=[
            Section(title="Verse", lines=[
                parse_line("[ch]C/G[/ch]   [ch]Am7[/ch]\nTake a load off"),
                parse_line("e|--0h2--x--|"),
                parse_line("| [ch]D[/ch] | [ch]G[/ch] | x2"),
            ]),
        ],
        versions=[Version(id=2, version=2, rating=4.5)],
        strummings=[Strumming(part="Verse", bpm=72, measures=[1, -1])],
    )
    restored = song_from_dict(json.loads(json.dumps(song_to_dict(song))))
    assert restored == song
    assert restored.sections[0].lines[0].chords[0].chord == parse_chord("C/G")
