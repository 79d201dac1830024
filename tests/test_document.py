from pathlib import Path

import pytest

from tabsheet.document import (
    TabDocumentParser,
    build_strumming,
    extract_page_data,
    locate_regions,
    split_by_intro,
    split_to_lines,
    split_to_sections,
)
from tabsheet.exceptions import InvalidRootError
from tabsheet.models import LineType, TabPosition

FIXTURE = Path(__file__).parent / "fixtures" / "ultimate_guitar" / "the-weight.html"

# Same song as the fixture but with no page JSON to read, only the raw
# JSON-escaped text the markers are scraped from.
SCRAPED_PAYLOAD = (
    r'{"data":{"x":1,"tab":{"id":5,"song_id":7,"song_name":"Hey","artist_name":"Band"},'
    r'"tab_view":{"wiki_tab":{"content":"Intro text\r\n[Intro]\r\n[ch]G[/ch]\r\n[Verse]\r\nHey there",'
    r'"revision_id":3},"strummings":[{"part":"","denuminator":8,"bpm":90,"measures":[]}]}}}'
)


@pytest.fixture
def song():
    return TabDocumentParser().parse(FIXTURE.read_text(encoding="utf-8"))


def _section(song, title):
    return next(s for s in song.sections if s.title == title)


# ---------------------------------------------------------------------------
# parse: page JSON
# ---------------------------------------------------------------------------


def test_metadata(song):
    meta = song.metadata
    assert meta.id == 61592
    assert meta.song_id == 1234
    assert meta.song_name == "The Weight"
    assert meta.artist_name == "The Band"
    assert meta.tonality_name == "D"
    assert meta.rating == 4.8
    assert meta.difficulty == "novice"


def test_capo_and_tuning_come_from_view_meta(song):
    assert song.metadata.capo == 2
    assert song.metadata.tuning == "E A D G B E"


def test_pre_intro(song):
    assert song.pre_intro.strip() == "Tabbed by Robbie"


def test_section_titles_in_order(song):
    assert [s.title for s in song.sections] == ["Intro", "Verse 1", "Chorus", "Solo"]


def test_intro_is_chord_row(song):
    line = _section(song, "Intro").lines[0]
    assert line.type is LineType.CHORDS
    assert [(str(c.chord), c.position) for c in line.chords] == [("A", 0), ("C#m", 3), ("D", 4)]


def test_tab_block_is_one_row(song):
    lines = _section(song, "Verse 1").lines
    assert len(lines) == 1
    assert lines[0].type is LineType.CHORDS_AND_LYRICS
    assert lines[0].lyrics == "I pulled into Nazareth"
    assert [(str(c.chord), c.position) for c in lines[0].chords] == [("A", 0), ("C#m", 7)]


def test_repeat_inside_tab_block(song):
    line = _section(song, "Chorus").lines[0]
    assert line.repeats == 2
    assert line.lyrics == "Take a load off Fanny"


def test_solo_tabs(song):
    line = _section(song, "Solo").lines[0]
    assert line.type is LineType.TABS
    assert line.tabs == {
        "e": [TabPosition(fret=0, position=2), TabPosition(fret=2, position=5)],
        "B": [TabPosition(fret=3, position=2)],
    }


def test_versions(song):
    assert len(song.versions) == 1
    version = song.versions[0]
    assert version.id == 99
    assert version.version == 2
    assert version.tonality_name == "A"
    assert version.capo is None
    assert version.tuning is None


def test_strummings(song):
    strumming = song.strummings[0]
    assert strumming.part == "Verse"
    assert strumming.denominator == 4
    assert strumming.bpm == 72
    assert strumming.measures == [1, -1]


# ---------------------------------------------------------------------------
# parse: marker fallback
# ---------------------------------------------------------------------------


def test_scraped_payload_metadata():
    song = TabDocumentParser().parse(SCRAPED_PAYLOAD)
    assert song.metadata.id == 5
    assert song.metadata.song_name == "Hey"
    assert song.metadata.artist_name == "Band"


def test_scraped_payload_body():
    song = TabDocumentParser().parse(SCRAPED_PAYLOAD)
    assert song.pre_intro == "Intro text\n"
    assert [s.title for s in song.sections] == ["Intro", "Verse"]
    assert song.sections[0].lines[0].type is LineType.CHORDS
    assert song.sections[1].lines[0].lyrics == "Hey there"


def test_scraped_payload_strummings():
    song = TabDocumentParser().parse(SCRAPED_PAYLOAD)
    assert song.strummings[0].denominator == 8
    assert song.strummings[0].bpm == 90


def test_empty_payload_returns_none():
    assert TabDocumentParser().parse("") is None


def test_payload_without_body_returns_none():
    assert TabDocumentParser().parse("<html><body>Not found</body></html>") is None


@pytest.mark.parametrize("page_data", [
    '{"tab_view":"x"}',
    '{"tab":[1],"tab_view":{"wiki_tab":"x","meta":3,"strummings":5,"versions":"v"}}',
    '"just a string"',
])
def test_malformed_page_json_falls_back_to_scraped_body(page_data):
    payload = (
        f"<div class=\"js-store\" data-content='{{\"store\":{{\"page\":{{\"data\":{page_data}}}}}}}'></div>"
        r'<script>"tab":{"id":5,"song_name":"Hey","content":"[Verse]\r\nHey there","revision_id":1}</script>'
    )
    song = TabDocumentParser().parse(payload)
    assert song.sections[0].title == "Verse"
    assert song.sections[0].lines[0].lyrics == "Hey there"
    assert song.versions == []
    assert song.strummings == []


def test_extract_page_data_ignores_non_object_data():
    payload = "<div class=\"js-store\" data-content='{\"store\":{\"page\":{\"data\":[1,2]}}}'></div>"
    assert extract_page_data(payload) == {}


# ---------------------------------------------------------------------------
# strict / lenient
# ---------------------------------------------------------------------------


def test_strict_parser_raises_on_bad_chord():
    with pytest.raises(InvalidRootError):
        TabDocumentParser().parse_section("Verse", "[ch]Hx[/ch] la\nfine words")


def test_lenient_parser_skips_bad_row():
    section = TabDocumentParser(strict=False).parse_section("Verse", "[ch]Hx[/ch] la\nfine words")
    assert [line.lyrics for line in section.lines] == ["fine words"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_extract_page_data_legacy_next_data():
    payload = (
        '<script id="__NEXT_DATA__" type="application/json">'
        '{"props":{"pageProps":{"data":{"tab":{"song_name":"Legacy"}}}}}</script>'
    )
    assert extract_page_data(payload) == {"tab": {"song_name": "Legacy"}}


def test_extract_page_data_missing():
    assert extract_page_data("<html></html>") == {}


def test_locate_regions():
    text = r'junk,"tab":{"id":1,"song_id":2,"content":"Hello\nWorld","revision_id":9'
    regions = locate_regions(text)
    assert regions.metadata == '1,"song_id":2,'
    assert regions.body == "Hello\nWorld"


def test_locate_regions_missing_markers():
    regions = locate_regions("nothing here")
    assert regions.metadata == ""
    assert regions.body == ""


def test_split_by_intro_case_insensitive():
    assert split_by_intro("x[intro]y") == ("x", "[intro]y")


def test_split_by_intro_without_marker():
    assert split_by_intro("[Verse]\nla") == ("", "[Verse]\nla")


def test_split_to_sections_blank_gives_placeholder():
    assert split_to_sections("   ") == [(None, "")]


def test_split_to_sections_keeps_leading_text():
    assert split_to_sections("lead\n[Verse]\nla") == [(None, "lead\n"), ("Verse", "\nla")]


def test_split_to_sections_ignores_notation_tags():
    sections = split_to_sections("[Verse]\n[ch]Am[/ch]\n[tab]e|-0-|[/tab]")
    assert [title for title, _ in sections] == ["Verse"]


def test_split_to_lines_keeps_tab_block_whole():
    content = "a\n\n[tab]e|--0--|\nB|--1--|[/tab]\nb"
    assert split_to_lines(content) == ["a", "e|--0--|\nB|--1--|", "b"]


def test_build_strumming_reads_denuminator_key():
    strumming = build_strumming({"denuminator": 8, "measures": [{"measure": 1}, 2, {"measure": "x"}]})
    assert strumming.denominator == 8
    assert strumming.measures == [1, 2]
    assert strumming.bpm == 0
