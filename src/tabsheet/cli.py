import logging
import re
import sys
from datetime import timedelta
from pathlib import Path

import click

from .adapters.ultimate_guitar import SONG_CACHE_VERSION, UltimateGuitarAdapter
from .cache import Cache, CacheOptions, MemoryStore, SQLiteStore
from .chordpro import ChordProFormatter
from .document import TabDocumentParser
from .exceptions import ChordError, UnsupportedSiteError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = Path.home() / ".cache" / "tabsheet" / "cache.sqlite3"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _slugify(text: str) -> str:
    """Convert a string to a lowercase hyphenated slug suitable for filenames."""
    text = text.lower()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"-{2,}", "-", text)
    return text.strip("-")


def _default_filename(artist: str, title: str) -> str:
    return f"{_slugify(artist) or 'unknown'}-{_slugify(title) or 'untitled'}.cho"


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=LOG_FORMAT)


@click.group()
@click.option("-v", "--verbose", count=True, help="-v for info logging, -vv for debug.")
@click.option("--cache-path", type=click.Path(dir_okay=False, path_type=Path),
              default=DEFAULT_CACHE_PATH, envvar="TABSHEET_CACHE_PATH", show_default=True,
              help="SQLite file holding cached pages.")
@click.option("--cache-hours", type=float, default=24.0, envvar="TABSHEET_CACHE_HOURS",
              show_default=True, help="How long cached entries stay valid.")
@click.option("--no-cache", is_flag=True, default=False,
              help="Keep the cache in memory for this run only.")
@click.pass_context
def main(ctx: click.Context, verbose: int, cache_path: Path, cache_hours: float,
         no_cache: bool) -> None:
    """Download guitar tabs and convert them to ChordPro.

    \b
    Supported sites:
      - tabs.ultimate-guitar.com
    """
    _configure_logging(verbose)
    store = MemoryStore() if no_cache else SQLiteStore(cache_path)
    ctx.obj = {
        "cache": Cache(store),
        "options": CacheOptions(duration=timedelta(hours=cache_hours), version=SONG_CACHE_VERSION),
    }


@main.command()
@click.argument("url")
@click.option("-o", "--output", "output_path", default=None, metavar="PATH",
              help="Output file path (default: <artist>-<title>.cho)")
@click.option("--stdout", is_flag=True, default=False,
              help="Print to stdout instead of writing a file.")
@click.option("--lenient", is_flag=True, default=False,
              help="Skip rows with malformed chords instead of failing.")
@click.pass_obj
def tab(obj: dict, url: str, output_path: str | None, stdout: bool, lenient: bool) -> None:
    """Convert one tab page to ChordPro format."""
    try:
        UltimateGuitarAdapter.check_url(url)
    except UnsupportedSiteError as exc:
        click.echo(f"Error: {exc}", err=True)
        click.echo("Supported sites: tabs.ultimate-guitar.com", err=True)
        sys.exit(1)

    adapter = UltimateGuitarAdapter(
        parser=TabDocumentParser(strict=not lenient),
        cache=obj["cache"],
        cache_options=obj["options"],
    )
    try:
        song = adapter.get_song(url)
    except ChordError as exc:
        click.echo(f"Error: {exc} (use --lenient to skip bad rows)", err=True)
        sys.exit(1)
    if song is None:
        click.echo(f"Error: Could not load a tab from {url}", err=True)
        sys.exit(1)

    chordpro_text = ChordProFormatter().render(song)

    if stdout:
        click.echo(chordpro_text, nl=False)
        return

    meta = song.metadata
    dest = Path(output_path) if output_path else Path(_default_filename(meta.artist_name, meta.song_name))
    dest.write_text(chordpro_text, encoding="utf-8")
    click.echo(f"Written to {dest}")


@main.command()
@click.argument("query")
@click.option("--pages", default=1, show_default=True, type=click.IntRange(min=1),
              help="Number of result pages to fetch.")
@click.pass_obj
def search(obj: dict, query: str, pages: int) -> None:
    """Search tabs by song title."""
    adapter = UltimateGuitarAdapter(cache=obj["cache"], cache_options=obj["options"])
    results = adapter.search(query, pages=pages)
    if not results:
        click.echo("No results.", err=True)
        sys.exit(1)
    for r in results:
        click.echo(f"{r.artist_name} - {r.song_name} [{r.type}] ({r.votes} votes, {r.rating:.1f})")
        if r.tab_url:
            click.echo(f"    {r.tab_url}")


@main.group()
def cache() -> None:
    """Inspect or empty the local cache."""


@cache.command("clear")
@click.pass_obj
def cache_clear(obj: dict) -> None:
    obj["cache"].clear(obj["options"])
    click.echo("Cache cleared.")


@cache.command("evict")
@click.pass_obj
def cache_evict(obj: dict) -> None:
    """Drop expired and outdated entries."""
    removed = obj["cache"].evict_expired(obj["options"])
    click.echo(f"Removed {removed} entries.")


@cache.command("size")
@click.pass_obj
def cache_size(obj: dict) -> None:
    click.echo(str(obj["cache"].size(obj["options"])))
