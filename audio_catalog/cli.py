"""
Command-line interface for audio-catalog.

This module implements the CLI using Click, with rich-click for colored
help output. Every command builds a typed request from its arguments and
runs it through audio_catalog.commands.execute().

Commands:
    catalog ingest <files...>              Ingest audio files into the catalog
    catalog replace <track-id> <file>      Replace a track's audio
    catalog delete <track-id...>           Delete tracks and their objects
    catalog delete-album <album-id>        Delete an album (--cascade for tracks)
    catalog search <query>                 Search tracks and/or albums
    catalog list                           List tracks, sorted and paginated
    catalog albums [album-id]              List albums or one album's tracks
    catalog edit <track-id...>             Edit metadata of one or more tracks
    catalog tags                           Show tag suggestions
    catalog init-db                        Create collections, validators, indexes
    catalog check                          Check database, bucket and ffmpeg

Usage:
    # Ingest a folder of files into one album, tagging every track
    catalog ingest ~/masters/*.flac --album "Demo" --genre Rock --writer "Jane Doe:100"

    # Find and edit
    catalog search "song"
    catalog edit 3f2a... --mood Calm --mood Dreamy

Configuration:
    The CLI reads config.yaml from the current directory (or --config).
    Secrets can also come from the environment or a .env file:
    R2_ACCOUNT_ID, R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY, R2_BUCKET_NAME,
    R2_PUBLIC_DOMAIN, MONGODB_URI.

Exit codes:
    0    success
    1    configuration error (or unexpected error)
    2    database error
    3    object store error
    4    other catalog error, or at least one ingested file failed
    130  interrupted
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Optional

import rich_click as click
from rich.console import Console
from rich.table import Table

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.OPTION_GROUPS = {
    "catalog ingest": [
        {
            "name": "Album",
            "options": ["--album"],
        },
        {
            "name": "Track Metadata",
            "options": ["--artist", "--genre", "--mood", "--instrument", "--comments"],
        },
        {
            "name": "Rights",
            "options": ["--writer", "--publisher"],
        },
    ],
    "catalog edit": [
        {
            "name": "Track Metadata",
            "options": ["--title", "--artist", "--track-number", "--year", "--comments"],
        },
        {
            "name": "Tags",
            "options": ["--genre", "--mood", "--instrument", "--composer"],
        },
        {
            "name": "Rights",
            "options": ["--writer", "--publisher"],
        },
    ],
}

from audio_catalog import __version__
from audio_catalog.catalog.models import Album, Track
from audio_catalog.catalog.store import SORTABLE_TRACK_FIELDS
from audio_catalog.commands import (
    CheckRequest,
    DeleteAlbumRequest,
    DeleteTracksRequest,
    IngestRequest,
    InitDatabaseRequest,
    ListAlbumsRequest,
    ListTracksRequest,
    ReplaceAudioRequest,
    SearchRequest,
    TagVocabularyRequest,
    UpdateTracksRequest,
    execute,
)
from audio_catalog.core.config import load_config
from audio_catalog.core.exceptions import (
    CatalogError,
    ConfigError,
    DatabaseError,
    StorageError,
    ValidationError,
)
from audio_catalog.core.logger import get_logger, setup_logging, shutdown_logging
from audio_catalog.core.progress import IngestProgressBar
from audio_catalog.ingest.context import AppContext

logger = get_logger(__name__)

console = Console()


# =============================================================================
# Group
# =============================================================================

@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml)"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show debug output on the console"
)
@click.version_option(__version__, prog_name="audio-catalog")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool) -> None:
    """
    audio-catalog: ingest audio into an S3/R2 bucket and a MongoDB catalog.

    Files are tagged from their metadata, grouped into albums, transcoded
    to the configured quality tiers with ffmpeg, uploaded, and recorded as
    track documents.

    \b
    FIRST RUN:
        catalog check                 # Verify database, bucket and ffmpeg
        catalog init-db               # Create collections and indexes
        catalog ingest song.flac      # Ingest a file
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


# =============================================================================
# Runner
# =============================================================================

def _run(ctx: click.Context, request: Any) -> Any:
    """
    Execute one request with full application lifecycle.

    Loads configuration, sets up logging, builds the AppContext, runs the
    request and maps errors to exit codes.

    Raises:
        SystemExit: On any error (with the documented exit code).
    """
    context: AppContext | None = None

    try:
        config = load_config(ctx.obj["config_path"])
        setup_logging(config.ingest.log_directory, verbose=ctx.obj["verbose"])
        logger.debug(f"audio-catalog {__version__}: {type(request).__name__}")

        context = AppContext.create(config)
        return asyncio.run(execute(context, request))

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except DatabaseError as e:
        click.echo(f"Database error: {e.message}", err=True)
        logger.error(f"Database error: {e.message}", exc_info=True)
        sys.exit(2)

    except StorageError as e:
        click.echo(f"Object store error: {e.message}", err=True)
        logger.error(f"Object store error: {e.message}", exc_info=True)
        sys.exit(3)

    except CatalogError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        if context is not None:
            context.close()
        shutdown_logging()


def _build(request_type: type, **fields: Any) -> Any:
    """Construct a request, turning field validation errors into usage errors."""
    try:
        return request_type(**fields)
    except ValidationError as e:
        raise click.UsageError(e.message)


def _parse_shares(values: tuple[str, ...], option: str) -> list[dict[str, Any]] | None:
    """Parse repeated "Name:Percentage" options; None if none were given."""
    if not values:
        return None

    shares = []
    for value in values:
        name, sep, percentage = value.rpartition(":")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected NAME:PERCENTAGE, got '{value}'", param_hint=option)
        try:
            shares.append({"name": name.strip(), "percentage": float(percentage)})
        except ValueError:
            raise click.BadParameter(f"'{percentage}' is not a number", param_hint=option)
    return shares


def _metadata_fields(**options: Any) -> dict[str, Any]:
    """Collect metadata options the user actually passed."""
    fields: dict[str, Any] = {}
    for name in ("title", "artist", "comments", "track_number", "year"):
        if options.get(name) is not None:
            fields[name] = options[name]
    for name, option in (("genre", "genre"), ("mood", "mood"), ("instruments", "instrument"), ("composers", "composer")):
        if options.get(option):
            fields[name] = list(options[option])

    writers = _parse_shares(options.get("writer") or (), "--writer")
    if writers is not None:
        fields["writers"] = writers
    publishers = _parse_shares(options.get("publisher") or (), "--publisher")
    if publishers is not None:
        fields["publishers"] = publishers
    return fields


def _tracks_table(tracks: list[Track], title: str | None = None) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Title")
    table.add_column("Album")
    table.add_column("Duration", justify="right")
    table.add_column("Genre")
    table.add_column("Tiers")

    for track in tracks:
        minutes, seconds = divmod(int(round(track.duration)), 60)
        tiers = ", ".join(sorted(track.path))
        if track.is_partial:
            tiers += f" [yellow](missing: {', '.join(track.missing_tiers)})[/yellow]"
        table.add_row(
            track.id,
            track.title,
            track.album_name,
            f"{minutes}:{seconds:02d}",
            ", ".join(track.genre),
            tiers,
        )
    return table


def _albums_table(albums: list[Album]) -> Table:
    table = Table()
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name")
    table.add_column("Artist")
    table.add_column("Tracks", justify="right")
    for album in albums:
        table.add_row(album.id, album.name, album.artist or "", str(len(album.track_ids)))
    return table


# =============================================================================
# Commands
# =============================================================================

@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--album", type=str, default=None, help="Album for every file (overrides tags)")
@click.option("--artist", type=str, default=None, help="Artist for every file")
@click.option("--genre", multiple=True, help="Genre tag (repeatable)")
@click.option("--mood", multiple=True, help="Mood tag (repeatable)")
@click.option("--instrument", multiple=True, help="Instrument tag (repeatable)")
@click.option("--comments", type=str, default=None, help="Comments for every file")
@click.option("--writer", multiple=True, metavar="NAME:PCT", help="Writer share (repeatable, must sum to 100)")
@click.option("--publisher", multiple=True, metavar="NAME:PCT", help="Publisher share (repeatable, must sum to 100)")
@click.pass_context
def ingest(ctx: click.Context, files: tuple[Path, ...], album: Optional[str], **options: Any) -> None:
    """Ingest audio files: extract, resolve album, transcode, upload, persist."""
    overrides = _metadata_fields(**options)
    if album is not None:
        overrides["album"] = album

    with IngestProgressBar(total=len(files)) as progress:
        request = _build(
            IngestRequest,
            paths=tuple(str(f) for f in files),
            overrides=overrides or None,
            on_item_done=progress.update_from_result,
        )
        response = _run(ctx, request)

    report = response.report
    for result in report.partial:
        click.echo(f"⚠ {result.source}: missing tiers {', '.join(result.missing_tiers)}")
    for result in report.failed:
        click.echo(f"✗ {result.source}: failed at {result.stage} ({result.error_kind}): {result.reason}", err=True)
    click.echo(report.summary())

    if report.failed:
        sys.exit(4)


@cli.command()
@click.argument("track_id")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def replace(ctx: click.Context, track_id: str, file: Path) -> None:
    """Replace a track's audio, keeping its id and metadata."""
    response = _run(ctx, _build(ReplaceAudioRequest, track_id=track_id, file_path=str(file)))
    track = response.track
    click.echo(f"Replaced audio of '{track.title}' ({track.id})")
    if track.is_partial:
        click.echo(f"⚠ missing tiers: {', '.join(track.missing_tiers)}")


@cli.command()
@click.argument("track_ids", nargs=-1, required=True)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete(ctx: click.Context, track_ids: tuple[str, ...], yes: bool) -> None:
    """Delete tracks, their album links and their stored objects."""
    if not yes:
        click.confirm(f"Delete {len(track_ids)} track(s) and their audio files?", abort=True)

    response = _run(ctx, _build(DeleteTracksRequest, track_ids=track_ids))
    for track in response.deleted:
        click.echo(f"Deleted '{track.title}' ({track.id})")
    missing = len(set(track_ids)) - len(response.deleted)
    if missing:
        click.echo(f"{missing} track id(s) not found", err=True)


@cli.command("delete-album")
@click.argument("album_id")
@click.option("--cascade", is_flag=True, help="Also delete every track of the album")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_album(ctx: click.Context, album_id: str, cascade: bool, yes: bool) -> None:
    """Delete an album. Refused while it has tracks unless --cascade."""
    if not yes:
        suffix = " and all of its tracks" if cascade else ""
        click.confirm(f"Delete album {album_id}{suffix}?", abort=True)

    response = _run(ctx, _build(DeleteAlbumRequest, album_id=album_id, cascade=cascade))
    click.echo(f"Deleted album {album_id} ({len(response.deleted)} track(s) removed)")


@cli.command()
@click.argument("query")
@click.option("--albums", "target", flag_value="albums", help="Search albums only")
@click.option("--all", "target", flag_value="all", help="Search tracks and albums")
@click.option("--limit", type=click.IntRange(1, 500), default=100, show_default=True)
@click.pass_context
def search(ctx: click.Context, query: str, target: Optional[str], limit: int) -> None:
    """Case-insensitive search over title, genre and album name."""
    response = _run(ctx, _build(SearchRequest, query=query, target=target or "tracks", limit=limit))

    if not response.tracks and not response.albums:
        click.echo("No results")
        return
    if response.albums:
        console.print(_albums_table(response.albums))
    if response.tracks:
        console.print(_tracks_table(response.tracks))


@cli.command("list")
@click.option("--sort", "sort_field", type=click.Choice(sorted(SORTABLE_TRACK_FIELDS)), default="title", show_default=True)
@click.option("--desc", is_flag=True, help="Sort descending")
@click.option("--limit", type=click.IntRange(1, 500), default=50, show_default=True)
@click.option("--page", type=click.IntRange(1), default=1, show_default=True)
@click.pass_context
def list_tracks(ctx: click.Context, sort_field: str, desc: bool, limit: int, page: int) -> None:
    """List tracks, sorted and paginated."""
    request = _build(
        ListTracksRequest,
        sort_field=sort_field,
        sort_direction="desc" if desc else "asc",
        limit=limit,
        skip=(page - 1) * limit,
    )
    result = _run(ctx, request).page
    pages = max(1, -(-result.total_count // limit))
    console.print(_tracks_table(result.tracks, title=f"Tracks (page {page}/{pages}, {result.total_count} total)"))


@cli.command()
@click.argument("album_id", required=False)
@click.pass_context
def albums(ctx: click.Context, album_id: Optional[str]) -> None:
    """List albums, or the tracks of one album."""
    response = _run(ctx, _build(ListAlbumsRequest, album_id=album_id))
    if album_id is None:
        console.print(_albums_table(response.albums))
    else:
        album = response.albums[0]
        console.print(_tracks_table(response.tracks, title=album.name))


@cli.command()
@click.argument("track_ids", nargs=-1, required=True)
@click.option("--title", type=str, default=None)
@click.option("--artist", type=str, default=None)
@click.option("--track-number", type=click.IntRange(0), default=None)
@click.option("--year", type=click.IntRange(0), default=None)
@click.option("--comments", type=str, default=None)
@click.option("--genre", multiple=True, help="Replace genre tags (repeatable)")
@click.option("--mood", multiple=True, help="Replace mood tags (repeatable)")
@click.option("--instrument", multiple=True, help="Replace instrument tags (repeatable)")
@click.option("--composer", multiple=True, help="Replace composers (repeatable)")
@click.option("--writer", multiple=True, metavar="NAME:PCT", help="Replace writers (repeatable, must sum to 100)")
@click.option("--publisher", multiple=True, metavar="NAME:PCT", help="Replace publishers (repeatable, must sum to 100)")
@click.pass_context
def edit(ctx: click.Context, track_ids: tuple[str, ...], **options: Any) -> None:
    """Edit metadata of one or more tracks (duration is not editable)."""
    fields = _metadata_fields(**options)
    if not fields:
        raise click.UsageError("Nothing to edit: pass at least one field option")

    response = _run(ctx, _build(UpdateTracksRequest, track_ids=track_ids, fields=fields))
    click.echo(f"Updated {response.matched} track(s)")


@cli.command()
@click.pass_context
def tags(ctx: click.Context) -> None:
    """Show genre, instrument and mood suggestions."""
    vocabulary = _run(ctx, TagVocabularyRequest()).vocabulary
    for name, values in vocabulary.items():
        click.echo(f"{name.capitalize()}: {', '.join(values) if values else '-'}")


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create collections with validators, and all indexes."""
    _run(ctx, InitDatabaseRequest())
    click.echo("Database initialized")


@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Check database, object store and ffmpeg availability."""
    response = _run(ctx, CheckRequest())
    for name, ok in (("database", response.database), ("storage", response.storage), ("ffmpeg", response.ffmpeg)):
        status = "ok" if ok else f"FAILED ({response.errors.get(name, 'unknown error')})"
        click.echo(f"{name:<10} {status}")
    if not response.ok:
        sys.exit(4)


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `catalog` from the command line.
    It invokes the Click CLI group.
    """
    cli()


if __name__ == "__main__":
    main()
