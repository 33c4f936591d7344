"""
Typed command interface for audio-catalog.

Every operation a front end may invoke is a frozen request dataclass with a
matching response dataclass. Requests validate their own fields when they
are built, and execute() dispatches on the request type, so a malformed
call fails at the boundary with ValidationError instead of deep inside
the pipeline.

Usage:
    from audio_catalog.commands import SearchRequest, execute

    response = await execute(context, SearchRequest(query="Song"))
    for track in response.tracks:
        print(track.title)
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable

from audio_catalog.audio.transcoder import check_ffmpeg
from audio_catalog.catalog.models import Album, Track, TrackPage
from audio_catalog.catalog.store import MAX_PAGE_SIZE, SORTABLE_TRACK_FIELDS
from audio_catalog.core.exceptions import CatalogError, ValidationError
from audio_catalog.core.logger import get_logger
from audio_catalog.ingest.context import AppContext
from audio_catalog.ingest.orchestrator import ItemCallback, Orchestrator
from audio_catalog.ingest.report import BatchReport

logger = get_logger(__name__)


SEARCH_TARGETS = ("tracks", "albums", "all")


def _require_ids(values: Any, field_name: str) -> tuple[str, ...]:
    if isinstance(values, str) or not isinstance(values, (list, tuple, set, frozenset)):
        raise ValidationError(f"'{field_name}' must be a list of ids", details={"field": field_name})
    if not values or any(not isinstance(v, str) or not v.strip() for v in values):
        raise ValidationError(f"'{field_name}' must contain non-empty ids", details={"field": field_name})
    return tuple(dict.fromkeys(v.strip() for v in values))


def _require_id(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string", details={"field": field_name})
    return value.strip()


# =============================================================================
# Requests
# =============================================================================

@dataclass(frozen=True)
class IngestRequest:
    """Ingest local audio files."""
    paths: tuple[str, ...]
    overrides: dict[str, Any] | None = None
    on_item_done: ItemCallback | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if isinstance(self.paths, (str, Path)) or not self.paths:
            raise ValidationError("'paths' must be a non-empty list of files", details={"field": "paths"})
        object.__setattr__(self, "paths", tuple(str(p) for p in self.paths))
        if self.overrides is not None and not isinstance(self.overrides, dict):
            raise ValidationError("'overrides' must be a mapping", details={"field": "overrides"})


@dataclass(frozen=True)
class ReplaceAudioRequest:
    """Replace the audio of an existing track."""
    track_id: str
    file_path: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "track_id", _require_id(self.track_id, "track_id"))
        object.__setattr__(self, "file_path", _require_id(str(self.file_path), "file_path"))


@dataclass(frozen=True)
class DeleteTracksRequest:
    """Delete one or more tracks with their blobs."""
    track_ids: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "track_ids", _require_ids(self.track_ids, "track_ids"))


@dataclass(frozen=True)
class DeleteAlbumRequest:
    """Delete an album, optionally cascading to its tracks."""
    album_id: str
    cascade: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "album_id", _require_id(self.album_id, "album_id"))
        if not isinstance(self.cascade, bool):
            raise ValidationError("'cascade' must be a boolean", details={"field": "cascade"})


@dataclass(frozen=True)
class SearchRequest:
    """Case-insensitive search over tracks and/or albums."""
    query: str
    target: str = "tracks"
    limit: int = 100

    def __post_init__(self) -> None:
        if not isinstance(self.query, str):
            raise ValidationError("'query' must be a string", details={"field": "query"})
        if self.target not in SEARCH_TARGETS:
            raise ValidationError(
                f"'target' must be one of {', '.join(SEARCH_TARGETS)}",
                details={"field": "target", "value": self.target}
            )
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or not 1 <= self.limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"'limit' must be between 1 and {MAX_PAGE_SIZE}", details={"field": "limit"})


@dataclass(frozen=True)
class ListTracksRequest:
    """One sorted page of all tracks."""
    sort_field: str = "title"
    sort_direction: str = "asc"
    limit: int = 50
    skip: int = 0

    def __post_init__(self) -> None:
        if self.sort_field not in SORTABLE_TRACK_FIELDS:
            raise ValidationError(
                f"Cannot sort by '{self.sort_field}'",
                details={"field": "sort_field", "allowed": sorted(SORTABLE_TRACK_FIELDS)}
            )
        if self.sort_direction not in ("asc", "desc"):
            raise ValidationError("'sort_direction' must be 'asc' or 'desc'", details={"field": "sort_direction"})


@dataclass(frozen=True)
class UpdateTracksRequest:
    """Apply the same metadata edit to one or more tracks."""
    track_ids: tuple[str, ...]
    fields: dict[str, Any]

    def __post_init__(self) -> None:
        object.__setattr__(self, "track_ids", _require_ids(self.track_ids, "track_ids"))
        if not isinstance(self.fields, dict) or not self.fields:
            raise ValidationError("'fields' must be a non-empty mapping", details={"field": "fields"})


@dataclass(frozen=True)
class ListAlbumsRequest:
    """All albums, or the tracks of one album when album_id is given."""
    album_id: str | None = None


@dataclass(frozen=True)
class TagVocabularyRequest:
    """Genre, instrument and mood suggestions."""


@dataclass(frozen=True)
class InitDatabaseRequest:
    """Create collections, validators and indexes."""


@dataclass(frozen=True)
class CheckRequest:
    """Connectivity check of database, object store and encoder."""


# =============================================================================
# Responses
# =============================================================================

@dataclass(frozen=True)
class IngestResponse:
    report: BatchReport


@dataclass(frozen=True)
class TrackResponse:
    track: Track


@dataclass(frozen=True)
class DeleteResponse:
    deleted: list[Track]


@dataclass(frozen=True)
class SearchResponse:
    tracks: list[Track] = field(default_factory=list)
    albums: list[Album] = field(default_factory=list)


@dataclass(frozen=True)
class ListTracksResponse:
    page: TrackPage


@dataclass(frozen=True)
class UpdateTracksResponse:
    matched: int


@dataclass(frozen=True)
class ListAlbumsResponse:
    albums: list[Album] = field(default_factory=list)
    tracks: list[Track] = field(default_factory=list)


@dataclass(frozen=True)
class TagVocabularyResponse:
    vocabulary: dict[str, list[str]]


@dataclass(frozen=True)
class InitDatabaseResponse:
    ok: bool = True


@dataclass(frozen=True)
class CheckResponse:
    """
    Result of a connectivity check.

    Attributes:
        database: True if the database answered a ping.
        storage: True if the bucket is reachable with the credentials.
        ffmpeg: True if the encoder binary is on PATH.
        errors: Component name -> error message for failed checks.
    """
    database: bool
    storage: bool
    ffmpeg: bool
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.database and self.storage and self.ffmpeg


# =============================================================================
# Dispatch
# =============================================================================

async def _ingest(context: AppContext, request: IngestRequest, orchestrator: Orchestrator) -> IngestResponse:
    report = await orchestrator.ingest_batch(
        request.paths,
        overrides=request.overrides,
        on_item_done=request.on_item_done,
    )
    return IngestResponse(report=report)


async def _replace(context: AppContext, request: ReplaceAudioRequest, orchestrator: Orchestrator) -> TrackResponse:
    return TrackResponse(track=await orchestrator.replace_audio(request.track_id, request.file_path))


async def _delete_tracks(
    context: AppContext,
    request: DeleteTracksRequest,
    orchestrator: Orchestrator
) -> DeleteResponse:
    if len(request.track_ids) == 1:
        return DeleteResponse(deleted=[await orchestrator.delete_track(request.track_ids[0])])
    return DeleteResponse(deleted=await orchestrator.delete_tracks(list(request.track_ids)))


async def _delete_album(
    context: AppContext,
    request: DeleteAlbumRequest,
    orchestrator: Orchestrator
) -> DeleteResponse:
    return DeleteResponse(deleted=await orchestrator.delete_album(request.album_id, cascade=request.cascade))


async def _search(context: AppContext, request: SearchRequest, orchestrator: Orchestrator) -> SearchResponse:
    tracks: list[Track] = []
    albums: list[Album] = []
    if request.target in ("tracks", "all"):
        tracks = await context.retry.run(
            lambda: context.store.search_tracks(request.query, limit=request.limit), label="search tracks"
        )
    if request.target in ("albums", "all"):
        albums = await context.retry.run(
            lambda: context.store.search_albums(request.query, limit=request.limit), label="search albums"
        )
    return SearchResponse(tracks=tracks, albums=albums)


async def _list_tracks(
    context: AppContext,
    request: ListTracksRequest,
    orchestrator: Orchestrator
) -> ListTracksResponse:
    page = await context.retry.run(
        lambda: context.store.list_tracks(
            sort_field=request.sort_field,
            sort_direction=request.sort_direction,
            limit=request.limit,
            skip=request.skip,
        ),
        label="list tracks",
    )
    return ListTracksResponse(page=page)


async def _update_tracks(
    context: AppContext,
    request: UpdateTracksRequest,
    orchestrator: Orchestrator
) -> UpdateTracksResponse:
    matched = await context.retry.run(
        lambda: context.store.update_tracks(list(request.track_ids), request.fields),
        label=f"update {len(request.track_ids)} track(s)",
    )
    if matched < len(request.track_ids):
        logger.warning(f"{len(request.track_ids) - matched} track(s) not found during update")
    return UpdateTracksResponse(matched=matched)


async def _list_albums(
    context: AppContext,
    request: ListAlbumsRequest,
    orchestrator: Orchestrator
) -> ListAlbumsResponse:
    if request.album_id is None:
        return ListAlbumsResponse(albums=await context.retry.run(context.store.get_all_albums, label="list albums"))

    album = await context.retry.run(lambda: context.store.get_album(request.album_id), label="load album")
    tracks = await context.retry.run(lambda: context.store.tracks_by_album(album.id), label="list album tracks")
    return ListAlbumsResponse(albums=[album], tracks=tracks)


async def _tag_vocabulary(
    context: AppContext,
    request: TagVocabularyRequest,
    orchestrator: Orchestrator
) -> TagVocabularyResponse:
    return TagVocabularyResponse(
        vocabulary=await context.retry.run(context.store.tag_vocabulary, label="tag vocabulary")
    )


async def _init_database(
    context: AppContext,
    request: InitDatabaseRequest,
    orchestrator: Orchestrator
) -> InitDatabaseResponse:
    await context.store.setup_collections()
    return InitDatabaseResponse()


async def _check(context: AppContext, request: CheckRequest, orchestrator: Orchestrator) -> CheckResponse:
    errors: dict[str, str] = {}

    try:
        database = await context.store.ping()
    except CatalogError as e:
        database = False
        errors["database"] = e.message

    try:
        storage = await context.gateway.test_connection()
    except CatalogError as e:
        storage = False
        errors["storage"] = e.message

    ffmpeg_ok = check_ffmpeg(context.transcoder.binary)
    if not ffmpeg_ok:
        errors["ffmpeg"] = f"'{context.transcoder.binary}' not found on PATH"

    return CheckResponse(database=database, storage=storage, ffmpeg=ffmpeg_ok, errors=errors)


_HANDLERS: dict[type, Callable[[AppContext, Any, Orchestrator], Awaitable[Any]]] = {
    IngestRequest: _ingest,
    ReplaceAudioRequest: _replace,
    DeleteTracksRequest: _delete_tracks,
    DeleteAlbumRequest: _delete_album,
    SearchRequest: _search,
    ListTracksRequest: _list_tracks,
    UpdateTracksRequest: _update_tracks,
    ListAlbumsRequest: _list_albums,
    TagVocabularyRequest: _tag_vocabulary,
    InitDatabaseRequest: _init_database,
    CheckRequest: _check,
}


async def execute(context: AppContext, request: Any, orchestrator: Orchestrator | None = None) -> Any:
    """
    Run one typed request against the application context.

    Args:
        context: Shared application handles.
        request: One of the request dataclasses of this module.
        orchestrator: Orchestrator to use (a new one is built if None).
                      Pass the same instance to keep cancel() working
                      across calls.

    Returns:
        The response dataclass paired with the request type.

    Raises:
        ValidationError: Unknown request type.
        CatalogError: Whatever the operation raises.
    """
    handler = _HANDLERS.get(type(request))
    if handler is None:
        raise ValidationError(
            f"Unknown request type: {type(request).__name__}",
            details={"request": type(request).__name__}
        )

    logger.debug(f"Executing {type(request).__name__}")
    return await handler(context, request, orchestrator or Orchestrator(context))
