"""
MongoDB catalog store for audio-catalog.

Two collections:
    albums:  one document per album (`_id`, name, name_key, track_ids, ...)
    tracks:  one document per track (`_id`, title, album_id, path, ...)

The store is the only writer of album/track state and validates every write
against the model invariants before it reaches the database. The pymongo
driver is synchronous; each call runs in a worker thread so the pipeline's
event loop keeps moving while the database round-trip is in flight.

Error mapping:
    ConnectionFailure (incl. ServerSelectionTimeoutError, NetworkTimeout)
        -> TransientIOError (retryable)
    DuplicateKeyError on albums.name_key
        -> ConsistencyError
    other PyMongoError
        -> DatabaseError

Usage:
    store = CatalogStore.connect(config.database)
    album = await store.find_or_create_album("Demo", artist="Someone")
    track = await store.create_track(track)
    await store.append_track_to_album(album.id, track.id)
"""

import asyncio
import re
from typing import Any, Callable, TypeVar

from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument, TEXT
from pymongo.database import Database
from pymongo.errors import (
    CollectionInvalid,
    ConnectionFailure,
    DuplicateKeyError,
    PyMongoError,
)

from audio_catalog.catalog.models import (
    EDITABLE_ALBUM_FIELDS,
    EDITABLE_TRACK_FIELDS,
    PIPELINE_TRACK_FIELDS,
    Album,
    Track,
    TrackPage,
    display_album_name,
    normalize_album_name,
    utc_now,
    validate_track_update,
)
from audio_catalog.catalog.vocabulary import INSTRUMENT_TAGS, MOOD_TAGS
from audio_catalog.core.config import DatabaseConfig
from audio_catalog.core.exceptions import (
    CatalogError,
    ConsistencyError,
    DatabaseError,
    NotFoundError,
    TransientIOError,
    ValidationError,
)
from audio_catalog.core.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

ALBUMS_COLLECTION = "albums"
TRACKS_COLLECTION = "tracks"

SORTABLE_TRACK_FIELDS = frozenset({
    "title",
    "album_name",
    "duration",
    "genre",
    "artist",
    "track_number",
    "created_at",
})
MAX_PAGE_SIZE = 500

_SHARE_SCHEMA = {
    "bsonType": "array",
    "items": {
        "bsonType": "object",
        "required": ["name", "percentage"],
        "properties": {
            "name": {"bsonType": "string", "minLength": 1},
            "percentage": {"bsonType": ["double", "int", "long", "decimal"], "minimum": 0},
        },
    },
}

ALBUM_VALIDATOR = {
    "$jsonSchema": {
        "bsonType": "object",
        "required": ["_id", "name", "name_key", "track_ids"],
        "properties": {
            "name": {"bsonType": "string", "minLength": 1},
            "name_key": {"bsonType": "string", "minLength": 1},
            "track_ids": {"bsonType": "array", "items": {"bsonType": "string"}},
            "art_path": {"bsonType": ["string", "null"]},
        },
    }
}

TRACK_VALIDATOR = {
    "$jsonSchema": {
        "bsonType": "object",
        "required": ["_id", "title", "album_id", "filename", "duration", "path", "status"],
        "properties": {
            "title": {"bsonType": "string", "minLength": 1},
            "album_id": {"bsonType": "string", "minLength": 1},
            "filename": {"bsonType": "string"},
            "duration": {"bsonType": ["double", "int", "long"], "exclusiveMinimum": 0},
            "writers": _SHARE_SCHEMA,
            "publishers": _SHARE_SCHEMA,
            "genre": {"bsonType": "array", "items": {"bsonType": "string"}},
            "instruments": {"bsonType": "array", "items": {"bsonType": "string"}},
            "mood": {"bsonType": "array", "items": {"bsonType": "string"}},
            "path": {
                "bsonType": "object",
                "required": ["original"],
                "additionalProperties": {"bsonType": "string"},
            },
            "status": {"enum": ["complete", "partial"]},
        },
    }
}


class CatalogStore:
    """
    Async access layer over the `albums` and `tracks` collections.

    Attributes:
        albums: The albums collection.
        tracks: The tracks collection.

    Thread Safety:
        pymongo collections are thread-safe; one store instance is shared by
        every concurrent pipeline.
    """

    def __init__(self, database: Database, client: MongoClient | None = None) -> None:
        """
        Args:
            database: A pymongo (or API-compatible) database handle.
            client: Owning client, closed by close(). None when the caller
                    owns the connection.
        """
        self._db = database
        self._client = client
        self.albums = database[ALBUMS_COLLECTION]
        self.tracks = database[TRACKS_COLLECTION]

    @classmethod
    def connect(cls, config: DatabaseConfig) -> "CatalogStore":
        """Create a client from configuration. The connection is lazy."""
        client = MongoClient(
            config.uri,
            serverSelectionTimeoutMS=config.timeout_ms,
            appname="audio-catalog",
        )
        return cls(client[config.name], client=client)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    async def _run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except CatalogError:
            raise
        except ConnectionFailure as e:
            raise TransientIOError(
                f"Database unreachable: {e}",
                details={"original_error": str(e)}
            ) from e
        except DuplicateKeyError:
            raise
        except PyMongoError as e:
            raise DatabaseError(
                f"Database operation failed: {e}",
                details={"original_error": str(e)}
            ) from e

    # =========================================================================
    # Setup
    # =========================================================================

    async def ping(self) -> bool:
        """Round-trip to the server (connection test)."""
        await self._run(self._db.command, "ping")
        return True

    async def setup_collections(self) -> None:
        """Create both collections with $jsonSchema validators (or update them)."""
        def _setup() -> None:
            for name, validator in ((ALBUMS_COLLECTION, ALBUM_VALIDATOR), (TRACKS_COLLECTION, TRACK_VALIDATOR)):
                try:
                    self._db.create_collection(name, validator=validator)
                    logger.info(f"Created collection '{name}'")
                except CollectionInvalid:
                    self._db.command("collMod", name, validator=validator)
                    logger.info(f"Updated validator on '{name}'")

        await self._run(_setup)
        await self.ensure_indexes()

    async def ensure_indexes(self) -> None:
        """Create text indexes, the album_id index and the unique album name key."""
        def _indexes() -> None:
            self.tracks.create_index(
                [
                    ("title", TEXT),
                    ("genre", TEXT),
                    ("album_name", TEXT),
                    ("instruments", TEXT),
                    ("mood", TEXT),
                    ("writers.name", TEXT),
                    ("publishers.name", TEXT),
                ],
                name="track_text",
            )
            self.tracks.create_index([("album_id", ASCENDING)], name="album_id")
            self.albums.create_index([("name_key", ASCENDING)], name="name_key", unique=True)
            self.albums.create_index([("name", TEXT), ("artist", TEXT)], name="album_text")

        await self._run(_indexes)
        logger.debug("Catalog indexes ensured")

    # =========================================================================
    # Album Operations
    # =========================================================================

    async def find_album_by_name(self, name: str) -> Album | None:
        """Find an album by normalized name ("Demo" finds "demo ")."""
        key = normalize_album_name(name)
        if not key:
            return None
        doc = await self._run(self.albums.find_one, {"name_key": key})
        return Album.from_document(doc) if doc else None

    async def get_album(self, album_id: str) -> Album:
        doc = await self._run(self.albums.find_one, {"_id": album_id})
        if doc is None:
            raise NotFoundError(f"Album not found: {album_id}", details={"album_id": album_id})
        return Album.from_document(doc)

    async def get_all_albums(self) -> list[Album]:
        def _all() -> list[dict]:
            return list(self.albums.find({}).sort([("name_key", ASCENDING), ("_id", ASCENDING)]))

        return [Album.from_document(doc) for doc in await self._run(_all)]

    async def create_album(self, name: str, artist: str | None = None, **extra: Any) -> Album:
        """
        Create a new album.

        Raises:
            ValidationError: Empty name.
            ConsistencyError: An album with the same normalized name exists.
        """
        album = Album.new(name, artist=artist, **extra)

        def _create() -> None:
            if self.albums.find_one({"name_key": album.name_key}, {"_id": 1}) is not None:
                raise ConsistencyError(
                    f"Album already exists: {album.name}",
                    details={"name_key": album.name_key}
                )
            self.albums.insert_one(album.to_document())

        try:
            await self._run(_create)
        except DuplicateKeyError as e:
            raise ConsistencyError(
                f"Album already exists: {album.name}",
                details={"name_key": album.name_key}
            ) from e

        logger.info(f"Created album '{album.name}' ({album.id})")
        return album

    async def find_or_create_album(self, name: str, artist: str | None = None) -> Album:
        """
        Resolve an album name to exactly one album, creating it if needed.

        Idempotent: an upsert keyed on the normalized name, so concurrent
        callers with equivalent names get the same album.
        """
        candidate = Album.new(name, artist=artist)
        on_insert = candidate.to_document()
        on_insert.pop("name_key")

        def _upsert() -> dict:
            return self.albums.find_one_and_update(
                {"name_key": candidate.name_key},
                {"$setOnInsert": on_insert},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )

        try:
            doc = await self._run(_upsert)
        except DuplicateKeyError:
            # Lost an upsert race against another process; the winner's album exists now
            doc = await self._run(self.albums.find_one, {"name_key": candidate.name_key})
            if doc is None:
                raise ConsistencyError(
                    f"Album resolution failed for '{candidate.name}'",
                    details={"name_key": candidate.name_key}
                )

        album = Album.from_document(doc)
        if album.id == candidate.id:
            logger.info(f"Created album '{album.name}' ({album.id})")
        return album

    async def update_album(self, album_id: str, partial: dict[str, Any]) -> Album:
        """
        Update editable album fields.

        Renaming keeps the name unique and rewrites `album_name` on every
        member track.

        Raises:
            ValidationError: Unknown field or empty name.
            NotFoundError: Album does not exist.
            ConsistencyError: New name collides with another album.
        """
        if not partial:
            raise ValidationError("Update contains no fields")
        forbidden = set(partial) - EDITABLE_ALBUM_FIELDS
        if forbidden:
            raise ValidationError(
                f"Field(s) not updatable: {', '.join(sorted(forbidden))}",
                details={"fields": sorted(forbidden)}
            )

        changes = dict(partial)
        if "name" in changes:
            if not isinstance(changes["name"], str) or not changes["name"].strip():
                raise ValidationError("'name' must be a non-empty string", details={"field": "name"})
            changes["name"] = display_album_name(changes["name"])
            changes["name_key"] = normalize_album_name(changes["name"])
        changes["updated_at"] = utc_now()

        def _update() -> dict | None:
            if "name_key" in changes:
                clash = self.albums.find_one(
                    {"name_key": changes["name_key"], "_id": {"$ne": album_id}}, {"_id": 1}
                )
                if clash is not None:
                    raise ConsistencyError(
                        f"Another album is already named '{changes['name']}'",
                        details={"album_id": album_id, "conflict": clash["_id"]}
                    )
            doc = self.albums.find_one_and_update(
                {"_id": album_id}, {"$set": changes}, return_document=ReturnDocument.AFTER
            )
            if doc is not None and "name" in changes:
                self.tracks.update_many({"album_id": album_id}, {"$set": {"album_name": changes["name"]}})
            return doc

        doc = await self._run(_update)
        if doc is None:
            raise NotFoundError(f"Album not found: {album_id}", details={"album_id": album_id})
        return Album.from_document(doc)

    async def append_track_to_album(self, album_id: str, track_id: str) -> None:
        """
        Add a track id to an album's track_ids (idempotent).

        Raises:
            NotFoundError: Album does not exist.
        """
        result = await self._run(
            self.albums.update_one,
            {"_id": album_id},
            {"$addToSet": {"track_ids": track_id}, "$set": {"updated_at": utc_now()}},
        )
        if result.matched_count == 0:
            raise NotFoundError(f"Album not found: {album_id}", details={"album_id": album_id})

    async def detach_track_from_album(self, album_id: str, track_id: str) -> None:
        """Remove a track id from an album's track_ids (idempotent)."""
        await self._run(
            self.albums.update_one,
            {"_id": album_id},
            {"$pull": {"track_ids": track_id}, "$set": {"updated_at": utc_now()}},
        )

    async def delete_album(self, album_id: str, cascade: bool = False) -> list[Track]:
        """
        Delete an album.

        Args:
            album_id: Album to delete.
            cascade: Also delete every member track document.

        Returns:
            The deleted member tracks (empty without cascade). The caller
            removes their blobs. When a retry follows a call that deleted
            the members but not the album, the members are already gone and
            the result is empty; Orchestrator.delete_album loads them first.

        Raises:
            NotFoundError: Album does not exist.
            ConsistencyError: Album still has tracks and cascade is False.
        """
        def _delete() -> list[dict]:
            album = self.albums.find_one({"_id": album_id})
            if album is None:
                raise NotFoundError(f"Album not found: {album_id}", details={"album_id": album_id})

            members = list(self.tracks.find({"album_id": album_id}))
            if (members or album.get("track_ids")) and not cascade:
                raise ConsistencyError(
                    f"Album '{album['name']}' still has {max(len(members), len(album.get('track_ids') or []))} track(s)",
                    details={"album_id": album_id, "track_ids": [m["_id"] for m in members]}
                )

            if members:
                self.tracks.delete_many({"album_id": album_id})
            self.albums.delete_one({"_id": album_id})
            return members

        members = await self._run(_delete)
        logger.info(f"Deleted album {album_id} ({len(members)} track(s))")
        return [Track.from_document(doc) for doc in members]

    async def search_albums(self, query: str, limit: int = 100) -> list[Album]:
        """Case-insensitive substring search over album name and artist."""
        pattern = _search_pattern(query)
        if pattern is None:
            return []

        def _search() -> list[dict]:
            cursor = self.albums.find({"$or": [{"name": pattern}, {"artist": pattern}]})
            return list(cursor.sort([("name_key", ASCENDING), ("_id", ASCENDING)]).limit(limit))

        return [Album.from_document(doc) for doc in await self._run(_search)]

    # =========================================================================
    # Track Operations
    # =========================================================================

    async def create_track(self, track: Track) -> Track:
        """
        Validate and insert a track.

        `album_name` is taken from the owning album. Linking the track into
        the album's track_ids is a separate write (append_track_to_album).

        Raises:
            ValidationError: Any invariant violated.
            NotFoundError: album_id does not reference an album.
            ConsistencyError: Track id already exists.
        """
        track.validate()

        def _create() -> None:
            album = self.albums.find_one({"_id": track.album_id}, {"name": 1})
            if album is None:
                raise NotFoundError(
                    f"Album not found: {track.album_id}",
                    details={"album_id": track.album_id, "track_id": track.id}
                )
            track.album_name = album["name"]
            self.tracks.insert_one(track.to_document())

        try:
            await self._run(_create)
        except DuplicateKeyError as e:
            raise ConsistencyError(f"Track already exists: {track.id}", details={"track_id": track.id}) from e

        logger.debug(f"Created track '{track.title}' ({track.id})")
        return track

    async def get_track(self, track_id: str) -> Track:
        doc = await self._run(self.tracks.find_one, {"_id": track_id})
        if doc is None:
            raise NotFoundError(f"Track not found: {track_id}", details={"track_id": track_id})
        return Track.from_document(doc)

    async def update_track(
        self,
        track_id: str,
        partial: dict[str, Any],
        allowed: frozenset[str] = EDITABLE_TRACK_FIELDS | PIPELINE_TRACK_FIELDS
    ) -> Track:
        """
        Apply a validated partial update to one track.

        Raises:
            ValidationError: Forbidden field or invalid value.
            NotFoundError: Track does not exist.
        """
        changes = validate_track_update(partial, allowed)
        changes["updated_at"] = utc_now()

        doc = await self._run(
            self.tracks.find_one_and_update,
            {"_id": track_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise NotFoundError(f"Track not found: {track_id}", details={"track_id": track_id})
        return Track.from_document(doc)

    async def update_tracks(self, track_ids: list[str], partial: dict[str, Any]) -> int:
        """
        Apply the same operator edit to several tracks (bulk edit).

        Only EDITABLE_TRACK_FIELDS are accepted.

        Returns:
            Number of tracks matched.
        """
        if not track_ids:
            return 0
        changes = validate_track_update(partial, EDITABLE_TRACK_FIELDS)
        changes["updated_at"] = utc_now()

        result = await self._run(
            self.tracks.update_many, {"_id": {"$in": list(track_ids)}}, {"$set": changes}
        )
        return result.matched_count

    async def delete_track(self, track_id: str) -> Track:
        """
        Delete a track and detach it from its album.

        Returns:
            The deleted track (its `path` tells the caller which blobs to remove).

        Raises:
            NotFoundError: Track does not exist (e.g. deleted twice).
            TransientIOError: Detach failed after the document was removed;
                              details carry 'track_deleted' and 'album_id'
                              so the caller can retry the detach alone.
        """
        def _delete() -> dict:
            doc = self.tracks.find_one_and_delete({"_id": track_id})
            if doc is None:
                raise NotFoundError(f"Track not found: {track_id}", details={"track_id": track_id})
            return doc

        doc = await self._run(_delete)
        track = Track.from_document(doc)

        try:
            await self.detach_track_from_album(track.album_id, track.id)
        except TransientIOError as e:
            e.details.update({"track_deleted": True, "album_id": track.album_id, "track_id": track.id})
            raise

        logger.debug(f"Deleted track {track_id}")
        return track

    async def delete_tracks(self, track_ids: list[str]) -> list[Track]:
        """
        Delete several tracks and detach them from their albums.

        Unknown ids are skipped.

        Returns:
            The tracks that were deleted.
        """
        ids = list(dict.fromkeys(track_ids))
        if not ids:
            return []

        def _delete() -> list[dict]:
            docs = list(self.tracks.find({"_id": {"$in": ids}}))
            if not docs:
                return []
            found = [doc["_id"] for doc in docs]
            # Detach first: a retry after a failed write still finds the documents
            for album_id in {doc["album_id"] for doc in docs}:
                self.albums.update_one(
                    {"_id": album_id},
                    {"$pullAll": {"track_ids": found}, "$set": {"updated_at": utc_now()}},
                )
            self.tracks.delete_many({"_id": {"$in": found}})
            return docs

        docs = await self._run(_delete)
        skipped = len(ids) - len(docs)
        if skipped:
            logger.warning(f"{skipped} track id(s) not found during bulk delete")
        return [Track.from_document(doc) for doc in docs]

    async def search_tracks(self, query: str, limit: int = 100) -> list[Track]:
        """
        Case-insensitive substring search over title, genre and album name.

        An empty query or no match returns an empty list.
        """
        pattern = _search_pattern(query)
        if pattern is None:
            return []

        def _search() -> list[dict]:
            cursor = self.tracks.find({
                "$or": [
                    {"title": pattern},
                    {"genre": pattern},
                    {"album_name": pattern},
                ]
            })
            return list(cursor.sort([("title", ASCENDING), ("_id", ASCENDING)]).limit(limit))

        return [Track.from_document(doc) for doc in await self._run(_search)]

    async def tracks_by_album(self, album_id: str) -> list[Track]:
        """Tracks of one album, ordered by track number then title."""
        def _find() -> list[dict]:
            cursor = self.tracks.find({"album_id": album_id})
            return list(cursor.sort([
                ("track_number", ASCENDING),
                ("title", ASCENDING),
                ("_id", ASCENDING),
            ]))

        return [Track.from_document(doc) for doc in await self._run(_find)]

    async def list_tracks(
        self,
        sort_field: str = "title",
        sort_direction: str = "asc",
        limit: int = 50,
        skip: int = 0
    ) -> TrackPage:
        """
        One page of all tracks with a stable order.

        Args:
            sort_field: One of SORTABLE_TRACK_FIELDS.
            sort_direction: "asc" or "desc".
            limit: Page size (1..MAX_PAGE_SIZE).
            skip: Number of tracks to skip.

        Raises:
            ValidationError: Unknown sort field/direction or bad paging values.
        """
        if sort_field not in SORTABLE_TRACK_FIELDS:
            raise ValidationError(
                f"Cannot sort by '{sort_field}'",
                details={"field": sort_field, "allowed": sorted(SORTABLE_TRACK_FIELDS)}
            )
        if sort_direction not in ("asc", "desc"):
            raise ValidationError("sort_direction must be 'asc' or 'desc'", details={"value": sort_direction})
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}", details={"value": limit})
        if isinstance(skip, bool) or not isinstance(skip, int) or skip < 0:
            raise ValidationError("skip must be a non-negative integer", details={"value": skip})

        direction = ASCENDING if sort_direction == "asc" else DESCENDING

        def _page() -> tuple[list[dict], int]:
            total = self.tracks.count_documents({})
            cursor = self.tracks.find({}).sort([(sort_field, direction), ("_id", ASCENDING)])
            return list(cursor.skip(skip).limit(limit)), total

        docs, total = await self._run(_page)
        return TrackPage(
            tracks=[Track.from_document(doc) for doc in docs],
            total_count=total,
            limit=limit,
            skip=skip,
        )

    # =========================================================================
    # Tag Vocabulary
    # =========================================================================

    async def tag_vocabulary(self) -> dict[str, list[str]]:
        """
        Tag suggestions for editing forms.

        Returns:
            {"genre": [...], "instruments": [...], "mood": [...]}: values in
            use in the catalog merged with the built-in suggestion lists.
        """
        def _distinct() -> dict[str, list[str]]:
            return {name: self.tracks.distinct(name) for name in ("genre", "instruments", "mood")}

        used = await self._run(_distinct)
        builtin = {"genre": [], "instruments": list(INSTRUMENT_TAGS), "mood": list(MOOD_TAGS)}

        vocabulary = {}
        for name, values in used.items():
            merged: dict[str, str] = {}
            for tag in builtin[name] + [v for v in values if isinstance(v, str)]:
                merged.setdefault(tag.casefold(), tag)
            vocabulary[name] = sorted(merged.values(), key=str.casefold)
        return vocabulary


def _search_pattern(query: str) -> dict[str, str] | None:
    if not isinstance(query, str) or not query.strip():
        return None
    return {"$regex": re.escape(query.strip()), "$options": "i"}
