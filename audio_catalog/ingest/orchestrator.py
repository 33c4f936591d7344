"""
Ingestion orchestrator for audio-catalog.

Coordinates the pipeline for every file of a batch:

    SELECTED -> METADATA_EXTRACTED -> ALBUM_RESOLVED -> TRANSCODING
             -> UPLOADING -> PERSISTED | FAILED(stage, reason)

Items run concurrently and are isolated: a failure is recorded in that
item's ItemResult and never aborts its siblings. Stages within one item
are strictly sequential.

Shared state is limited to:
    - a per-normalized-album-name asyncio.Lock around find-or-create
    - semaphores capping concurrent items, transcodes and uploads

Tier policy:
    The "original" tier is always mandatory. Configured tiers are
    best-effort unless marked `mandatory`. A track missing optional tiers
    is persisted with status "partial" and its `missing_tiers` listed.

Besides ingestion, the orchestrator owns the workflows that touch both
stores at once: audio replacement and track/album deletion.

Usage:
    orchestrator = Orchestrator(context)
    report = await orchestrator.ingest_batch([Path("a.mp3"), Path("b.flac")])
    print(report.summary())
"""

import asyncio
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable

from audio_catalog.audio.metadata import UNKNOWN_ALBUM, AudioMetadata
from audio_catalog.catalog.models import (
    EDITABLE_TRACK_FIELDS,
    STATUS_COMPLETE,
    STATUS_PARTIAL,
    Album,
    Track,
    new_id,
    normalize_album_name,
    validate_track_update,
)
from audio_catalog.core.config import ORIGINAL_TIER, TierPreset
from audio_catalog.core.exceptions import (
    CatalogError,
    ConsistencyError,
    NotFoundError,
    TransientIOError,
    ValidationError,
)
from audio_catalog.core.logger import get_logger, log_ingest_failure, log_partial_track
from audio_catalog.ingest.context import AppContext
from audio_catalog.ingest.report import (
    CANCELLED_REASON,
    STATUS_FAILED,
    STATUS_SUCCEEDED,
    STATUS_SUCCEEDED_PARTIAL,
    BatchReport,
    ItemResult,
    ItemStage,
    ItemState,
)
from audio_catalog.storage.keys import build_object_key, content_type_for

logger = get_logger(__name__)

ItemCallback = Callable[[ItemResult], None]


@dataclass
class _ItemWork:
    """Transient working state of one item."""
    source: Path
    state: ItemState = ItemState.SELECTED
    stage: ItemStage = ItemStage.EXTRACTION
    album_id: str | None = None
    uploaded_keys: list[str] = field(default_factory=list)

    def transition(self, state: ItemState, stage: ItemStage | None = None) -> None:
        self.state = state
        if stage is not None:
            self.stage = stage
        logger.debug(f"{self.source.name}: {state.value}")


class Orchestrator:
    """
    Runs ingestion batches and cross-store maintenance workflows.

    Attributes:
        context: Shared handles (store, gateway, extractor, transcoder, retry).
        config: Shortcut to context.config.
    """

    def __init__(self, context: AppContext) -> None:
        self.context = context
        self.config = context.config
        concurrency = self.config.concurrency

        self._item_slots = asyncio.Semaphore(concurrency.max_items)
        self._transcode_slots = asyncio.Semaphore(concurrency.max_transcodes)
        self._upload_slots = asyncio.Semaphore(concurrency.max_uploads)
        self._album_locks: dict[str, asyncio.Lock] = {}
        self._tasks: dict[str, list[asyncio.Task]] = {}

    # =========================================================================
    # Batch Ingestion
    # =========================================================================

    async def ingest_batch(
        self,
        paths: Iterable[str | Path],
        overrides: dict[str, Any] | None = None,
        on_item_done: ItemCallback | None = None
    ) -> BatchReport:
        """
        Ingest a batch of local audio files.

        Args:
            paths: Files to ingest.
            overrides: Fields applied to every track of the batch. "album"
                       replaces the extracted album name; any other key
                       must be an editable track field (writers, genre, ...).
            on_item_done: Called with each ItemResult as soon as the item
                          reaches a terminal state (progress reporting).

        Returns:
            BatchReport with one ItemResult per path, in input order.

        Raises:
            ValidationError: Invalid overrides (checked before any work starts).

        Behavior:
            - No item failure propagates; failures are reported per item
            - Temporary files of every item are removed on every exit path
            - cancel() / cancel_item() turn in-flight items into
              FAILED(stage, "cancelled")
        """
        sources = [Path(p) for p in paths]
        album_override, field_overrides = _prepare_overrides(overrides)

        if not sources:
            return BatchReport()

        logger.info(f"Ingesting {len(sources)} file(s) with tiers: {', '.join(self.config.tier_names)}")

        tasks = []
        for source in sources:
            task = asyncio.create_task(
                self._run_item(source, album_override, field_overrides, on_item_done),
                name=f"ingest:{source.name}",
            )
            self._tasks.setdefault(str(source), []).append(task)
            tasks.append(task)

        try:
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            for source, task in zip(sources, tasks):
                registered = self._tasks.get(str(source), [])
                if task in registered:
                    registered.remove(task)
                if not registered:
                    self._tasks.pop(str(source), None)

        results = []
        for source, outcome in zip(sources, outcomes):
            if isinstance(outcome, ItemResult):
                results.append(outcome)
                continue
            # Task cancelled before it started, or the callback raised
            kind = CANCELLED_REASON if isinstance(outcome, asyncio.CancelledError) else "internal"
            reason = CANCELLED_REASON if kind == CANCELLED_REASON else str(outcome)
            log_ingest_failure(logger, str(source), ItemStage.EXTRACTION.value, kind, reason)
            results.append(ItemResult(
                source=str(source),
                stage=ItemStage.EXTRACTION.value,
                status=STATUS_FAILED,
                error_kind=kind,
                reason=reason,
            ))

        report = BatchReport(results)
        logger.info(f"Batch finished: {report.summary()}")
        return report

    def cancel(self) -> int:
        """
        Cancel every in-flight item of every running batch.

        Returns:
            Number of items signalled.
        """
        count = 0
        for tasks in self._tasks.values():
            for task in tasks:
                if not task.done():
                    task.cancel()
                    count += 1
        if count:
            logger.warning(f"Cancelling {count} item(s)")
        return count

    def cancel_item(self, path: str | Path) -> bool:
        """
        Cancel the in-flight item(s) for one source path.

        Returns:
            True if a running item was signalled.
        """
        signalled = False
        for task in self._tasks.get(str(Path(path)), []):
            if not task.done():
                task.cancel()
                signalled = True
        if signalled:
            logger.warning(f"Cancelling {Path(path).name}")
        return signalled

    async def _run_item(
        self,
        source: Path,
        album_override: str | None,
        overrides: dict[str, Any],
        on_item_done: ItemCallback | None
    ) -> ItemResult:
        result = await self._process_item(source, album_override, overrides)
        if on_item_done is not None:
            on_item_done(result)
        return result

    async def _process_item(
        self,
        source: Path,
        album_override: str | None,
        overrides: dict[str, Any]
    ) -> ItemResult:
        work = _ItemWork(source)
        work_dir: Path | None = None

        try:
            async with self._item_slots:
                work_dir = self._make_work_dir()
                return await self._run_pipeline(work, work_dir, album_override, overrides)
        except asyncio.CancelledError:
            await self._discard_uploads(work)
            return self._failed(work, CANCELLED_REASON, CANCELLED_REASON)
        except CatalogError as e:
            await self._discard_uploads(work)
            return self._failed(work, e.kind, e.message)
        except Exception as e:
            # Isolate unexpected bugs to the item; siblings keep running
            logger.exception(f"Unexpected error while ingesting {source}")
            await self._discard_uploads(work)
            return self._failed(work, "internal", f"{type(e).__name__}: {e}")
        finally:
            if work_dir is not None:
                shutil.rmtree(work_dir, ignore_errors=True)

    async def _run_pipeline(
        self,
        work: _ItemWork,
        work_dir: Path,
        album_override: str | None,
        overrides: dict[str, Any]
    ) -> ItemResult:
        source = work.source

        metadata = await self.context.extractor.extract(source)
        work.transition(ItemState.METADATA_EXTRACTED, ItemStage.ALBUM_RESOLUTION)

        album = await self._resolve_album(album_override or metadata.album, metadata.artist)
        work.album_id = album.id
        work.transition(ItemState.ALBUM_RESOLVED, ItemStage.TRANSCODING)

        track_id = new_id()
        title = overrides.get("title") or metadata.title
        artist = overrides["artist"] if "artist" in overrides else metadata.artist
        keys = self._object_keys(track_id, title, artist, album.name, source)

        work.transition(ItemState.TRANSCODING)
        files, failures = await self._transcode_tiers(source, work_dir)
        self._raise_for_mandatory(failures)

        work.transition(ItemState.UPLOADING, ItemStage.UPLOADING)
        uploaded, upload_failures = await self._upload_renditions(
            work, {ORIGINAL_TIER: source, **files}, keys
        )
        self._raise_for_mandatory(upload_failures)

        work.stage = ItemStage.PERSISTENCE
        missing = [tier.name for tier in self.config.tiers if tier.name not in uploaded]
        track = self._build_track(track_id, source, metadata, album, uploaded, missing, overrides)
        await self._persist(track)
        work.uploaded_keys.clear()
        work.transition(ItemState.PERSISTED, ItemStage.DONE)

        if missing:
            log_partial_track(logger, track.id, track.title, str(source), missing)
        else:
            logger.info(f"Ingested '{track.title}' into album '{album.name}'")

        return ItemResult(
            source=str(source),
            stage=ItemStage.DONE.value,
            status=STATUS_SUCCEEDED_PARTIAL if missing else STATUS_SUCCEEDED,
            track_id=track.id,
            album_id=album.id,
            missing_tiers=missing,
        )

    def _failed(self, work: _ItemWork, kind: str, reason: str) -> ItemResult:
        work.state = ItemState.FAILED
        log_ingest_failure(logger, str(work.source), work.stage.value, kind, reason)
        return ItemResult(
            source=str(work.source),
            stage=work.stage.value,
            status=STATUS_FAILED,
            album_id=work.album_id,
            error_kind=kind,
            reason=reason,
        )

    def _make_work_dir(self) -> Path:
        parent = self.config.ingest.temp_directory
        if parent is not None:
            parent.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix="catalog-", dir=parent))

    # =========================================================================
    # Pipeline Stages
    # =========================================================================

    async def _resolve_album(self, name: str, artist: str | None) -> Album:
        """Find-or-create the album, serialized per normalized name."""
        key = normalize_album_name(name) or normalize_album_name(UNKNOWN_ALBUM)
        lock = self._album_locks.setdefault(key, asyncio.Lock())

        async with lock:
            return await self.context.retry.run(
                lambda: self.context.store.find_or_create_album(name, artist=artist),
                label=f"resolve album '{name}'",
            )

    def _object_keys(
        self,
        track_id: str,
        title: str,
        artist: str | None,
        album_name: str,
        source: Path
    ) -> dict[str, str]:
        """Deterministic key of every tier for one track."""
        # Tracks without an album tag are filed under Singles
        key_album = None if album_name == UNKNOWN_ALBUM else album_name
        keys = {
            ORIGINAL_TIER: build_object_key(
                artist, key_album, track_id, title, ORIGINAL_TIER, source.suffix or "bin"
            )
        }
        for tier in self.config.tiers:
            keys[tier.name] = build_object_key(artist, key_album, track_id, title, tier.name, tier.extension)
        return keys

    async def _transcode_tiers(
        self,
        source: Path,
        work_dir: Path
    ) -> tuple[dict[str, Path], dict[str, CatalogError]]:
        """
        Produce every configured tier concurrently.

        Returns:
            (tier name -> local file, tier name -> error) for the tiers that
            succeeded and failed respectively.
        """
        tiers = list(self.config.tiers)
        if not tiers:
            return {}, {}

        outcomes = await asyncio.gather(
            *(self._transcode_tier(source, tier, work_dir) for tier in tiers),
            return_exceptions=True,
        )

        produced: dict[str, Path] = {}
        failures: dict[str, CatalogError] = {}
        unexpected: BaseException | None = None
        for tier, outcome in zip(tiers, outcomes):
            if isinstance(outcome, CatalogError):
                logger.warning(f"{source.name}: tier '{tier.name}' failed: {outcome.message}")
                failures[tier.name] = outcome
            elif isinstance(outcome, BaseException):
                unexpected = unexpected or outcome
            else:
                produced[tier.name] = outcome

        if unexpected is not None:
            raise unexpected
        return produced, failures

    async def _transcode_tier(self, source: Path, tier: TierPreset, work_dir: Path) -> Path:
        async def attempt() -> Path:
            async with self._transcode_slots:
                return await self.context.transcoder.transcode(source, tier, work_dir)

        return await self.context.retry.run(attempt, label=f"transcode {source.name} [{tier.name}]")

    async def _upload_renditions(
        self,
        work: _ItemWork,
        files: dict[str, Path],
        keys: dict[str, str]
    ) -> tuple[dict[str, str], dict[str, CatalogError]]:
        """
        Upload local renditions concurrently.

        Every successful key is recorded on `work` before any error is
        raised, so a failed item can discard what it already uploaded.

        Returns:
            (tier name -> key uploaded, tier name -> error)
        """
        names = list(files)
        outcomes = await asyncio.gather(
            *(self._upload_file(files[name], keys[name]) for name in names),
            return_exceptions=True,
        )

        uploaded: dict[str, str] = {}
        failures: dict[str, CatalogError] = {}
        unexpected: BaseException | None = None
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, CatalogError):
                logger.warning(f"{work.source.name}: upload of '{name}' failed: {outcome.message}")
                failures[name] = outcome
            elif isinstance(outcome, BaseException):
                unexpected = unexpected or outcome
            else:
                uploaded[name] = keys[name]
                work.uploaded_keys.append(keys[name])

        if unexpected is not None:
            raise unexpected
        return uploaded, failures

    async def _upload_file(self, path: Path, key: str) -> str:
        async def attempt() -> str:
            async with self._upload_slots:
                return await self.context.gateway.put_file(path, key, content_type_for(path.name))

        return await self.context.retry.run(attempt, label=f"upload {key}")

    def _raise_for_mandatory(self, failures: dict[str, CatalogError]) -> None:
        """Re-raise the failure of the original or of any mandatory tier."""
        if ORIGINAL_TIER in failures:
            raise failures[ORIGINAL_TIER]
        for name, error in failures.items():
            tier = self.config.get_tier(name)
            if tier is not None and tier.mandatory:
                raise error

    def _build_track(
        self,
        track_id: str,
        source: Path,
        metadata: AudioMetadata,
        album: Album,
        paths: dict[str, str],
        missing: list[str],
        overrides: dict[str, Any]
    ) -> Track:
        track = Track(
            id=track_id,
            title=metadata.title,
            album_id=album.id,
            album_name=album.name,
            filename=source.name,
            duration=metadata.duration,
            path=dict(paths),
            artist=metadata.artist,
            track_number=metadata.track_number,
            year=metadata.year,
            composers=[metadata.composer] if metadata.composer else [],
            genre=[metadata.genre] if metadata.genre else [],
            comments=metadata.comments,
            status=STATUS_PARTIAL if missing else STATUS_COMPLETE,
            missing_tiers=list(missing),
        )
        for name, value in overrides.items():
            setattr(track, name, value)
        return track

    async def _persist(self, track: Track) -> None:
        """
        Create the track document and link it into its album.

        Creation and linking run as one unit that cancellation does not
        interrupt halfway. A cancelled item waits for the unit to settle,
        then removes the track document again before the cancellation
        propagates, so the item's uploads can be discarded safely.
        """
        persist = asyncio.ensure_future(self._create_and_link(track))
        try:
            await asyncio.shield(persist)
        except asyncio.CancelledError:
            await asyncio.shield(self._undo_persist(persist, track))
            raise

    async def _undo_persist(self, persist: asyncio.Future, track: Track) -> None:
        try:
            await persist
        except CatalogError:
            pass
        await self._remove_unlinked_track(track)
        logger.info(f"Rolled back track {track.id} of cancelled item")

    async def _create_and_link(self, track: Track) -> None:
        """
        The link is retried under the linking policy. If it still fails,
        the track document is removed again so no unreachable track stays
        behind, and ConsistencyError is raised.
        """
        store = self.context.store
        retry = self.context.retry
        attempts = 0

        async def create() -> None:
            nonlocal attempts
            attempts += 1
            try:
                await store.create_track(track)
            except ConsistencyError:
                # An earlier attempt's insert reached the server but its reply was lost
                if attempts == 1:
                    raise
                logger.debug(f"Track {track.id} already created by an earlier attempt")

        await retry.run(create, label=f"create track '{track.title}'")

        try:
            await retry.run(
                lambda: store.append_track_to_album(track.album_id, track.id),
                label=f"link track {track.id}",
                link=True,
            )
        except CatalogError as e:
            await self._remove_unlinked_track(track)
            raise ConsistencyError(
                f"Track '{track.title}' could not be linked to album {track.album_id}: {e.message}",
                details={"track_id": track.id, "album_id": track.album_id, "original_error": str(e)}
            ) from e

    async def _remove_unlinked_track(self, track: Track) -> None:
        try:
            await self.context.retry.run(
                lambda: self.context.store.delete_track(track.id),
                label=f"remove unlinked track {track.id}",
            )
        except NotFoundError:
            pass
        except CatalogError as e:
            logger.error(f"Unlinked track {track.id} could not be removed: {e.message}")

    async def _discard_uploads(self, work: _ItemWork) -> None:
        """Best-effort removal of blobs uploaded by an item that failed."""
        if not work.uploaded_keys:
            return
        keys = list(work.uploaded_keys)
        work.uploaded_keys.clear()
        try:
            await self.context.gateway.delete_many(keys)
            logger.debug(f"Discarded {len(keys)} uploaded object(s) of {work.source.name}")
        except CatalogError as e:
            logger.warning(f"Could not discard uploads of {work.source.name}: {e.message} ({', '.join(keys)})")

    # =========================================================================
    # Audio Replacement
    # =========================================================================

    async def replace_audio(self, track_id: str, new_file: str | Path) -> Track:
        """
        Replace a persisted track's audio, keeping its id and metadata.

        Steps:
            1. Extract the new file (duration is re-derived)
            2. Transcode every configured tier
            3. Upload to the same deterministic keys (overwriting)
            4. update_track with the new path map, duration and filename
            5. Delete keys the track referenced that the new path map no
               longer contains (tier dropped from config, tier failed,
               original with a different extension)

        Args:
            track_id: Track to update.
            new_file: Replacement audio file.

        Returns:
            The updated Track.

        Raises:
            NotFoundError: Track does not exist.
            UnsupportedFormat / CorruptFile: New file is not usable.
            EncodingFailed: A mandatory tier could not be produced.
            CatalogError: Upload of the original failed after retries.
        """
        ctx = self.context
        source = Path(new_file)

        track = await ctx.retry.run(lambda: ctx.store.get_track(track_id), label=f"load track {track_id}")
        metadata = await ctx.extractor.extract(source)
        keys = self._object_keys(track.id, track.title, track.artist, track.album_name, source)

        work = _ItemWork(source)
        work_dir = self._make_work_dir()
        try:
            files, failures = await self._transcode_tiers(source, work_dir)
            self._raise_for_mandatory(failures)

            uploaded, upload_failures = await self._upload_renditions(
                work, {ORIGINAL_TIER: source, **files}, keys
            )
            self._raise_for_mandatory(upload_failures)

            missing = [tier.name for tier in self.config.tiers if tier.name not in uploaded]
            new_path = dict(uploaded)
            stale = sorted(set(track.path.values()) - set(new_path.values()))

            updated = await ctx.retry.run(
                lambda: ctx.store.update_track(track.id, {
                    "path": new_path,
                    "duration": metadata.duration,
                    "filename": source.name,
                    "status": STATUS_PARTIAL if missing else STATUS_COMPLETE,
                    "missing_tiers": missing,
                }),
                label=f"update track {track.id}",
            )
        except BaseException:
            # Keys the track still references were overwritten in place; keep them
            work.uploaded_keys = [k for k in work.uploaded_keys if k not in track.path.values()]
            await self._discard_uploads(work)
            raise
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        if stale:
            try:
                await ctx.retry.run(lambda: ctx.gateway.delete_many(stale), label=f"delete stale keys of {track.id}")
            except CatalogError as e:
                logger.warning(f"Stale objects of track {track.id} not deleted: {e.message} ({', '.join(stale)})")

        if missing:
            log_partial_track(logger, updated.id, updated.title, str(source), missing)
        logger.info(f"Replaced audio of '{updated.title}' ({updated.id})")
        return updated

    # =========================================================================
    # Deletion
    # =========================================================================

    async def delete_track(self, track_id: str) -> Track:
        """
        Delete a track document, detach it from its album and remove its blobs.

        Raises:
            NotFoundError: Track does not exist (including a second delete).
            ConsistencyError: The document was removed but the album still
                              lists it after every linking retry.
            DeleteFailed: Blobs could not be removed.
        """
        ctx = self.context
        track = await ctx.retry.run(lambda: ctx.store.get_track(track_id), label=f"load track {track_id}")

        await ctx.retry.run(lambda: self._delete_track_document(track), label=f"delete track {track_id}")
        await self._delete_blobs(track.path.values(), f"track {track.id}")

        logger.info(f"Deleted track '{track.title}' ({track.id})")
        return track

    async def _delete_track_document(self, track: Track) -> None:
        try:
            await self.context.store.delete_track(track.id)
        except TransientIOError as e:
            if not e.details.get("track_deleted"):
                raise
            try:
                await self.context.retry.run(
                    lambda: self.context.store.detach_track_from_album(track.album_id, track.id),
                    label=f"detach track {track.id}",
                    link=True,
                )
            except CatalogError as detach_error:
                raise ConsistencyError(
                    f"Track {track.id} was deleted but album {track.album_id} still lists it",
                    details={"track_id": track.id, "album_id": track.album_id}
                ) from detach_error

    async def delete_tracks(self, track_ids: list[str]) -> list[Track]:
        """
        Delete several tracks and their blobs.

        Unknown ids are skipped.

        Returns:
            The deleted tracks.
        """
        ctx = self.context
        ids = list(track_ids)
        tracks = await ctx.retry.run(lambda: ctx.store.delete_tracks(ids), label=f"delete {len(ids)} track(s)")

        keys = [key for track in tracks for key in track.path.values()]
        await self._delete_blobs(keys, f"{len(tracks)} track(s)")

        logger.info(f"Deleted {len(tracks)} track(s)")
        return tracks

    async def delete_album(self, album_id: str, cascade: bool = False) -> list[Track]:
        """
        Delete an album; with cascade, also its tracks and their blobs.

        Returns:
            Member tracks deleted by the cascade.

        Raises:
            NotFoundError: Album does not exist.
            ConsistencyError: Album has tracks and cascade is False.
        """
        ctx = self.context
        album = await ctx.retry.run(lambda: ctx.store.get_album(album_id), label=f"load album {album_id}")
        known: list[Track] = []
        if cascade:
            known = await ctx.retry.run(
                lambda: ctx.store.tracks_by_album(album_id), label=f"load tracks of album {album_id}"
            )

        deleted = await ctx.retry.run(
            lambda: ctx.store.delete_album(album_id, cascade=cascade),
            label=f"delete album {album_id}",
        )
        # A retried cascade reports no members once an earlier attempt removed them
        members = list({track.id: track for track in [*known, *deleted]}.values())

        keys = [key for track in members for key in track.path.values()]
        if album.art_path:
            keys.append(album.art_path)
        await self._delete_blobs(keys, f"album {album.name}")

        logger.info(f"Deleted album '{album.name}' with {len(members)} track(s)")
        return members

    async def _delete_blobs(self, keys: Iterable[str], label: str) -> None:
        keys = [k for k in keys if k]
        if not keys:
            return
        try:
            await self.context.retry.run(
                lambda: self.context.gateway.delete_many(keys),
                label=f"delete objects of {label}",
            )
        except CatalogError as e:
            logger.error(f"Objects of {label} not deleted: {e.message} ({', '.join(keys)})")
            raise


def _prepare_overrides(overrides: dict[str, Any] | None) -> tuple[str | None, dict[str, Any]]:
    """
    Split batch overrides into the album name and validated track fields.

    Raises:
        ValidationError: Blank album name or a non-editable/invalid field.
    """
    if not overrides:
        return None, {}

    fields = dict(overrides)
    album = fields.pop("album", None)
    if album is not None and (not isinstance(album, str) or not album.strip()):
        raise ValidationError("'album' override must be a non-empty string", details={"field": "album"})

    return album, validate_track_update(fields, EDITABLE_TRACK_FIELDS) if fields else {}
