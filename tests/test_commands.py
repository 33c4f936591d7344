"""Tests for the typed command interface"""

from unittest.mock import AsyncMock, patch

import pytest

from audio_catalog.commands import (
    CheckRequest,
    DeleteAlbumRequest,
    DeleteTracksRequest,
    IngestRequest,
    ListAlbumsRequest,
    ListTracksRequest,
    ReplaceAudioRequest,
    SearchRequest,
    TagVocabularyRequest,
    UpdateTracksRequest,
    execute,
)
from audio_catalog.core.exceptions import ConsistencyError, NotFoundError, ValidationError

from tests.conftest import client_error


class TestRequestValidation:
    """Test requests reject malformed input at construction"""

    def test_ingest_request(self):
        """Test paths must be a non-empty list"""
        assert IngestRequest(paths=["a.mp3"]).paths == ("a.mp3",)
        with pytest.raises(ValidationError):
            IngestRequest(paths=[])
        with pytest.raises(ValidationError):
            IngestRequest(paths="a.mp3")
        with pytest.raises(ValidationError):
            IngestRequest(paths=["a.mp3"], overrides=["genre"])

    def test_id_lists(self):
        """Test id lists are de-duplicated and blanks refused"""
        assert DeleteTracksRequest(track_ids=["a", " a", "b"]).track_ids == ("a", "b")
        with pytest.raises(ValidationError):
            DeleteTracksRequest(track_ids=[])
        with pytest.raises(ValidationError):
            DeleteTracksRequest(track_ids=["a", ""])
        with pytest.raises(ValidationError):
            UpdateTracksRequest(track_ids=["a"], fields={})

    def test_search_request(self):
        """Test search target and limit"""
        with pytest.raises(ValidationError):
            SearchRequest(query="x", target="artists")
        with pytest.raises(ValidationError):
            SearchRequest(query="x", limit=0)
        with pytest.raises(ValidationError):
            SearchRequest(query=None)

    def test_list_request(self):
        """Test sort field and direction"""
        with pytest.raises(ValidationError):
            ListTracksRequest(sort_field="path")
        with pytest.raises(ValidationError):
            ListTracksRequest(sort_direction="sideways")

    def test_other_requests(self):
        """Test single-id requests"""
        with pytest.raises(ValidationError):
            ReplaceAudioRequest(track_id=" ", file_path="a.mp3")
        with pytest.raises(ValidationError):
            DeleteAlbumRequest(album_id="a", cascade="yes")


class TestExecute:
    """Test dispatch through execute()"""

    @pytest.mark.asyncio
    async def test_unknown_request(self, context):
        """Test an unknown request type is a ValidationError"""
        with pytest.raises(ValidationError):
            await execute(context, {"op": "search"})

    @pytest.mark.asyncio
    async def test_ingest_search_and_list(self, context, extractor, audio_file):
        """Test a full command round: ingest, search, list"""
        extractor.add("trackA.mp3", title="Song A", album="Demo", genre="Pop")
        extractor.add("trackB.mp3", title="Song B", album="demo ")

        ingest = await execute(context, IngestRequest(paths=[audio_file("trackA.mp3"), audio_file("trackB.mp3")]))
        assert len(ingest.report.succeeded) == 2

        found = await execute(context, SearchRequest(query="song", target="all"))
        assert [t.title for t in found.tracks] == ["Song A", "Song B"]
        assert found.albums == []

        albums = await execute(context, SearchRequest(query="DEMO", target="albums"))
        assert [a.name for a in albums.albums] == ["Demo"]
        assert albums.tracks == []

        listed = await execute(context, ListTracksRequest(sort_field="title", sort_direction="desc", limit=1))
        assert listed.page.total_count == 2
        assert [t.title for t in listed.page.tracks] == ["Song B"]

        album_view = await execute(context, ListAlbumsRequest(album_id=albums.albums[0].id))
        assert len(album_view.tracks) == 2

        vocabulary = await execute(context, TagVocabularyRequest())
        assert "Pop" in vocabulary.vocabulary["genre"]

    @pytest.mark.asyncio
    async def test_update_and_delete(self, context, extractor, audio_file, s3_client):
        """Test bulk edit and deletion commands"""
        extractor.add("a.mp3", album="Demo")
        extractor.add("b.mp3", album="Demo")
        ingest = await execute(context, IngestRequest(paths=[audio_file("a.mp3"), audio_file("b.mp3")]))
        ids = [r.track_id for r in ingest.report.results]
        album_id = ingest.report.results[0].album_id

        updated = await execute(context, UpdateTracksRequest(
            track_ids=ids, fields={"writers": [{"name": "Ann", "percentage": 100}]}
        ))
        assert updated.matched == 2

        with pytest.raises(ConsistencyError):
            await execute(context, DeleteAlbumRequest(album_id=album_id))

        deleted = await execute(context, DeleteTracksRequest(track_ids=[ids[0]]))
        assert [t.id for t in deleted.deleted] == [ids[0]]
        with pytest.raises(NotFoundError):
            await execute(context, DeleteTracksRequest(track_ids=[ids[0]]))

        cascade = await execute(context, DeleteAlbumRequest(album_id=album_id, cascade=True))
        assert [t.id for t in cascade.deleted] == [ids[1]]
        assert s3_client.objects == {}

    @pytest.mark.asyncio
    async def test_replace_command(self, context, extractor, audio_file):
        """Test replacement through the command layer"""
        extractor.add("a.mp3", title="Keep")
        ingest = await execute(context, IngestRequest(paths=[audio_file("a.mp3")]))
        track_id = ingest.report.results[0].track_id

        extractor.add("b.mp3", duration=42.0)
        response = await execute(context, ReplaceAudioRequest(track_id=track_id, file_path=str(audio_file("b.mp3"))))

        assert response.track.id == track_id
        assert response.track.title == "Keep"
        assert response.track.duration == 42.0

    @pytest.mark.asyncio
    async def test_check(self, context, s3_client):
        """Test connectivity check reports each component"""
        def denied(Bucket):
            raise client_error("AccessDenied", 403, "HeadBucket")

        s3_client.head_bucket = denied
        context.store.ping = AsyncMock(return_value=True)

        with patch("audio_catalog.commands.check_ffmpeg", return_value=True):
            response = await execute(context, CheckRequest())

        assert response.database is True
        assert response.storage is False
        assert response.ffmpeg is True
        assert "storage" in response.errors
        assert not response.ok
