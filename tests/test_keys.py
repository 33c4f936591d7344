"""Tests for the object key scheme"""

from audio_catalog.storage.keys import build_object_key, content_type_for, sanitize_key_segment


class TestKeys:
    """Test key sanitization and layout"""

    def test_sanitize_key_segment(self):
        """Test separators and control characters never survive"""
        assert sanitize_key_segment("AC/DC") == "AC_DC"
        assert sanitize_key_segment("..") == "Unknown"
        assert sanitize_key_segment("") == "Unknown"
        assert sanitize_key_segment(None) == "Unknown"
        assert sanitize_key_segment("a\x00b\nc") == "a_b_c"
        assert sanitize_key_segment("What?  Now") == "What_Now"
        assert len(sanitize_key_segment("x" * 500)) == 120

    def test_build_original_key(self):
        """Test original tier uses the original/ prefix and source extension"""
        key = build_object_key("AC/DC", "Back in Black", "ab12", "Hells Bells", "original", ".MP3")
        assert key == "original/AC_DC/Back_in_Black/ab12/Hells_Bells_original.mp3"

    def test_build_transcoded_key(self):
        """Test other tiers use the transcoded/ prefix"""
        key = build_object_key("Artist", "Album", "ab12", "Title", "low", "m4a")
        assert key == "transcoded/Artist/Album/ab12/Title_low.m4a"

    def test_singles(self):
        """Test missing album names file under Singles"""
        assert build_object_key("Artist", None, "id", "T", "low", "m4a").split("/")[2] == "Singles"
        assert build_object_key("Artist", "  ", "id", "T", "low", "m4a").split("/")[2] == "Singles"

    def test_same_title_different_track_ids(self):
        """Test colliding titles stay distinct through the track id"""
        first = build_object_key("A", "B", "id1", "Song/1", "low", "m4a")
        second = build_object_key("A", "B", "id2", "Song?1", "low", "m4a")
        assert first != second

    def test_content_type_for(self):
        """Test MIME types for audio extensions"""
        assert content_type_for("song.mp3") == "audio/mpeg"
        assert content_type_for("m4a") == "audio/mp4"
        assert content_type_for("file.unknownext") == "application/octet-stream"
