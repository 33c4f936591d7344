"""Tests for metadata extraction"""

import wave

import pytest

from audio_catalog.audio.metadata import UNKNOWN_ALBUM, UNKNOWN_ARTIST, MetadataExtractor
from audio_catalog.core.exceptions import CorruptFile, UnsupportedFormat


def write_silence(path, seconds=1, rate=8000):
    """Write a mono 16-bit PCM WAV of silence"""
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(rate)
        wav.writeframes(b"\x00\x00" * rate * seconds)
    return path


class TestMetadataExtractor:
    """Test MetadataExtractor against real files"""

    def test_untagged_wav_defaults(self, temp_dir):
        """Test an untagged file gets filename title and unknown artist/album"""
        path = write_silence(temp_dir / "Morning Take.wav", seconds=2)

        metadata = MetadataExtractor().extract_sync(path)

        assert metadata.title == "Morning Take"
        assert metadata.artist == UNKNOWN_ARTIST
        assert metadata.album == UNKNOWN_ALBUM
        assert metadata.duration == pytest.approx(2.0, abs=0.01)
        assert metadata.sample_rate == 8000

    def test_corrupt_mp3(self, temp_dir):
        """Test non-audio content with an .mp3 extension is CorruptFile"""
        path = temp_dir / "fake.mp3"
        path.write_bytes(b"this is definitely not an mpeg stream" * 10)

        with pytest.raises(CorruptFile):
            MetadataExtractor().extract_sync(path)

    def test_unsupported_extension(self, temp_dir):
        """Test extensions outside supported_formats are refused"""
        path = temp_dir / "notes.txt"
        path.write_text("hello")

        with pytest.raises(UnsupportedFormat):
            MetadataExtractor().extract_sync(path)

    def test_restricted_formats(self, temp_dir):
        """Test supported_formats comes from configuration"""
        path = write_silence(temp_dir / "take.wav")

        with pytest.raises(UnsupportedFormat):
            MetadataExtractor(("mp3", "flac")).extract_sync(path)

    def test_missing_file(self, temp_dir):
        """Test a path that does not exist is CorruptFile"""
        with pytest.raises(CorruptFile):
            MetadataExtractor().extract_sync(temp_dir / "gone.mp3")

    @pytest.mark.asyncio
    async def test_extract_async(self, temp_dir):
        """Test the async wrapper returns the same metadata"""
        path = write_silence(temp_dir / "take.wav")
        extractor = MetadataExtractor()

        assert await extractor.extract(path) == extractor.extract_sync(path)
