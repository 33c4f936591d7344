"""
Audio module for audio-catalog.

Components:
    - MetadataExtractor: tags and stream properties via mutagen
    - Transcoder: per-tier renditions via the ffmpeg CLI

Usage:
    from audio_catalog.audio import MetadataExtractor, Transcoder
"""

from audio_catalog.audio.metadata import (
    UNKNOWN_ALBUM,
    UNKNOWN_ARTIST,
    UNKNOWN_TITLE,
    AudioMetadata,
    MetadataExtractor,
)
from audio_catalog.audio.transcoder import Transcoder, check_ffmpeg

__all__ = [
    "AudioMetadata",
    "MetadataExtractor",
    "UNKNOWN_TITLE",
    "UNKNOWN_ARTIST",
    "UNKNOWN_ALBUM",
    "Transcoder",
    "check_ffmpeg",
]
