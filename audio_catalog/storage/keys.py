"""
Deterministic object-store key scheme.

Keys are derived from track/album identity, never randomly, so that
re-uploading a track's audio overwrites the same objects:

    original/{artist}/{album}/{track_id}/{title}_original.{ext}
    transcoded/{artist}/{album}/{track_id}/{title}_{tier}.{ext}

Tracks without an album name are filed under "Singles". The track_id
segment keeps keys unique even when two titles sanitize to the same text.
"""

import mimetypes
import re

from audio_catalog.core.config import ORIGINAL_TIER


ORIGINAL_PREFIX = "original"
TRANSCODED_PREFIX = "transcoded"
SINGLES_ALBUM = "Singles"

# Path separators, control characters, and characters that need URL
# escaping or are rejected by some S3-compatible stores
_INVALID_CHARS_PATTERN = re.compile(r'[<>:"/\\|?*#%{}^~\[\]`\x00-\x1f\x7f]')
_WHITESPACE_PATTERN = re.compile(r"\s+")
_REPEATED_UNDERSCORE_PATTERN = re.compile(r"_{2,}")

_MAX_SEGMENT_LENGTH = 120

_CONTENT_TYPES = {
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "opus": "audio/ogg",
}


def sanitize_key_segment(text: str | None) -> str:
    """
    Turn arbitrary user text into a single key-safe path segment.

    Behavior:
        - Replaces invalid characters and whitespace runs with underscores
        - Collapses repeated underscores
        - Strips leading/trailing underscores and dots (no "." or ".." segments)
        - Truncates to a maximum length
        - Returns "Unknown" if the result is empty
    """
    if not text:
        return "Unknown"

    result = _INVALID_CHARS_PATTERN.sub("_", text)
    result = _WHITESPACE_PATTERN.sub("_", result)
    result = _REPEATED_UNDERSCORE_PATTERN.sub("_", result)
    result = result.strip("_.")

    if len(result) > _MAX_SEGMENT_LENGTH:
        result = result[:_MAX_SEGMENT_LENGTH].rstrip("_.")

    return result if result else "Unknown"


def build_object_key(
    artist: str | None,
    album: str | None,
    track_id: str,
    title: str | None,
    tier: str,
    extension: str,
) -> str:
    """
    Build the object key for one rendition of a track.

    Args:
        artist: Track artist (free text).
        album: Album name (free text); empty means "Singles".
        track_id: Track identifier.
        title: Track title (free text).
        tier: Tier name; "original" selects the original/ prefix.
        extension: File extension with or without leading dot.

    Example:
        >>> build_object_key("AC/DC", "Back in Black", "ab12", "Hells Bells", "low", "m4a")
        'transcoded/AC_DC/Back_in_Black/ab12/Hells_Bells_low.m4a'
    """
    prefix = ORIGINAL_PREFIX if tier == ORIGINAL_TIER else TRANSCODED_PREFIX
    album_segment = sanitize_key_segment(album) if album and album.strip() else SINGLES_ALBUM
    ext = sanitize_key_segment(extension.lstrip(".").lower())

    return "/".join([
        prefix,
        sanitize_key_segment(artist),
        album_segment,
        sanitize_key_segment(track_id),
        f"{sanitize_key_segment(title)}_{sanitize_key_segment(tier)}.{ext}",
    ])


def content_type_for(extension_or_path: str) -> str:
    """Best-effort MIME type for an audio file extension or path."""
    ext = extension_or_path.rsplit(".", 1)[-1].lower()
    if ext in _CONTENT_TYPES:
        return _CONTENT_TYPES[ext]
    guessed, _ = mimetypes.guess_type(f"file.{ext}")
    return guessed or "application/octet-stream"
