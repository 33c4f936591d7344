"""
Audio metadata extraction.

Reads container tags and technical stream properties with mutagen and
normalizes them into an AudioMetadata record. Absent tags get readable
defaults; duration never defaults, a file without a readable duration is
a CorruptFile.

Usage:
    from audio_catalog.audio.metadata import MetadataExtractor

    extractor = MetadataExtractor(config.ingest.supported_formats)
    metadata = await extractor.extract(Path("song.mp3"))
    print(metadata.title, metadata.duration)
"""

import asyncio
import re
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import mutagen

from audio_catalog.core.config import DEFAULT_SUPPORTED_FORMATS
from audio_catalog.core.exceptions import CorruptFile, UnsupportedFormat
from audio_catalog.core.logger import get_logger

logger = get_logger(__name__)


UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"

# ID3 frame ids used when mutagen returns raw (non-easy) ID3 tags, e.g. WAV
_ID3_FRAMES = {
    "title": "TIT2",
    "artist": "TPE1",
    "album": "TALB",
    "genre": "TCON",
    "date": "TDRC",
    "tracknumber": "TRCK",
    "composer": "TCOM",
}

# MP4 atoms used when easy mode is unavailable
_MP4_ATOMS = {
    "title": "\xa9nam",
    "artist": "\xa9ART",
    "album": "\xa9alb",
    "genre": "\xa9gen",
    "date": "\xa9day",
    "composer": "\xa9wrt",
    "comment": "\xa9cmt",
}

_YEAR_PATTERN = re.compile(r"(\d{4})")
_NUMBER_PATTERN = re.compile(r"^\s*(\d+)")


@dataclass(frozen=True)
class AudioMetadata:
    """
    Normalized metadata extracted from an audio file.

    Attributes:
        title: Track title ("Unknown Title" if absent).
        artist: Track artist ("Unknown Artist" if absent).
        album: Album name ("Unknown Album" if absent).
        duration: Length in seconds (> 0).
        bitrate: Stream bitrate in bits per second (0 if unknown).
        sample_rate: Sample rate in Hz (0 if unknown).
        genre: Genre tag, if present.
        year: Release year, if present.
        track_number: Position on the album, if present.
        composer: Composer tag, if present.
        comments: Comment tag, if present.
    """
    title: str
    artist: str
    album: str
    duration: float
    bitrate: int = 0
    sample_rate: int = 0
    genre: str | None = None
    year: int | None = None
    track_number: int | None = None
    composer: str | None = None
    comments: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class MetadataExtractor:
    """
    Extracts AudioMetadata from local files.

    Attributes:
        supported_formats: Accepted extensions (lowercase, no dot).
    """

    def __init__(self, supported_formats: tuple[str, ...] = DEFAULT_SUPPORTED_FORMATS) -> None:
        self.supported_formats = tuple(f.lower().lstrip(".") for f in supported_formats)

    async def extract(self, file_path: Path) -> AudioMetadata:
        """Extract metadata in a worker thread (parsing is blocking I/O)."""
        return await asyncio.to_thread(self.extract_sync, Path(file_path))

    def extract_sync(self, file_path: Path) -> AudioMetadata:
        """
        Extract metadata from an audio file.

        Raises:
            UnsupportedFormat: Extension is not in supported_formats.
            CorruptFile: File missing, container unreadable, or no positive duration.
        """
        extension = file_path.suffix.lower().lstrip(".")
        if extension not in self.supported_formats:
            raise UnsupportedFormat(
                f"Unsupported audio format: .{extension or '?'}",
                details={"file_path": str(file_path), "extension": extension}
            )

        if not file_path.is_file():
            raise CorruptFile(
                f"File not found: {file_path}",
                details={"file_path": str(file_path)}
            )

        try:
            audio = mutagen.File(file_path, easy=True)
        except (mutagen.MutagenError, OSError, ValueError) as e:
            raise CorruptFile(
                f"Could not parse audio container: {e}",
                details={"file_path": str(file_path), "original_error": str(e)}
            ) from e

        if audio is None or audio.info is None:
            raise CorruptFile(
                "Unrecognized audio container",
                details={"file_path": str(file_path)}
            )

        duration = getattr(audio.info, "length", None)
        if not duration or duration <= 0:
            raise CorruptFile(
                "Audio stream has no readable duration",
                details={"file_path": str(file_path)}
            )

        tags = audio.tags
        if tags is None:
            logger.debug(f"No tags in {file_path.name}, using filename as title")
            title = file_path.stem.strip() or UNKNOWN_TITLE
        else:
            title = _read_tag(tags, "title") or UNKNOWN_TITLE

        metadata = AudioMetadata(
            title=title,
            artist=_read_tag(tags, "artist") or UNKNOWN_ARTIST,
            album=_read_tag(tags, "album") or UNKNOWN_ALBUM,
            duration=round(float(duration), 3),
            bitrate=int(getattr(audio.info, "bitrate", 0) or 0),
            sample_rate=int(getattr(audio.info, "sample_rate", 0) or 0),
            genre=_read_tag(tags, "genre"),
            year=_parse_int(_read_tag(tags, "date"), _YEAR_PATTERN),
            track_number=_parse_int(_read_tag(tags, "tracknumber"), _NUMBER_PATTERN),
            composer=_read_tag(tags, "composer"),
            comments=_read_tag(tags, "comment") or _read_tag(tags, "description"),
        )

        for field_name, default in (("title", UNKNOWN_TITLE), ("artist", UNKNOWN_ARTIST), ("album", UNKNOWN_ALBUM)):
            if getattr(metadata, field_name) == default:
                logger.debug(f"{file_path.name}: {field_name} missing, using '{default}'")

        return metadata


def _read_tag(tags: Any, name: str) -> str | None:
    """
    First non-empty string value of a tag, across tag flavors.

    Handles easy tags (lists of strings), raw ID3 frames (objects with a
    `.text` list) and MP4 atoms.
    """
    if tags is None:
        return None

    for key in (name, _ID3_FRAMES.get(name), _MP4_ATOMS.get(name)):
        if key is None:
            continue
        try:
            value = tags.get(key)
        except (KeyError, ValueError, TypeError):
            continue
        if value is None:
            continue

        if hasattr(value, "text"):
            value = value.text
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        if value is None:
            continue

        text = str(value).strip()
        if text:
            return text

    return None


def _parse_int(value: str | None, pattern: re.Pattern) -> int | None:
    if not value:
        return None
    match = pattern.search(value)
    return int(match.group(1)) if match else None
