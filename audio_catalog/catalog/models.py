"""
Catalog data model: albums, tracks and rights shares.

The dataclasses here are the in-memory form of the MongoDB documents. The
validation helpers are called by CatalogStore on every write, so every
writer gets the same invariant checks:

    - title / album name are non-empty
    - duration is positive
    - writers and publishers: non-negative percentages summing to 100
      (within SHARE_TOLERANCE) whenever the list is non-empty
    - path always holds the "original" tier
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from audio_catalog.core.config import ORIGINAL_TIER
from audio_catalog.core.exceptions import ValidationError


SHARE_TOLERANCE = 0.01

STATUS_COMPLETE = "complete"
STATUS_PARTIAL = "partial"

# Fields an operator may edit on an existing track
EDITABLE_TRACK_FIELDS = frozenset({
    "title",
    "artist",
    "track_number",
    "year",
    "writers",
    "publishers",
    "composers",
    "genre",
    "instruments",
    "mood",
    "comments",
})

# Fields the pipeline itself may rewrite (audio replacement)
PIPELINE_TRACK_FIELDS = frozenset({
    "path",
    "status",
    "missing_tiers",
    "duration",
    "filename",
})

EDITABLE_ALBUM_FIELDS = frozenset({"name", "artist", "art_path", "release_date", "publisher"})


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_album_name(name: str) -> str:
    """
    De-duplication key for album names.

    Case-folded with whitespace collapsed and trimmed, so "Demo",
    "demo " and " DEMO" all map to "demo".
    """
    return " ".join((name or "").split()).casefold()


def display_album_name(name: str) -> str:
    """Stored display form: trimmed with inner whitespace collapsed."""
    return " ".join((name or "").split())


def normalize_tags(tags: Any) -> list[str]:
    """
    Normalize a tag set.

    Accepts a list of strings or a comma-separated string. Strips each
    tag, drops empties and removes case-insensitive duplicates, keeping
    the first spelling seen.
    """
    if tags is None:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    if not isinstance(tags, (list, tuple, set, frozenset)):
        raise ValidationError(
            "Tags must be a list of strings or a comma-separated string",
            details={"value": repr(tags)}
        )

    seen: set[str] = set()
    result = []
    for tag in tags:
        if not isinstance(tag, str):
            raise ValidationError("Tags must be strings", details={"value": repr(tag)})
        cleaned = " ".join(tag.split())
        if cleaned and cleaned.casefold() not in seen:
            seen.add(cleaned.casefold())
            result.append(cleaned)
    return result


@dataclass(frozen=True)
class Share:
    """A rights holder and their percentage (writers, publishers)."""
    name: str
    percentage: float

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "percentage": self.percentage}


def validate_shares(shares: Iterable[Any] | None, field_name: str) -> list[Share]:
    """
    Validate and normalize a writers/publishers list.

    Args:
        shares: Share objects or {"name", "percentage"} dicts.
        field_name: Name used in error messages.

    Returns:
        List of Share objects (empty list if None).

    Raises:
        ValidationError: Empty name, negative or non-numeric percentage,
                         or a non-empty list not summing to 100.
    """
    if shares is None:
        return []
    if isinstance(shares, (str, bytes, dict)):
        raise ValidationError(
            f"'{field_name}' must be a list of {{name, percentage}} entries",
            details={"field": field_name}
        )

    result = []
    for index, entry in enumerate(shares):
        if isinstance(entry, Share):
            name, percentage = entry.name, entry.percentage
        elif isinstance(entry, dict):
            name, percentage = entry.get("name"), entry.get("percentage")
        else:
            raise ValidationError(
                f"'{field_name}[{index}]' must be an object with name and percentage",
                details={"field": field_name, "index": index}
            )

        if not isinstance(name, str) or not name.strip():
            raise ValidationError(
                f"'{field_name}[{index}].name' must be a non-empty string",
                details={"field": field_name, "index": index}
            )
        if isinstance(percentage, bool) or not isinstance(percentage, (int, float)):
            raise ValidationError(
                f"'{field_name}[{index}].percentage' must be a number",
                details={"field": field_name, "index": index, "value": repr(percentage)}
            )
        if percentage < 0:
            raise ValidationError(
                f"'{field_name}[{index}].percentage' must not be negative",
                details={"field": field_name, "index": index, "value": percentage}
            )
        result.append(Share(name=name.strip(), percentage=float(percentage)))

    if result:
        total = sum(share.percentage for share in result)
        if abs(total - 100.0) > SHARE_TOLERANCE:
            raise ValidationError(
                f"'{field_name}' percentages must sum to 100 (got {total:g})",
                details={"field": field_name, "total": total}
            )

    return result


def _require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"'{field_name}' must be a non-empty string",
            details={"field": field_name}
        )
    return value.strip()


def _optional_int(value: Any, field_name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(
            f"'{field_name}' must be a non-negative integer",
            details={"field": field_name, "value": repr(value)}
        )
    return value


def _validate_duration(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValidationError(
            "'duration' must be a positive number of seconds",
            details={"field": "duration", "value": repr(value)}
        )
    return float(value)


def _validate_path(value: Any) -> dict[str, str]:
    if not isinstance(value, dict) or not value.get(ORIGINAL_TIER):
        raise ValidationError(
            f"'path' must map tiers to object keys and include '{ORIGINAL_TIER}'",
            details={"field": "path"}
        )
    for tier, key in value.items():
        if not isinstance(tier, str) or not isinstance(key, str) or not key:
            raise ValidationError(
                "'path' entries must be non-empty strings",
                details={"field": "path", "tier": repr(tier)}
            )
    return dict(value)


def validate_track_update(partial: dict[str, Any], allowed: frozenset[str]) -> dict[str, Any]:
    """
    Validate a partial track update and return its normalized form.

    Raises:
        ValidationError: Unknown/forbidden field or invalid value.
    """
    if not partial:
        raise ValidationError("Update contains no fields")

    forbidden = set(partial) - allowed
    if forbidden:
        raise ValidationError(
            f"Field(s) not updatable: {', '.join(sorted(forbidden))}",
            details={"fields": sorted(forbidden)}
        )

    normalized: dict[str, Any] = {}
    for key, value in partial.items():
        if key == "title":
            normalized[key] = _require_text(value, "title")
        elif key in ("writers", "publishers"):
            normalized[key] = [s.to_dict() for s in validate_shares(value, key)]
        elif key in ("genre", "instruments", "mood", "composers"):
            normalized[key] = normalize_tags(value)
        elif key in ("track_number", "year"):
            normalized[key] = _optional_int(value, key)
        elif key == "duration":
            normalized[key] = _validate_duration(value)
        elif key == "path":
            normalized[key] = _validate_path(value)
        elif key == "status":
            if value not in (STATUS_COMPLETE, STATUS_PARTIAL):
                raise ValidationError("'status' must be 'complete' or 'partial'", details={"value": value})
            normalized[key] = value
        elif key == "missing_tiers":
            normalized[key] = normalize_tags(value)
        elif key in ("comments", "artist"):
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"'{key}' must be a string", details={"field": key})
            normalized[key] = value.strip() if isinstance(value, str) and value.strip() else None
        elif key == "filename":
            normalized[key] = _require_text(value, "filename")
        else:
            normalized[key] = value

    return normalized


@dataclass
class Album:
    """
    An album document.

    Attributes:
        id: Opaque identifier.
        name: Display name (non-empty).
        name_key: Normalized name used for de-duplication.
        track_ids: Ids of tracks whose album_id is this album.
        artist: Album artist, taken from the first ingested track.
        art_path: Object key of the cover art, if any.
        release_date: Free-form release date, if known.
        publisher: Label/publisher, if known.
    """
    id: str
    name: str
    name_key: str
    track_ids: list[str] = field(default_factory=list)
    artist: str | None = None
    art_path: str | None = None
    release_date: str | None = None
    publisher: str | None = None
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    @classmethod
    def new(cls, name: str, artist: str | None = None, **extra: Any) -> "Album":
        display = display_album_name(_require_text(name, "name"))
        return cls(
            id=new_id(),
            name=display,
            name_key=normalize_album_name(display),
            artist=artist,
            **extra,
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "name": self.name,
            "name_key": self.name_key,
            "track_ids": list(self.track_ids),
            "artist": self.artist,
            "art_path": self.art_path,
            "release_date": self.release_date,
            "publisher": self.publisher,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Album":
        return cls(
            id=str(doc["_id"]),
            name=doc["name"],
            name_key=doc.get("name_key") or normalize_album_name(doc["name"]),
            track_ids=list(doc.get("track_ids") or []),
            artist=doc.get("artist"),
            art_path=doc.get("art_path"),
            release_date=doc.get("release_date"),
            publisher=doc.get("publisher"),
            created_at=doc.get("created_at") or "",
            updated_at=doc.get("updated_at") or "",
        )


@dataclass
class Track:
    """
    A track document.

    Attributes:
        id: Opaque identifier, stable across audio replacement.
        title: Non-empty title.
        album_id: Owning album.
        album_name: Owning album's display name (denormalized for search/sort).
        filename: Original uploaded filename.
        duration: Seconds, from extraction.
        path: Tier name -> object key. Always contains "original".
        status: "complete", or "partial" when configured tiers are missing.
        missing_tiers: Configured tiers not produced.
    """
    id: str
    title: str
    album_id: str
    album_name: str
    filename: str
    duration: float
    path: dict[str, str]
    artist: str | None = None
    track_number: int | None = None
    year: int | None = None
    writers: list[Share] = field(default_factory=list)
    publishers: list[Share] = field(default_factory=list)
    composers: list[str] = field(default_factory=list)
    genre: list[str] = field(default_factory=list)
    instruments: list[str] = field(default_factory=list)
    mood: list[str] = field(default_factory=list)
    comments: str | None = None
    status: str = STATUS_COMPLETE
    missing_tiers: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    @property
    def is_partial(self) -> bool:
        return self.status == STATUS_PARTIAL

    def validate(self) -> None:
        """
        Check every invariant of a complete track document.

        Raises:
            ValidationError: On the first violated invariant.
        """
        self.title = _require_text(self.title, "title")
        _require_text(self.album_id, "album_id")
        _require_text(self.filename, "filename")
        self.duration = _validate_duration(self.duration)
        self.path = _validate_path(self.path)
        self.writers = validate_shares(self.writers, "writers")
        self.publishers = validate_shares(self.publishers, "publishers")
        self.composers = normalize_tags(self.composers)
        self.genre = normalize_tags(self.genre)
        self.instruments = normalize_tags(self.instruments)
        self.mood = normalize_tags(self.mood)
        self.missing_tiers = normalize_tags(self.missing_tiers)
        self.track_number = _optional_int(self.track_number, "track_number")
        self.year = _optional_int(self.year, "year")

        if self.status not in (STATUS_COMPLETE, STATUS_PARTIAL):
            raise ValidationError("'status' must be 'complete' or 'partial'", details={"value": self.status})
        if self.missing_tiers and self.status != STATUS_PARTIAL:
            raise ValidationError(
                "A track with missing tiers must be marked partial",
                details={"missing_tiers": self.missing_tiers}
            )

    def to_document(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "title": self.title,
            "album_id": self.album_id,
            "album_name": self.album_name,
            "filename": self.filename,
            "duration": self.duration,
            "path": dict(self.path),
            "artist": self.artist,
            "track_number": self.track_number,
            "year": self.year,
            "writers": [s.to_dict() for s in self.writers],
            "publishers": [s.to_dict() for s in self.publishers],
            "composers": list(self.composers),
            "genre": list(self.genre),
            "instruments": list(self.instruments),
            "mood": list(self.mood),
            "comments": self.comments,
            "status": self.status,
            "missing_tiers": list(self.missing_tiers),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Track":
        return cls(
            id=str(doc["_id"]),
            title=doc["title"],
            album_id=doc["album_id"],
            album_name=doc.get("album_name") or "",
            filename=doc.get("filename") or "",
            duration=doc.get("duration") or 0,
            path=dict(doc.get("path") or {}),
            artist=doc.get("artist"),
            track_number=doc.get("track_number"),
            year=doc.get("year"),
            writers=[Share(s["name"], s["percentage"]) for s in doc.get("writers") or []],
            publishers=[Share(s["name"], s["percentage"]) for s in doc.get("publishers") or []],
            composers=list(doc.get("composers") or []),
            genre=list(doc.get("genre") or []),
            instruments=list(doc.get("instruments") or []),
            mood=list(doc.get("mood") or []),
            comments=doc.get("comments"),
            status=doc.get("status") or STATUS_COMPLETE,
            missing_tiers=list(doc.get("missing_tiers") or []),
            created_at=doc.get("created_at") or "",
            updated_at=doc.get("updated_at") or "",
        )


@dataclass(frozen=True)
class TrackPage:
    """One page of list_tracks() results."""
    tracks: list[Track]
    total_count: int
    limit: int
    skip: int
