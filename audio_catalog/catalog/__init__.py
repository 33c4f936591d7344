"""
Catalog module for audio-catalog.

Album and track documents, their invariants, and the MongoDB store that
enforces them on every write.

Usage:
    from audio_catalog.catalog import CatalogStore, Track, Album
"""

from audio_catalog.catalog.models import (
    Album,
    Share,
    Track,
    TrackPage,
    normalize_album_name,
    normalize_tags,
    validate_shares,
    validate_track_update,
)
from audio_catalog.catalog.store import CatalogStore

__all__ = [
    "Album",
    "Track",
    "Share",
    "TrackPage",
    "CatalogStore",
    "normalize_album_name",
    "normalize_tags",
    "validate_shares",
    "validate_track_update",
]
