"""
Object storage module for audio-catalog.

    - keys: deterministic, sanitized object keys
    - gateway: S3-compatible (Cloudflare R2) client with multipart uploads
"""

from audio_catalog.storage.gateway import ObjectStoreGateway, classify_storage_error
from audio_catalog.storage.keys import (
    ORIGINAL_PREFIX,
    SINGLES_ALBUM,
    TRANSCODED_PREFIX,
    build_object_key,
    content_type_for,
    sanitize_key_segment,
)

__all__ = [
    "ObjectStoreGateway",
    "classify_storage_error",
    "build_object_key",
    "sanitize_key_segment",
    "content_type_for",
    "ORIGINAL_PREFIX",
    "TRANSCODED_PREFIX",
    "SINGLES_ALBUM",
]
