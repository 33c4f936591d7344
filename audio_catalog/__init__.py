"""
audio-catalog: ingest audio files into an object store and a MongoDB catalog.

Every file of a batch goes through the same pipeline:

    1. Extract metadata (title, artist, album, duration, ...) with mutagen
    2. Resolve the owning album (one album per normalized name)
    3. Transcode the configured quality tiers with ffmpeg
    4. Upload the original and every produced tier to the bucket
    5. Persist the track document and link it into its album

Modules:
    core/       - Configuration, logging, exceptions, retry policy, progress
    audio/      - Metadata extraction and ffmpeg transcoding
    storage/    - Object key scheme and the S3/R2 gateway
    catalog/    - Album/track model and the MongoDB store
    ingest/     - Application context, orchestrator, batch reports
    commands.py - Typed request/response interface
    cli.py      - Command-line interface

Usage:
    Command Line:
        catalog ingest song.flac other.mp3 --album "Demo"
        catalog search "song"
        catalog delete <track-id>

    Python API:
        import asyncio
        from audio_catalog import AppContext, Orchestrator, load_config

        context = AppContext.create(load_config())
        try:
            report = asyncio.run(Orchestrator(context).ingest_batch(["song.flac"]))
            print(report.summary())
        finally:
            context.close()

Configuration:
    Requires a config.yaml file in the current directory:

        storage:
          account_id: "..."
          access_key_id: "..."
          secret_access_key: "..."
          bucket_name: "music"

        database:
          uri: "mongodb://localhost:27017"

        tiers:
          medium: {codec: aac, bitrate: 256k, sample_rate: 44100}
          low: {codec: aac, bitrate: 128k, sample_rate: 44100}

Dependencies:
    - mutagen: Audio metadata reading
    - ffmpeg-python: ffmpeg command construction
    - boto3: S3-compatible object store client
    - pymongo: MongoDB driver
    - click / rich-click: CLI framework and colors
    - rich: Progress bars and tables
    - tqdm / colorama: Console logging
    - pyyaml / python-dotenv: Configuration
"""

__version__ = "0.1.0"
__author__ = "audio-catalog"
__license__ = "MIT"

# Convenience imports for common usage
from audio_catalog.core import (
    CatalogError,
    Config,
    ConfigError,
    ConsistencyError,
    NotFoundError,
    TransientIOError,
    ValidationError,
    get_logger,
    load_config,
    setup_logging,
)
from audio_catalog.catalog import Album, CatalogStore, Track
from audio_catalog.ingest import AppContext, BatchReport, ItemResult, Orchestrator

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "setup_logging",
    "get_logger",
    # Exceptions
    "CatalogError",
    "ConfigError",
    "ValidationError",
    "NotFoundError",
    "TransientIOError",
    "ConsistencyError",
    # Catalog
    "Album",
    "Track",
    "CatalogStore",
    # Ingest
    "AppContext",
    "Orchestrator",
    "BatchReport",
    "ItemResult",
]
