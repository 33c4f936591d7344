"""
Application context: the shared handles every operation needs.

Built once at startup from the loaded Config and passed by reference to
the orchestrator and the command layer. Nothing in the package reaches
for module-level singletons; whoever creates the context closes it.

Usage:
    context = AppContext.create(load_config())
    try:
        report = await Orchestrator(context).ingest_batch(paths)
    finally:
        context.close()
"""

from dataclasses import dataclass

from audio_catalog.audio.metadata import MetadataExtractor
from audio_catalog.audio.transcoder import Transcoder
from audio_catalog.catalog.store import CatalogStore
from audio_catalog.core.config import Config
from audio_catalog.core.logger import get_logger
from audio_catalog.core.retry import RetryPolicy
from audio_catalog.storage.gateway import ObjectStoreGateway

logger = get_logger(__name__)


@dataclass
class AppContext:
    """
    Shared, reentrant-safe handles for one application run.

    Attributes:
        config: Loaded configuration.
        store: MongoDB catalog store.
        gateway: Object store gateway.
        extractor: Metadata extractor.
        transcoder: ffmpeg transcoder.
        retry: Retry policy applied to every external call.
    """
    config: Config
    store: CatalogStore
    gateway: ObjectStoreGateway
    extractor: MetadataExtractor
    transcoder: Transcoder
    retry: RetryPolicy

    @classmethod
    def create(cls, config: Config) -> "AppContext":
        """Build every client from configuration. No network I/O happens here."""
        logger.debug(
            f"Creating context (bucket={config.storage.bucket_name}, "
            f"database={config.database.name}, tiers={config.tier_names})"
        )
        return cls(
            config=config,
            store=CatalogStore.connect(config.database),
            gateway=ObjectStoreGateway(config.storage, config.multipart),
            extractor=MetadataExtractor(config.ingest.supported_formats),
            transcoder=Transcoder(),
            retry=RetryPolicy.from_config(config.retry),
        )

    def close(self) -> None:
        self.store.close()
