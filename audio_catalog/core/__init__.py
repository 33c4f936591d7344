"""
Core module for audio-catalog.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - logger: Logging system with multiple outputs
    - retry: Retry policy by error kind
    - progress: Rich progress bars

Usage:
    from audio_catalog.core import (
        Config, load_config,
        RetryPolicy,
        setup_logging, get_logger,
        CatalogError, ConfigError, ValidationError
    )
"""

from audio_catalog.core.config import (
    ORIGINAL_TIER,
    ConcurrencyConfig,
    Config,
    DatabaseConfig,
    IngestConfig,
    MultipartConfig,
    RetryConfig,
    StorageConfig,
    TierPreset,
    load_config,
    parse_config,
)
from audio_catalog.core.exceptions import (
    CatalogError,
    ConfigError,
    ConsistencyError,
    CorruptFile,
    DatabaseError,
    DeleteFailed,
    EncodingFailed,
    ExternalProcessError,
    NotFoundError,
    StorageError,
    TransientIOError,
    UnsupportedFormat,
    UploadFailed,
    ValidationError,
)
from audio_catalog.core.logger import (
    get_logger,
    log_ingest_failure,
    log_partial_track,
    setup_logging,
    shutdown_logging,
)
from audio_catalog.core.retry import ErrorClass, RetryPolicy, classify_error

__all__ = [
    # Config
    "Config",
    "StorageConfig",
    "DatabaseConfig",
    "TierPreset",
    "ConcurrencyConfig",
    "MultipartConfig",
    "RetryConfig",
    "IngestConfig",
    "ORIGINAL_TIER",
    "load_config",
    "parse_config",
    # Exceptions
    "CatalogError",
    "ConfigError",
    "ValidationError",
    "UnsupportedFormat",
    "CorruptFile",
    "NotFoundError",
    "TransientIOError",
    "ExternalProcessError",
    "EncodingFailed",
    "ConsistencyError",
    "DatabaseError",
    "StorageError",
    "UploadFailed",
    "DeleteFailed",
    # Logger
    "setup_logging",
    "get_logger",
    "log_ingest_failure",
    "log_partial_track",
    "shutdown_logging",
    # Retry
    "ErrorClass",
    "RetryPolicy",
    "classify_error",
]
