"""
Configuration management for audio-catalog.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml.

The configuration file contains:
    - Object store (Cloudflare R2) credentials and bucket
    - MongoDB connection string and database name
    - Quality tier presets (tier name -> codec, bitrate, sample rate)
    - Concurrency caps for transcodes and uploads
    - Multipart upload threshold and part size
    - Retry policy parameters

Secrets can also come from the environment (or a .env file in the working
directory). Environment values take precedence over the file:

    R2_ACCOUNT_ID, R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY,
    R2_BUCKET_NAME, R2_PUBLIC_DOMAIN, MONGODB_URI

Example config.yaml:
    storage:
      account_id: "abc123"
      access_key_id: "..."
      secret_access_key: "..."
      bucket_name: "music-catalog"
      public_domain: "cdn.example.com"   # Optional

    database:
      uri: "mongodb://localhost:27017"
      name: "music_library"

    tiers:
      medium: {codec: aac, bitrate: 256k, sample_rate: 44100, extension: m4a}
      low: {codec: aac, bitrate: 128k, sample_rate: 44100, extension: m4a}

    concurrency:
      max_transcodes: 4
      max_uploads: 3

    multipart:
      threshold_mb: 100
      part_size_mb: 10
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from audio_catalog.core.exceptions import ConfigError


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"

# The untouched upload is always stored under this tier name
ORIGINAL_TIER = "original"

DEFAULT_SUPPORTED_FORMATS = ("mp3", "wav", "flac", "aac", "m4a", "ogg")

# R2/S3 reject multipart parts smaller than this (except the last one)
MIN_PART_SIZE = 5 * 1024 * 1024

_MB = 1024 * 1024

_ENV_OVERRIDES = {
    "R2_ACCOUNT_ID": ("storage", "account_id"),
    "R2_ACCESS_KEY_ID": ("storage", "access_key_id"),
    "R2_SECRET_ACCESS_KEY": ("storage", "secret_access_key"),
    "R2_BUCKET_NAME": ("storage", "bucket_name"),
    "R2_PUBLIC_DOMAIN": ("storage", "public_domain"),
    "MONGODB_URI": ("database", "uri"),
}


@dataclass(frozen=True)
class StorageConfig:
    """
    Object store credentials configuration.

    Attributes:
        account_id: Cloudflare account id. Used to derive the endpoint and
                    public URLs when they are not given explicitly.
        access_key_id: S3 access key id.
        secret_access_key: S3 secret access key.
        bucket_name: Bucket that holds originals and renditions.
        endpoint: S3 API endpoint. Defaults to the R2 account endpoint.
        public_domain: Optional custom domain for public object URLs.
        region: Signing region ("auto" for R2).
    """
    account_id: str
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint: str
    public_domain: str | None = None
    region: str = "auto"


@dataclass(frozen=True)
class DatabaseConfig:
    """
    MongoDB connection configuration.

    Attributes:
        uri: MongoDB connection string.
        name: Database holding the `albums` and `tracks` collections.
        timeout_ms: Server selection timeout in milliseconds.
    """
    uri: str
    name: str = "music_library"
    timeout_ms: int = 5000


@dataclass(frozen=True)
class TierPreset:
    """
    A named audio quality preset.

    Attributes:
        name: Tier name, used in object keys and the track `path` map.
        codec: ffmpeg audio codec (e.g. "aac", "libmp3lame").
        bitrate: Target bitrate as understood by ffmpeg (e.g. "128k").
        sample_rate: Target sample rate in Hz.
        extension: Output file extension without the dot.
        mandatory: If True, an item fails when this tier cannot be produced.
    """
    name: str
    codec: str
    bitrate: str
    sample_rate: int
    extension: str = "m4a"
    mandatory: bool = False


@dataclass(frozen=True)
class ConcurrencyConfig:
    """
    Concurrency caps for the ingestion pipeline.

    Attributes:
        max_transcodes: Simultaneous encoder processes (CPU-bound).
        max_uploads: Simultaneous in-flight uploads (I/O-bound).
        max_items: Items of a batch processed at the same time.
    """
    max_transcodes: int
    max_uploads: int = 3
    max_items: int = 8


@dataclass(frozen=True)
class MultipartConfig:
    """
    Multipart upload configuration (sizes in bytes).

    Attributes:
        threshold: Files at least this large use multipart upload.
        part_size: Size of each uploaded part (last part may be smaller).
    """
    threshold: int = 100 * _MB
    part_size: int = 10 * _MB


@dataclass(frozen=True)
class RetryConfig:
    """
    Retry policy parameters.

    Attributes:
        attempts: Total attempts for transient I/O errors.
        base_delay: Base delay in seconds for exponential backoff.
        max_delay: Upper bound for a single backoff delay.
        process_attempts: Total attempts for encoder failures.
        process_delay: Fixed delay between encoder attempts.
        link_attempts: Total attempts for the track-to-album linking write.
    """
    attempts: int = 3
    base_delay: float = 1.5
    max_delay: float = 15.0
    process_attempts: int = 2
    process_delay: float = 1.0
    link_attempts: int = 8


@dataclass(frozen=True)
class IngestConfig:
    """
    Ingestion behavior configuration.

    Attributes:
        supported_formats: Accepted source file extensions (lowercase, no dot).
        log_directory: Where log files are written.
        temp_directory: Parent for per-item working directories
                        (None uses the system temp directory).
    """
    supported_formats: tuple[str, ...] = DEFAULT_SUPPORTED_FORMATS
    log_directory: Path = field(default_factory=lambda: Path.cwd() / "logs")
    temp_directory: Path | None = None


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    This is the main configuration object that aggregates all configuration
    sections. It is created by load_config() and should be treated as
    immutable (frozen dataclass).

    Attributes:
        storage: Object store credentials.
        database: MongoDB settings.
        tiers: Transcoded tier presets, in configuration order.
               The "original" tier is implicit and never listed here.
        concurrency: Concurrency caps.
        multipart: Multipart upload sizes.
        retry: Retry policy parameters.
        ingest: Ingestion behavior.

    Example:
        config = load_config()
        print(f"Bucket: {config.storage.bucket_name}")
        print(f"Tiers: {[t.name for t in config.tiers]}")
    """
    storage: StorageConfig
    database: DatabaseConfig
    tiers: tuple[TierPreset, ...]
    concurrency: ConcurrencyConfig
    multipart: MultipartConfig = field(default_factory=MultipartConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)

    @property
    def tier_names(self) -> list[str]:
        """All tier names a complete track carries, "original" first."""
        return [ORIGINAL_TIER] + [tier.name for tier in self.tiers]

    def get_tier(self, name: str) -> TierPreset | None:
        for tier in self.tiers:
            if tier.name == name:
                return tier
        return None


DEFAULT_TIERS = (
    TierPreset(name="medium", codec="aac", bitrate="256k", sample_rate=44100),
    TierPreset(name="low", codec="aac", bitrate="128k", sample_rate=44100),
)


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml.

    This function reads the YAML configuration file, applies environment
    overrides for secrets, validates all required fields, and returns a
    frozen Config object.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If the config file is not found, has invalid YAML syntax,
                     is missing required fields, or contains invalid values.

    Behavior:
        1. Locate config file (explicit path or CWD/config.yaml)
        2. Read and parse YAML content
        3. Load .env and apply environment overrides
        4. Validate structure (required sections exist)
        5. Parse each section, applying defaults
        6. Create and return frozen Config object
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except IOError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if raw_config is None:
        raw_config = {}

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    load_dotenv()
    return parse_config(raw_config, environ=os.environ)


def parse_config(raw_config: dict[str, Any], environ: Any = None) -> Config:
    """
    Build a Config from an already-parsed dictionary.

    Args:
        raw_config: Dictionary shaped like config.yaml.
        environ: Optional mapping of environment variables to apply on top.

    Raises:
        ConfigError: On any missing or invalid value.
    """
    raw_config = {
        key: dict(value) if isinstance(value, dict) else value
        for key, value in raw_config.items()
    }

    if environ is not None:
        _apply_environment(raw_config, environ)

    _validate_config(raw_config)

    return Config(
        storage=_parse_storage_config(raw_config["storage"]),
        database=_parse_database_config(raw_config["database"]),
        tiers=_parse_tiers_config(raw_config.get("tiers")),
        concurrency=_parse_concurrency_config(raw_config.get("concurrency")),
        multipart=_parse_multipart_config(raw_config.get("multipart")),
        retry=_parse_retry_config(raw_config.get("retry")),
        ingest=_parse_ingest_config(raw_config.get("ingest")),
    )


def _apply_environment(raw_config: dict[str, Any], environ: Any) -> None:
    for env_var, (section, key) in _ENV_OVERRIDES.items():
        value = environ.get(env_var)
        if not value:
            continue
        section_data = raw_config.get(section)
        if not isinstance(section_data, dict):
            section_data = {}
            raw_config[section] = section_data
        section_data[key] = value


def _validate_config(raw_config: dict[str, Any]) -> None:
    """
    Validate the raw configuration dictionary structure.

    Raises:
        ConfigError: If a required section is missing or not a dictionary.
    """
    required_sections = ["storage", "database"]

    for section in required_sections:
        if section not in raw_config:
            raise ConfigError(
                f"Missing required section: '{section}'",
                details={"missing_section": section}
            )

        if not isinstance(raw_config[section], dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )

    for section in ["tiers", "concurrency", "multipart", "retry", "ingest"]:
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )


def _require_string(section: dict[str, Any], field_name: str, prefix: str) -> str:
    value = section.get(field_name, "")
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(
            f"'{prefix}.{field_name}' must be a non-empty string",
            details={"field": f"{prefix}.{field_name}"}
        )
    return value.strip()


def _optional_string(section: dict[str, Any], field_name: str, prefix: str) -> str | None:
    value = section.get(field_name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(
            f"'{prefix}.{field_name}' must be a string or null",
            details={"field": f"{prefix}.{field_name}"}
        )
    return value.strip() or None


def _positive_int(section: dict[str, Any], field_name: str, prefix: str, default: int) -> int:
    value = section.get(field_name)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(
            f"'{prefix}.{field_name}' must be a positive integer",
            details={"field": f"{prefix}.{field_name}", "value": value}
        )
    return value


def _non_negative_float(section: dict[str, Any], field_name: str, prefix: str, default: float) -> float:
    value = section.get(field_name)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ConfigError(
            f"'{prefix}.{field_name}' must be a non-negative number",
            details={"field": f"{prefix}.{field_name}", "value": value}
        )
    return float(value)


def _parse_storage_config(storage_section: dict[str, Any]) -> StorageConfig:
    """
    Parse and validate the storage configuration section.

    The endpoint defaults to https://{account_id}.r2.cloudflarestorage.com.
    account_id may be omitted only when an explicit endpoint is given.

    Raises:
        ConfigError: If credentials or bucket name are missing.
    """
    endpoint = _optional_string(storage_section, "endpoint", "storage")
    account_id = _optional_string(storage_section, "account_id", "storage")

    if endpoint is None:
        if account_id is None:
            raise ConfigError(
                "'storage.account_id' is required when 'storage.endpoint' is not set",
                details={"field": "storage.account_id"}
            )
        endpoint = f"https://{account_id}.r2.cloudflarestorage.com"

    return StorageConfig(
        account_id=account_id or "",
        access_key_id=_require_string(storage_section, "access_key_id", "storage"),
        secret_access_key=_require_string(storage_section, "secret_access_key", "storage"),
        bucket_name=_require_string(storage_section, "bucket_name", "storage"),
        endpoint=endpoint.rstrip("/"),
        public_domain=_optional_string(storage_section, "public_domain", "storage"),
        region=_optional_string(storage_section, "region", "storage") or "auto",
    )


def _parse_database_config(database_section: dict[str, Any]) -> DatabaseConfig:
    uri = _require_string(database_section, "uri", "database")
    if not uri.startswith(("mongodb://", "mongodb+srv://")):
        raise ConfigError(
            "'database.uri' must start with mongodb:// or mongodb+srv://",
            details={"field": "database.uri"}
        )

    return DatabaseConfig(
        uri=uri,
        name=_optional_string(database_section, "name", "database") or "music_library",
        timeout_ms=_positive_int(database_section, "timeout_ms", "database", 5000),
    )


def _parse_tiers_config(tiers_section: dict[str, Any] | None) -> tuple[TierPreset, ...]:
    """
    Parse the quality tier presets.

    Applies DEFAULT_TIERS if the section is missing. An empty section means
    only the original is stored.

    Raises:
        ConfigError: If a preset is malformed or uses the reserved
                     "original" name.
    """
    if tiers_section is None:
        return DEFAULT_TIERS

    tiers = []
    for name, preset in tiers_section.items():
        prefix = f"tiers.{name}"

        if not isinstance(name, str) or not name.strip():
            raise ConfigError("Tier names must be non-empty strings", details={"field": "tiers"})

        if name == ORIGINAL_TIER:
            raise ConfigError(
                f"'{ORIGINAL_TIER}' is reserved for the uploaded file and cannot be configured",
                details={"field": prefix}
            )

        if not isinstance(preset, dict):
            raise ConfigError(f"'{prefix}' must be a dictionary", details={"field": prefix})

        bitrate = preset.get("bitrate")
        if isinstance(bitrate, int) and not isinstance(bitrate, bool):
            bitrate = f"{bitrate}k"

        if not isinstance(bitrate, str) or not bitrate.strip():
            raise ConfigError(
                f"'{prefix}.bitrate' must be a string like '128k'",
                details={"field": f"{prefix}.bitrate", "value": bitrate}
            )

        mandatory = preset.get("mandatory", False)
        if not isinstance(mandatory, bool):
            raise ConfigError(
                f"'{prefix}.mandatory' must be true or false",
                details={"field": f"{prefix}.mandatory"}
            )

        extension = (_optional_string(preset, "extension", prefix) or "m4a").lstrip(".")

        tiers.append(TierPreset(
            name=name.strip(),
            codec=_require_string(preset, "codec", prefix),
            bitrate=bitrate.strip(),
            sample_rate=_positive_int(preset, "sample_rate", prefix, 44100),
            extension=extension.lower(),
            mandatory=mandatory,
        ))

    return tuple(tiers)


def _parse_concurrency_config(section: dict[str, Any] | None) -> ConcurrencyConfig:
    section = section or {}
    return ConcurrencyConfig(
        max_transcodes=_positive_int(section, "max_transcodes", "concurrency", os.cpu_count() or 1),
        max_uploads=_positive_int(section, "max_uploads", "concurrency", 3),
        max_items=_positive_int(section, "max_items", "concurrency", 8),
    )


def _parse_multipart_config(section: dict[str, Any] | None) -> MultipartConfig:
    section = section or {}
    threshold = _positive_int(section, "threshold_mb", "multipart", 100) * _MB
    part_size = _positive_int(section, "part_size_mb", "multipart", 10) * _MB

    if part_size < MIN_PART_SIZE:
        raise ConfigError(
            "'multipart.part_size_mb' must be at least 5",
            details={"field": "multipart.part_size_mb", "value": part_size // _MB}
        )

    return MultipartConfig(threshold=threshold, part_size=part_size)


def _parse_retry_config(section: dict[str, Any] | None) -> RetryConfig:
    section = section or {}
    return RetryConfig(
        attempts=_positive_int(section, "attempts", "retry", 3),
        base_delay=_non_negative_float(section, "base_delay", "retry", 1.5),
        max_delay=_non_negative_float(section, "max_delay", "retry", 15.0),
        process_attempts=_positive_int(section, "process_attempts", "retry", 2),
        process_delay=_non_negative_float(section, "process_delay", "retry", 1.0),
        link_attempts=_positive_int(section, "link_attempts", "retry", 8),
    )


def _parse_ingest_config(section: dict[str, Any] | None) -> IngestConfig:
    section = section or {}

    formats = section.get("supported_formats")
    if formats is None:
        supported = DEFAULT_SUPPORTED_FORMATS
    else:
        if not isinstance(formats, list) or not all(isinstance(f, str) and f.strip() for f in formats):
            raise ConfigError(
                "'ingest.supported_formats' must be a list of extensions",
                details={"field": "ingest.supported_formats"}
            )
        supported = tuple(f.strip().lower().lstrip(".") for f in formats)

    log_dir = _optional_string(section, "log_directory", "ingest")
    temp_dir = _optional_string(section, "temp_directory", "ingest")

    return IngestConfig(
        supported_formats=supported,
        log_directory=Path(log_dir).expanduser().resolve() if log_dir else Path.cwd() / "logs",
        temp_directory=Path(temp_dir).expanduser().resolve() if temp_dir else None,
    )
