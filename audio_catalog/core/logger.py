"""
Logging configuration for audio-catalog.

This module sets up the logging system with multiple outputs:
    - Console: Real-time progress with tqdm-compatible formatting
    - log_full.log: Complete log of all events (DEBUG and above)
    - log_errors.log: Only ERROR and CRITICAL level messages
    - ingest_failures.log: Files that could not be ingested, with stage and reason
    - partial_tracks.log: Tracks persisted without some quality tiers

Everything shown on screen is also saved to file, then filtered into the
specialized report files.

Usage:
    from audio_catalog.core.logger import setup_logging, get_logger

    setup_logging(log_dir)  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Starting ingestion")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from colorama import Fore, Style, just_fix_windows_console
from tqdm import tqdm


INGEST_FAILURES_FILENAME = "ingest_failures"
PARTIAL_TRACKS_FILENAME = "partial_tracks"

# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Log format for console output (compact, tqdm-friendly)
CONSOLE_LOG_FORMAT = "%(levelname)s: %(message)s"

# Noisy third-party loggers kept at WARNING on every handler
_QUIET_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "pymongo")


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that adds colors to console output.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bright Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Fore.BLUE,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Style.BRIGHT + Fore.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Fore.WHITE)
        colored_levelname = f"{color}{record.levelname}{Style.RESET_ALL}"
        message = f"{colored_levelname}: {record.getMessage()}"
        if record.exc_info and record.levelno >= logging.ERROR:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking progress bars.

    Uses tqdm.write(), which prints above any active bar instead of
    tearing it.

    Attributes:
        stream: The output stream (defaults to sys.stderr).
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class _ReportHandler(logging.Handler):
    """
    Base for handlers that write one entry per tagged log record.

    Subclasses set `marker`, the extra attribute that tags a record for
    this report, and implement `format_entry`.
    """

    marker = ""

    def __init__(self, report_path: Path) -> None:
        """
        Args:
            report_path: Path to the report file. Created/overwritten on open().
        """
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None
        self.entries = 0

    def open(self) -> None:
        """Open the report file for writing (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, self.marker):
            return

        if self.report_file is None:
            return

        try:
            self.acquire()
            try:
                self.report_file.write(self.format_entry(record))
                self.report_file.flush()
                self.entries += 1
            finally:
                self.release()
        except Exception:
            self.handleError(record)

    def format_entry(self, record: logging.LogRecord) -> str:
        raise NotImplementedError

    def close(self) -> None:
        """Close the report file handle. Safe to call multiple times."""
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class IngestFailureHandler(_ReportHandler):
    """
    Captures ingestion failures for the ingest failure report.

    Entries look like:

        /uploads/broken.mp3
        stage: extraction (corrupt_file)
        reason: Could not read audio stream

    The handler looks for these extra fields in log records:
        - 'ingest_failed_source': The local file that failed
        - 'ingest_failed_stage': Pipeline stage where it failed
        - 'ingest_failed_kind': Error kind label
        - 'ingest_failed_reason': Human-readable reason

    Use log_ingest_failure() to emit correctly tagged records.
    """

    marker = "ingest_failed_source"

    def format_entry(self, record: logging.LogRecord) -> str:
        source = getattr(record, "ingest_failed_source", "?")
        stage = getattr(record, "ingest_failed_stage", "unknown")
        kind = getattr(record, "ingest_failed_kind", "error")
        reason = getattr(record, "ingest_failed_reason", "")
        return f"{source}\nstage: {stage} ({kind})\nreason: {reason}\n\n"


class PartialTrackHandler(_ReportHandler):
    """
    Captures tracks that were persisted without some quality tiers.

    Entries look like:

        4f1c...: Song A (/uploads/trackA.mp3)
        missing tiers: low
    """

    marker = "partial_track_id"

    def format_entry(self, record: logging.LogRecord) -> str:
        track_id = getattr(record, "partial_track_id", "?")
        title = getattr(record, "partial_track_title", "")
        source = getattr(record, "partial_track_source", "")
        missing = getattr(record, "partial_track_missing", [])
        return f"{track_id}: {title} ({source})\nmissing tiers: {', '.join(missing)}\n\n"


class ErrorOnlyFilter(logging.Filter):
    """Filter that only allows ERROR and CRITICAL level records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(log_dir: Path, verbose: bool = False) -> None:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any other operations.

    Args:
        log_dir: Directory where log files will be created.
        verbose: Show DEBUG messages on the console.

    Behavior:
        1. Create log_dir if it doesn't exist
        2. Generate timestamp for this run's log files
        3. Configure root logger level to DEBUG
        4. Console handler (TqdmLoggingHandler), INFO or DEBUG, colored
        5. log_full_{timestamp}.log, DEBUG, full format
        6. log_errors_{timestamp}.log, ERROR+ via ErrorOnlyFilter
        7. ingest_failures_{timestamp}.log via IngestFailureHandler
        8. partial_tracks_{timestamp}.log via PartialTrackHandler

    See Also:
        log_ingest_failure(): Helper to log with correct extra fields
        log_partial_track(): Helper to log with correct extra fields
    """
    just_fix_windows_console()

    log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    full_handler = logging.FileHandler(log_dir / f"log_full_{timestamp}.log", mode="w", encoding="utf-8")
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_handler = logging.FileHandler(log_dir / f"log_errors_{timestamp}.log", mode="w", encoding="utf-8")
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    failure_handler = IngestFailureHandler(log_dir / f"{INGEST_FAILURES_FILENAME}_{timestamp}.log")
    failure_handler.open()
    root_logger.addHandler(failure_handler)

    partial_handler = PartialTrackHandler(log_dir / f"{PARTIAL_TRACKS_FILENAME}_{timestamp}.log")
    partial_handler.open()
    root_logger.addHandler(partial_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Note:
        Loggers obtained before setup_logging() is called will have no
        handlers and will not produce output.
    """
    return logging.getLogger(name)


def log_ingest_failure(
    logger: logging.Logger,
    source: str,
    stage: str,
    kind: str,
    reason: str
) -> None:
    """
    Log a file whose ingestion failed.

    Logs an ERROR and attaches the extra fields IngestFailureHandler uses
    to write to ingest_failures.log.

    Example:
        log_ingest_failure(
            logger,
            source="/uploads/broken.mp3",
            stage="extraction",
            kind="corrupt_file",
            reason="Could not read audio stream"
        )
    """
    logger.error(
        f"Ingest failed at {stage}: {source} - {reason}",
        extra={
            "ingest_failed_source": source,
            "ingest_failed_stage": stage,
            "ingest_failed_kind": kind,
            "ingest_failed_reason": reason,
        }
    )


def log_partial_track(
    logger: logging.Logger,
    track_id: str,
    title: str,
    source: str,
    missing_tiers: list[str]
) -> None:
    """Log a track persisted with missing tiers (goes to partial_tracks.log)."""
    logger.warning(
        f"Stored with missing tiers ({', '.join(missing_tiers)}): {title}",
        extra={
            "partial_track_id": track_id,
            "partial_track_title": title,
            "partial_track_source": source,
            "partial_track_missing": list(missing_tiers),
        }
    )


def shutdown_logging() -> None:
    """
    Flush, close and detach every root handler.

    Call at application exit (typically in a finally block).
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except (OSError, ValueError):
            pass
        root_logger.removeHandler(handler)
