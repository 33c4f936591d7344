"""
Exception classes for audio-catalog.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus a details dictionary,
and declares whether the failure is worth retrying so the retry policy can
decide without inspecting messages.

Exception Hierarchy:
    CatalogError (base)
        ConfigError - Configuration file issues
        ValidationError - Bad input shape or invariant violation (never retried)
            UnsupportedFormat - File extension not in the supported set
            CorruptFile - Container unreadable or no duration
        NotFoundError - Missing album, track or object
        TransientIOError - Network/timeout against object store or database
        ExternalProcessError - External encoder failure
            EncodingFailed - ffmpeg exited non-zero or produced no output
        ConsistencyError - Write would break an album/track invariant
        DatabaseError - Permanent MongoDB failure
        StorageError - Permanent object store failure
            UploadFailed - put or multipart upload rejected
            DeleteFailed - delete rejected
"""


class CatalogError(Exception):
    """
    Base exception for all audio-catalog errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all catalog errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., file path, key).
        retryable: True if repeating the operation may succeed.
        kind: Short error-kind label used in batch reports.

    Example:
        try:
            await store.create_track(data)
        except CatalogError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    retryable = False
    kind = "error"

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'file_path': Local file involved in the error
                     - 'key': Object-store key involved in the error
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(CatalogError):
    """
    Raised when there's an issue with the configuration file.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - config.yaml not found
        - config.yaml has invalid YAML syntax
        - Required fields missing (bucket_name, database uri)
        - Invalid field values (e.g., negative concurrency cap)

    Example:
        raise ConfigError(
            "'storage.bucket_name' must be a non-empty string",
            details={'field': 'storage.bucket_name'}
        )
    """
    kind = "config"


class ValidationError(CatalogError):
    """
    Raised when input data has the wrong shape or breaks a schema invariant.

    Never retried: the same input will fail the same way. Surfaced to the
    caller immediately.

    Common causes:
        - Empty title or album name
        - Writer/publisher percentages not summing to 100
        - Negative percentage
        - Attempt to edit the extraction-derived duration

    Example:
        raise ValidationError(
            "writers percentages must sum to 100 (got 90.0)",
            details={'field': 'writers', 'total': 90.0}
        )
    """
    kind = "validation"


class UnsupportedFormat(ValidationError):
    """
    Raised when a file's extension is not one of the supported audio formats.

    Example:
        raise UnsupportedFormat(
            "Unsupported audio format: .txt",
            details={'file_path': '/uploads/notes.txt', 'extension': '.txt'}
        )
    """
    kind = "unsupported_format"


class CorruptFile(ValidationError):
    """
    Raised when an audio container cannot be parsed or yields no duration.

    A file that claims to be audio but has no readable duration is corrupt;
    duration is never defaulted.

    Example:
        raise CorruptFile(
            "Could not read audio stream",
            details={'file_path': '/uploads/broken.mp3'}
        )
    """
    kind = "corrupt_file"


class NotFoundError(CatalogError):
    """
    Raised when an album, track or stored object does not exist.

    The caller decides whether to create the missing entity or report it.
    Deleting a track twice raises this rather than crashing.
    """
    kind = "not_found"


class TransientIOError(CatalogError):
    """
    Raised for network or timeout failures against the object store or database.

    Retryable with bounded exponential backoff.

    Common causes:
        - Connection reset or refused
        - Server selection timeout (MongoDB)
        - 5xx / SlowDown responses (S3 / R2)
    """
    retryable = True
    kind = "transient_io"


class ExternalProcessError(CatalogError):
    """
    Raised when an external process (the encoder) fails.

    Retried a small fixed number of times, then treated as a permanent
    per-tier failure.
    """
    retryable = True
    kind = "external_process"


class EncodingFailed(ExternalProcessError):
    """
    Raised when ffmpeg exits non-zero, cannot be started or writes no output.

    Attributes:
        stderr: Diagnostic output captured from the encoder process.

    Example:
        raise EncodingFailed(
            "ffmpeg exited with code 1",
            details={'tier': 'medium', 'returncode': 1},
            stderr="Invalid data found when processing input"
        )
    """
    kind = "encoding_failed"

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        stderr: str = ""
    ) -> None:
        super().__init__(message, details)
        self.stderr = stderr


class ConsistencyError(CatalogError):
    """
    Raised when a write would violate an album/track invariant.

    Never silently swallowed: the offending write is aborted and the error is
    surfaced for operator attention.

    Common causes:
        - Creating an album whose normalized name already exists
        - Deleting an album that still has tracks (without cascade)
        - Track could not be linked to its album after all retries
    """
    kind = "consistency"


class DatabaseError(CatalogError):
    """
    Raised for non-transient MongoDB failures.

    Common causes:
        - Document rejected by the collection validator
        - Authentication failure
        - Invalid connection string
    """
    kind = "database"


class StorageError(CatalogError):
    """
    Raised for non-transient object-store failures.

    Common causes:
        - Access denied (wrong credentials or bucket policy)
        - Bucket does not exist
        - Invalid request (e.g., part too small)
    """
    kind = "storage"


class UploadFailed(StorageError):
    """Raised when a put or multipart upload is rejected."""
    kind = "upload_failed"


class DeleteFailed(StorageError):
    """Raised when an object delete is rejected."""
    kind = "delete_failed"
