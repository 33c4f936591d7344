"""
S3-compatible object store gateway (Cloudflare R2).

Wraps a boto3 S3 client. Every call runs in a worker thread so the event
loop is never blocked, and every botocore failure is translated into the
catalog error taxonomy:

    connection / timeout / 5xx / throttling  -> TransientIOError (retryable)
    NoSuchKey / 404                          -> NotFoundError
    anything else (403, bad request, ...)    -> UploadFailed / DeleteFailed / StorageError

Usage:
    gateway = ObjectStoreGateway(config.storage, config.multipart)
    url = await gateway.put_file(Path("/tmp/a.m4a"), key, "audio/mp4")
    data = await gateway.get(key)
    await gateway.delete(key)
"""

import asyncio
import os
from pathlib import Path
from typing import Any
from urllib.parse import quote

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from audio_catalog.core.config import MultipartConfig, StorageConfig
from audio_catalog.core.exceptions import (
    CatalogError,
    DeleteFailed,
    NotFoundError,
    StorageError,
    TransientIOError,
    UploadFailed,
)
from audio_catalog.core.logger import get_logger

logger = get_logger(__name__)


_TRANSIENT_CODES = {
    "RequestTimeout",
    "RequestTimeoutException",
    "SlowDown",
    "Throttling",
    "ThrottlingException",
    "InternalError",
    "ServiceUnavailable",
}
_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}
_NETWORK_ERRORS = (
    EndpointConnectionError,
    ConnectionClosedError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

# S3 DeleteObjects accepts at most this many keys per request
_DELETE_BATCH_SIZE = 1000


def classify_storage_error(
    error: Exception,
    operation: str,
    key: str | None,
    permanent_error: type[StorageError] = StorageError
) -> CatalogError:
    """
    Translate a botocore exception into a catalog error.

    Args:
        error: The exception raised by boto3/botocore.
        operation: Name of the S3 operation (for messages).
        key: Object key involved, if any.
        permanent_error: Error class for non-retryable failures.
    """
    details: dict[str, Any] = {"operation": operation, "key": key, "original_error": str(error)}

    if isinstance(error, _NETWORK_ERRORS):
        return TransientIOError(f"Object store unreachable during {operation}: {error}", details)

    if isinstance(error, ClientError):
        code = str(error.response.get("Error", {}).get("Code", ""))
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0) or 0
        details.update({"code": code, "status": status})

        if code in _NOT_FOUND_CODES or status == 404:
            return NotFoundError(f"Object not found: {key}", details)
        if code in _TRANSIENT_CODES or status == 429 or status >= 500:
            return TransientIOError(f"Object store {operation} failed ({code or status}), retryable", details)
        return permanent_error(f"Object store {operation} rejected ({code or status}): {key}", details)

    return permanent_error(f"Object store {operation} failed: {error}", details)


class ObjectStoreGateway:
    """
    Upload, download and delete blobs in one bucket.

    Attributes:
        bucket: Bucket name.
        multipart: Threshold/part size for multipart uploads.

    Thread Safety:
        boto3 clients are thread-safe, so one gateway is shared by every
        concurrent item pipeline.
    """

    def __init__(
        self,
        storage: StorageConfig,
        multipart: MultipartConfig | None = None,
        client: Any = None
    ) -> None:
        """
        Args:
            storage: Credentials, bucket, endpoint.
            multipart: Multipart settings (defaults if None).
            client: Pre-built S3 client (tests pass a mock).
        """
        self._storage = storage
        self.bucket = storage.bucket_name
        self.multipart = multipart or MultipartConfig()
        self._client = client if client is not None else self._create_client(storage)

    @staticmethod
    def _create_client(storage: StorageConfig) -> Any:
        # Retries are owned by RetryPolicy, not botocore
        boto_config = BotoConfig(
            signature_version="s3v4",
            retries={"max_attempts": 1, "mode": "standard"},
            connect_timeout=10,
            read_timeout=60,
        )
        return boto3.client(
            "s3",
            endpoint_url=storage.endpoint,
            aws_access_key_id=storage.access_key_id,
            aws_secret_access_key=storage.secret_access_key,
            region_name=storage.region,
            config=boto_config,
        )

    # =========================================================================
    # URLs
    # =========================================================================

    def public_url(self, key: str) -> str:
        """
        Public URL of an object.

        Uses the configured public domain, otherwise the bucket path on the
        S3 endpoint.
        """
        quoted = quote(key, safe="/")
        if self._storage.public_domain:
            domain = self._storage.public_domain.rstrip("/")
            if not domain.startswith(("http://", "https://")):
                domain = f"https://{domain}"
            return f"{domain}/{quoted}"
        return f"{self._storage.endpoint}/{self.bucket}/{quoted}"

    # =========================================================================
    # Uploads
    # =========================================================================

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """
        Upload bytes under `key`, overwriting any existing object.

        Returns:
            Public URL of the object.

        Raises:
            TransientIOError: Network/timeout/5xx (retryable).
            UploadFailed: Permission or validation failure.
        """
        def _put() -> None:
            self._client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)

        await self._call(_put, "put_object", key, UploadFailed)
        logger.debug(f"Uploaded {len(data)} bytes to {key}")
        return self.public_url(key)

    async def put_file(self, path: Path, key: str, content_type: str) -> str:
        """
        Upload a local file, switching to multipart above the threshold.

        Returns:
            Public URL of the object.
        """
        size = await asyncio.to_thread(os.path.getsize, path)

        if size >= self.multipart.threshold:
            return await self.multipart_upload(path, key, content_type)

        def _put() -> None:
            with open(path, "rb") as f:
                self._client.put_object(Bucket=self.bucket, Key=key, Body=f, ContentType=content_type)

        await self._call(_put, "put_object", key, UploadFailed)
        logger.debug(f"Uploaded {path.name} ({size} bytes) to {key}")
        return self.public_url(key)

    async def multipart_upload(self, path: Path, key: str, content_type: str) -> str:
        """
        Upload a large file in parts: initiate, upload parts, complete.

        On any failure (including cancellation) the multipart upload is
        aborted so no orphaned parts remain in the bucket.
        """
        response = await self._call(
            lambda: self._client.create_multipart_upload(
                Bucket=self.bucket, Key=key, ContentType=content_type
            ),
            "create_multipart_upload", key, UploadFailed,
        )
        upload_id = response["UploadId"]
        parts: list[dict[str, Any]] = []

        try:
            with open(path, "rb") as f:
                part_number = 1
                while True:
                    chunk = await asyncio.to_thread(f.read, self.multipart.part_size)
                    if not chunk:
                        break
                    etag = await self.upload_part(key, upload_id, part_number, chunk)
                    parts.append({"ETag": etag, "PartNumber": part_number})
                    part_number += 1

            await self._call(
                lambda: self._client.complete_multipart_upload(
                    Bucket=self.bucket,
                    Key=key,
                    UploadId=upload_id,
                    MultipartUpload={"Parts": parts},
                ),
                "complete_multipart_upload", key, UploadFailed,
            )
        except BaseException:
            await self.abort_multipart(key, upload_id)
            raise

        logger.debug(f"Multipart upload of {path.name} to {key} completed ({len(parts)} parts)")
        return self.public_url(key)

    async def upload_part(self, key: str, upload_id: str, part_number: int, data: bytes) -> str:
        """Upload one part and return its ETag."""
        response = await self._call(
            lambda: self._client.upload_part(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=part_number,
                Body=data,
            ),
            "upload_part", key, UploadFailed,
        )
        return response["ETag"]

    async def abort_multipart(self, key: str, upload_id: str) -> None:
        """Abort a multipart upload. Failures are logged, not raised."""
        try:
            await asyncio.to_thread(
                self._client.abort_multipart_upload,
                Bucket=self.bucket, Key=key, UploadId=upload_id,
            )
            logger.debug(f"Aborted multipart upload {upload_id} for {key}")
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to abort multipart upload {upload_id} for {key}: {e}")

    # =========================================================================
    # Downloads
    # =========================================================================

    async def get(self, key: str) -> bytes:
        """
        Download an object's bytes.

        Raises:
            NotFoundError: The key does not exist.
        """
        def _get() -> bytes:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()

        return await self._call(_get, "get_object", key, StorageError)

    # =========================================================================
    # Deletes
    # =========================================================================

    async def delete(self, key: str) -> None:
        """Delete one object. Deleting a missing key succeeds."""
        try:
            await self._call(
                lambda: self._client.delete_object(Bucket=self.bucket, Key=key),
                "delete_object", key, DeleteFailed,
            )
        except NotFoundError:
            pass
        logger.debug(f"Deleted {key}")

    async def delete_many(self, keys: list[str]) -> None:
        """
        Delete several objects in batched requests.

        Raises:
            DeleteFailed: Some keys could not be deleted (listed in details).
        """
        keys = [k for k in dict.fromkeys(keys) if k]
        failed: list[dict[str, str]] = []

        for start in range(0, len(keys), _DELETE_BATCH_SIZE):
            batch = keys[start:start + _DELETE_BATCH_SIZE]
            response = await self._call(
                lambda: self._client.delete_objects(
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
                ),
                "delete_objects", None, DeleteFailed,
            )
            for error in response.get("Errors", []) or []:
                if error.get("Code") in _NOT_FOUND_CODES:
                    continue
                failed.append({"key": error.get("Key", ""), "code": error.get("Code", "")})

        if failed:
            raise DeleteFailed(
                f"Failed to delete {len(failed)} object(s)",
                details={"failed": failed}
            )

        if keys:
            logger.debug(f"Deleted {len(keys)} object(s)")

    # =========================================================================
    # Diagnostics
    # =========================================================================

    async def test_connection(self) -> bool:
        """Check credentials and bucket access (HEAD bucket)."""
        await self._call(
            lambda: self._client.head_bucket(Bucket=self.bucket),
            "head_bucket", None, StorageError,
        )
        return True

    async def _call(
        self,
        func,
        operation: str,
        key: str | None,
        permanent_error: type[StorageError]
    ):
        try:
            return await asyncio.to_thread(func)
        except (BotoCoreError, ClientError) as e:
            raise classify_storage_error(e, operation, key, permanent_error) from e
