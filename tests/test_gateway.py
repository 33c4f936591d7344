"""Tests for the object store gateway"""

from unittest.mock import Mock

import pytest
from botocore.exceptions import EndpointConnectionError

from audio_catalog.core.config import MultipartConfig
from audio_catalog.core.exceptions import (
    DeleteFailed,
    NotFoundError,
    StorageError,
    TransientIOError,
    UploadFailed,
)
from audio_catalog.storage.gateway import ObjectStoreGateway, classify_storage_error

from tests.conftest import client_error


class TestClassifyStorageError:
    """Test botocore error translation"""

    def test_network_errors_are_transient(self):
        """Test connection failures are retryable"""
        error = classify_storage_error(EndpointConnectionError(endpoint_url="https://x"), "put_object", "k")
        assert isinstance(error, TransientIOError)
        assert error.retryable

    def test_status_codes(self):
        """Test 404, 5xx, throttling and permission errors"""
        assert isinstance(classify_storage_error(client_error("NoSuchKey", 404), "get_object", "k"), NotFoundError)
        assert isinstance(classify_storage_error(client_error("InternalError", 500), "put_object", "k"),
                          TransientIOError)
        assert isinstance(classify_storage_error(client_error("SlowDown", 503), "put_object", "k"),
                          TransientIOError)
        denied = classify_storage_error(client_error("AccessDenied", 403), "put_object", "k", UploadFailed)
        assert isinstance(denied, UploadFailed)
        assert not denied.retryable
        assert denied.details["code"] == "AccessDenied"


class TestGateway:
    """Test uploads, downloads and deletes"""

    @pytest.mark.asyncio
    async def test_put_get_delete(self, gateway, s3_client):
        """Test bytes round-trip through the bucket"""
        url = await gateway.put("original/a/b/id/t_original.mp3", b"data", "audio/mpeg")

        assert url == "https://cdn.example.com/original/a/b/id/t_original.mp3"
        assert await gateway.get("original/a/b/id/t_original.mp3") == b"data"

        await gateway.delete("original/a/b/id/t_original.mp3")
        with pytest.raises(NotFoundError):
            await gateway.get("original/a/b/id/t_original.mp3")

    @pytest.mark.asyncio
    async def test_put_is_idempotent(self, gateway, s3_client):
        """Test re-uploading a key overwrites it"""
        await gateway.put("k", b"one", "audio/mpeg")
        await gateway.put("k", b"two", "audio/mpeg")
        assert s3_client.objects == {"k": b"two"}

    @pytest.mark.asyncio
    async def test_put_file(self, gateway, s3_client, temp_dir):
        """Test small files use a single put"""
        path = temp_dir / "song.mp3"
        path.write_bytes(b"abc")

        await gateway.put_file(path, "key.mp3", "audio/mpeg")

        assert s3_client.objects["key.mp3"] == b"abc"

    @pytest.mark.asyncio
    async def test_upload_permission_error(self, gateway, s3_client):
        """Test rejected uploads raise UploadFailed"""
        s3_client.fail_put = {"k": client_error("AccessDenied", 403)}
        with pytest.raises(UploadFailed):
            await gateway.put("k", b"x", "audio/mpeg")

    @pytest.mark.asyncio
    async def test_delete_missing_key_succeeds(self, config):
        """Test deleting a key that is gone is not an error"""
        client = Mock()
        client.delete_object.side_effect = client_error("NoSuchKey", 404, "DeleteObject")
        gateway = ObjectStoreGateway(config.storage, client=client)

        await gateway.delete("gone")

    @pytest.mark.asyncio
    async def test_delete_many_reports_failures(self, config):
        """Test per-key errors from DeleteObjects raise DeleteFailed"""
        client = Mock()
        client.delete_objects.return_value = {
            "Errors": [
                {"Key": "a", "Code": "AccessDenied"},
                {"Key": "b", "Code": "NoSuchKey"},
            ]
        }
        gateway = ObjectStoreGateway(config.storage, client=client)

        with pytest.raises(DeleteFailed) as exc_info:
            await gateway.delete_many(["a", "b", "a", ""])

        assert exc_info.value.details["failed"] == [{"key": "a", "code": "AccessDenied"}]
        sent = client.delete_objects.call_args.kwargs["Delete"]["Objects"]
        assert sent == [{"Key": "a"}, {"Key": "b"}]

    @pytest.mark.asyncio
    async def test_public_url_without_domain(self, config):
        """Test URLs fall back to the bucket path on the endpoint"""
        storage = config.storage.__class__(
            account_id="acct",
            access_key_id="k",
            secret_access_key="s",
            bucket_name="music",
            endpoint="https://acct.r2.cloudflarestorage.com",
        )
        gateway = ObjectStoreGateway(storage, client=Mock())
        assert gateway.public_url("a b/c.mp3") == "https://acct.r2.cloudflarestorage.com/music/a%20b/c.mp3"

    @pytest.mark.asyncio
    async def test_test_connection_failure(self, config):
        """Test an unreachable bucket surfaces as a storage error"""
        client = Mock()
        client.head_bucket.side_effect = client_error("AccessDenied", 403, "HeadBucket")
        gateway = ObjectStoreGateway(config.storage, client=client)

        with pytest.raises(StorageError):
            await gateway.test_connection()


class TestMultipart:
    """Test multipart uploads"""

    def make_gateway(self, config, client):
        return ObjectStoreGateway(config.storage, MultipartConfig(threshold=8, part_size=4), client=client)

    @pytest.mark.asyncio
    async def test_large_file_uses_multipart(self, config, temp_dir):
        """Test files over the threshold are uploaded in parts"""
        client = Mock()
        client.create_multipart_upload.return_value = {"UploadId": "up1"}
        client.upload_part.side_effect = [{"ETag": f"e{i}"} for i in range(1, 4)]
        path = temp_dir / "big.flac"
        path.write_bytes(b"0123456789")

        await self.make_gateway(config, client).put_file(path, "big.flac", "audio/flac")

        assert client.upload_part.call_count == 3
        parts = client.complete_multipart_upload.call_args.kwargs["MultipartUpload"]["Parts"]
        assert parts == [
            {"ETag": "e1", "PartNumber": 1},
            {"ETag": "e2", "PartNumber": 2},
            {"ETag": "e3", "PartNumber": 3},
        ]
        client.put_object.assert_not_called()
        client.abort_multipart_upload.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_part_aborts_upload(self, config, temp_dir):
        """Test a failing part aborts the multipart upload"""
        client = Mock()
        client.create_multipart_upload.return_value = {"UploadId": "up1"}
        client.upload_part.side_effect = [{"ETag": "e1"}, client_error("AccessDenied", 403, "UploadPart")]
        path = temp_dir / "big.flac"
        path.write_bytes(b"0123456789")

        with pytest.raises(UploadFailed):
            await self.make_gateway(config, client).put_file(path, "big.flac", "audio/flac")

        client.abort_multipart_upload.assert_called_once_with(Bucket="music-catalog", Key="big.flac", UploadId="up1")
        client.complete_multipart_upload.assert_not_called()
