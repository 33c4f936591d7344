"""Test configuration and fixtures"""

import asyncio
import io
import tempfile
import threading
import time
from pathlib import Path

import mongomock
import pytest
from botocore.exceptions import ClientError
from pymongo.errors import AutoReconnect

from audio_catalog.audio.metadata import AudioMetadata
from audio_catalog.catalog.store import CatalogStore
from audio_catalog.core.config import parse_config
from audio_catalog.core.exceptions import CorruptFile, EncodingFailed
from audio_catalog.core.retry import RetryPolicy
from audio_catalog.ingest.context import AppContext
from audio_catalog.ingest.orchestrator import Orchestrator
from audio_catalog.storage.gateway import ObjectStoreGateway


def make_raw_config(temp_dir, tiers=None):
    """Dictionary shaped like config.yaml, pointing every directory into temp_dir"""
    if tiers is None:
        tiers = {
            "medium": {"codec": "aac", "bitrate": "256k", "sample_rate": 44100},
            "low": {"codec": "aac", "bitrate": "128k", "sample_rate": 44100},
        }
    return {
        "storage": {
            "account_id": "acct",
            "access_key_id": "key",
            "secret_access_key": "secret",
            "bucket_name": "music-catalog",
            "public_domain": "cdn.example.com",
        },
        "database": {"uri": "mongodb://localhost:27017", "name": "test_catalog"},
        "tiers": tiers,
        "concurrency": {"max_transcodes": 2, "max_uploads": 2, "max_items": 4},
        "ingest": {
            "log_directory": str(temp_dir / "logs"),
            "temp_directory": str(temp_dir / "work"),
        },
    }


def client_error(code, status=400, operation="PutObject"):
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


async def no_sleep(delay):
    return None


class FakeS3Client:
    """In-memory stand-in for a boto3 S3 client"""

    def __init__(self):
        self.objects = {}
        self.fail_put = {}
        self.deleted = []
        self.put_delay = 0
        self.active_puts = 0
        self.peak_puts = 0
        self._lock = threading.Lock()

    def put_object(self, Bucket, Key, Body, ContentType):
        for fragment, error in self.fail_put.items():
            if fragment in Key:
                raise error
        with self._lock:
            self.active_puts += 1
            self.peak_puts = max(self.peak_puts, self.active_puts)
        try:
            time.sleep(self.put_delay)
            self.objects[Key] = Body.read() if hasattr(Body, "read") else Body
        finally:
            with self._lock:
                self.active_puts -= 1

    def get_object(self, Bucket, Key):
        if Key not in self.objects:
            raise client_error("NoSuchKey", 404, "GetObject")
        return {"Body": io.BytesIO(self.objects[Key])}

    def delete_object(self, Bucket, Key):
        self.deleted.append(Key)
        self.objects.pop(Key, None)

    def delete_objects(self, Bucket, Delete):
        for entry in Delete["Objects"]:
            self.deleted.append(entry["Key"])
            self.objects.pop(entry["Key"], None)
        return {}

    def head_bucket(self, Bucket):
        return {}


class FakeExtractor:
    """Extractor returning canned metadata keyed by file name"""

    def __init__(self):
        self.metadata = {}

    def add(self, name, **fields):
        values = {"title": Path(name).stem, "artist": "Test Artist", "album": "Test Album", "duration": 100.0}
        values.update(fields)
        self.metadata[name] = AudioMetadata(**values)

    async def extract(self, file_path):
        file_path = Path(file_path)
        if file_path.name not in self.metadata:
            raise CorruptFile(f"Could not parse audio container: {file_path.name}", details={"file_path": str(file_path)})
        return self.metadata[file_path.name]


class FakeTranscoder:
    """Transcoder that writes small files instead of running ffmpeg"""

    def __init__(self):
        self.binary = "ffmpeg"
        self.fail_tiers = set()
        self.calls = []
        self.gate = None
        self.started = None
        self.delay = 0
        self.active = 0
        self.peak = 0

    async def transcode(self, input_path, tier, output_dir):
        self.calls.append((Path(input_path).name, tier.name))
        if self.started is not None:
            self.started.set()
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        if tier.name in self.fail_tiers:
            raise EncodingFailed(f"ffmpeg exited with code 1 for tier '{tier.name}'", stderr="boom")
        output = Path(output_dir) / f"{Path(input_path).stem}_{tier.name}.{tier.extension}"
        output.write_bytes(b"encoded-" + tier.name.encode())
        return output


class FlakyCollection:
    """Collection wrapper whose chosen method loses the connection a few times"""

    def __init__(self, collection, method, failures=1, after=False):
        self._collection = collection
        self._method = method
        self.failures = failures
        self.after = after

    def __getattr__(self, name):
        attr = getattr(self._collection, name)
        if name != self._method:
            return attr

        def flaky(*args, **kwargs):
            if self.failures <= 0:
                return attr(*args, **kwargs)
            self.failures -= 1
            if self.after:
                # The write lands, the reply does not
                attr(*args, **kwargs)
            raise AutoReconnect("connection reset by peer")

        return flaky


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def config(temp_dir):
    """Parsed configuration with medium and low tiers"""
    return parse_config(make_raw_config(temp_dir), environ={})


@pytest.fixture
def store():
    """Catalog store backed by an in-memory mongomock database"""
    return CatalogStore(mongomock.MongoClient()["test_catalog"])


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def gateway(config, s3_client):
    return ObjectStoreGateway(config.storage, config.multipart, client=s3_client)


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def transcoder():
    return FakeTranscoder()


@pytest.fixture
def retry():
    """Retry policy that never waits"""
    return RetryPolicy(attempts=3, base_delay=0, max_delay=0, process_attempts=2,
                       process_delay=0, link_attempts=3, sleep=no_sleep)


@pytest.fixture
def context(config, store, gateway, extractor, transcoder, retry):
    return AppContext(
        config=config,
        store=store,
        gateway=gateway,
        extractor=extractor,
        transcoder=transcoder,
        retry=retry,
    )


@pytest.fixture
def orchestrator(context):
    return Orchestrator(context)


@pytest.fixture
def audio_file(temp_dir):
    """Factory writing a source file into temp_dir/sources"""
    sources = temp_dir / "sources"
    sources.mkdir()

    def _make(name, content=b"fake-audio-bytes"):
        path = sources / name
        path.write_bytes(content)
        return path

    return _make
