"""Attachment storage for ReportDesk.

One interface, two implementations; a deployment picks one through
``storage_backend``. Locators are opaque strings (``local://...`` or
``s3://bucket/key``) stored on the report row.
"""

import hashlib
import mimetypes
from datetime import datetime
from io import BytesIO
from pathlib import Path, PurePosixPath
from typing import Iterator
from uuid import uuid4

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from .config import Settings, get_settings
from .exceptions import InvalidInput, NotFound

CHUNK_SIZE = 64 * 1024


class StorageBackend:
    """Abstract storage capability interface."""

    scheme = ""

    def put(self, data: bytes, filename: str, content_type: str | None = None) -> str:
        """Store bytes and return a locator."""
        raise NotImplementedError

    def get(self, locator: str) -> bytes:
        """Return the full content behind a locator."""
        raise NotImplementedError

    def stream(self, locator: str) -> Iterator[bytes]:
        """Yield the content behind a locator in chunks."""
        raise NotImplementedError

    def delete(self, locator: str) -> None:
        """Remove the content behind a locator; missing content is ignored."""
        raise NotImplementedError

    def _key_from_locator(self, locator: str) -> str:
        prefix = f"{self.scheme}://"
        if not locator.startswith(prefix):
            raise InvalidInput(f"Locator {locator!r} does not belong to {self.scheme} storage")
        return locator[len(prefix):]


class LocalStorage(StorageBackend):
    """Stores attachments under a directory on local disk."""

    scheme = "local"

    def __init__(self, root: str | Path):
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root not in path.parents:
            raise InvalidInput("Locator escapes the storage root")
        return path

    def put(self, data: bytes, filename: str, content_type: str | None = None) -> str:
        key = generate_storage_key(filename)
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return f"{self.scheme}://{key}"

    def get(self, locator: str) -> bytes:
        path = self._path(self._key_from_locator(locator))
        if not path.exists():
            raise NotFound("Attachment", locator)
        return path.read_bytes()

    def stream(self, locator: str) -> Iterator[bytes]:
        path = self._path(self._key_from_locator(locator))
        if not path.exists():
            raise NotFound("Attachment", locator)
        return _iter_file(path)

    def delete(self, locator: str) -> None:
        path = self._path(self._key_from_locator(locator))
        path.unlink(missing_ok=True)


def _iter_file(path: Path) -> Iterator[bytes]:
    with path.open("rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            yield chunk


class S3Storage(StorageBackend):
    """S3-compatible storage (MinIO locally, AWS S3 in production)."""

    scheme = "s3"

    def __init__(self, settings: Settings):
        self._client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
            ),
        )
        self._bucket = settings.s3_bucket

    def _key_from_locator(self, locator: str) -> str:
        bucket_and_key = super()._key_from_locator(locator)
        bucket, _, key = bucket_and_key.partition("/")
        if bucket != self._bucket or not key:
            raise InvalidInput(f"Locator {locator!r} is not in bucket {self._bucket}")
        return key

    def put(self, data: bytes, filename: str, content_type: str | None = None) -> str:
        key = generate_storage_key(filename)
        self._client.upload_fileobj(
            BytesIO(data),
            self._bucket,
            key,
            ExtraArgs={
                "ContentType": content_type or guess_content_type(filename),
                "Metadata": {"sha256": compute_content_hash(data)},
            },
        )
        return f"s3://{self._bucket}/{key}"

    def get(self, locator: str) -> bytes:
        key = self._key_from_locator(locator)
        buffer = BytesIO()
        try:
            self._client.download_fileobj(self._bucket, key, buffer)
        except ClientError as e:
            if e.response["Error"]["Code"] in ("404", "NoSuchKey"):
                raise NotFound("Attachment", locator)
            raise
        buffer.seek(0)
        return buffer.read()

    def stream(self, locator: str) -> Iterator[bytes]:
        key = self._key_from_locator(locator)
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if e.response["Error"]["Code"] in ("404", "NoSuchKey"):
                raise NotFound("Attachment", locator)
            raise
        return response["Body"].iter_chunks(chunk_size=CHUNK_SIZE)

    def delete(self, locator: str) -> None:
        self._client.delete_object(Bucket=self._bucket, Key=self._key_from_locator(locator))


def compute_content_hash(data: bytes) -> str:
    """Compute SHA-256 hash of content."""
    return hashlib.sha256(data).hexdigest()


def guess_content_type(filename: str) -> str:
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or "application/octet-stream"


def generate_storage_key(filename: str, timestamp: datetime | None = None) -> str:
    """Generate a storage key for an attachment.

    Format: attachments/{year-month}/{uuid}{extension}

    The original filename is kept on the report row, not in the key.
    """
    ts = timestamp or datetime.utcnow()
    suffix = PurePosixPath(filename).suffix.lower()
    return f"attachments/{ts.strftime('%Y-%m')}/{uuid4().hex}{suffix}"


def validate_upload(filename: str, size: int, settings: Settings | None = None) -> None:
    """Check an upload against the configured size and extension limits.

    Raises:
        InvalidInput: If the file is empty, too large, or of a disallowed type
    """
    settings = settings or get_settings()
    if size <= 0:
        raise InvalidInput("Uploaded file is empty")
    if size > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes / (1024 * 1024)
        raise InvalidInput(f"File too large (limit {limit_mb:g} MB)")
    extension = PurePosixPath(filename).suffix.lower().lstrip(".")
    if extension not in settings.allowed_extensions:
        allowed = ", ".join(sorted(settings.allowed_extensions))
        raise InvalidInput(f"File type '.{extension}' not allowed. Allowed: {allowed}")


_storage: StorageBackend | None = None


def get_storage() -> StorageBackend:
    """Get the configured storage backend (FastAPI dependency)."""
    global _storage
    if _storage is None:
        settings = get_settings()
        if settings.storage_backend == "s3":
            _storage = S3Storage(settings)
        else:
            _storage = LocalStorage(settings.upload_dir)
    return _storage
