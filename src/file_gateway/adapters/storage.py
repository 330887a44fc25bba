"""
Storage capability used by the gateway.

Every backend stores blobs under ``(app_id, filename)`` and exposes
create, delete and whole-blob fetch. Backends that can seek into a blob
set ``supports_partial_read`` and return a ``FileStream`` from
``get_file_stream``; the range streaming engine only runs against those.
"""

import logging
import os
from pathlib import Path
from typing import Iterator, Optional

import boto3
from botocore.exceptions import ClientError

from file_gateway.settings import Settings

try:
    from mypy_boto3_s3 import S3Client
except ImportError:
    ...

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class StorageError(Exception):
    """A backend operation failed."""


class BlobNotFound(StorageError):
    """No blob is stored under the requested name."""


class FileStream:
    """
    Seekable read handle over one stored blob.

    ``close`` may be called any number of times; the backend resource is
    released on the first call only.
    """

    length: int = 0
    _closed: bool = False

    @property
    def closed(self) -> bool:
        return self._closed

    def seek(self, offset: int) -> None:
        raise NotImplementedError

    def iter_chunks(self) -> Iterator[bytes]:
        """Yield the blob from the current offset in backend-sized chunks."""
        raise NotImplementedError

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._release()

    def _release(self) -> None:
        raise NotImplementedError


class BaseStorage:
    """Base class for storage backends (to be extended by specific implementations)"""

    supports_partial_read = False

    def create_file(self, app_id: str, filename: str, data: bytes, content_type: Optional[str] = None) -> None:
        raise NotImplementedError

    def delete_file(self, app_id: str, filename: str) -> None:
        raise NotImplementedError

    def get_file_data(self, app_id: str, filename: str) -> bytes:
        raise NotImplementedError

    def get_file_stream(self, app_id: str, filename: str) -> FileStream:
        raise NotImplementedError(f"{type(self).__name__} does not support partial reads")


class LocalFileStream(FileStream):
    """Stream over a file on disk; the file stays open until ``close``."""

    def __init__(self, path: Path, chunk_size: int):
        self._chunk_size = chunk_size
        self._file = open(path, "rb")
        self.length = os.fstat(self._file.fileno()).st_size

    def seek(self, offset: int) -> None:
        self._file.seek(offset)

    def iter_chunks(self) -> Iterator[bytes]:
        while not self.closed:
            chunk = self._file.read(self._chunk_size)
            if not chunk:
                return
            yield chunk

    def _release(self) -> None:
        self._file.close()


class LocalStorage(BaseStorage):
    """Stores blobs as files under ``<storage_dir>/<app_id>/<filename>``"""

    supports_partial_read = True

    def __init__(self, storage_dir: str, chunk_size: int = 64 * 1024):
        self.root = Path(storage_dir)
        self.root.mkdir(parents=True, exist_ok=True)
        self.chunk_size = chunk_size
        logger.info("LocalStorage initialized at: %s", self.root)

    def _blob_path(self, app_id: str, filename: str) -> Path:
        for part in (app_id, filename):
            if part in ("", ".", "..") or "/" in part or "\\" in part:
                raise BlobNotFound(f"Invalid blob name: {app_id}/{filename}")
        return self.root / app_id / filename

    def create_file(self, app_id: str, filename: str, data: bytes, content_type: Optional[str] = None) -> None:
        path = self._blob_path(app_id, filename)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Could not write {path}: {e}") from e
        logger.info("Stored %d bytes at %s", len(data), path)

    def delete_file(self, app_id: str, filename: str) -> None:
        path = self._blob_path(app_id, filename)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise BlobNotFound(f"File not found: {path}") from e
        except OSError as e:
            raise StorageError(f"Could not delete {path}: {e}") from e
        logger.info("Deleted %s", path)

    def get_file_data(self, app_id: str, filename: str) -> bytes:
        path = self._blob_path(app_id, filename)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise BlobNotFound(f"File not found: {path}") from e
        except OSError as e:
            raise StorageError(f"Could not read {path}: {e}") from e

    def get_file_stream(self, app_id: str, filename: str) -> LocalFileStream:
        path = self._blob_path(app_id, filename)
        try:
            return LocalFileStream(path, self.chunk_size)
        except FileNotFoundError as e:
            raise BlobNotFound(f"File not found: {path}") from e
        except OSError as e:
            raise StorageError(f"Could not open {path}: {e}") from e


class S3Storage(BaseStorage):
    """
    Stores blobs as objects keyed ``<app_id>/<filename>`` in one bucket.

    Reads are whole-object only, so range requests against this backend
    are answered with the full body.
    """

    def __init__(self, bucket_name: str, s3_client: Optional["S3Client"] = None):
        self.bucket_name = bucket_name
        self.s3_client = s3_client or boto3.client("s3")
        logger.info("Using S3 bucket: %s", bucket_name)

    @staticmethod
    def _object_key(app_id: str, filename: str) -> str:
        return f"{app_id}/{filename}"

    @staticmethod
    def _is_missing(error: ClientError) -> bool:
        return error.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound")

    def create_file(self, app_id: str, filename: str, data: bytes, content_type: Optional[str] = None) -> None:
        object_key = self._object_key(app_id, filename)
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=object_key,
                Body=data,
                ContentType=content_type or DEFAULT_CONTENT_TYPE,
            )
        except ClientError as e:
            raise StorageError(f"Error uploading {object_key} to S3: {e}") from e
        logger.info("Uploaded %d bytes to S3 as %s", len(data), object_key)

    def delete_file(self, app_id: str, filename: str) -> None:
        object_key = self._object_key(app_id, filename)
        try:
            # delete_object succeeds for missing keys, so check first
            self.s3_client.head_object(Bucket=self.bucket_name, Key=object_key)
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=object_key)
        except ClientError as e:
            if self._is_missing(e):
                raise BlobNotFound(f"File not found: {object_key}") from e
            raise StorageError(f"Error deleting {object_key} from S3: {e}") from e
        logger.info("Deleted %s from S3", object_key)

    def get_file_data(self, app_id: str, filename: str) -> bytes:
        object_key = self._object_key(app_id, filename)
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=object_key)
            return response["Body"].read()
        except ClientError as e:
            if self._is_missing(e):
                raise BlobNotFound(f"File not found: {object_key}") from e
            raise StorageError(f"Error downloading {object_key} from S3: {e}") from e


class StorageFactory:
    @staticmethod
    def get_storage(settings: Settings) -> BaseStorage:
        if settings.uses_s3:
            s3_client = boto3.client(
                "s3",
                region_name=settings.aws_region,
                endpoint_url=settings.aws_endpoint_url,
            )
            return S3Storage(settings.s3_bucket_name, s3_client=s3_client)
        return LocalStorage(settings.storage_dir, chunk_size=settings.stream_chunk_size)
