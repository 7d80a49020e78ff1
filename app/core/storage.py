"""Where uploaded file bytes live.

``LocalFileStorage`` keeps them in a directory on disk, ``S3FileStorage`` in
an S3 bucket. Both read and write in fixed-size chunks so a request never
holds a whole file in memory.
"""
import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Iterator

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.errors import NotFound, StorageFailure

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


class FileStorage(ABC):
    chunk_size: int = DEFAULT_CHUNK_SIZE

    @abstractmethod
    def save(self, name: str, stream: BinaryIO) -> None:
        """Write ``stream`` under ``name``. Raises StorageFailure."""

    @abstractmethod
    def open(self, name: str) -> Iterator[bytes]:
        """Return the stored bytes as chunks. Raises NotFound or StorageFailure."""

    @abstractmethod
    def delete(self, name: str) -> None:
        """Remove ``name`` if present."""


class LocalFileStorage(FileStorage):
    def __init__(self, root: str | Path, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.root = Path(root).resolve()
        self.chunk_size = chunk_size
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, name: str) -> Path:
        # stored names are plain basenames, never paths
        if not name or name != Path(name).name or name in (".", ".."):
            raise NotFound()
        return self.root / name

    def save(self, name: str, stream: BinaryIO) -> None:
        path = self._path(name)
        try:
            out = path.open("xb")
        except OSError as e:
            # includes FileExistsError: never overwrite another upload
            logger.error("Creating %s failed: %s", path, e)
            raise StorageFailure() from e
        try:
            with out:
                shutil.copyfileobj(stream, out, self.chunk_size)
        except OSError as e:
            logger.error("Writing %s failed: %s", path, e)
            path.unlink(missing_ok=True)
            raise StorageFailure() from e

    def open(self, name: str) -> Iterator[bytes]:
        path = self._path(name)
        try:
            handle = path.open("rb")
        except FileNotFoundError:
            logger.warning("File missing from storage: %s", path)
            raise NotFound("File missing from storage")
        except OSError as e:
            logger.error("Reading %s failed: %s", path, e)
            raise StorageFailure() from e
        return self._iter_chunks(handle)

    def _iter_chunks(self, handle: BinaryIO) -> Iterator[bytes]:
        with handle:
            while chunk := handle.read(self.chunk_size):
                yield chunk

    def delete(self, name: str) -> None:
        try:
            self._path(name).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not delete %s: %s", name, e)


class S3FileStorage(FileStorage):
    def __init__(self, client, bucket: str, prefix: str = "", chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.client = client
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.chunk_size = chunk_size

    def _key(self, name: str) -> str:
        return f"{self.prefix}/{name}" if self.prefix else name

    def save(self, name: str, stream: BinaryIO) -> None:
        key = self._key(name)
        try:
            # multipart upload straight from the stream
            self.client.upload_fileobj(stream, self.bucket, key)
        except (BotoCoreError, ClientError) as e:
            logger.error("Uploading s3://%s/%s failed: %s", self.bucket, key, e)
            raise StorageFailure() from e

    def open(self, name: str) -> Iterator[bytes]:
        key = self._key(name)
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_KEY_CODES:
                logger.warning("File missing in bucket: s3://%s/%s", self.bucket, key)
                raise NotFound("File missing from storage")
            logger.error("Fetching s3://%s/%s failed: %s", self.bucket, key, e)
            raise StorageFailure() from e
        except BotoCoreError as e:
            logger.error("Fetching s3://%s/%s failed: %s", self.bucket, key, e)
            raise StorageFailure() from e
        return obj["Body"].iter_chunks(self.chunk_size)

    def delete(self, name: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=self._key(name))
        except (BotoCoreError, ClientError) as e:
            logger.warning("Could not delete %s from bucket: %s", name, e)


def build_storage(settings) -> FileStorage:
    if settings.storage_backend == "s3":
        s3 = boto3.client(
            "s3",
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
        )
        return S3FileStorage(
            s3,
            settings.aws_s3_bucket_name,
            prefix=settings.aws_s3_prefix,
            chunk_size=settings.upload_chunk_size,
        )
    return LocalFileStorage(settings.upload_dir, chunk_size=settings.upload_chunk_size)
