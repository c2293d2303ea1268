"""
Object storage for uploaded documents.

Documents are stored under `documents/{content_hash}/{filename}`:
- `MinIOObjectStore`: any S3-compatible endpoint through the MinIO SDK
- `LocalObjectStore`: files under `{local_data_dir}/files`
"""

import asyncio
import io
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

from minio import Minio
from minio.error import S3Error

from vaisu.core.config import settings
from vaisu.core.exceptions import NotFoundError, StorageError
from vaisu.core.logging import get_logger
from vaisu.storage.kv_store import sanitize_key

logger = get_logger()

CONTENT_TYPES = {
    "txt": "text/plain",
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "doc": "application/msword",
    "md": "text/markdown",
}


@dataclass
class UploadResult:
    bucket: str
    key: str
    path: str


def build_document_key(content_hash: str, filename: str) -> str:
    """Object key for a document: `documents/{hash}/{filename}`."""
    return f"documents/{content_hash}/{filename}"


def get_content_type(filename: str) -> str:
    """MIME type from the file extension, `application/octet-stream` when unknown."""
    ext = filename.lower().rsplit(".", 1)[-1] if "." in filename else ""
    return CONTENT_TYPES.get(ext, "application/octet-stream")


class ObjectStore(ABC):
    """Interface shared by the object storage backends."""

    @abstractmethod
    async def upload_document(
        self, content_hash: str, filename: str, content: bytes
    ) -> UploadResult:
        ...

    @abstractmethod
    async def download_document(self, key: str) -> bytes:
        """
        Raises:
            NotFoundError: no object under `key`
        """

    @abstractmethod
    async def delete_document(self, key: str) -> None:
        ...

    @abstractmethod
    async def get_presigned_url(self, key: str, expires_in: int = 900) -> str:
        ...

    async def initialize(self) -> None:
        return None

    async def close(self) -> None:
        return None


class MinIOObjectStore(ObjectStore):
    """
    MinIO / S3 object storage.

    The MinIO SDK is blocking, so every call runs in the default executor.
    """

    def __init__(self, client: Optional[Minio] = None, bucket: Optional[str] = None):
        self._client = client
        self.bucket = bucket or settings.s3_bucket_name

    async def initialize(self) -> None:
        """Create the client and make sure the bucket exists."""
        if self._client is None:
            self._client = Minio(
                settings.minio_endpoint,
                access_key=settings.minio_access_key,
                secret_key=settings.minio_secret_key,
                secure=settings.minio_secure,
                region=settings.minio_region,
            )
            logger.info(f"MinIO client initialized: {settings.minio_endpoint}")

        await self._ensure_bucket()

    async def close(self) -> None:
        self._client = None
        logger.info("MinIO client closed")

    @property
    def client(self) -> Minio:
        if self._client is None:
            raise StorageError("MinIO client not initialized, call initialize() first")
        return self._client

    async def _ensure_bucket(self) -> None:
        loop = asyncio.get_event_loop()
        exists = await loop.run_in_executor(None, self.client.bucket_exists, self.bucket)
        if not exists:
            await loop.run_in_executor(None, self.client.make_bucket, self.bucket)
            logger.info(f"Created bucket: {self.bucket}")

    async def upload_document(
        self, content_hash: str, filename: str, content: bytes
    ) -> UploadResult:
        key = build_document_key(content_hash, filename)
        loop = asyncio.get_event_loop()

        try:
            await loop.run_in_executor(
                None,
                lambda: self.client.put_object(
                    bucket_name=self.bucket,
                    object_name=key,
                    data=io.BytesIO(content),
                    length=len(content),
                    content_type=get_content_type(filename),
                    metadata={"content-hash": content_hash},
                ),
            )
        except S3Error as e:
            raise StorageError(f"Failed to upload {key}: {e}") from e

        logger.debug(f"Uploaded document: {self.bucket}/{key}")
        return UploadResult(bucket=self.bucket, key=key, path=f"s3://{self.bucket}/{key}")

    async def download_document(self, key: str) -> bytes:
        loop = asyncio.get_event_loop()

        try:
            response = await loop.run_in_executor(
                None,
                lambda: self.client.get_object(self.bucket, key),
            )
        except S3Error as e:
            if e.code == "NoSuchKey":
                raise NotFoundError(f"Object not found: {key}") from e
            raise StorageError(f"Failed to download {key}: {e}") from e

        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()

    async def delete_document(self, key: str) -> None:
        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(
                None,
                lambda: self.client.remove_object(self.bucket, key),
            )
        except S3Error as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e

    async def get_presigned_url(self, key: str, expires_in: int = 900) -> str:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            None,
            lambda: self.client.presigned_get_object(
                self.bucket,
                key,
                expires=timedelta(seconds=expires_in),
            ),
        )


class LocalObjectStore(ObjectStore):
    """Files under a local directory; object keys are sanitized into file names."""

    def __init__(self, files_dir: str | Path):
        self.files_dir = Path(files_dir)
        self.files_dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        return self.files_dir / sanitize_key(key)

    async def upload_document(
        self, content_hash: str, filename: str, content: bytes
    ) -> UploadResult:
        key = build_document_key(content_hash, filename)
        path = self._path_for(key)
        try:
            path.write_bytes(content)
        except OSError as e:
            raise StorageError(f"Failed to upload {key}: {e}") from e
        return UploadResult(bucket="local", key=key, path=f"file://{path.resolve()}")

    async def download_document(self, key: str) -> bytes:
        path = self._path_for(key)
        if not path.exists():
            raise NotFoundError(f"File not found: {key}")
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to download {key}: {e}") from e

    async def delete_document(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e

    async def get_presigned_url(self, key: str, expires_in: int = 900) -> str:
        return f"file://{self._path_for(key).resolve()}"


_object_store: Optional[ObjectStore] = None


def get_object_store() -> ObjectStore:
    """Return the process-wide object store chosen by `settings.object_backend`."""
    global _object_store
    if _object_store is None:
        backend = settings.object_backend.lower()
        if backend == "minio":
            _object_store = MinIOObjectStore()
        elif backend == "local":
            _object_store = LocalObjectStore(Path(settings.local_data_dir) / "files")
        else:
            raise ValueError(f"Unknown object storage backend: {backend}")
    return _object_store


def set_object_store(store: Optional[ObjectStore]) -> None:
    global _object_store
    _object_store = store
