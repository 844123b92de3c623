"""Tiered storage for QR artifacts.

Provides:
- Object store backend (S3-compatible API, e.g. Cloudflare R2)
- On-demand backend that stores nothing and hands out a regeneration URL
- Local filesystem backend for development, falling back to on-demand URLs

The backend is chosen once from environment capability and injected into
StorageManager. It never changes for the lifetime of the process.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from qrvault.config import Settings, settings
from qrvault.core.errors import StorageUnavailableError
from qrvault.infra.logging import get_audit_logger, get_logger

logger = get_logger(__name__)
audit = get_audit_logger(__name__)

QR_FOLDER = "qr"
GRAM_QR_FOLDER = "qr-gram"

# Artifacts may be regenerated in place, so caches must revalidate
ARTIFACT_CACHE_CONTROL = "public, max-age=3600, must-revalidate"
ARTIFACT_CONTENT_TYPE = "image/png"

# Route serving each folder's artifacts on demand
ON_DEMAND_ROUTES = {
    QR_FOLDER: "/api/qr",
    GRAM_QR_FOLDER: "/api/qr-gram",
}

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class StorageMode(str, Enum):
    """Storage mode reported alongside the artifact URL."""

    LOCAL = "LOCAL"
    OBJECT_STORE = "OBJECT_STORE"


class BackendKind(str, Enum):
    """The three mutually exclusive storage backends."""

    OBJECT_STORE = "OBJECT_STORE"
    ON_DEMAND = "ON_DEMAND"
    LOCAL_FILESYSTEM = "LOCAL_FILESYSTEM"


@dataclass(frozen=True)
class StorageRecord:
    """Where an artifact can be retrieved from."""

    url: str
    mode: StorageMode


def artifact_key(serial_code: str, folder: str = QR_FOLDER) -> str:
    """Canonical object key for a serial code."""
    return f"{folder}/{serial_code}.png"


def _validate_folder(folder: str) -> None:
    if folder not in ON_DEMAND_ROUTES:
        raise ValueError(f"Unknown artifact folder: {folder}")


def _is_not_found(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    return code in _NOT_FOUND_CODES


class StorageBackend(ABC):
    """One arm of the storage state machine."""

    kind: BackendKind

    @abstractmethod
    async def store(self, serial_code: str, data: bytes, folder: str = QR_FOLDER) -> StorageRecord:
        """Persist artifact bytes and return their retrieval URL."""

    @abstractmethod
    async def delete(
        self,
        serial_code: str,
        existing_url: str | None = None,
        folder: str = QR_FOLDER,
    ) -> None:
        """Remove an artifact. Missing artifacts are not an error."""

    @abstractmethod
    async def exists(
        self,
        serial_code: str,
        existing_url: str | None = None,
        folder: str = QR_FOLDER,
    ) -> bool:
        """Whether the stored artifact can still be retrieved."""


class OnDemandBackend(StorageBackend):
    """Stores nothing; the URL regenerates the artifact on request."""

    kind = BackendKind.ON_DEMAND

    def __init__(self, base_url: str) -> None:
        self._base_url = base_url.rstrip("/")

    def url_for(self, serial_code: str, folder: str = QR_FOLDER) -> str:
        _validate_folder(folder)
        return f"{self._base_url}{ON_DEMAND_ROUTES[folder]}/{serial_code}"

    async def store(self, serial_code: str, data: bytes, folder: str = QR_FOLDER) -> StorageRecord:
        return StorageRecord(url=self.url_for(serial_code, folder), mode=StorageMode.LOCAL)

    async def delete(
        self,
        serial_code: str,
        existing_url: str | None = None,
        folder: str = QR_FOLDER,
    ) -> None:
        logger.debug("On-demand artifact has nothing to delete", serial_code=serial_code)

    async def exists(
        self,
        serial_code: str,
        existing_url: str | None = None,
        folder: str = QR_FOLDER,
    ) -> bool:
        # Rendered on request, so always retrievable
        return True


class LocalFilesystemBackend(StorageBackend):
    """Writes artifacts below a local directory (development only)."""

    kind = BackendKind.LOCAL_FILESYSTEM

    def __init__(self, root: Path | str, fallback: OnDemandBackend) -> None:
        self._root = Path(root)
        self._fallback = fallback

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, serial_code: str, folder: str = QR_FOLDER) -> Path:
        _validate_folder(folder)
        return self._root / artifact_key(serial_code, folder)

    async def store(self, serial_code: str, data: bytes, folder: str = QR_FOLDER) -> StorageRecord:
        path = self.path_for(serial_code, folder)
        try:
            await asyncio.to_thread(_write_file, path, data)
        except OSError as e:
            audit.warning(
                "Failed to write QR to file system, using on-demand URL",
                serial_code=serial_code,
                path=str(path),
                reason=str(e),
            )
            return await self._fallback.store(serial_code, data, folder)

        logger.info("QR stored locally", serial_code=serial_code, path=str(path), size=len(data))
        return StorageRecord(url=f"/{artifact_key(serial_code, folder)}", mode=StorageMode.LOCAL)

    async def delete(
        self,
        serial_code: str,
        existing_url: str | None = None,
        folder: str = QR_FOLDER,
    ) -> None:
        path = self.path_for(serial_code, folder)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            logger.debug("Local QR already absent", serial_code=serial_code, path=str(path))
            return
        logger.info("Deleted local QR", serial_code=serial_code, path=str(path))

    async def exists(
        self,
        serial_code: str,
        existing_url: str | None = None,
        folder: str = QR_FOLDER,
    ) -> bool:
        if existing_url and not existing_url.startswith("/"):
            # Fallback on-demand URL from a failed write
            return True
        return await asyncio.to_thread(self.path_for(serial_code, folder).is_file)


def _write_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


class ObjectStoreBackend(StorageBackend):
    """S3-compatible object store fronted by a public base URL."""

    kind = BackendKind.OBJECT_STORE

    def __init__(self, bucket: str, public_url: str, client: Any) -> None:
        """Initialize object store backend.

        Args:
            bucket: Bucket name
            public_url: Public base URL serving the bucket
            client: boto3 S3 client
        """
        self._bucket = bucket
        self._public_url = public_url.rstrip("/")
        self._client = client

    @classmethod
    def from_settings(cls, config: Settings) -> "ObjectStoreBackend":
        client = boto3.client(
            "s3",
            endpoint_url=config.r2_endpoint,
            aws_access_key_id=config.r2_access_key_id,
            aws_secret_access_key=config.r2_secret_access_key,
            region_name=config.r2_region,
            config=BotoConfig(retries={"max_attempts": 3, "mode": "standard"}),
        )
        logger.info("Object store client initialized", bucket=config.r2_bucket)
        return cls(bucket=config.r2_bucket, public_url=config.r2_public_url, client=client)

    def public_url_for(self, key: str) -> str:
        return f"{self._public_url}/{key}"

    def key_from_url(self, existing_url: str | None) -> str | None:
        """Recover the object key from a URL this backend issued."""
        if not existing_url:
            return None
        prefix = f"{self._public_url}/"
        if existing_url.startswith(prefix):
            return existing_url[len(prefix):] or None
        return None

    async def store(self, serial_code: str, data: bytes, folder: str = QR_FOLDER) -> StorageRecord:
        _validate_folder(folder)
        key = artifact_key(serial_code, folder)
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=ARTIFACT_CONTENT_TYPE,
                CacheControl=ARTIFACT_CACHE_CONTROL,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Object store upload failed",
                serial_code=serial_code,
                key=key,
                reason=str(e),
            )
            raise StorageUnavailableError(
                f"Failed to store QR for {serial_code}", serial_code=serial_code, key=key
            ) from e

        logger.info("QR uploaded to object store", serial_code=serial_code, key=key, size=len(data))
        return StorageRecord(url=self.public_url_for(key), mode=StorageMode.OBJECT_STORE)

    async def delete(
        self,
        serial_code: str,
        existing_url: str | None = None,
        folder: str = QR_FOLDER,
    ) -> None:
        _validate_folder(folder)
        key = self.key_from_url(existing_url) or artifact_key(serial_code, folder)
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                logger.debug("Object already absent", serial_code=serial_code, key=key)
                return
            logger.error("Object store delete failed", serial_code=serial_code, key=key, reason=str(e))
            raise StorageUnavailableError(
                f"Failed to delete QR for {serial_code}", serial_code=serial_code, key=key
            ) from e
        except BotoCoreError as e:
            logger.error("Object store delete failed", serial_code=serial_code, key=key, reason=str(e))
            raise StorageUnavailableError(
                f"Failed to delete QR for {serial_code}", serial_code=serial_code, key=key
            ) from e

        logger.info("Deleted QR from object store", serial_code=serial_code, key=key)

    async def exists(
        self,
        serial_code: str,
        existing_url: str | None = None,
        folder: str = QR_FOLDER,
    ) -> bool:
        """HEAD the artifact object."""
        _validate_folder(folder)
        key = self.key_from_url(existing_url) or artifact_key(serial_code, folder)
        try:
            await asyncio.to_thread(self._client.head_object, Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise StorageUnavailableError(
                f"Failed to check QR for {serial_code}", serial_code=serial_code, key=key
            ) from e
        return True


def select_backend_kind(config: Settings) -> BackendKind:
    """Pick the backend from environment capability.

    The object store wins whenever it is fully configured. Without it, a
    deployed runtime has a read-only filesystem and regenerates on demand.
    """
    if config.object_store_configured:
        return BackendKind.OBJECT_STORE
    if config.is_deployed_runtime:
        return BackendKind.ON_DEMAND
    return BackendKind.LOCAL_FILESYSTEM


def create_backend(config: Settings) -> StorageBackend:
    """Build the backend selected for this environment."""
    kind = select_backend_kind(config)
    if kind is BackendKind.OBJECT_STORE:
        return ObjectStoreBackend.from_settings(config)
    on_demand = OnDemandBackend(config.base_url)
    if kind is BackendKind.ON_DEMAND:
        return on_demand
    return LocalFilesystemBackend(config.local_storage_root, fallback=on_demand)


class StorageManager:
    """Persists QR artifacts through the backend chosen at startup."""

    def __init__(self, backend: StorageBackend) -> None:
        self._backend = backend
        logger.info("Storage backend selected", backend=backend.kind.value)

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    @property
    def kind(self) -> BackendKind:
        return self._backend.kind

    async def store(self, serial_code: str, data: bytes, folder: str = QR_FOLDER) -> StorageRecord:
        """Persist artifact bytes for a serial code.

        Raises:
            StorageUnavailableError: If the object store rejects the upload
        """
        return await self._backend.store(serial_code, data, folder)

    async def delete(
        self,
        serial_code: str,
        existing_url: str | None = None,
        folder: str = QR_FOLDER,
    ) -> None:
        """Delete an artifact. Calling it twice is safe."""
        await self._backend.delete(serial_code, existing_url, folder)

    async def exists(
        self,
        serial_code: str,
        existing_url: str | None = None,
        folder: str = QR_FOLDER,
    ) -> bool:
        """Check the artifact behind a stored URL.

        Raises:
            StorageUnavailableError: If the object store cannot be queried
        """
        return await self._backend.exists(serial_code, existing_url, folder)


# Singleton instance
_storage_manager: StorageManager | None = None


def get_storage_manager() -> StorageManager:
    """Get the singleton storage manager, selecting its backend on first use."""
    global _storage_manager
    if _storage_manager is None:
        _storage_manager = StorageManager(create_backend(settings))
    return _storage_manager


def reset_storage_manager() -> None:
    """Drop the singleton (used on shutdown and in tests)."""
    global _storage_manager
    _storage_manager = None
