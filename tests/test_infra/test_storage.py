"""Tests for tiered QR artifact storage."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from qrvault.config import Settings
from qrvault.core.errors import StorageUnavailableError
from qrvault.infra.storage import (
    ARTIFACT_CACHE_CONTROL,
    GRAM_QR_FOLDER,
    QR_FOLDER,
    BackendKind,
    LocalFilesystemBackend,
    ObjectStoreBackend,
    OnDemandBackend,
    StorageManager,
    StorageMode,
    artifact_key,
    create_backend,
    select_backend_kind,
)

PNG = b"\x89PNG\r\n\x1a\nfake"

R2_SETTINGS = {
    "r2_endpoint": "https://account.r2.example.test",
    "r2_bucket": "qr-bucket",
    "r2_access_key_id": "key",
    "r2_secret_access_key": "secret",
    "r2_public_url": "https://cdn.example.test",
}


def make_settings(**overrides) -> Settings:
    values = {
        "environment": "dev",
        "railway_environment": "",
        "app_base_url": "https://qr.example.test/",
        "r2_endpoint": "",
        "r2_bucket": "",
        "r2_access_key_id": "",
        "r2_secret_access_key": "",
        "r2_public_url": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "Operation")


class TestBackendSelection:
    """Tests for backend selection from environment capability."""

    def test_object_store_when_fully_configured(self):
        assert select_backend_kind(make_settings(**R2_SETTINGS)) is BackendKind.OBJECT_STORE

    def test_object_store_wins_on_deployed_runtime(self):
        config = make_settings(railway_environment="production", **R2_SETTINGS)
        assert select_backend_kind(config) is BackendKind.OBJECT_STORE

    @pytest.mark.parametrize("missing", sorted(R2_SETTINGS))
    def test_partial_config_is_unavailable(self, missing):
        config = make_settings(**{**R2_SETTINGS, missing: "  "})
        assert config.object_store_configured is False
        assert select_backend_kind(config) is BackendKind.LOCAL_FILESYSTEM

    def test_on_demand_on_deployed_runtime(self):
        assert select_backend_kind(make_settings(railway_environment="production")) is BackendKind.ON_DEMAND
        assert select_backend_kind(make_settings(environment="prod")) is BackendKind.ON_DEMAND

    def test_local_filesystem_in_development(self):
        assert select_backend_kind(make_settings()) is BackendKind.LOCAL_FILESYSTEM

    def test_selection_is_deterministic(self):
        config = make_settings(environment="staging")
        assert {select_backend_kind(config) for _ in range(5)} == {BackendKind.ON_DEMAND}

    def test_create_backend_matches_selection(self, tmp_path: Path):
        assert isinstance(create_backend(make_settings(**R2_SETTINGS)), ObjectStoreBackend)
        assert isinstance(create_backend(make_settings(environment="prod")), OnDemandBackend)
        local = create_backend(make_settings(local_storage_root=str(tmp_path)))
        assert isinstance(local, LocalFilesystemBackend)
        assert local.root == tmp_path


class TestObjectStoreBackend:
    """Tests for the S3-compatible backend."""

    @pytest.mark.asyncio
    async def test_store_uploads_with_headers(self, object_storage: StorageManager, s3_client: MagicMock):
        record = await object_storage.store("SKN000005", PNG)

        assert record.url == "https://cdn.example.test/qr/SKN000005.png"
        assert record.mode is StorageMode.OBJECT_STORE
        s3_client.put_object.assert_called_once_with(
            Bucket="qr-bucket",
            Key="qr/SKN000005.png",
            Body=PNG,
            ContentType="image/png",
            CacheControl=ARTIFACT_CACHE_CONTROL,
        )

    @pytest.mark.asyncio
    async def test_store_gram_folder(self, object_storage: StorageManager):
        record = await object_storage.store("SKP00001", PNG, GRAM_QR_FOLDER)
        assert record.url == "https://cdn.example.test/qr-gram/SKP00001.png"

    @pytest.mark.asyncio
    async def test_store_failure_raises(self, object_storage: StorageManager, s3_client: MagicMock):
        s3_client.put_object.side_effect = client_error("AccessDenied")

        with pytest.raises(StorageUnavailableError) as exc_info:
            await object_storage.store("SKN000005", PNG)
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_delete_uses_key_from_existing_url(self, object_storage: StorageManager, s3_client: MagicMock):
        await object_storage.delete("SKN000005", "https://cdn.example.test/qr/legacy/SKN000005.png")

        s3_client.delete_object.assert_called_once_with(
            Bucket="qr-bucket", Key="qr/legacy/SKN000005.png"
        )

    @pytest.mark.asyncio
    async def test_delete_falls_back_to_canonical_key(self, object_storage: StorageManager, s3_client: MagicMock):
        await object_storage.delete("SKN000005", "/qr/SKN000005.png")

        s3_client.delete_object.assert_called_once_with(Bucket="qr-bucket", Key="qr/SKN000005.png")

    @pytest.mark.asyncio
    async def test_delete_missing_object_is_not_an_error(self, object_storage: StorageManager, s3_client: MagicMock):
        s3_client.delete_object.side_effect = client_error("NoSuchKey")

        await object_storage.delete("SKN000005")
        await object_storage.delete("SKN000005")
        assert s3_client.delete_object.call_count == 2

    @pytest.mark.asyncio
    async def test_delete_failure_raises(self, object_storage: StorageManager, s3_client: MagicMock):
        s3_client.delete_object.side_effect = client_error("InternalError")

        with pytest.raises(StorageUnavailableError):
            await object_storage.delete("SKN000005")

    @pytest.mark.asyncio
    async def test_exists(self, s3_client: MagicMock):
        backend = ObjectStoreBackend("qr-bucket", "https://cdn.example.test/", s3_client)
        assert await backend.exists("SKN000005") is True

        s3_client.head_object.side_effect = client_error("404")
        assert await backend.exists("SKN000005") is False

    @pytest.mark.asyncio
    async def test_exists_uses_key_from_existing_url(self, object_storage: StorageManager, s3_client: MagicMock):
        assert await object_storage.exists("SKN000005", "https://cdn.example.test/qr/legacy/SKN000005.png") is True

        s3_client.head_object.assert_called_once_with(Bucket="qr-bucket", Key="qr/legacy/SKN000005.png")

    @pytest.mark.asyncio
    async def test_exists_failure_raises(self, object_storage: StorageManager, s3_client: MagicMock):
        s3_client.head_object.side_effect = client_error("InternalError")

        with pytest.raises(StorageUnavailableError):
            await object_storage.exists("SKN000005")

    def test_key_from_foreign_url(self, s3_client: MagicMock):
        backend = ObjectStoreBackend("qr-bucket", "https://cdn.example.test", s3_client)
        assert backend.key_from_url("https://elsewhere.test/qr/X.png") is None
        assert backend.key_from_url(None) is None


class TestLocalFilesystemBackend:
    """Tests for development storage."""

    @pytest.mark.asyncio
    async def test_store_writes_file(self, local_storage: StorageManager, tmp_path: Path):
        record = await local_storage.store("SKN000005", PNG)

        assert record.url == "/qr/SKN000005.png"
        assert record.mode is StorageMode.LOCAL
        assert (tmp_path / "qr" / "SKN000005.png").read_bytes() == PNG

    @pytest.mark.asyncio
    async def test_store_overwrites(self, local_storage: StorageManager, tmp_path: Path):
        await local_storage.store("SKN000005", b"old")
        await local_storage.store("SKN000005", PNG)
        assert (tmp_path / "qr" / "SKN000005.png").read_bytes() == PNG

    @pytest.mark.asyncio
    async def test_write_failure_falls_back_to_on_demand(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        manager = StorageManager(
            LocalFilesystemBackend(blocker, fallback=OnDemandBackend("https://qr.example.test"))
        )

        record = await manager.store("SKN000005", PNG)

        assert record.url == "https://qr.example.test/api/qr/SKN000005"
        assert record.mode is StorageMode.LOCAL

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, local_storage: StorageManager, tmp_path: Path):
        await local_storage.store("SKP00001", PNG, GRAM_QR_FOLDER)

        await local_storage.delete("SKP00001", folder=GRAM_QR_FOLDER)
        await local_storage.delete("SKP00001", folder=GRAM_QR_FOLDER)

        assert not (tmp_path / "qr-gram" / "SKP00001.png").exists()

    @pytest.mark.asyncio
    async def test_exists_checks_file(self, local_storage: StorageManager, tmp_path: Path):
        record = await local_storage.store("SKP00001", PNG, GRAM_QR_FOLDER)
        assert await local_storage.exists("SKP00001", record.url, GRAM_QR_FOLDER) is True

        (tmp_path / "qr-gram" / "SKP00001.png").unlink()
        assert await local_storage.exists("SKP00001", record.url, GRAM_QR_FOLDER) is False

    @pytest.mark.asyncio
    async def test_exists_trusts_fallback_url(self, local_storage: StorageManager):
        assert await local_storage.exists("SKN000005", "https://qr.example.test/api/qr/SKN000005") is True

    @pytest.mark.asyncio
    async def test_unknown_folder_rejected(self, local_storage: StorageManager):
        with pytest.raises(ValueError):
            await local_storage.store("SKN000005", PNG, "../etc")


class TestOnDemandBackend:
    @pytest.mark.asyncio
    async def test_store_returns_regeneration_url(self):
        manager = StorageManager(OnDemandBackend("https://qr.example.test/"))

        product = await manager.store("SKN000005", PNG, QR_FOLDER)
        gram = await manager.store("SKP00001", PNG, GRAM_QR_FOLDER)

        assert product.url == "https://qr.example.test/api/qr/SKN000005"
        assert gram.url == "https://qr.example.test/api/qr-gram/SKP00001"
        assert product.mode is StorageMode.LOCAL
        assert manager.kind is BackendKind.ON_DEMAND

    @pytest.mark.asyncio
    async def test_delete_is_noop(self):
        manager = StorageManager(OnDemandBackend("https://qr.example.test"))
        await manager.delete("SKN000005", "https://qr.example.test/api/qr/SKN000005")

    @pytest.mark.asyncio
    async def test_exists_always(self):
        manager = StorageManager(OnDemandBackend("https://qr.example.test"))
        assert await manager.exists("SKN000005") is True

    def test_artifact_key(self):
        assert artifact_key("SKN000005") == "qr/SKN000005.png"
        assert artifact_key("SKP00001", GRAM_QR_FOLDER) == "qr-gram/SKP00001.png"
