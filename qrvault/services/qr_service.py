"""QR artifact service.

Glues the renderer to the storage manager: the `{url, mode}` record it
returns is the only thing the rest of the application keeps.
"""

import asyncio

from qrvault.config import settings
from qrvault.core.errors import StorageUnavailableError
from qrvault.core.renderer import RenderResult, render, render_qr_only
from qrvault.infra.logging import get_audit_logger, get_logger
from qrvault.infra.storage import (
    QR_FOLDER,
    StorageManager,
    StorageRecord,
    get_storage_manager,
)

logger = get_logger(__name__)
audit = get_audit_logger(__name__)

# Artifacts rendered and stored concurrently per step
ARTIFACT_CHUNK_SIZE = 100


def verify_url(serial_code: str) -> str:
    """Public verification URL encoded in a serial's QR."""
    return f"{settings.base_url}/verify/{serial_code}"


class QRArtifactService:
    """Render, store and delete QR artifacts."""

    def __init__(self, storage: StorageManager | None = None) -> None:
        self._storage = storage or get_storage_manager()

    @property
    def storage(self) -> StorageManager:
        return self._storage

    async def render(
        self,
        serial_code: str,
        target_url: str | None = None,
        product_name: str | None = None,
    ) -> RenderResult:
        """Render a labelled artifact off the event loop."""
        url = target_url or verify_url(serial_code)
        return await asyncio.to_thread(render, url, serial_code, product_name)

    async def render_qr_only(self, serial_code: str, target_url: str | None = None) -> RenderResult:
        url = target_url or verify_url(serial_code)
        return await asyncio.to_thread(render_qr_only, url)

    async def generate_and_store(
        self,
        serial_code: str,
        target_url: str | None = None,
        product_name: str | None = None,
        folder: str = QR_FOLDER,
    ) -> StorageRecord:
        """Render the artifact for a serial code and persist it.

        Args:
            serial_code: Serial code printed on the label and used as key
            target_url: URL to encode (defaults to the verification URL)
            product_name: Optional title above the QR
            folder: Key folder (qr or qr-gram)

        Returns:
            StorageRecord with the retrieval URL and storage mode

        Raises:
            StorageUnavailableError: If the object store rejects the upload
        """
        result = await self.render(serial_code, target_url, product_name)
        if not result.labelled:
            audit.warning(
                "Storing QR without label",
                serial_code=serial_code,
                reason=result.reason,
            )

        record = await self._storage.store(serial_code, result.png, folder)

        logger.info(
            "QR artifact generated",
            serial_code=serial_code,
            url=record.url,
            mode=record.mode.value,
            backend=self._storage.kind.value,
            labelled=result.labelled,
        )
        return record

    async def delete_artifact(
        self,
        serial_code: str,
        existing_url: str | None = None,
        folder: str = QR_FOLDER,
    ) -> None:
        """Delete a stored artifact; safe to call repeatedly."""
        await self._storage.delete(serial_code, existing_url, folder)

    async def artifact_exists(
        self,
        serial_code: str,
        existing_url: str | None = None,
        folder: str = QR_FOLDER,
    ) -> bool:
        return await self._storage.exists(serial_code, existing_url, folder)

    async def discard(
        self,
        serial_code: str,
        existing_url: str | None = None,
        folder: str = QR_FOLDER,
    ) -> bool:
        """Best-effort delete; a failure only leaves an orphaned artifact."""
        try:
            await self.delete_artifact(serial_code, existing_url, folder)
        except StorageUnavailableError as e:
            audit.warning(
                "QR artifact left orphaned",
                serial_code=serial_code,
                url=existing_url,
                reason=e.message,
            )
            return False
        return True

    async def generate_many(
        self,
        entries: list[tuple[str, str | None]],
        folder: str = QR_FOLDER,
    ) -> list[StorageRecord]:
        """Generate and store artifacts for (serial_code, product_name) pairs.

        Work runs in chunks of ARTIFACT_CHUNK_SIZE. If any artifact fails,
        the ones already stored are discarded and the first error is raised,
        so a batch is either fully stored or not at all.
        """
        records: dict[str, StorageRecord] = {}
        failures: list[tuple[str, BaseException]] = []

        for start in range(0, len(entries), ARTIFACT_CHUNK_SIZE):
            chunk = entries[start:start + ARTIFACT_CHUNK_SIZE]
            results = await asyncio.gather(
                *(self.generate_and_store(serial, None, name, folder) for serial, name in chunk),
                return_exceptions=True,
            )
            for (serial, _), result in zip(chunk, results):
                if isinstance(result, BaseException):
                    failures.append((serial, result))
                else:
                    records[serial] = result

            if failures:
                break

            logger.debug(
                "Artifact chunk stored",
                folder=folder,
                stored=len(records),
                total=len(entries),
            )

        if failures:
            logger.error(
                "Artifact generation failed, discarding stored artifacts",
                folder=folder,
                failed=[serial for serial, _ in failures[:10]],
                stored=len(records),
            )
            for serial, record in records.items():
                await self.discard(serial, record.url, folder)
            raise failures[0][1]

        return [records[serial] for serial, _ in entries]
