"""Gram-based batches.

The QR mode of a batch is fixed from unit weight when the batch is
created: light units share one serial and one QR for the whole batch,
heavier units get one each.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from qrvault.core.errors import NotFoundError
from qrvault.core.serial import (
    ProductLine,
    normalize_serial_code,
    qr_count_for_batch,
    qr_mode_for_weight,
    weight_group_for_weight,
)
from qrvault.infra.logging import get_logger
from qrvault.infra.storage import GRAM_QR_FOLDER
from qrvault.models import GramProductBatch, GramProductItem
from qrvault.services.allocation_service import SerialAllocator, get_serial_allocator
from qrvault.services.qr_service import QRArtifactService

logger = get_logger(__name__)

DEFAULT_GRAM_PREFIX = "SKP"


class GramProductService:
    """Create and delete gram-based batches with their QR items."""

    def __init__(
        self,
        session: AsyncSession,
        artifacts: QRArtifactService | None = None,
        allocator: SerialAllocator | None = None,
    ) -> None:
        self._session = session
        self._artifacts = artifacts or QRArtifactService()
        self._allocator = allocator or get_serial_allocator()

    async def get_item(self, serial_code: str) -> GramProductItem | None:
        result = await self._session.execute(
            select(GramProductItem).where(
                GramProductItem.serial_code == normalize_serial_code(serial_code)
            )
        )
        return result.scalar_one_or_none()

    async def create_batch(
        self,
        *,
        name: str,
        weight: int,
        quantity: int,
        serial_code: str | None = None,
        serial_prefix: str | None = None,
    ) -> GramProductBatch:
        """Create a batch, its items and their QR artifacts.

        Raises:
            ValidationError: Invalid prefix, code or quantity
            DuplicateCodeError: Serial already taken
            StorageUnavailableError: Artifact could not be stored; the batch
                is removed again (as on any artifact failure)
        """
        name = name.strip()
        qr_mode = qr_mode_for_weight(weight)
        weight_group = weight_group_for_weight(weight)
        qr_count = qr_count_for_batch(qr_mode, quantity)

        explicit = bool(serial_code and normalize_serial_code(serial_code))
        prefix = None if explicit else (serial_prefix or DEFAULT_GRAM_PREFIX)

        logger.info(
            "Creating gram batch",
            product_name=name,
            weight=weight,
            quantity=quantity,
            qr_mode=qr_mode.value,
            weight_group=weight_group.value,
            qr_count=qr_count,
        )

        def build_rows(serials: list[str]) -> list[GramProductBatch]:
            batch = GramProductBatch(
                name=name,
                weight=weight,
                quantity=quantity,
                qr_mode=qr_mode.value,
                weight_group=weight_group.value,
            )
            batch.items = [GramProductItem(serial_code=serial) for serial in serials]
            return [batch]

        rows = await self._allocator.allocate_and_insert(
            self._session,
            product_name=name,
            build_rows=build_rows,
            prefix=prefix,
            code=serial_code if explicit else None,
            quantity=qr_count,
            line=ProductLine.GRAM,
        )
        batch: GramProductBatch = rows[0]

        try:
            records = await self._artifacts.generate_many(
                [(item.serial_code, batch.name) for item in batch.items],
                folder=GRAM_QR_FOLDER,
            )
        except Exception as e:
            await self._remove(batch)
            logger.error(
                "Gram batch rolled back after artifact failure",
                batch_id=batch.id,
                product_name=name,
                error_type=type(e).__name__,
                reason=str(e),
            )
            raise

        for item, record in zip(batch.items, records):
            item.qr_image_url = record.url
            item.qr_storage_mode = record.mode.value
        await self._session.commit()

        logger.info(
            "Gram batch created",
            batch_id=batch.id,
            product_name=name,
            items=len(batch.items),
            qr_mode=qr_mode.value,
        )
        return batch

    async def _remove(self, batch: GramProductBatch) -> None:
        """Delete a batch with its items and free their serials in one commit."""
        codes = [item.serial_code for item in batch.items]
        await self._session.delete(batch)
        await self._allocator.release(self._session, codes)
        await self._session.commit()

    async def delete_batch(self, batch_id: int) -> int:
        """Delete a batch with its items and artifacts.

        Returns:
            Number of items removed
        """
        batch = await self._session.get(GramProductBatch, batch_id)
        if batch is None:
            raise NotFoundError(f"Gram batch {batch_id} not found", batch_id=batch_id)

        artifacts = [(item.serial_code, item.qr_image_url) for item in batch.items]
        await self._remove(batch)

        for serial_code, qr_url in artifacts:
            await self._artifacts.discard(serial_code, qr_url, GRAM_QR_FOLDER)

        logger.info("Gram batch deleted", batch_id=batch_id, items=len(artifacts))
        return len(artifacts)

    async def delete_all(self) -> int:
        """Delete every gram batch, then the item artifacts (best effort).

        Returns:
            Number of batches removed
        """
        result = await self._session.execute(select(GramProductBatch))
        batches = list(result.scalars().all())

        artifacts: list[tuple[str, str | None]] = []
        for batch in batches:
            artifacts.extend((item.serial_code, item.qr_image_url) for item in batch.items)
            await self._session.delete(batch)
        await self._allocator.release(self._session, [serial for serial, _ in artifacts])
        await self._session.commit()

        orphaned = 0
        for serial_code, qr_url in artifacts:
            if not await self._artifacts.discard(serial_code, qr_url, GRAM_QR_FOLDER):
                orphaned += 1

        logger.warning(
            "All gram batches deleted",
            batches=len(batches),
            items=len(artifacts),
            orphaned_artifacts=orphaned,
        )
        return len(batches)
