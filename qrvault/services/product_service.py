"""Product lifecycle around serial allocation and QR artifacts."""

from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from qrvault.core.errors import NotFoundError, StorageUnavailableError
from qrvault.core.serial import BatchAllocationState, ProductLine, normalize_serial_code
from qrvault.infra.logging import get_logger
from qrvault.infra.storage import QR_FOLDER
from qrvault.models import Product
from qrvault.services.allocation_service import SerialAllocator, get_serial_allocator
from qrvault.services.qr_service import QRArtifactService

logger = get_logger(__name__)

DEFAULT_PRODUCT_PREFIX = "SK"


class ProductService:
    """Create, regenerate and delete serialized products."""

    def __init__(
        self,
        session: AsyncSession,
        artifacts: QRArtifactService | None = None,
        allocator: SerialAllocator | None = None,
    ) -> None:
        self._session = session
        self._artifacts = artifacts or QRArtifactService()
        self._allocator = allocator or get_serial_allocator()

    async def check_serial(self, prefix: str) -> BatchAllocationState:
        return await self._allocator.check_serial(self._session, prefix)

    async def get_by_serial(self, serial_code: str) -> Product | None:
        result = await self._session.execute(
            select(Product).where(Product.serial_code == normalize_serial_code(serial_code))
        )
        return result.scalar_one_or_none()

    async def create_products(
        self,
        *,
        name: str,
        weight: int,
        serial_code: str | None = None,
        serial_prefix: str | None = None,
        quantity: int = 1,
        price: Decimal | None = None,
        stock: int | None = None,
    ) -> list[Product]:
        """Create products and their QR artifacts.

        A prefix (or the default prefix when neither is given) creates
        `quantity` products with consecutive serials, one unit each. An
        explicit serial code creates a single product with `stock` units.

        Raises:
            ValidationError: Invalid prefix, code or quantity
            DuplicateCodeError: Serial already taken
            StorageUnavailableError: Artifact could not be stored; the
                products created by this call are removed again
        """
        name = name.strip()
        explicit = bool(serial_code and normalize_serial_code(serial_code))
        prefix = None if explicit else (serial_prefix or DEFAULT_PRODUCT_PREFIX)
        unit_stock = (stock if stock is not None else 1) if explicit else 1

        def build_rows(serials: list[str]) -> list[Product]:
            return [
                Product(name=name, weight=weight, price=price, stock=unit_stock, serial_code=serial)
                for serial in serials
            ]

        products: list[Product] = await self._allocator.allocate_and_insert(
            self._session,
            product_name=name,
            build_rows=build_rows,
            prefix=prefix,
            code=serial_code if explicit else None,
            quantity=quantity,
            line=ProductLine.STANDARD,
        )

        try:
            records = await self._artifacts.generate_many(
                [(product.serial_code, product.name) for product in products],
                folder=QR_FOLDER,
            )
        except Exception as e:
            await self._remove(products)
            logger.error(
                "Product creation rolled back after artifact failure",
                product_name=name,
                count=len(products),
                error_type=type(e).__name__,
                reason=str(e),
            )
            raise

        for product, record in zip(products, records):
            product.qr_image_url = record.url
            product.qr_storage_mode = record.mode.value
        await self._session.commit()

        logger.info(
            "Products created",
            product_name=name,
            count=len(products),
            first=products[0].serial_code,
            last=products[-1].serial_code,
        )
        return products

    async def _remove(self, products: list[Product]) -> None:
        """Delete rows and free their serials in one commit."""
        for product in products:
            await self._session.delete(product)
        await self._allocator.release(self._session, [p.serial_code for p in products])
        await self._session.commit()

    async def delete_product(self, product_id: int) -> Product:
        """Delete a product row and then its artifact (best effort)."""
        product = await self._session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found", product_id=product_id)

        serial_code, qr_url = product.serial_code, product.qr_image_url
        await self._remove([product])

        await self._artifacts.discard(serial_code, qr_url, QR_FOLDER)
        logger.info("Product deleted", product_id=product_id, serial_code=serial_code)
        return product

    async def delete_all(self) -> int:
        """Delete every product, then their artifacts (best effort).

        Returns:
            Number of products removed
        """
        result = await self._session.execute(select(Product).order_by(Product.serial_code))
        products = list(result.scalars().all())
        if not products:
            return 0

        artifacts = [(p.serial_code, p.qr_image_url) for p in products]
        await self._remove(products)

        orphaned = 0
        for serial_code, qr_url in artifacts:
            if not await self._artifacts.discard(serial_code, qr_url, QR_FOLDER):
                orphaned += 1

        logger.warning("All products deleted", count=len(products), orphaned_artifacts=orphaned)
        return len(products)

    async def regenerate(self, product: Product) -> Product:
        """Rebuild and re-store the artifact for one product."""
        record = await self._artifacts.generate_and_store(
            product.serial_code, None, product.name, QR_FOLDER
        )
        product.qr_image_url = record.url
        product.qr_storage_mode = record.mode.value
        await self._session.commit()
        return product

    async def regenerate_by(
        self,
        serial_code: str | None = None,
        product_id: int | None = None,
    ) -> Product:
        if product_id is not None:
            product = await self._session.get(Product, product_id)
        else:
            product = await self.get_by_serial(serial_code or "")
        if product is None:
            raise NotFoundError(
                "Product not found", serial_code=serial_code, product_id=product_id
            )
        return await self.regenerate(product)

    async def _missing(self, check_storage: bool) -> list[Product]:
        if not check_storage:
            result = await self._session.execute(
                select(Product)
                .where(or_(Product.qr_image_url.is_(None), Product.qr_image_url == ""))
                .order_by(Product.serial_code)
            )
            return list(result.scalars().all())

        result = await self._session.execute(select(Product).order_by(Product.serial_code))
        missing = []
        for product in result.scalars().all():
            if not product.qr_image_url or not await self._artifacts.artifact_exists(
                product.serial_code, product.qr_image_url, QR_FOLDER
            ):
                missing.append(product)
        return missing

    async def regenerate_missing(self, check_storage: bool = False) -> list[dict]:
        """Regenerate artifacts for products without a stored URL.

        With `check_storage`, products whose stored artifact is gone from
        the backend are regenerated too.

        Returns:
            One result dict per product, failures included
        """
        products = await self._missing(check_storage)

        results: list[dict] = []
        for product in products:
            try:
                await self.regenerate(product)
            except StorageUnavailableError as e:
                logger.error(
                    "Failed to regenerate QR",
                    serial_code=product.serial_code,
                    reason=e.message,
                )
                results.append(
                    {"serial_code": product.serial_code, "success": False, "error": e.message}
                )
                continue
            results.append(
                {
                    "serial_code": product.serial_code,
                    "success": True,
                    "qr_image_url": product.qr_image_url,
                    "mode": product.qr_storage_mode,
                }
            )

        logger.info(
            "Missing QR regeneration finished",
            total=len(results),
            regenerated=sum(1 for r in results if r["success"]),
            check_storage=check_storage,
        )
        return results
