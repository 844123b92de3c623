"""FastAPI dependencies for dependency injection.

Provides:
- Database session
- Storage manager selected at startup
- Services wired to both
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from qrvault.infra.database import get_db_session
from qrvault.infra.storage import StorageManager, get_storage_manager
from qrvault.services.gram_product_service import GramProductService
from qrvault.services.product_service import ProductService
from qrvault.services.qr_service import QRArtifactService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    Yields:
        AsyncSession that commits when the request succeeds
    """
    async with get_db_session() as session:
        yield session


async def get_storage() -> StorageManager:
    """Get storage manager dependency."""
    return get_storage_manager()


# Type aliases for cleaner annotations
DbSession = Annotated[AsyncSession, Depends(get_db)]
Storage = Annotated[StorageManager, Depends(get_storage)]


async def get_artifact_service(storage: Storage) -> QRArtifactService:
    return QRArtifactService(storage)


Artifacts = Annotated[QRArtifactService, Depends(get_artifact_service)]


async def get_product_service(db: DbSession, artifacts: Artifacts) -> ProductService:
    return ProductService(db, artifacts)


async def get_gram_product_service(db: DbSession, artifacts: Artifacts) -> GramProductService:
    return GramProductService(db, artifacts)


Products = Annotated[ProductService, Depends(get_product_service)]
GramProducts = Annotated[GramProductService, Depends(get_gram_product_service)]
