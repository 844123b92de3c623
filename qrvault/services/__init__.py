"""Services - allocation, artifacts and product lifecycle."""

from qrvault.services.allocation_service import SerialAllocator, get_serial_allocator
from qrvault.services.gram_product_service import GramProductService
from qrvault.services.product_service import ProductService
from qrvault.services.qr_service import QRArtifactService, verify_url

__all__ = [
    "SerialAllocator",
    "get_serial_allocator",
    "GramProductService",
    "ProductService",
    "QRArtifactService",
    "verify_url",
]
