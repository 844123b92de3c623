"""SQLAlchemy models.

Only the fields the QR pipeline reads or writes are mapped.
"""

from qrvault.models.base import Base, TimestampMixin
from qrvault.models.gram_product import GramProductBatch, GramProductItem
from qrvault.models.product import Product
from qrvault.models.serial_code import SerialCode

__all__ = [
    "Base",
    "TimestampMixin",
    "GramProductBatch",
    "GramProductItem",
    "Product",
    "SerialCode",
]
