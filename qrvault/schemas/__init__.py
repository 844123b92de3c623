"""Pydantic schemas for request/response validation."""

from qrvault.schemas.common import ErrorResponse, HealthResponse
from qrvault.schemas.product import (
    CheckSerialResponse,
    GramBatchCreateRequest,
    GramBatchResponse,
    GramItemResponse,
    ProductBatchResponse,
    ProductCreateRequest,
    ProductResponse,
)
from qrvault.schemas.qr import (
    RegenerateItem,
    RegenerateRequest,
    RegenerateResponse,
)

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "CheckSerialResponse",
    "GramBatchCreateRequest",
    "GramBatchResponse",
    "GramItemResponse",
    "ProductBatchResponse",
    "ProductCreateRequest",
    "ProductResponse",
    "RegenerateItem",
    "RegenerateRequest",
    "RegenerateResponse",
]
