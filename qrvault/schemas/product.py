"""Product and batch schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from qrvault.core.serial import QRMode, WeightGroup


class ProductCreateRequest(BaseModel):
    """Create one product (explicit code) or a serial batch (prefix)."""

    name: str = Field(min_length=2, max_length=200)
    weight: int = Field(gt=0, description="Unit weight in grams")
    serial_code: str | None = Field(default=None, max_length=32)
    serial_prefix: str | None = Field(default=None, max_length=10)
    quantity: int = Field(default=1, ge=1, le=10_000)
    price: Decimal | None = Field(default=None, ge=0)
    stock: int | None = Field(default=None, ge=0)

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def validate_serial_source(self) -> "ProductCreateRequest":
        has_code = bool(self.serial_code and self.serial_code.strip())
        has_prefix = bool(self.serial_prefix and self.serial_prefix.strip())
        if has_code and has_prefix:
            raise ValueError("Use serial_prefix for batches or serial_code for a single product, not both")
        if self.quantity > 1 and has_code:
            raise ValueError("serial_code can only be used when quantity is 1")
        return self


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    weight: int
    price: Decimal | None = None
    stock: int
    serial_code: str
    qr_image_url: str | None = None
    qr_storage_mode: str | None = None
    created_at: datetime | None = None


class ProductBatchResponse(BaseModel):
    products: list[ProductResponse]
    count: int
    message: str


class CheckSerialResponse(BaseModel):
    """Continuation preview for a serial prefix."""

    exists: bool
    prefix: str
    last_serial: str | None = None
    last_number: int
    next_number: int
    total_existing: int


class GramBatchCreateRequest(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    weight: int = Field(gt=0, description="Unit weight in grams")
    quantity: int = Field(ge=1, le=99_999)
    serial_code: str | None = Field(default=None, max_length=32)
    serial_prefix: str | None = Field(default=None, max_length=10)

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def validate_serial_source(self) -> "GramBatchCreateRequest":
        if (self.serial_code or "").strip() and (self.serial_prefix or "").strip():
            raise ValueError("Use serial_prefix or serial_code, not both")
        return self


class GramItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    serial_code: str
    qr_image_url: str | None = None
    qr_storage_mode: str | None = None


class GramBatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    weight: int
    quantity: int
    qr_mode: QRMode
    weight_group: WeightGroup
    items: list[GramItemResponse] = Field(default_factory=list)
    qr_count: int = 0
