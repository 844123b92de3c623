"""Schemas for QR artifact storage and regeneration."""

from pydantic import BaseModel, Field, model_validator

from qrvault.infra.storage import StorageMode


class RegenerateRequest(BaseModel):
    """Regenerate one artifact, or every product that lacks one."""

    serial_code: str | None = Field(default=None, max_length=32)
    product_id: int | None = Field(default=None, ge=1)
    check_storage: bool = Field(
        default=False,
        description="Also regenerate products whose stored artifact is gone",
    )

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def validate_target(self) -> "RegenerateRequest":
        if self.serial_code is not None and self.product_id is not None:
            raise ValueError("Use either serial_code or product_id, not both")
        return self


class RegenerateItem(BaseModel):
    serial_code: str
    success: bool
    qr_image_url: str | None = None
    mode: StorageMode | None = None
    error: str | None = None


class RegenerateResponse(BaseModel):
    success: bool
    regenerated: int = Field(description="Artifacts successfully regenerated")
    total: int = Field(description="Artifacts attempted")
    results: list[RegenerateItem] = Field(default_factory=list)
