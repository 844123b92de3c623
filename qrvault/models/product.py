"""Product model - one physical unit with its own serial code."""

from decimal import Decimal

from sqlalchemy import Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from qrvault.models.base import Base, TimestampMixin


class Product(Base, TimestampMixin):
    """Serialized product unit.

    `serial_code` is globally unique and immutable; the QR artifact URL and
    storage mode are written back after the artifact is stored.
    """

    __tablename__ = "products"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    weight: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    serial_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    qr_image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    qr_storage_mode: Mapped[str | None] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, serial_code='{self.serial_code}')>"
