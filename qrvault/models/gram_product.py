"""Gram-based batch models.

A batch below the weight threshold carries a single item (one QR for all
units); otherwise it carries one item per unit.
"""

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from qrvault.models.base import Base, TimestampMixin


class GramProductBatch(Base, TimestampMixin):
    """A batch of gram-based units created in one request."""

    __tablename__ = "gram_product_batches"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    weight: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    qr_mode: Mapped[str] = mapped_column(String(20), nullable=False)
    weight_group: Mapped[str] = mapped_column(String(20), nullable=False)

    # Relationships
    items: Mapped[list["GramProductItem"]] = relationship(
        "GramProductItem",
        back_populates="batch",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="GramProductItem.serial_code",
    )

    def __repr__(self) -> str:
        return f"<GramProductBatch(id={self.id}, name='{self.name}', qr_mode='{self.qr_mode}')>"


class GramProductItem(Base, TimestampMixin):
    """One QR-bearing item of a gram batch."""

    __tablename__ = "gram_product_items"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    batch_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("gram_product_batches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    serial_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    qr_image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    qr_storage_mode: Mapped[str | None] = mapped_column(String(20), nullable=True)

    batch: Mapped["GramProductBatch"] = relationship(
        "GramProductBatch",
        back_populates="items",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<GramProductItem(id={self.id}, serial_code='{self.serial_code}')>"
