"""Registry of every issued serial code.

Products and gram items live in separate tables; this table is the single
place where the database enforces global uniqueness of a serial code.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from qrvault.models.base import Base, TimestampMixin


class SerialCode(Base, TimestampMixin):
    """One issued serial code and the product line that owns it."""

    __tablename__ = "serial_codes"
    __mapper_args__ = {"eager_defaults": True}

    code: Mapped[str] = mapped_column(String(32), primary_key=True)
    product_line: Mapped[str] = mapped_column(String(20), nullable=False)

    def __repr__(self) -> str:
        return f"<SerialCode(code='{self.code}', product_line='{self.product_line}')>"
