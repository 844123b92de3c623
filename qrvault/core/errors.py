"""Error taxonomy for allocation, rendering and storage.

Degraded renders and local write fallbacks are not errors: they are
reported through the render result and through logs.
"""

from typing import Any


class QRVaultError(Exception):
    """Base class for all service errors."""

    status_code = 500

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or None


class ValidationError(QRVaultError):
    """Input rejected before any I/O happens."""

    status_code = 400


class InvalidPrefixError(ValidationError):
    """Serial prefix is empty, too long or not alphanumeric."""


class InvalidQuantityError(ValidationError):
    """Quantity is not positive or exceeds the product line limit."""


class InvalidSerialCodeError(ValidationError):
    """Explicit serial code is empty, all-zero or not alphanumeric."""


class SerialSpaceExhaustedError(ValidationError):
    """Requested range does not fit in the product line's digit width."""


class DuplicateCodeError(QRVaultError):
    """One or more serial codes are already taken."""

    status_code = 409

    def __init__(self, codes: list[str]) -> None:
        super().__init__(
            f"Serial code already exists: {', '.join(codes)}",
            existing_serials=codes,
        )
        self.codes = codes


class NotFoundError(QRVaultError):
    """Requested product, batch or serial does not exist."""

    status_code = 404


class StorageUnavailableError(QRVaultError):
    """Storage backend failed to persist or remove an artifact."""

    status_code = 503
