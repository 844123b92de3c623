"""Serial code allocation.

Pure functions over a snapshot of existing serial codes. Reading that
snapshot and persisting the result atomically is the caller's job
(see qrvault.services.allocation_service).

A serial code is an uppercase alphanumeric prefix followed by a
zero-padded sequence number, e.g. SKN000005.
"""

import re
from dataclasses import dataclass
from enum import Enum

from qrvault.core.errors import (
    DuplicateCodeError,
    InvalidPrefixError,
    InvalidQuantityError,
    InvalidSerialCodeError,
    SerialSpaceExhaustedError,
    ValidationError,
)
from qrvault.infra.logging import get_audit_logger

audit = get_audit_logger(__name__)

MAX_PREFIX_LENGTH = 4
MIN_LABEL_LENGTH = 3

# Units below this weight share a single QR per batch
SINGLE_QR_WEIGHT_THRESHOLD = 100

_ALNUM_RE = re.compile(r"^[A-Z0-9]+$")
_ALL_ZERO_RE = re.compile(r"^0+$")
_WHITESPACE_RE = re.compile(r"\s+")
_NUMERIC_SUFFIX_RE = re.compile(r"\d+$")


class ProductLine(str, Enum):
    """Product families with their own numbering rules."""

    STANDARD = "STANDARD"
    GRAM = "GRAM"

    @property
    def digits(self) -> int:
        """Fixed zero-padding width of the sequence number."""
        return _LINE_DIGITS[self]

    @property
    def max_quantity(self) -> int:
        """Largest batch accepted in a single allocation."""
        return _LINE_MAX_QUANTITY[self]


_LINE_DIGITS = {ProductLine.STANDARD: 6, ProductLine.GRAM: 5}
_LINE_MAX_QUANTITY = {ProductLine.STANDARD: 10_000, ProductLine.GRAM: 99_999}


class QRMode(str, Enum):
    """How many QR artifacts a gram batch receives."""

    SINGLE_QR = "SINGLE_QR"
    PER_UNIT = "PER_UNIT"


class WeightGroup(str, Enum):
    SMALL = "SMALL"
    LARGE = "LARGE"


@dataclass(frozen=True)
class BatchAllocationState:
    """Continuation state for a prefix, computed from existing codes."""

    prefix: str
    last_number: int
    next_number: int
    total_existing: int
    last_serial: str | None = None


def normalize_serial_code(value: str) -> str:
    """Remove all whitespace and upper-case."""
    return _WHITESPACE_RE.sub("", value or "").upper()


def is_all_zero(code: str) -> bool:
    return bool(_ALL_ZERO_RE.match(code))


def serial_family(code: str) -> str:
    """Leading part of a code before its numeric suffix (SKN000005 -> SKN)."""
    return _NUMERIC_SUFFIX_RE.sub("", code)


def validate_prefix(prefix: str) -> str:
    """Normalize and validate a serial prefix.

    Raises:
        InvalidPrefixError: If the prefix is empty, too long or not alphanumeric
    """
    normalized = normalize_serial_code(prefix)
    if not normalized:
        raise InvalidPrefixError("Serial prefix is required")
    if len(normalized) > MAX_PREFIX_LENGTH:
        raise InvalidPrefixError(
            f"Serial prefix must be at most {MAX_PREFIX_LENGTH} characters",
            prefix=normalized,
        )
    if not _ALNUM_RE.match(normalized):
        raise InvalidPrefixError("Serial prefix must be alphanumeric", prefix=normalized)
    return normalized


def validate_serial_code(code: str) -> str:
    """Normalize and validate an explicit serial code.

    Raises:
        InvalidSerialCodeError: If the code is empty, all-zero or not alphanumeric
    """
    normalized = normalize_serial_code(code)
    if not normalized:
        raise InvalidSerialCodeError("Serial code is required")
    if not _ALNUM_RE.match(normalized):
        raise InvalidSerialCodeError("Serial code must be alphanumeric", serial_code=normalized)
    if is_all_zero(normalized):
        raise InvalidSerialCodeError("Serial code cannot be all zeros", serial_code=normalized)
    return normalized


def validate_quantity(quantity: int, line: ProductLine = ProductLine.STANDARD) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError("Quantity must be at least 1", quantity=quantity)
    if quantity > line.max_quantity:
        raise InvalidQuantityError(
            f"Maximum {line.max_quantity} units per batch",
            quantity=quantity,
            product_line=line.value,
        )
    return quantity


def find_highest_serial_number(serials: list[str], prefix: str) -> int:
    """Return the largest numeric suffix among serials with this prefix.

    Serials whose remainder after the prefix is not purely numeric belong
    to a different family (e.g. SKN000001 under prefix SK) and are ignored.
    Returns 0 when nothing matches.
    """
    highest = 0
    for serial in serials:
        if not serial or not serial.startswith(prefix):
            continue
        suffix = serial[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest


def compute_allocation_state(serials: list[str], prefix: str) -> BatchAllocationState:
    """Summarize existing serials sharing a prefix."""
    last_number = 0
    last_serial: str | None = None
    total = 0
    for serial in serials:
        if not serial or not serial.startswith(prefix):
            continue
        suffix = serial[len(prefix):]
        if not suffix.isdigit():
            continue
        total += 1
        if int(suffix) >= last_number:
            last_number = int(suffix)
            last_serial = serial
    return BatchAllocationState(
        prefix=prefix,
        last_number=last_number,
        next_number=last_number + 1,
        total_existing=total,
        last_serial=last_serial,
    )


def format_serial(prefix: str, number: int, digits: int) -> str:
    return f"{prefix}{number:0{digits}d}"


def generate_sequential_serials(
    prefix: str,
    quantity: int,
    start_number: int,
    digits: int,
) -> list[str]:
    """Build `quantity` consecutive serials starting at `start_number`.

    Raises:
        SerialSpaceExhaustedError: If the last number needs more than `digits` digits
    """
    last_number = start_number + quantity - 1
    if start_number < 1 or last_number >= 10**digits:
        raise SerialSpaceExhaustedError(
            f"Serial range {prefix}{start_number}..{last_number} exceeds {digits} digits",
            prefix=prefix,
            start_number=start_number,
            quantity=quantity,
        )
    return [format_serial(prefix, n, digits) for n in range(start_number, last_number + 1)]


def allocate_serials(
    existing: list[str],
    *,
    prefix: str | None = None,
    code: str | None = None,
    quantity: int = 1,
    line: ProductLine = ProductLine.STANDARD,
    product_name: str | None = None,
) -> list[str]:
    """Compute the serial codes for a new product or batch.

    An explicit code wins when non-empty and requires quantity 1. Otherwise
    numbering continues from the highest existing number for the prefix.

    Args:
        existing: Serial codes already taken. For a prefix, those sharing it;
            for an explicit code, any snapshot that includes it if taken.
        prefix: Serial prefix for sequential allocation
        code: Explicit serial code
        quantity: Number of codes to issue
        line: Product line, fixes padding width and quantity limit
        product_name: Only used for audit logging

    Returns:
        Strictly increasing list of `quantity` serial codes

    Raises:
        InvalidPrefixError, InvalidQuantityError, InvalidSerialCodeError,
        SerialSpaceExhaustedError, DuplicateCodeError
    """
    try:
        validate_quantity(quantity, line)

        if code and normalize_serial_code(code):
            if quantity != 1:
                raise InvalidQuantityError(
                    "An explicit serial code can only be used for a single unit",
                    quantity=quantity,
                )
            serial = validate_serial_code(code)
            if serial in set(existing):
                raise DuplicateCodeError([serial])
            return [serial]

        normalized_prefix = validate_prefix(prefix or "")
        start = find_highest_serial_number(existing, normalized_prefix) + 1
        return generate_sequential_serials(normalized_prefix, quantity, start, line.digits)

    except (ValidationError, DuplicateCodeError) as e:
        audit.warning(
            "Serial allocation rejected",
            product_name=product_name,
            prefix=prefix,
            serial_code=code,
            quantity=quantity,
            reason=e.message,
            error_type=type(e).__name__,
        )
        raise


def qr_mode_for_weight(weight: int | float) -> QRMode:
    """Units lighter than the threshold share one QR for the whole batch."""
    return QRMode.SINGLE_QR if weight < SINGLE_QR_WEIGHT_THRESHOLD else QRMode.PER_UNIT


def weight_group_for_weight(weight: int | float) -> WeightGroup:
    return WeightGroup.SMALL if weight < SINGLE_QR_WEIGHT_THRESHOLD else WeightGroup.LARGE


def qr_count_for_batch(mode: QRMode, quantity: int) -> int:
    """Number of serial codes / artifacts a gram batch needs."""
    return 1 if mode is QRMode.SINGLE_QR else quantity
