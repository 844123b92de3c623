"""Serial allocation against the database.

Scanning existing codes and inserting the new ones is a read-then-write
race. Allocation therefore runs inside a per-family critical section: an
asyncio lock within the process plus a transaction-scoped advisory lock
on PostgreSQL. Every issued code is also written to the serial_codes
registry in the same transaction; its primary key is the global
uniqueness guard across product lines, and callers retry on IntegrityError.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Callable, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from qrvault.config import settings
from qrvault.core.errors import DuplicateCodeError
from qrvault.core.serial import (
    BatchAllocationState,
    ProductLine,
    allocate_serials,
    compute_allocation_state,
    normalize_serial_code,
    serial_family,
    validate_prefix,
)
from qrvault.infra.database import acquire_advisory_lock
from qrvault.infra.logging import get_logger
from qrvault.models import SerialCode

logger = get_logger(__name__)

# Bound on bind parameters per IN (...) statement
RELEASE_CHUNK_SIZE = 1000


@dataclass
class _FamilyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class SerialAllocator:
    """Allocates serial codes from the codes already issued."""

    def __init__(self) -> None:
        self._locks: dict[str, _FamilyLock] = {}

    @property
    def active_locks(self) -> int:
        """Families currently locked or waited on."""
        return len(self._locks)

    @asynccontextmanager
    async def critical_section(
        self,
        session: AsyncSession,
        family: str,
    ) -> AsyncGenerator[None, None]:
        """Serialize allocation for one serial family.

        A prefix batch and an explicit code with the same leading letters
        share a family. The caller must commit before leaving the block so
        the next holder sees the inserted codes. The lock entry is dropped
        once nobody holds or waits on it.
        """
        lock_key = f"serial:{family}"
        entry = self._locks.setdefault(lock_key, _FamilyLock())
        entry.holders += 1
        try:
            async with entry.lock:
                await acquire_advisory_lock(session, lock_key)
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                self._locks.pop(lock_key, None)

    async def existing_codes(self, session: AsyncSession, prefix: str) -> list[str]:
        """Issued serial codes, in any product line, that start with `prefix`."""
        result = await session.execute(
            select(SerialCode.code).where(SerialCode.code.startswith(prefix))
        )
        return list(result.scalars().all())

    async def taken_codes(self, session: AsyncSession, codes: list[str]) -> list[str]:
        """Subset of `codes` already issued."""
        if not codes:
            return []
        result = await session.execute(select(SerialCode.code).where(SerialCode.code.in_(codes)))
        return sorted(result.scalars().all())

    async def release(self, session: AsyncSession, codes: list[str]) -> None:
        """Remove codes from the registry. The caller commits."""
        for start in range(0, len(codes), RELEASE_CHUNK_SIZE):
            chunk = codes[start:start + RELEASE_CHUNK_SIZE]
            await session.execute(delete(SerialCode).where(SerialCode.code.in_(chunk)))
        logger.debug("Serial codes released", count=len(codes))

    async def check_serial(self, session: AsyncSession, prefix: str) -> BatchAllocationState:
        """Preview where numbering would continue for a prefix."""
        normalized = validate_prefix(prefix)
        existing = await self.existing_codes(session, normalized)
        return compute_allocation_state(existing, normalized)

    async def allocate(
        self,
        session: AsyncSession,
        *,
        product_name: str,
        prefix: str | None = None,
        code: str | None = None,
        quantity: int = 1,
        line: ProductLine = ProductLine.STANDARD,
    ) -> list[str]:
        """Compute the next serial codes. Call inside critical_section().

        Raises:
            ValidationError: Bad prefix, code or quantity
            DuplicateCodeError: Explicit code already taken
        """
        if code and normalize_serial_code(code):
            existing = await self.taken_codes(session, [normalize_serial_code(code)])
        else:
            normalized_prefix = normalize_serial_code(prefix or "")
            existing = await self.existing_codes(session, normalized_prefix) if normalized_prefix else []

        serials = allocate_serials(
            existing,
            prefix=prefix,
            code=code,
            quantity=quantity,
            line=line,
            product_name=product_name,
        )

        logger.info(
            "Serials allocated",
            product_name=product_name,
            product_line=line.value,
            count=len(serials),
            first=serials[0],
            last=serials[-1],
        )
        return serials

    async def allocate_and_insert(
        self,
        session: AsyncSession,
        *,
        product_name: str,
        build_rows: Callable[[list[str]], Sequence[Any]],
        prefix: str | None = None,
        code: str | None = None,
        quantity: int = 1,
        line: ProductLine = ProductLine.STANDARD,
        max_retries: int | None = None,
    ) -> list[Any]:
        """Allocate serials and commit the rows built from them.

        Allocation, registry insert and commit happen inside the critical
        section. A registry conflict (another writer, or a code of another
        family) triggers a fresh allocation, up to `max_retries` attempts.

        Args:
            session: Open database session
            product_name: Product name, for audit logs
            build_rows: Builds ORM objects for the allocated serials
            prefix: Serial prefix
            code: Explicit serial code
            quantity: Number of serials
            line: Product line
            max_retries: Attempts before giving up (defaults to settings)

        Returns:
            The committed rows

        Raises:
            ValidationError: Bad prefix, code or quantity
            DuplicateCodeError: Code taken, or retries exhausted
        """
        attempts = max_retries or settings.allocation_max_retries
        explicit = bool(code and normalize_serial_code(code))
        family = (
            serial_family(normalize_serial_code(code or ""))
            if explicit
            else normalize_serial_code(prefix or "")
        )
        serials: list[str] = []

        for attempt in range(1, attempts + 1):
            async with self.critical_section(session, family):
                serials = await self.allocate(
                    session,
                    product_name=product_name,
                    prefix=prefix,
                    code=code,
                    quantity=quantity,
                    line=line,
                )
                rows = list(build_rows(serials))
                session.add_all([SerialCode(code=s, product_line=line.value) for s in serials])
                session.add_all(rows)
                try:
                    await session.commit()
                except IntegrityError as e:
                    await session.rollback()
                    if explicit:
                        logger.warning(
                            "Serial code already taken",
                            serial_code=serials[0],
                            product_name=product_name,
                        )
                        raise DuplicateCodeError(serials) from e
                    logger.warning(
                        "Serial range conflict, retrying allocation",
                        product_name=product_name,
                        prefix=family,
                        attempt=attempt,
                        first=serials[0],
                        last=serials[-1],
                    )
                    continue
                return rows

        logger.error(
            "Serial allocation retries exhausted",
            product_name=product_name,
            prefix=family,
            attempts=attempts,
        )
        raise DuplicateCodeError(serials)


# Singleton instance
_allocator: SerialAllocator | None = None


def get_serial_allocator() -> SerialAllocator:
    """Get the process-wide allocator (shares the per-family locks)."""
    global _allocator
    if _allocator is None:
        _allocator = SerialAllocator()
    return _allocator
