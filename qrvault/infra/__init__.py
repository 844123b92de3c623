"""Infrastructure - Database, storage, logging."""

from qrvault.infra.database import close_db_engine, get_db_session
from qrvault.infra.storage import (
    StorageManager,
    StorageMode,
    StorageRecord,
    get_storage_manager,
)
from qrvault.infra.logging import setup_logging, get_logger

__all__ = [
    "get_db_session",
    "close_db_engine",
    "StorageManager",
    "StorageMode",
    "StorageRecord",
    "get_storage_manager",
    "setup_logging",
    "get_logger",
]
