"""Storage adapters for resources and backend selection."""

from pathlib import Path
from typing import Optional

from shared.adapters.base import Record, ResourceStore, StorageBackend
from shared.adapters.file import FileAdapter
from shared.adapters.memory import MemoryAdapter
from shared.adapters.mongo import MongoAdapter
from shared.config import BaseConfig
from shared.logging import get_logger

__all__ = [
    "Record",
    "ResourceStore",
    "StorageBackend",
    "MemoryAdapter",
    "FileAdapter",
    "MongoAdapter",
    "resolve_backend",
    "create_adapter",
]

logger = get_logger("adapters.selection")


def resolve_backend(mongo_uri: Optional[str], test_mode: bool) -> StorageBackend:
    """Pick the storage backend. A MongoDB URI wins, then test mode, then the file store."""
    if mongo_uri:
        return StorageBackend.MONGO
    if test_mode:
        return StorageBackend.MEMORY
    return StorageBackend.FILE


def create_adapter(config: BaseConfig, resource_name: str) -> ResourceStore:
    """Build the adapter for ``resource_name`` according to ``config``."""
    backend = resolve_backend(config.mongo_uri, config.test_mode)

    if backend is StorageBackend.MONGO:
        adapter = MongoAdapter(
            resource_name,
            config.mongo_uri,
            server_selection_timeout_ms=config.mongo_timeout_ms
        )
    elif backend is StorageBackend.MEMORY:
        adapter = MemoryAdapter(resource_name)
    else:
        data_dir = Path(config.data_dir)
        data_dir.mkdir(parents=True, exist_ok=True)
        adapter = FileAdapter(resource_name, data_dir / f"{resource_name}.db")

    logger.info("Storage adapter selected", resource=resource_name, backend=backend.value)
    return adapter
