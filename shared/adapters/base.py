"""Base storage adapter interface."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

Record = Dict[str, Any]


class StorageBackend(str, Enum):
    """Storage backends a resource can be bound to."""

    MONGO = "mongo"
    MEMORY = "memory"
    FILE = "file"


class ResourceStore(ABC):
    """Abstract base class for resource storage adapters.

    Records are plain dicts keyed by ``_id``. Every method returns copies;
    callers never hold references into the store.
    """

    backend: StorageBackend

    def __init__(self, resource_name: str):
        self.resource_name = resource_name

    async def connect(self) -> None:
        """Establish the connection to the backing store."""

    async def disconnect(self) -> None:
        """Release the connection to the backing store."""

    @abstractmethod
    async def find(
        self,
        query: Optional[Record] = None,
        sort: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Record]:
        """
        Find records matching ``query``.

        Args:
            query: Field equality filter; ``None`` matches everything
            sort: Field names, a leading ``-`` sorts descending
            limit: Maximum number of records
            offset: Number of records to skip

        Returns:
            Matching records
        """
        ...

    @abstractmethod
    async def find_one(self, query: Record) -> Optional[Record]:
        ...

    @abstractmethod
    async def find_by_id(self, entity_id: Any) -> Optional[Record]:
        ...

    async def find_by_ids(self, ids: Iterable[Any]) -> List[Record]:
        records = []
        for entity_id in ids:
            record = await self.find_by_id(entity_id)
            if record is not None:
                records.append(record)
        return records

    @abstractmethod
    async def count(self, query: Optional[Record] = None) -> int:
        ...

    @abstractmethod
    async def insert(self, entity: Record) -> Record:
        """Insert one record, generating ``_id`` when absent."""
        ...

    @abstractmethod
    async def insert_many(self, entities: Iterable[Record]) -> List[Record]:
        ...

    @abstractmethod
    async def update_many(self, query: Record, update: Record) -> int:
        """
        Apply ``update`` to every record matching ``query``.

        ``update`` is an operator document: ``{"$set": {...}}`` and/or
        ``{"$inc": {...}}``. ``$inc`` is applied atomically by the store.

        Returns:
            Number of records modified
        """
        ...

    @abstractmethod
    async def update_by_id(self, entity_id: Any, update: Record) -> Optional[Record]:
        """Apply ``update`` to one record and return it, or None if it doesn't exist."""
        ...

    @abstractmethod
    async def remove_many(self, query: Record) -> int:
        ...

    @abstractmethod
    async def remove_by_id(self, entity_id: Any) -> Optional[Record]:
        """Remove one record and return it, or None if it didn't exist."""
        ...

    @abstractmethod
    async def clear(self) -> int:
        ...

    async def health_check(self) -> bool:
        return True

    def describe(self) -> str:
        return f"{self.backend.value}:{self.resource_name}"
