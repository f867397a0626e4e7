"""In-memory storage adapter."""

import asyncio
import copy
import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence

from shared.adapters.base import Record, ResourceStore, StorageBackend
from shared.errors import ServiceError
from shared.logging import get_logger

UPDATE_OPERATORS = ("$set", "$inc")


def generate_id() -> str:
    return uuid.uuid4().hex[:16]


def matches(record: Record, query: Optional[Record]) -> bool:
    if not query:
        return True
    return all(record.get(field) == value for field, value in query.items())


def apply_update(record: Record, update: Record) -> Record:
    """Return a copy of ``record`` with a ``$set``/``$inc`` operator document applied.

    ``record`` itself is never modified, so a rejected update leaves nothing behind.
    """
    if not any(key.startswith("$") for key in update):
        update = {"$set": update}

    unknown = [key for key in update if key not in UPDATE_OPERATORS]
    if unknown:
        raise ServiceError("Unsupported update operator", {"operators": unknown})

    updated = copy.deepcopy(record)
    for field, value in update.get("$set", {}).items():
        if field == "_id":
            continue
        updated[field] = copy.deepcopy(value)

    for field, delta in update.get("$inc", {}).items():
        current = updated.get(field, 0)
        if not isinstance(current, (int, float)) or isinstance(current, bool):
            raise ServiceError("Cannot increment a non-numeric field", {"field": field})
        updated[field] = current + delta

    return updated


def sort_records(records: List[Record], sort: Sequence[str]) -> List[Record]:
    # Stable sorts applied from the least significant key
    for spec in reversed(list(sort)):
        descending = spec.startswith("-")
        field = spec.lstrip("-+")
        records.sort(
            key=lambda r: (r.get(field) is None, r.get(field)),
            reverse=descending
        )
    return records


class MemoryAdapter(ResourceStore):
    """Transient store held in process memory.

    Mutations build a staged copy of the record map, hand it to ``_persist``
    and only then swap it in. A failed persist leaves the live records as
    they were.
    """

    backend = StorageBackend.MEMORY

    def __init__(self, resource_name: str):
        super().__init__(resource_name)
        self.logger = get_logger(f"adapters.{self.backend.value}")
        self._records: Dict[str, Record] = {}
        self._lock = asyncio.Lock()

    async def _persist(self, records: Dict[str, Record]) -> None:
        """Called with the staged records before every commit, under the lock."""

    async def _commit(self, records: Dict[str, Record]) -> None:
        await self._persist(records)
        self._records = records

    async def find(
        self,
        query: Optional[Record] = None,
        sort: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Record]:
        records = [copy.deepcopy(r) for r in self._records.values() if matches(r, query)]
        if sort:
            records = sort_records(records, sort)
        if offset:
            records = records[offset:]
        if limit is not None:
            records = records[:limit]
        return records

    async def find_one(self, query: Record) -> Optional[Record]:
        for record in self._records.values():
            if matches(record, query):
                return copy.deepcopy(record)
        return None

    async def find_by_id(self, entity_id: Any) -> Optional[Record]:
        record = self._records.get(str(entity_id))
        return copy.deepcopy(record) if record is not None else None

    async def count(self, query: Optional[Record] = None) -> int:
        if not query:
            return len(self._records)
        return sum(1 for r in self._records.values() if matches(r, query))

    def _prepare(self, entities: Iterable[Record]) -> List[Record]:
        prepared = []
        seen = set()
        for entity in entities:
            record = copy.deepcopy(entity)
            record["_id"] = str(record.get("_id") or generate_id())
            if record["_id"] in self._records or record["_id"] in seen:
                raise ServiceError("Duplicate entity id", {"id": record["_id"]})
            seen.add(record["_id"])
            prepared.append(record)
        return prepared

    async def insert(self, entity: Record) -> Record:
        inserted = await self.insert_many([entity])
        return inserted[0]

    async def insert_many(self, entities: Iterable[Record]) -> List[Record]:
        async with self._lock:
            prepared = self._prepare(entities)
            staged = dict(self._records)
            staged.update((record["_id"], record) for record in prepared)
            await self._commit(staged)
        return [copy.deepcopy(record) for record in prepared]

    async def update_many(self, query: Record, update: Record) -> int:
        async with self._lock:
            updated = {
                key: apply_update(record, update)
                for key, record in self._records.items()
                if matches(record, query)
            }
            if updated:
                await self._commit({**self._records, **updated})
        return len(updated)

    async def update_by_id(self, entity_id: Any, update: Record) -> Optional[Record]:
        async with self._lock:
            key = str(entity_id)
            record = self._records.get(key)
            if record is None:
                return None
            updated = apply_update(record, update)
            await self._commit({**self._records, key: updated})
            return copy.deepcopy(updated)

    async def remove_many(self, query: Record) -> int:
        async with self._lock:
            staged = {key: r for key, r in self._records.items() if not matches(r, query)}
            removed = len(self._records) - len(staged)
            if removed:
                await self._commit(staged)
        return removed

    async def remove_by_id(self, entity_id: Any) -> Optional[Record]:
        async with self._lock:
            key = str(entity_id)
            record = self._records.get(key)
            if record is not None:
                staged = dict(self._records)
                del staged[key]
                await self._commit(staged)
        return record

    async def clear(self) -> int:
        async with self._lock:
            count = len(self._records)
            await self._commit({})
        return count
