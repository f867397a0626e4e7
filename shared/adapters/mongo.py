"""MongoDB storage adapter using motor (async driver)."""

from typing import Any, Dict, Iterable, List, Optional, Sequence

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from shared.adapters.base import Record, ResourceStore, StorageBackend
from shared.errors import AdapterConnectionError
from shared.logging import get_logger

DEFAULT_DATABASE = "resources"


def to_object_id(entity_id: Any) -> Any:
    if isinstance(entity_id, str) and ObjectId.is_valid(entity_id):
        return ObjectId(entity_id)
    return entity_id


def encode(document: Optional[Dict[str, Any]]) -> Optional[Record]:
    """Stringify ``_id`` so records leave the adapter JSON-ready."""
    if document is None:
        return None
    record = dict(document)
    if isinstance(record.get("_id"), ObjectId):
        record["_id"] = str(record["_id"])
    return record


def normalize_update(update: Record) -> Record:
    if any(key.startswith("$") for key in update):
        return update
    return {"$set": update}


class MongoAdapter(ResourceStore):
    """Store bound to one MongoDB collection named after the resource."""

    backend = StorageBackend.MONGO

    def __init__(self, resource_name: str, uri: str, server_selection_timeout_ms: int = 5000):
        super().__init__(resource_name)
        self.uri = uri
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self.logger = get_logger("adapters.mongo")
        self.client: Optional[AsyncIOMotorClient] = None
        self.collection = None

    async def connect(self) -> None:
        """Connect and ping the server. Failure is fatal and not retried here."""
        try:
            self.client = AsyncIOMotorClient(
                self.uri,
                serverSelectionTimeoutMS=self.server_selection_timeout_ms
            )
            await self.client.admin.command("ping")

            database = self.client.get_default_database(default=DEFAULT_DATABASE)
            self.collection = database[self.resource_name]

            self.logger.info(
                "MongoDB adapter connected",
                database=database.name,
                collection=self.resource_name
            )

        except Exception as e:
            self.logger.error("Failed to connect to MongoDB", collection=self.resource_name, error=str(e))
            raise AdapterConnectionError("mongo", str(e), {"collection": self.resource_name})

    async def disconnect(self) -> None:
        if self.client:
            self.client.close()
            self.logger.info("MongoDB adapter disconnected", collection=self.resource_name)

    def _query(self, query: Optional[Record]) -> Record:
        query = dict(query or {})
        if "_id" in query:
            query["_id"] = to_object_id(query["_id"])
        return query

    async def find(
        self,
        query: Optional[Record] = None,
        sort: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Record]:
        cursor = self.collection.find(self._query(query))
        if sort:
            cursor = cursor.sort([
                (spec.lstrip("-+"), DESCENDING if spec.startswith("-") else ASCENDING)
                for spec in sort
            ])
        if offset:
            cursor = cursor.skip(offset)
        if limit is not None:
            cursor = cursor.limit(limit)

        documents = await cursor.to_list(length=None)
        return [encode(doc) for doc in documents]

    async def find_one(self, query: Record) -> Optional[Record]:
        return encode(await self.collection.find_one(self._query(query)))

    async def find_by_id(self, entity_id: Any) -> Optional[Record]:
        return encode(await self.collection.find_one({"_id": to_object_id(entity_id)}))

    async def count(self, query: Optional[Record] = None) -> int:
        return await self.collection.count_documents(self._query(query))

    async def insert(self, entity: Record) -> Record:
        document = dict(entity)
        result = await self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        return encode(document)

    async def insert_many(self, entities: Iterable[Record]) -> List[Record]:
        documents = [dict(entity) for entity in entities]
        if not documents:
            return []
        result = await self.collection.insert_many(documents)
        for document, inserted_id in zip(documents, result.inserted_ids):
            document["_id"] = inserted_id
        return [encode(doc) for doc in documents]

    async def update_many(self, query: Record, update: Record) -> int:
        result = await self.collection.update_many(self._query(query), normalize_update(update))
        return result.modified_count

    async def update_by_id(self, entity_id: Any, update: Record) -> Optional[Record]:
        document = await self.collection.find_one_and_update(
            {"_id": to_object_id(entity_id)},
            normalize_update(update),
            return_document=ReturnDocument.AFTER
        )
        return encode(document)

    async def remove_many(self, query: Record) -> int:
        result = await self.collection.delete_many(self._query(query))
        return result.deleted_count

    async def remove_by_id(self, entity_id: Any) -> Optional[Record]:
        return encode(await self.collection.find_one_and_delete({"_id": to_object_id(entity_id)}))

    async def clear(self) -> int:
        result = await self.collection.delete_many({})
        return result.deleted_count

    async def health_check(self) -> bool:
        try:
            await self.client.admin.command("ping")
            return True
        except Exception:
            return False
