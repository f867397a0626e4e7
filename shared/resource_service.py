"""
Generic resource service with the standard CRUD actions.

A service is composed from a ``ResourceMixin`` (storage, cache invalidation,
seeding) plus resource policy: the response field allow-list, a pydantic
entity validator for ``create``/``insert`` and before-action hooks.
Read actions go through the cacher when one is configured; every mutating
action calls ``notify_changed`` once after its write.
"""

import contextlib
import hashlib
import json
import math
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Type, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from shared.adapters import Record
from shared.errors import NotFoundError, ValidationError
from shared.logging import get_logger
from shared.resource_mixin import ResourceMixin, SeedRoutine

Hook = Callable[[Dict[str, Any]], None]


def validate_params(model: Type[BaseModel], params: Dict[str, Any]) -> BaseModel:
    """Validate ``params`` against ``model`` or raise ValidationError."""
    try:
        return model.model_validate(params)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)


def project(record: Optional[Record], fields: Optional[Sequence[str]]) -> Optional[Record]:
    if record is None or fields is None:
        return record
    return {field: record[field] for field in fields if field in record}


class ResourceService:
    """CRUD actions over one resource store."""

    def __init__(
        self,
        mixin: ResourceMixin,
        fields: Optional[Sequence[str]] = None,
        entity_validator: Optional[Type[BaseModel]] = None,
        before_hooks: Optional[Dict[str, List[Hook]]] = None,
        cache_ttl: Optional[int] = None,
        page_size: int = 10,
        max_page_size: int = 100,
    ):
        self.mixin = mixin
        self.name = mixin.service_name
        self.fields = list(fields) if fields is not None else None
        self.entity_validator = entity_validator
        self.before_hooks = before_hooks or {}
        self.cache_ttl = cache_ttl
        self.page_size = page_size
        self.max_page_size = max_page_size
        self.logger = get_logger(f"{self.name}.service")

    @property
    def store(self):
        return self.mixin.store

    @property
    def cacher(self):
        return self.mixin.cacher

    # --- helpers ---

    def transform(self, docs: Union[Record, Iterable[Record], None]):
        """Project one record or a list of records through the field allow-list."""
        if docs is None or isinstance(docs, dict):
            return project(docs, self.fields)
        return [project(doc, self.fields) for doc in docs]

    def run_hooks(self, action: str, params: Dict[str, Any]) -> Dict[str, Any]:
        for hook in self.before_hooks.get(action, []):
            hook(params)
        return params

    def validate_entity(self, params: Dict[str, Any]) -> Record:
        if self.entity_validator is None:
            return dict(params)
        return validate_params(self.entity_validator, params).model_dump()

    def cache_key(self, action: str, params: Dict[str, Any]) -> str:
        digest = hashlib.md5(json.dumps(params, sort_keys=True, default=str).encode()).hexdigest()
        return f"{self.name}.{action}:{digest}"

    async def _cached(self, action: str, params: Dict[str, Any], fetch):
        if self.cacher is None:
            return await fetch()

        key = self.cache_key(action, params)
        cached = await self.cacher.get(key)
        if cached is not None:
            self.logger.debug("Cache hit", action=action, key=key)
            return cached

        result = await fetch()
        await self.cacher.set(key, result, ttl=self.cache_ttl)
        return result

    def _timed(self, action: str):
        if self.mixin.metrics is None:
            return contextlib.nullcontext()
        return self.mixin.metrics.time_action(self.mixin.resource_name, action)

    async def _get_or_raise(self, entity_id: Any) -> Record:
        record = await self.store.find_by_id(entity_id)
        if record is None:
            raise NotFoundError(self.mixin.resource_name, entity_id)
        return record

    def entity_changed(self, change_type: str, payload: Any, context: Optional[Dict[str, Any]] = None) -> None:
        self.mixin.notify_changed(change_type, payload, context)

    # --- read actions ---

    async def list(
        self,
        page: int = 1,
        page_size: Optional[int] = None,
        sort: Optional[Sequence[str]] = None,
        query: Optional[Record] = None,
    ) -> Dict[str, Any]:
        """Paginated listing."""
        page = max(1, page)
        page_size = min(max(1, page_size or self.page_size), self.max_page_size)
        params = {"page": page, "pageSize": page_size, "sort": list(sort or []), "query": query or {}}

        async def fetch():
            total = await self.store.count(query)
            rows = await self.store.find(query, sort=sort, limit=page_size, offset=(page - 1) * page_size)
            return {
                "rows": self.transform(rows),
                "total": total,
                "page": page,
                "pageSize": page_size,
                "totalPages": math.ceil(total / page_size),
            }

        with self._timed("list"):
            return await self._cached("list", params, fetch)

    async def find(
        self,
        query: Optional[Record] = None,
        sort: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Record]:
        params = {"query": query or {}, "sort": list(sort or []), "limit": limit, "offset": offset}

        async def fetch():
            return self.transform(await self.store.find(query, sort=sort, limit=limit, offset=offset))

        with self._timed("find"):
            return await self._cached("find", params, fetch)

    async def count(self, query: Optional[Record] = None) -> int:
        async def fetch():
            return await self.store.count(query)

        with self._timed("count"):
            return await self._cached("count", {"query": query or {}}, fetch)

    async def get(self, entity_id: str) -> Record:
        async def fetch():
            return self.transform(await self._get_or_raise(entity_id))

        with self._timed("get"):
            return await self._cached("get", {"id": entity_id}, fetch)

    # --- mutating actions ---

    async def create(self, params: Dict[str, Any], context: Optional[Dict[str, Any]] = None) -> Record:
        """Validate and insert one entity."""
        with self._timed("create"):
            params = self.run_hooks("create", dict(params))
            entity = self.validate_entity(params)

            doc = await self.store.insert(entity)
            json_doc = self.transform(doc)
            self.entity_changed("created", json_doc, context)
            return json_doc

    async def insert(self, entities: List[Dict[str, Any]], context: Optional[Dict[str, Any]] = None) -> List[Record]:
        """Validate and insert several entities in one write."""
        with self._timed("insert"):
            validated = [self.validate_entity(self.run_hooks("insert", dict(e))) for e in entities]

            docs = await self.store.insert_many(validated)
            json_docs = self.transform(docs)
            self.entity_changed("created", json_docs, context)
            return json_docs

    async def update(self, entity_id: str, changes: Dict[str, Any], context: Optional[Dict[str, Any]] = None) -> Record:
        with self._timed("update"):
            changes = self.run_hooks("update", {k: v for k, v in changes.items() if k != "_id"})

            doc = await self.store.update_by_id(entity_id, {"$set": changes})
            if doc is None:
                raise NotFoundError(self.mixin.resource_name, entity_id)

            json_doc = self.transform(doc)
            self.entity_changed("updated", json_doc, context)
            return json_doc

    async def remove(self, entity_id: str, context: Optional[Dict[str, Any]] = None) -> Record:
        with self._timed("remove"):
            doc = await self.store.remove_by_id(entity_id)
            if doc is None:
                raise NotFoundError(self.mixin.resource_name, entity_id)

            json_doc = self.transform(doc)
            self.entity_changed("removed", json_doc, context)
            return json_doc

    # --- lifecycle ---

    # Subclasses with sample data define ``async def seed_db(self, store)``
    seed_db: Optional[SeedRoutine] = None

    async def start(self) -> None:
        await self.mixin.start(self.seed_db)

    async def stop(self) -> None:
        await self.mixin.stop()
