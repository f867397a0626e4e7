"""
Shared building blocks for resource services.

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- adapters: Storage adapters (memory, file, MongoDB) and backend selection
- cache: Optional cache layer (memory or Redis)
- events: Typed in-process event bus
- resource_mixin: Storage wiring and cache invalidation for a resource
- resource_service: Generic CRUD actions over a resource
- base_service: FastAPI service scaffolding

Do not import from service_* packages into shared/.
"""
