"""
Directory service for record lookup, listing and rating.
"""

import math
from typing import List, Optional

from fastapi import Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig, describe
from shared.errors import BadRequestError

from .cache import keys
from .cache.base import CacheBackend
from .cache.redis_cache import RedisCache
from .persistence.base import RecordStore
from .persistence.memory import InMemoryRecordStore
from .persistence.postgres import PostgreSQLRecordStore
from .records.models import (
    RecordCreateRequest, RatingSubmitRequest, RecordResponse, MutationResponse,
)
from .records.rating import RatingAggregator
from .records.service import RecordService


SERVICE_NAME = "directory"
SERVICE_PORT = 8080


def _parse_limit(value: Optional[str]) -> Optional[int]:
    """Lenient integer parse for the limit query parameter; garbage means default.

    Infinite values clamp like any other oversized or negative limit.
    """
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    if math.isinf(number):
        return keys.MAX_LIMIT if number > 0 else keys.MIN_LIMIT
    return int(number)


class DirectoryService(BaseService):
    """Directory service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        store: Optional[RecordStore] = None,
        cache: Optional[CacheBackend] = None,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config)

        # Initialize components
        self.store = store or self._create_store()
        self.cache = cache
        if self.cache is None and self.config.use_cache:
            self.cache = RedisCache(self.config.redis_url)

        self.records = RecordService(
            self.store,
            self.cache,
            use_cache=self.config.use_cache,
            invalidation_concurrency=self.config.invalidation_concurrency,
            metrics=self.metrics if self.config.metrics_enabled else None,
        )
        self.ratings = RatingAggregator(
            self.store,
            self.records,
            compare_and_swap=self.config.rating_compare_and_swap,
            max_attempts=self.config.rating_max_attempts,
            metrics=self.metrics if self.config.metrics_enabled else None,
        )

        self._setup_directory_routes()

    def _create_store(self) -> RecordStore:
        if self.config.store_backend == "memory":
            return InMemoryRecordStore()
        if self.config.store_backend == "postgres":
            return PostgreSQLRecordStore(self.config.postgres_dsn, self.config.table_name)
        raise ValueError(f"Unknown store backend: {self.config.store_backend}")

    def _setup_directory_routes(self):
        """Set up directory-specific routes."""

        @self.app.exception_handler(RequestValidationError)
        async def validation_exception_handler(request: Request, exc: RequestValidationError):
            """Report malformed input with the service's BAD_REQUEST shape."""
            errors = [
                {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
                for err in exc.errors()
            ]
            error = BadRequestError("Invalid request", {"errors": errors})
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_response().model_dump()
            )

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Directory Service",
                "version": "1.0.0",
                **describe(self.config),
            }

        @self.app.post("/records", response_model=MutationResponse)
        async def create_record(request: RecordCreateRequest):
            """Create a new record."""
            await self.records.create_record(
                request.name, request.category, request.region, request.rating
            )
            return MutationResponse()

        @self.app.post("/records/rating", response_model=MutationResponse)
        async def submit_rating(request: RatingSubmitRequest):
            """Fold a rating sample into a record."""
            await self.ratings.submit_rating(request.name, request.rating)
            return MutationResponse()

        @self.app.get("/records/category/{category}", response_model=List[RecordResponse])
        async def list_by_category(
            category: str,
            limit: Optional[str] = Query(None, description="Maximum results, clamped to [1, 100]"),
            min_rating: Optional[float] = Query(None, alias="minRating", description="Rating floor in [0, 5]"),
        ):
            """Top-rated records in a category."""
            records = await self.records.list_by_category(category, _parse_limit(limit), min_rating)
            return [RecordResponse.from_record(record) for record in records]

        @self.app.get("/records/region/{region}", response_model=List[RecordResponse])
        async def list_by_region(
            region: str,
            limit: Optional[str] = Query(None, description="Maximum results, clamped to [1, 100]"),
        ):
            """Top-rated records in a region."""
            records = await self.records.list_by_region(region, _parse_limit(limit))
            return [RecordResponse.from_record(record) for record in records]

        @self.app.get("/records/region/{region}/category/{category}", response_model=List[RecordResponse])
        async def list_by_region_and_category(
            region: str,
            category: str,
            limit: Optional[str] = Query(None, description="Maximum results, clamped to [1, 100]"),
        ):
            """Top-rated records in a region and category."""
            records = await self.records.list_by_region_and_category(region, category, _parse_limit(limit))
            return [RecordResponse.from_record(record) for record in records]

        @self.app.get("/records/{name}", response_model=RecordResponse)
        async def get_record(name: str):
            """Get a record by name."""
            record = await self.records.get_record(name)
            return RecordResponse.from_record(record)

        @self.app.delete("/records/{name}", response_model=MutationResponse)
        async def delete_record(name: str):
            """Delete a record."""
            await self.records.delete_record(name)
            return MutationResponse()

    async def _check_dependencies(self):
        """Check directory service dependencies."""
        dependencies = {}

        try:
            dependencies["store"] = "ok" if await self.store.health_check() else "error"
        except Exception:
            dependencies["store"] = "error"

        if self.config.use_cache:
            try:
                dependencies["cache"] = "ok" if await self.cache.health_check() else "error"
            except Exception:
                dependencies["cache"] = "error"

        return dependencies

    async def start(self):
        """Start directory service components."""
        await self.store.start()
        if self.cache is not None:
            await self.cache.start()

        self.logger.info(
            "Directory service started",
            use_cache=self.config.use_cache,
            store_backend=self.config.store_backend,
        )

    async def stop(self):
        """Stop directory service components."""
        await self.store.stop()
        if self.cache is not None:
            await self.cache.stop()

        self.logger.info("Directory service stopped")


def create_app():
    """Create directory service application."""
    service = DirectoryService()
    return service.app


if __name__ == "__main__":
    service = DirectoryService()
    service.run()
