"""
Cache-consistent record service.

Reads go to the cache first and fall back to the record store; writes go to
the store first and then invalidate every cached listing the write could
affect. The store is the source of truth: a store failure fails the request,
while a cache failure is logged and the request continues as if the cache
had missed or the invalidation had been skipped.
"""

from typing import Any, Awaitable, Callable, List, Optional, TYPE_CHECKING

from shared.logging import get_logger
from shared.errors import (
    BadRequestError, ConflictError, NotFoundError, InternalError, StoreError,
    CacheError, CacheKeyNotFoundError,
)
from ..cache import keys
from ..cache.base import CacheBackend
from ..cache.codec import encode_record, encode_records, decode_record, decode_records
from ..cache.invalidation import InvalidationEngine, InvalidationReport, DEFAULT_CONCURRENCY
from ..persistence.base import RecordStore
from .models import Record, MIN_RATING, MAX_RATING

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class RecordService:
    """Orchestrates read-through, write-through and delete-through flows."""

    def __init__(
        self,
        store: RecordStore,
        cache: Optional[CacheBackend] = None,
        *,
        use_cache: bool = False,
        invalidation: Optional[InvalidationEngine] = None,
        invalidation_concurrency: int = DEFAULT_CONCURRENCY,
        metrics: Optional["MetricsCollector"] = None,
    ):
        if use_cache and cache is None:
            raise ValueError("use_cache requires a cache backend")

        self.store = store
        self.cache = cache
        self.use_cache = use_cache
        self.metrics = metrics
        self.logger = get_logger("directory.records")
        self.invalidation: Optional[InvalidationEngine] = None
        if use_cache:
            self.invalidation = invalidation or InvalidationEngine(
                cache, invalidation_concurrency, metrics=metrics
            )

    # ------------------------------------------------------------------
    # Point operations
    # ------------------------------------------------------------------

    async def create_record(
        self,
        name: Optional[str],
        category: Optional[str],
        region: Optional[str],
        rating: Optional[float] = None,
    ) -> Record:
        """Create a record; fails with ConflictError when the name is taken."""
        _require(name=name, category=category, region=region)
        if rating is not None and not MIN_RATING <= rating <= MAX_RATING:
            raise BadRequestError("Invalid rating", {"rating": str(rating)})

        if self.use_cache:
            cached = await self._cache_get(keys.point_key(name), "point", decode_record)
            if cached is not None:
                raise ConflictError(details={"name": name})
        else:
            existing = await self._store_call("get", self.store.get_record(name))
            if existing is not None:
                raise ConflictError(details={"name": name})

        record = Record(name=name, category=category, region=region, rating=rating or 0.0, rating_count=0)

        written = await self._store_call("put", self.store.put_record(record, if_absent=True))
        if not written:
            raise ConflictError(details={"name": name})

        if self.use_cache:
            await self._invalidate(record)
            await self._cache_set(keys.point_key(name), encode_record(record))

        self.logger.info("Record created", name=name, category=category, region=region)
        return record

    async def get_record(self, name: Optional[str]) -> Record:
        """Return a record by name, from cache when possible."""
        _require(name=name)

        if self.use_cache:
            cached = await self._cache_get(keys.point_key(name), "point", decode_record)
            if cached is not None:
                return cached

        record = await self._store_call("get", self.store.get_record(name))
        if record is None:
            raise NotFoundError(details={"name": name})

        if self.use_cache:
            await self._cache_set(keys.point_key(name), encode_record(record))
        return record

    async def delete_record(self, name: Optional[str]) -> Record:
        """Delete a record and purge every cache entry that could reference it."""
        _require(name=name)

        record = await self._store_call("get", self.store.get_record(name))
        if record is None:
            raise NotFoundError(details={"name": name})

        if self.use_cache:
            await self._cache_delete(keys.point_key(name))

        deleted = await self._store_call("delete", self.store.delete_record(name))
        if not deleted:
            raise NotFoundError(details={"name": name})

        if self.use_cache:
            # A read between the first purge and the store delete may have re-primed the point key.
            await self._invalidate(record)
            await self._cache_delete(keys.point_key(name))

        self.logger.info("Record deleted", name=name)
        return record

    async def refresh_cached(self, record: Record) -> None:
        """Re-prime the point entry and invalidate listings after a rating change."""
        if not self.use_cache:
            return
        await self._cache_set(keys.point_key(record.name), encode_record(record))
        await self._invalidate(record)

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    async def list_by_category(
        self,
        category: Optional[str],
        limit: Optional[int] = None,
        min_rating: Optional[float] = None,
    ) -> List[Record]:
        """Top-rated records in a category with rating at or above min_rating."""
        _require(category=category)
        limit = keys.clamp_limit(limit)
        try:
            decirating = keys.to_decirating(min_rating if min_rating is not None else 0)
        except ValueError:
            raise BadRequestError("Invalid rating", {"min_rating": str(min_rating)})

        floor = keys.from_decirating(decirating)
        return await self._list(
            keys.category_key(category, decirating, limit),
            "category",
            lambda: self.store.query_by_category(category, limit),
            min_rating=floor,
        )

    async def list_by_region(self, region: Optional[str], limit: Optional[int] = None) -> List[Record]:
        """Top-rated records in a region."""
        _require(region=region)
        limit = keys.clamp_limit(limit)
        return await self._list(
            keys.region_key(region, limit),
            "region",
            lambda: self.store.query_by_region(region, limit),
        )

    async def list_by_region_and_category(
        self,
        region: Optional[str],
        category: Optional[str],
        limit: Optional[int] = None,
    ) -> List[Record]:
        """Top-rated records in a region and category."""
        _require(region=region, category=category)
        limit = keys.clamp_limit(limit)
        return await self._list(
            keys.region_category_key(region, category, limit),
            "region_category",
            lambda: self.store.query_by_region_and_category(region, category, limit),
        )

    async def _list(
        self,
        cache_key: str,
        cache_type: str,
        query: Callable[[], Awaitable[List[Record]]],
        min_rating: Optional[float] = None,
    ) -> List[Record]:
        if self.use_cache:
            cached = await self._cache_get(cache_key, cache_type, decode_records)
            if cached is not None:
                return cached

        records = await self._store_call("query", query())
        if min_rating is not None:
            # The category index has no rating predicate; filter after the scan
            records = [record for record in records if record.rating >= min_rating]

        if self.use_cache:
            await self._cache_set(cache_key, encode_records(records))
        return records

    # ------------------------------------------------------------------
    # Store and cache helpers
    # ------------------------------------------------------------------

    async def _store_call(self, operation: str, call: Awaitable[Any]) -> Any:
        try:
            return await call
        except StoreError as e:
            self.logger.error("Record store failure", operation=operation, error=e.message)
            raise InternalError(details={"operation": operation}) from e

    async def _cache_get(self, key: str, cache_type: str, decode: Callable[[Any], Any]) -> Optional[Any]:
        """Read and decode a cache entry; any failure reads as a miss."""
        try:
            raw = await self.cache.get(key)
        except CacheError as e:
            self._cache_failed("get", key, e)
            return None

        if raw is None:
            self._count("cache_misses_total", cache_type=cache_type)
            return None

        try:
            value = decode(raw)
        except ValueError as e:
            self.logger.warning("Discarding undecodable cache entry", key=key, error=str(e))
            self._count("cache_misses_total", cache_type=cache_type)
            return None

        self._count("cache_hits_total", cache_type=cache_type)
        return value

    async def _cache_set(self, key: str, value: str) -> None:
        try:
            await self.cache.set(key, value)
        except CacheError as e:
            self._cache_failed("set", key, e)

    async def _cache_delete(self, key: str) -> None:
        try:
            await self.cache.delete(key)
        except CacheKeyNotFoundError:
            pass
        except CacheError as e:
            self._cache_failed("delete", key, e)

    async def _invalidate(self, record: Record) -> Optional[InvalidationReport]:
        try:
            report = await self.invalidation.invalidate(record.region, record.category)
        except Exception as e:
            self._cache_failed("invalidate", record.name, e)
            return None

        if not report.ok:
            self.logger.error(
                "Cache invalidation incomplete",
                name=record.name,
                failed=len(report.failures),
                attempted=report.attempted,
            )
            self._count("cache_errors_total", amount=len(report.failures), operation="invalidate")
        return report

    def _cache_failed(self, operation: str, key: str, error: Exception) -> None:
        self.logger.error("Cache operation failed", operation=operation, key=key, error=str(error))
        self._count("cache_errors_total", operation=operation)

    def _count(self, metric_name: str, amount: float = 1, **labels) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.increment_counter(metric_name, amount, **labels)
        except Exception as e:  # pragma: no cover - metrics failures should never break requests
            self.logger.debug("Failed to record metric", metric=metric_name, error=str(e))


def _require(**fields: Optional[str]) -> None:
    missing = [field for field, value in fields.items() if not value]
    if missing:
        raise BadRequestError("Missing required fields", {"missing": missing})
