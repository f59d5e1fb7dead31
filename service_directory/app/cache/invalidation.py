"""
List-query cache invalidation.

A mutation to a record can change the contents of any listing filtered on the
record's region or category, under any limit and any rating floor. Rather than
tracking which listings were populated, the engine walks the whole parameter
lattice and deletes every key a listing could have been stored under:

    for limit in [MIN_LIMIT, MAX_LIMIT]:
        region(region, limit)
        region(region, limit) + category(category)
        for decirating in [0, 50]:
            category(category, decirating, limit)

Deleting a key that was never populated is not an error. Keys are produced
lazily and drained by a fixed number of workers, so the fan-out has bounded
concurrency and one failing key never stops the others.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple, TYPE_CHECKING

from shared.logging import get_logger
from shared.errors import CacheKeyNotFoundError
from .base import CacheBackend
from .keys import (
    MIN_LIMIT, MAX_LIMIT, MIN_DECIRATING, MAX_DECIRATING,
    region_key, region_category_key, category_key,
)

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_CONCURRENCY = 32


class InvalidationSet:
    """The finite, restartable set of list keys affected by a (region, category) pair."""

    def __init__(self, region: str, category: str,
                 min_limit: int = MIN_LIMIT, max_limit: int = MAX_LIMIT):
        self.region = region
        self.category = category
        self.limits = range(min_limit, max_limit + 1)
        self.deciratings = range(MIN_DECIRATING, MAX_DECIRATING + 1)

    def __iter__(self) -> Iterator[str]:
        for limit in self.limits:
            yield region_key(self.region, limit)
            yield region_category_key(self.region, self.category, limit)
            for decirating in self.deciratings:
                yield category_key(self.category, decirating, limit)

    def __len__(self) -> int:
        return len(self.limits) * (2 + len(self.deciratings))


@dataclass
class InvalidationReport:
    """Outcome of one invalidation fan-out."""
    attempted: int = 0
    deleted: int = 0
    missing: int = 0
    failures: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class InvalidationEngine:
    """Deletes every list-query key a record mutation could affect."""

    def __init__(
        self,
        cache: CacheBackend,
        concurrency: int = DEFAULT_CONCURRENCY,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.cache = cache
        self.concurrency = max(1, concurrency)
        self.metrics = metrics
        self.logger = get_logger("directory.cache.invalidation")

    async def invalidate(self, region: str, category: str) -> InvalidationReport:
        """Delete all list keys for (region, category) and report the outcome."""
        start = time.perf_counter()
        report = InvalidationReport()
        keys = iter(InvalidationSet(region, category))

        # Workers share one iterator; next() never suspends, so each key is handed out once.
        await asyncio.gather(*(self._drain(keys, report) for _ in range(self.concurrency)))

        duration = time.perf_counter() - start
        self._record_metrics(report, duration)

        self.logger.info(
            "Cache invalidation completed",
            region=region,
            category=category,
            attempted=report.attempted,
            deleted=report.deleted,
            missing=report.missing,
            failed=len(report.failures),
            duration_ms=round(duration * 1000, 2),
        )
        return report

    async def _drain(self, keys: Iterator[str], report: InvalidationReport) -> None:
        for key in keys:
            report.attempted += 1
            try:
                await self.cache.delete(key)
                report.deleted += 1
            except CacheKeyNotFoundError:
                report.missing += 1
            except Exception as exc:
                report.failures.append((key, str(exc)))
                self.logger.error("Cache key invalidation failed", key=key, error=str(exc))

    def _record_metrics(self, report: InvalidationReport, duration: float) -> None:
        if not self.metrics:
            return

        try:
            self.metrics.increment_counter("cache_invalidation_keys_total", report.deleted, result="deleted")
            self.metrics.increment_counter("cache_invalidation_keys_total", report.missing, result="missing")
            self.metrics.increment_counter("cache_invalidation_keys_total", len(report.failures), result="failed")
            self.metrics.observe_histogram("cache_invalidation_duration_seconds", duration)
        except Exception as exc:  # pragma: no cover - metrics failures should never break invalidation
            self.logger.debug("Failed to record invalidation metrics", error=str(exc))
