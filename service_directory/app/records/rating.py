"""
Running-average rating aggregation.
"""

import math
from typing import Any, Optional, Tuple, TYPE_CHECKING

from shared.logging import get_logger
from shared.errors import BadRequestError, NotFoundError, InternalError, StoreError
from ..persistence.base import RecordStore
from .models import Record, MIN_RATING, MAX_RATING
from .service import RecordService

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


def fold_rating(rating: float, rating_count: int, sample: float) -> Tuple[float, int]:
    """Fold one sample into a running mean of rating_count samples."""
    new_count = rating_count + 1
    return (rating * rating_count + sample) / new_count, new_count


class RatingAggregator:
    """Applies rating samples to records.

    Each submission is a read-modify-write against the store. With
    compare_and_swap enabled the write is conditioned on the rating_count that
    was read and retried on mismatch, so concurrent submissions to the same
    record are all counted. With it disabled, concurrent submissions race and
    the last write wins.
    """

    def __init__(
        self,
        store: RecordStore,
        records: RecordService,
        *,
        compare_and_swap: bool = True,
        max_attempts: int = 5,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.records = records
        self.compare_and_swap = compare_and_swap
        self.max_attempts = max(1, max_attempts)
        self.metrics = metrics
        self.logger = get_logger("directory.ratings")

    async def submit_rating(self, name: Optional[str], sample: Any) -> Record:
        """Fold a rating sample into the named record and return the updated record."""
        if not name or sample is None or isinstance(sample, bool):
            raise BadRequestError("Missing required fields", {"name": name, "rating": sample})
        try:
            sample = float(sample)
        except (TypeError, ValueError, OverflowError):
            raise BadRequestError("Invalid rating", {"rating": str(sample)})
        if not math.isfinite(sample):
            raise BadRequestError("Invalid rating", {"rating": str(sample)})

        if not MIN_RATING <= sample <= MAX_RATING:
            # Accepted as-is; out-of-range samples skew the average
            self.logger.warning("Rating sample outside [0, 5]", name=name, rating=sample)

        for attempt in range(1, self.max_attempts + 1):
            current = await self._load(name)
            rating, rating_count = fold_rating(current.rating, current.rating_count, sample)
            expected = current.rating_count if self.compare_and_swap else None

            try:
                applied = await self.store.update_rating(name, rating, rating_count, expected_count=expected)
            except StoreError as e:
                self.logger.error("Rating update failed", name=name, error=e.message)
                self._count("error")
                raise InternalError(details={"operation": "update"}) from e

            if applied:
                updated = current.with_rating(rating, rating_count)
                await self.records.refresh_cached(updated)
                self._count("updated")
                self.logger.info(
                    "Rating submitted",
                    name=name,
                    rating=rating,
                    rating_count=rating_count,
                    attempts=attempt,
                )
                return updated

            self.logger.debug("Rating update lost a race, retrying", name=name, attempt=attempt)

        self._count("contention")
        self.logger.error("Rating update abandoned after retries", name=name, attempts=self.max_attempts)
        raise InternalError("Rating update contention", {"name": name, "attempts": self.max_attempts})

    async def _load(self, name: str) -> Record:
        try:
            record = await self.store.get_record(name)
        except StoreError as e:
            self.logger.error("Record store failure", operation="get", error=e.message)
            self._count("error")
            raise InternalError(details={"operation": "get"}) from e

        if record is None:
            self._count("not_found")
            raise NotFoundError(details={"name": name})
        return record

    def _count(self, result: str) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.increment_counter("rating_submissions_total", result=result)
        except Exception as e:
            self.logger.debug("Failed to record metric", result=result, error=str(e))
