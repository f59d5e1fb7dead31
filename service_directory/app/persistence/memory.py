"""
In-process record store for local runs and tests.
"""

import asyncio
from typing import Callable, Dict, List, Optional

from shared.logging import get_logger
from ..records.models import Record


class InMemoryRecordStore:
    """Dict-backed record store with the same semantics as the PostgreSQL store.

    Every call yields to the event loop once, so concurrent read-modify-write
    sequences interleave the way they would against a remote store.
    """

    def __init__(self):
        self.logger = get_logger("directory.persistence.memory")
        self._records: Dict[str, Record] = {}

    async def start(self):
        self.logger.info("In-memory record store started")

    async def stop(self):
        self.logger.info("In-memory record store stopped", records=len(self._records))

    async def get_record(self, name: str) -> Optional[Record]:
        await asyncio.sleep(0)
        return self._records.get(name)

    async def put_record(self, record: Record, if_absent: bool = False) -> bool:
        await asyncio.sleep(0)
        if if_absent and record.name in self._records:
            return False
        self._records[record.name] = record
        return True

    async def delete_record(self, name: str) -> bool:
        await asyncio.sleep(0)
        return self._records.pop(name, None) is not None

    async def update_rating(
        self,
        name: str,
        rating: float,
        rating_count: int,
        expected_count: Optional[int] = None,
    ) -> bool:
        await asyncio.sleep(0)
        current = self._records.get(name)
        if current is None:
            return False
        if expected_count is not None and current.rating_count != expected_count:
            return False
        self._records[name] = current.with_rating(rating, rating_count)
        return True

    async def query_by_category(self, category: str, limit: int) -> List[Record]:
        return await self._query(lambda r: r.category == category, limit)

    async def query_by_region(self, region: str, limit: int) -> List[Record]:
        return await self._query(lambda r: r.region == region, limit)

    async def query_by_region_and_category(self, region: str, category: str, limit: int) -> List[Record]:
        return await self._query(lambda r: r.region == region and r.category == category, limit)

    async def _query(self, predicate: Callable[[Record], bool], limit: int) -> List[Record]:
        await asyncio.sleep(0)
        matches = [record for record in self._records.values() if predicate(record)]
        matches.sort(key=lambda r: (-r.rating, r.name))
        return matches[:limit]

    async def health_check(self) -> bool:
        return True
