"""
Record store contract consumed by the record service and rating aggregator.
"""

from typing import List, Optional, Protocol, runtime_checkable

from ..records.models import Record


@runtime_checkable
class RecordStore(Protocol):
    """Durable keyed storage with category, region and region+category indexes.

    Query methods return at most ``limit`` records ordered by rating,
    highest first. Backend failures raise StoreError.
    """

    async def get_record(self, name: str) -> Optional[Record]:
        ...

    async def put_record(self, record: Record, if_absent: bool = False) -> bool:
        """Write a record. With if_absent, returns False instead of overwriting."""
        ...

    async def delete_record(self, name: str) -> bool:
        """Delete a record. Returns False when it did not exist."""
        ...

    async def update_rating(
        self,
        name: str,
        rating: float,
        rating_count: int,
        expected_count: Optional[int] = None,
    ) -> bool:
        """Set rating and rating_count.

        With expected_count, the write only applies while the stored
        rating_count still equals it. Returns whether a row was updated.
        """
        ...

    async def query_by_category(self, category: str, limit: int) -> List[Record]:
        ...

    async def query_by_region(self, region: str, limit: int) -> List[Record]:
        ...

    async def query_by_region_and_category(self, region: str, category: str, limit: int) -> List[Record]:
        ...

    async def health_check(self) -> bool:
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...
