"""
PostgreSQL persistence layer for the Directory service.
"""

import re
from typing import Any, List, Optional

import asyncpg
from shared.logging import get_logger
from shared.errors import StoreError
from ..records.models import Record


_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")

_COLUMNS = "name, category, region, rating, rating_count"


class PostgreSQLRecordStore:
    """PostgreSQL persistence layer for records."""

    def __init__(self, dsn: str, table_name: str = "records"):
        if not _IDENTIFIER.match(table_name):
            raise ValueError(f"Invalid table name: {table_name!r}")
        self.dsn = dsn
        self.table = table_name
        self.logger = get_logger("directory.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30
            )

            # Create tables if they don't exist
            await self._create_tables()

            self.logger.info("PostgreSQL persistence started", table=self.table)

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise StoreError("start", str(e)) from e

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL persistence stopped")

    async def _create_tables(self):
        """Create the records table and its secondary indexes."""
        async with self.pool.acquire() as conn:
            await conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    name TEXT PRIMARY KEY,
                    category TEXT NOT NULL,
                    region TEXT NOT NULL,
                    rating DOUBLE PRECISION NOT NULL DEFAULT 0,
                    rating_count INTEGER NOT NULL DEFAULT 0
                );
            """)

            # Secondary indexes, ordered for top-rated scans
            await conn.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{self.table}_category ON {self.table}(category, rating DESC);
            """)
            await conn.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{self.table}_region ON {self.table}(region, rating DESC);
            """)
            await conn.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{self.table}_region_category
                ON {self.table}(region, category, rating DESC);
            """)

    def _require_pool(self, operation: str) -> asyncpg.Pool:
        if self.pool is None:
            raise StoreError(operation, "record store not started")
        return self.pool

    async def get_record(self, name: str) -> Optional[Record]:
        """Load a record by name."""
        pool = self._require_pool("get")
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {_COLUMNS} FROM {self.table} WHERE name = $1", name
                )
        except Exception as e:
            self.logger.error("Error loading record", name=name, error=str(e))
            raise StoreError("get", str(e)) from e

        return self._row_to_record(row) if row else None

    async def put_record(self, record: Record, if_absent: bool = False) -> bool:
        """Save a record."""
        pool = self._require_pool("put")
        conflict = "DO NOTHING" if if_absent else """DO UPDATE SET
                    category = EXCLUDED.category,
                    region = EXCLUDED.region,
                    rating = EXCLUDED.rating,
                    rating_count = EXCLUDED.rating_count"""
        try:
            async with pool.acquire() as conn:
                result = await conn.execute(f"""
                    INSERT INTO {self.table} ({_COLUMNS})
                    VALUES ($1, $2, $3, $4, $5)
                    ON CONFLICT (name) {conflict}
                """,
                    record.name, record.category, record.region, record.rating, record.rating_count
                )
        except Exception as e:
            self.logger.error("Error saving record", name=record.name, error=str(e))
            raise StoreError("put", str(e)) from e

        written = _affected(result) == 1
        if written:
            self.logger.info("Record saved", name=record.name)
        return written

    async def delete_record(self, name: str) -> bool:
        """Delete a record."""
        pool = self._require_pool("delete")
        try:
            async with pool.acquire() as conn:
                result = await conn.execute(f"DELETE FROM {self.table} WHERE name = $1", name)
        except Exception as e:
            self.logger.error("Error deleting record", name=name, error=str(e))
            raise StoreError("delete", str(e)) from e

        if _affected(result) == 1:
            self.logger.info("Record deleted", name=name)
            return True

        self.logger.warning("Record not found for deletion", name=name)
        return False

    async def update_rating(
        self,
        name: str,
        rating: float,
        rating_count: int,
        expected_count: Optional[int] = None,
    ) -> bool:
        """Update the aggregate rating, optionally conditioned on the current count."""
        pool = self._require_pool("update")
        query = f"UPDATE {self.table} SET rating = $2, rating_count = $3 WHERE name = $1"
        args: List[Any] = [name, rating, rating_count]
        if expected_count is not None:
            query += " AND rating_count = $4"
            args.append(expected_count)

        try:
            async with pool.acquire() as conn:
                result = await conn.execute(query, *args)
        except Exception as e:
            self.logger.error("Error updating rating", name=name, error=str(e))
            raise StoreError("update", str(e)) from e

        return _affected(result) == 1

    async def query_by_category(self, category: str, limit: int) -> List[Record]:
        """Top-rated records in a category."""
        return await self._fetch(
            "query_by_category",
            f"SELECT {_COLUMNS} FROM {self.table} WHERE category = $1 "
            f"ORDER BY rating DESC, name ASC LIMIT $2",
            category, limit
        )

    async def query_by_region(self, region: str, limit: int) -> List[Record]:
        """Top-rated records in a region."""
        return await self._fetch(
            "query_by_region",
            f"SELECT {_COLUMNS} FROM {self.table} WHERE region = $1 "
            f"ORDER BY rating DESC, name ASC LIMIT $2",
            region, limit
        )

    async def query_by_region_and_category(self, region: str, category: str, limit: int) -> List[Record]:
        """Top-rated records in a region and category."""
        return await self._fetch(
            "query_by_region_and_category",
            f"SELECT {_COLUMNS} FROM {self.table} WHERE region = $1 AND category = $2 "
            f"ORDER BY rating DESC, name ASC LIMIT $3",
            region, category, limit
        )

    async def _fetch(self, operation: str, query: str, *args) -> List[Record]:
        pool = self._require_pool(operation)
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(query, *args)
        except Exception as e:
            self.logger.error("Error querying records", operation=operation, error=str(e))
            raise StoreError(operation, str(e)) from e

        return [self._row_to_record(row) for row in rows]

    def _row_to_record(self, row) -> Record:
        """Convert database row to Record object."""
        return Record(
            name=row['name'],
            category=row['category'],
            region=row['region'],
            rating=float(row['rating']),
            rating_count=int(row['rating_count'])
        )

    async def health_check(self) -> bool:
        """Check database health."""
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception:
            return False


def _affected(status: str) -> int:
    """Row count from an asyncpg command status such as 'INSERT 0 1' or 'DELETE 3'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0
