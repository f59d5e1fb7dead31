"""
Cache backend contract consumed by the record service.
"""

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class CacheBackend(Protocol):
    """Key-value cache without expiry semantics.

    Implementations raise CacheError for backend failures and
    CacheKeyNotFoundError when deleting a key that does not exist.
    """

    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value or None when absent."""
        ...

    async def set(self, key: str, value: Any) -> None:
        """Store a value under key."""
        ...

    async def delete(self, key: str) -> None:
        """Delete key; raises CacheKeyNotFoundError when absent."""
        ...

    async def health_check(self) -> bool:
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...
