"""
Record data models for the Directory service.
"""

from dataclasses import dataclass, asdict, replace
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field


MIN_RATING = 0.0
MAX_RATING = 5.0


def coerce_rating(value: Any) -> float:
    """Coerce a stored or cached rating to float.

    Older cache entries carried the rating as text; anything that does not
    parse as a number reads as 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def coerce_count(value: Any) -> int:
    """Coerce a stored or cached rating count to a non-negative int."""
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class Record:
    """Directory entry addressed by its unique name."""
    name: str
    category: str
    region: str
    rating: float = 0.0
    rating_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Record":
        return cls(
            name=data["name"],
            category=data["category"],
            region=data["region"],
            rating=coerce_rating(data.get("rating")),
            rating_count=coerce_count(data.get("rating_count")),
        )

    def with_rating(self, rating: float, rating_count: int) -> "Record":
        """Return a copy carrying a new aggregate rating."""
        return replace(self, rating=rating, rating_count=rating_count)


class RecordCreateRequest(BaseModel):
    """Request model for record creation.

    Fields are optional at the schema level so that missing values are
    reported as BAD_REQUEST by the service rather than as schema errors.
    """
    name: Optional[str] = Field(None, description="Unique record name")
    category: Optional[str] = Field(None, description="Record category")
    region: Optional[str] = Field(None, description="Record region")
    rating: Optional[float] = Field(None, description="Initial rating in [0, 5]")


class RatingSubmitRequest(BaseModel):
    """Request model for a rating sample."""
    name: Optional[str] = Field(None, description="Record name")
    rating: Optional[Union[float, int]] = Field(None, description="Rating sample")


class RecordResponse(BaseModel):
    """Response model for a single record."""
    name: str
    category: str
    region: str
    rating: float
    rating_count: int

    @classmethod
    def from_record(cls, record: Record) -> "RecordResponse":
        return cls(**record.to_dict())


class MutationResponse(BaseModel):
    """Response model for create, delete and rating operations."""
    success: bool = True
