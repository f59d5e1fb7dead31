"""
Cache key derivation for point lookups and list queries.

Every key is a pure function of the query shape and its filter values.
Components are percent-encoded and each shape has its own namespace, so two
different filter tuples never address the same slot.

Rating floors are carried as deciratings (integer tenths, 0..50) and only
formatted to one decimal when a key is rendered.
"""

from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from typing import Any, Optional
from urllib.parse import quote

MIN_LIMIT = 1
MAX_LIMIT = 100
DEFAULT_LIMIT = 10

MIN_DECIRATING = 0
MAX_DECIRATING = 50

POINT_PREFIX = "record"
REGION_PREFIX = "region"
CATEGORY_PREFIX = "category"


def _part(value: Any) -> str:
    return quote(str(value), safe="")


def clamp_limit(limit: Optional[int]) -> int:
    """Clamp a requested listing size to [MIN_LIMIT, MAX_LIMIT].

    A missing or zero limit means DEFAULT_LIMIT.
    """
    if not limit:
        return DEFAULT_LIMIT
    return max(MIN_LIMIT, min(MAX_LIMIT, int(limit)))


def to_decirating(rating: Any) -> int:
    """Bucket a rating floor to tenths, rounding down.

    Raises ValueError when the value is not a number in [0, 5].
    """
    if isinstance(rating, bool):
        raise ValueError(f"invalid rating: {rating!r}")
    try:
        value = Decimal(str(rating))
    except InvalidOperation as exc:
        raise ValueError(f"invalid rating: {rating!r}") from exc
    if not value.is_finite() or not MIN_DECIRATING <= value * 10 <= MAX_DECIRATING:
        raise ValueError(f"rating out of range: {rating!r}")
    return int((value * 10).to_integral_value(rounding=ROUND_FLOOR))


def from_decirating(decirating: int) -> float:
    return decirating / 10


def format_decirating(decirating: int) -> str:
    """Render a decirating with exactly one decimal, e.g. 35 -> '3.5'."""
    return f"{decirating // 10}.{decirating % 10}"


def point_key(name: str) -> str:
    return f"{POINT_PREFIX}:{_part(name)}"


def region_key(region: str, limit: int) -> str:
    return f"{REGION_PREFIX}:{_part(region)}:limit:{limit}"


def region_category_key(region: str, category: str, limit: int) -> str:
    return f"{REGION_PREFIX}:{_part(region)}:category:{_part(category)}:limit:{limit}"


def category_key(category: str, decirating: int, limit: int) -> str:
    return f"{CATEGORY_PREFIX}:{_part(category)}:min_rating:{format_decirating(decirating)}:limit:{limit}"
