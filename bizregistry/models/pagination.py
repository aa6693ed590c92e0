"""Page and count request/result models for the instant list."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .business import BusinessRow
from .filter_expression import FilterExpression

DEFAULT_LIMIT = 100
MAX_LIMIT = 200


class SortBy(str, Enum):
    """Supported sort keys."""

    REVENUE = "revenue"
    EMPLOYEES = "employees"
    NAME = "name"

    @property
    def supports_cursor(self) -> bool:
        """Whether keyset continuation is available for this key."""
        return self is not SortBy.NAME

    @property
    def column(self) -> str:
        """Sort column on the filter matrix."""
        return {
            SortBy.REVENUE: "m.revenue",
            SortBy.EMPLOYEES: "m.employees",
            SortBy.NAME: "m.name",
        }[self]


class SortOrder(str, Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


def parse_sort_by(value: Optional[str]) -> SortBy:
    """Resolve a sort key, falling back to revenue."""
    try:
        return SortBy((value or "").strip().lower())
    except ValueError:
        return SortBy.REVENUE


def parse_order(value: Optional[str], sort_by: SortBy) -> SortOrder:
    """Resolve a sort order; name defaults to ascending, metrics to descending."""
    try:
        return SortOrder((value or "").strip().lower())
    except ValueError:
        return SortOrder.ASC if sort_by is SortBy.NAME else SortOrder.DESC


def clamp_limit(value: Optional[str]) -> int:
    """Clamp a raw limit to [1, MAX_LIMIT]; anything unparsable means the default."""
    try:
        limit = int(str(value).strip())
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    if limit == 0:
        return DEFAULT_LIMIT
    return max(1, min(MAX_LIMIT, limit))


class PageRequest(BaseModel):
    """Validated page request."""

    filters: FilterExpression = Field(default_factory=FilterExpression)
    sort_by: SortBy = SortBy.REVENUE
    order: SortOrder = SortOrder.DESC
    limit: int = DEFAULT_LIMIT
    cursor: Optional[str] = None
    explain: bool = False


class PageResult(BaseModel):
    """One page of results plus the continuation token."""

    items: List[BusinessRow] = Field(default_factory=list)
    next_cursor: Optional[str] = None
    took_ms: int = 0
    explain: Optional[str] = None
    failed: bool = False


class CountResult(BaseModel):
    """Total matching rows for a filter expression."""

    total: int = 0
    took_ms: int = 0
    explain: Optional[str] = None
    failed: bool = False
