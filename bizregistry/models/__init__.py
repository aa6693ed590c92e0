"""Domain models package."""

from .business import BusinessExportRow, BusinessRow, FinancialBounds, Industry
from .filter_expression import FilterExpression
from .pagination import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    CountResult,
    PageRequest,
    PageResult,
    SortBy,
    SortOrder,
    clamp_limit,
    parse_order,
    parse_sort_by,
)
from .saved_list import SavedList, SavedListCreate

__all__ = [
    "BusinessExportRow",
    "BusinessRow",
    "CountResult",
    "DEFAULT_LIMIT",
    "FilterExpression",
    "FinancialBounds",
    "Industry",
    "MAX_LIMIT",
    "PageRequest",
    "PageResult",
    "SavedList",
    "SavedListCreate",
    "SortBy",
    "SortOrder",
    "clamp_limit",
    "parse_order",
    "parse_sort_by",
]
