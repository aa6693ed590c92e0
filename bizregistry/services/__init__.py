"""Service layer: the one place store failures are caught."""

from .aggregates import AggregateService
from .instant_list import InstantListService, build_count_query, build_page_query
from .materializer import BulkListMaterializer, MaterializeEvent

__all__ = [
    "AggregateService",
    "BulkListMaterializer",
    "InstantListService",
    "MaterializeEvent",
    "build_count_query",
    "build_page_query",
]
