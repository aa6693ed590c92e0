"""Business listing, count and aggregate endpoints."""

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import StreamingResponse

from bizregistry.models import (
    FilterExpression,
    FinancialBounds,
    PageRequest,
    clamp_limit,
    parse_order,
    parse_sort_by,
)
from bizregistry.services import AggregateService, InstantListService

from .dependencies import get_aggregate_service, get_instant_service

logger = logging.getLogger(__name__)

# Create router for business endpoints
router = APIRouter(prefix="/businesses", tags=["businesses"])

PAGE_CACHE_OK = "s-maxage=15"
PAGE_CACHE_FAILED = "s-maxage=5"
COUNT_CACHE_OK = "s-maxage=60, stale-while-revalidate=300"
COUNT_CACHE_FAILED = "s-maxage=15"


def _is_true(value) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


@router.get("")
def list_businesses(
    request: Request,
    response: Response,
    service: InstantListService = Depends(get_instant_service),
) -> dict:
    """One page of businesses matching the filters in the query string."""
    params = request.query_params
    sort_by = parse_sort_by(params.get("sortBy"))
    page_request = PageRequest(
        filters=FilterExpression.from_pairs(params.multi_items()),
        sort_by=sort_by,
        order=parse_order(params.get("order"), sort_by),
        limit=clamp_limit(params.get("limit")),
        cursor=params.get("cursor"),
        explain=_is_true(params.get("explain")),
    )
    result = service.list_page(page_request)
    response.headers["Cache-Control"] = (
        PAGE_CACHE_FAILED if result.failed else PAGE_CACHE_OK
    )
    if result.explain is not None:
        return {"explain": result.explain, "tookMs": result.took_ms}
    return {
        "items": [item.model_dump() for item in result.items],
        "cursor": {"next": result.next_cursor},
        "tookMs": result.took_ms,
    }


@router.get("/count")
def count_businesses(
    request: Request,
    response: Response,
    service: InstantListService = Depends(get_instant_service),
) -> dict:
    """Total number of businesses matching the filters."""
    params = request.query_params
    result = service.count(
        FilterExpression.from_pairs(params.multi_items()),
        explain=_is_true(params.get("explain")),
    )
    response.headers["Cache-Control"] = (
        COUNT_CACHE_FAILED if result.failed else COUNT_CACHE_OK
    )
    if result.explain is not None:
        return {"explain": result.explain, "tookMs": result.took_ms}
    return {"total": result.total, "tookMs": result.took_ms}


@router.get("/bounds", response_model=FinancialBounds)
def get_bounds(
    service: AggregateService = Depends(get_aggregate_service),
) -> FinancialBounds:
    """Latest-year revenue and profit bounds for range sliders."""
    return service.bounds()


@router.get("/max-revenue")
def get_max_revenue(service: AggregateService = Depends(get_aggregate_service)) -> dict:
    return {"maxRevenue": service.max_revenue()}


@router.get("/min-revenue")
def get_min_revenue(service: AggregateService = Depends(get_aggregate_service)) -> dict:
    return {"minRevenue": service.min_revenue()}


@router.get("/max-profit")
def get_max_profit(service: AggregateService = Depends(get_aggregate_service)) -> dict:
    return {"maxProfit": service.max_profit()}


@router.get("/min-profit")
def get_min_profit(service: AggregateService = Depends(get_aggregate_service)) -> dict:
    return {"minProfit": service.min_profit()}


@router.get("/total")
def get_grand_total(service: AggregateService = Depends(get_aggregate_service)) -> dict:
    """Unfiltered number of businesses."""
    return {"total": service.grand_total()}


@router.get("/export")
def export_businesses(
    service: AggregateService = Depends(get_aggregate_service),
) -> StreamingResponse:
    """CSV of eligible businesses that have a website."""
    return StreamingResponse(
        service.export_csv(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="businesses.csv"'},
    )
