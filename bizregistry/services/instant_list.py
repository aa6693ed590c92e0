"""Instant list: one keyset-paginated page per request plus a cached count."""

import logging
import time
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from ..cache import AggregateCache
from ..cursor import decode_cursor, encode_cursor
from ..db import RegistryDatabase
from ..models import (
    BusinessRow,
    CountResult,
    FilterExpression,
    PageRequest,
    PageResult,
    SortBy,
    SortOrder,
)
from ..predicates import PredicateBuilder, build_instant_predicates

logger = logging.getLogger(__name__)

COUNT_TTL_SECONDS = 60

PAGE_COLUMNS = (
    "m.id, m.org_number, m.name, m.industry_text1, m.revenue, m.employees, "
    "m.address_city, m.revenue_bucket, m.employee_bucket, m.has_events"
)


def _add_keyset(builder: PredicateBuilder, request: PageRequest) -> None:
    if not request.sort_by.supports_cursor:
        return
    cursor = decode_cursor(request.cursor)
    if cursor is None:
        return
    column = request.sort_by.column
    op = "<" if request.order is SortOrder.DESC else ">"
    if cursor.metric is None:
        # Inside the NULL partition only the id orders rows.
        builder.add(f"({column} IS NULL AND m.id {op} {{0}})", cursor.tiebreak_id)
    else:
        builder.add(
            f"({column} {op} {{0}} OR ({column} = {{0}} AND m.id {op} {{1}}) "
            f"OR {column} IS NULL)",
            cursor.metric,
            cursor.tiebreak_id,
        )


def _order_by(request: PageRequest) -> str:
    direction = "DESC" if request.order is SortOrder.DESC else "ASC"
    if request.sort_by is SortBy.NAME:
        return f"ORDER BY m.name {direction}, m.id {direction}"
    return f"ORDER BY {request.sort_by.column} {direction} NULLS LAST, m.id {direction}"


def build_page_query(request: PageRequest) -> Tuple[str, Dict[str, Any]]:
    """SQL and bind parameters for one page of the instant list."""
    builder = build_instant_predicates(request.filters)
    _add_keyset(builder, request)
    compiled = builder.compile()
    sql = (
        f"SELECT {PAGE_COLUMNS} FROM public.business_filter_matrix m "
        f"{compiled.where_clause()} {_order_by(request)} LIMIT {int(request.limit)}"
    )
    return sql, compiled.bind_params()


def build_count_query(filters: FilterExpression) -> Tuple[str, Dict[str, Any]]:
    """SQL and bind parameters for the stored count aggregation."""
    signature = filters.count_signature()
    names = [f"p{i}" for i in range(1, len(signature) + 1)]
    sql = "SELECT get_filter_counts({}) AS total".format(
        ", ".join(f":{name}" for name in names)
    )
    return sql, dict(zip(names, signature))


def _cursor_metric(value: Any) -> Optional[Any]:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class InstantListService:
    """Serves pages and counts; never lets a store failure escape."""

    def __init__(self, db: Optional[RegistryDatabase], cache: AggregateCache):
        """Initialize with the database (``None`` when unconfigured) and cache."""
        self.db = db
        self.cache = cache

    def list_page(self, request: PageRequest) -> PageResult:
        """Fetch one page and derive the next cursor."""
        start = time.perf_counter()
        if self.db is None:
            logger.warning("Database not configured; returning empty page")
            return PageResult(failed=True)

        try:
            sql, params = build_page_query(request)
            if request.explain:
                plan = self.db.executor.explain(sql, params)
                return PageResult(explain=plan, took_ms=_elapsed_ms(start))
            rows = self.db.executor.fetch_all(sql, params)
            items = [BusinessRow.model_validate(row) for row in rows]
            next_cursor = None
            if (
                request.sort_by.supports_cursor
                and items
                and len(items) == request.limit
            ):
                last = items[-1]
                metric = getattr(last, request.sort_by.value)
                next_cursor = encode_cursor(_cursor_metric(metric), last.id)
        except Exception as e:
            logger.error(f"Instant list query failed: {e}")
            return PageResult(took_ms=_elapsed_ms(start), failed=True)

        took_ms = _elapsed_ms(start)
        logger.info(
            f"instant list took {took_ms}ms sort={request.sort_by.value} "
            f"order={request.order.value} limit={request.limit} rows={len(items)}"
        )
        return PageResult(items=items, next_cursor=next_cursor, took_ms=took_ms)

    def count(self, filters: FilterExpression, explain: bool = False) -> CountResult:
        """Total matching rows; cached by the count signature."""
        start = time.perf_counter()
        if self.db is None:
            logger.warning("Database not configured; returning zero count")
            return CountResult(failed=True)

        sql, params = build_count_query(filters)
        cache_key = {"endpoint": "count", "signature": list(filters.count_signature())}
        try:
            if explain:
                plan = self.db.executor.explain(sql, params)
                return CountResult(explain=plan, took_ms=_elapsed_ms(start))
            cached = self.cache.get(cache_key)
            if cached is not None:
                return CountResult(total=cached, took_ms=_elapsed_ms(start))
            total = int(self.db.executor.fetch_scalar(sql, params) or 0)
        except Exception as e:
            logger.error(f"Count query failed: {e}")
            return CountResult(took_ms=_elapsed_ms(start), failed=True)

        self.cache.set(cache_key, total, ttl=COUNT_TTL_SECONDS)
        took_ms = _elapsed_ms(start)
        logger.info(f"instant count took {took_ms}ms total={total}")
        return CountResult(total=total, took_ms=took_ms)
