"""Read-through cached aggregates and the CSV export."""

import csv
import io
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..cache import AggregateCache
from ..db import RegistryDatabase
from ..models import FinancialBounds, Industry

logger = logging.getLogger(__name__)

BOUNDS_TTL = 15 * 60
MAX_REVENUE_TTL = 15 * 60
SHORT_AGGREGATE_TTL = 5 * 60
INDUSTRIES_TTL = 5 * 60
EVENT_TYPES_TTL = 10 * 60
GRAND_TOTAL_TTL = 2 * 60

EXPORT_BATCH_SIZE = 2000
EXPORT_COLUMNS = [
    "orgNumber",
    "name",
    "website",
    "employees",
    "addressStreet",
    "addressPostalCode",
    "addressCity",
    "industryCode1",
    "industryText1",
]


class AggregateService:
    """Aggregate statistics for the browsing UI.

    Values come from the cache when fresh, otherwise from the store. A failed
    load returns the fallback and is not cached, so the next request retries.
    """

    def __init__(self, db: Optional[RegistryDatabase], cache: AggregateCache):
        """Initialize with the database (``None`` when unconfigured) and cache."""
        self.db = db
        self.cache = cache

    def _cached(
        self,
        key: Dict[str, Any],
        loader: Callable[[], Any],
        ttl: float,
        fallback: Any,
    ) -> Any:
        if self.db is None:
            return fallback
        try:
            return self.cache.get_or_load(key, loader, ttl)
        except Exception as e:
            logger.error(f"Aggregate {key} failed: {e}")
            return fallback

    def bounds(self) -> FinancialBounds:
        """Latest-year revenue and profit bounds."""
        return self._cached(
            {"metric": "financialBoundsV1"},
            lambda: self.db.businesses.get_financial_bounds(),
            BOUNDS_TTL,
            FinancialBounds(),
        )

    def _extreme(self, metric: str, column: str, func: str, ttl: float) -> int:
        return self._cached(
            {"metric": metric},
            lambda: self.db.businesses.get_latest_extreme(column, func),
            ttl,
            0,
        )

    def max_revenue(self) -> int:
        return self._extreme("maxLatestRevenue", "revenue", "MAX", MAX_REVENUE_TTL)

    def min_revenue(self) -> int:
        return self._extreme("minLatestRevenue", "revenue", "MIN", SHORT_AGGREGATE_TTL)

    def max_profit(self) -> int:
        return self._extreme("maxLatestProfit", "profit", "MAX", SHORT_AGGREGATE_TTL)

    def min_profit(self) -> int:
        return self._extreme("minLatestProfit", "profit", "MIN", SHORT_AGGREGATE_TTL)

    def industries(self, query: Optional[str] = None) -> List[Industry]:
        """Primary industries, optionally narrowed by a search term."""
        query = (query or "").strip()
        return self._cached(
            {"endpoint": "industries", "query": query or "all"},
            lambda: self.db.businesses.get_industries(query or None),
            INDUSTRIES_TTL,
            [],
        )

    def event_types(self) -> List[str]:
        return self._cached(
            {"metric": "distinctEventTypes"},
            lambda: self.db.businesses.get_event_types(),
            EVENT_TYPES_TTL,
            [],
        )

    def areas(self, query: Optional[str] = None) -> List[str]:
        """Cities and postal codes; queried live on every call."""
        if self.db is None:
            return []
        try:
            return self.db.businesses.get_areas((query or "").strip() or None)
        except Exception as e:
            logger.error(f"Areas query failed: {e}")
            return []

    def grand_total(self) -> int:
        return self._cached(
            {"metric": "grandTotalBusinesses"},
            lambda: self.db.businesses.get_grand_total(),
            GRAND_TOTAL_TTL,
            0,
        )

    def export_csv(self, batch_size: int = EXPORT_BATCH_SIZE) -> Iterator[str]:
        """Stream eligible businesses with a website as CSV text chunks."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")

        def flush() -> str:
            chunk = buffer.getvalue()
            buffer.seek(0)
            buffer.truncate(0)
            return chunk

        writer.writerow(EXPORT_COLUMNS)
        yield flush()
        if self.db is None:
            return

        last_id = 0
        exported = 0
        try:
            while True:
                rows = self.db.businesses.get_export_batch(last_id, batch_size)
                if not rows:
                    break
                for row in rows:
                    values = row.model_dump(include=set(EXPORT_COLUMNS))
                    writer.writerow(
                        ["" if values[c] is None else values[c] for c in EXPORT_COLUMNS]
                    )
                exported += len(rows)
                last_id = rows[-1].id
                yield flush()
                if len(rows) < batch_size:
                    break
        except Exception as e:
            logger.error(f"CSV export failed after {exported} rows: {e}")
            yield f"# error generating CSV: {e}\n"
            return
        logger.info(f"CSV export finished with {exported} rows")
