"""Aggregate and export queries over the business registry."""

import logging
from typing import List, Optional

from ..models.business import BusinessExportRow, FinancialBounds, Industry
from ..predicates import ELIGIBLE_ORG_FORMS
from .executor import QueryExecutor

logger = logging.getLogger(__name__)

ELIGIBLE_SQL = (
    '(COALESCE(b."registeredInForetaksregisteret", false) = true '
    'OR b."orgFormCode" IN (' + ",".join(f"'{c}'" for c in ELIGIBLE_ORG_FORMS) + "))"
)

LATEST_REPORT_JOIN = """
    LEFT JOIN LATERAL (
      SELECT f.{column}
      FROM "FinancialReport" f
      WHERE f."businessId" = b.id
      ORDER BY f."fiscalYear" DESC NULLS LAST
      LIMIT 1
    ) fLatest ON TRUE
"""


class BusinessOperations:
    """Read-only aggregate queries used by the browsing UI."""

    def __init__(self, executor: QueryExecutor):
        """Initialize with the query executor."""
        self.executor = executor

    def get_financial_bounds(self) -> FinancialBounds:
        """Min/max latest revenue and profit across all businesses."""
        sql = """
            WITH latest AS (
              SELECT DISTINCT ON (f."businessId")
                f."businessId", f.revenue, f.profit
              FROM "FinancialReport" f
              ORDER BY f."businessId", f."fiscalYear" DESC NULLS LAST
            )
            SELECT
              COALESCE(MAX(revenue), 0)::bigint AS "maxRevenue",
              COALESCE(MIN(revenue), 0)::bigint AS "minRevenue",
              COALESCE(MAX(profit), 0)::bigint AS "maxProfit",
              COALESCE(MIN(profit), 0)::bigint AS "minProfit"
            FROM latest
            WHERE revenue IS NOT NULL OR profit IS NOT NULL
        """
        row = self.executor.fetch_one(sql)
        if row is None:
            return FinancialBounds()
        return FinancialBounds(**dict(row._mapping))

    def get_latest_extreme(self, column: str, func: str) -> int:
        """MIN or MAX of one latest-report column (``revenue`` or ``profit``)."""
        if column not in ("revenue", "profit") or func not in ("MIN", "MAX"):
            raise ValueError(f"Unsupported aggregate {func}({column})")
        sql = (
            f"SELECT COALESCE({func}(fLatest.{column}), 0)::bigint AS value "
            f'FROM "Business" b '
            f"{LATEST_REPORT_JOIN.format(column=column)} "
            f"WHERE fLatest.{column} IS NOT NULL"
        )
        value = self.executor.fetch_scalar(sql)
        return int(value or 0)

    def get_industries(self, query: Optional[str] = None) -> List[Industry]:
        """Distinct primary industries, optionally narrowed by ``query``."""
        if not query:
            sql = f"""
                SELECT DISTINCT b."industryCode1" AS code, b."industryText1" AS text
                FROM "Business" b
                WHERE b."industryCode1" IS NOT NULL
                  AND b."industryText1" IS NOT NULL
                  AND {ELIGIBLE_SQL}
                ORDER BY b."industryCode1" ASC
            """
            rows = self.executor.fetch_all(sql)
        else:
            sql = f"""
                SELECT code, text FROM (
                  SELECT DISTINCT
                    b."industryCode1" AS code,
                    b."industryText1" AS text,
                    CASE
                      WHEN b."industryCode1" ILIKE :prefix
                        OR b."industryText1" ILIKE :prefix THEN 0
                      ELSE 1
                    END AS relevance
                  FROM "Business" b
                  WHERE b."industryCode1" IS NOT NULL
                    AND b."industryText1" IS NOT NULL
                    AND {ELIGIBLE_SQL}
                    AND (b."industryCode1" ILIKE :contains
                         OR b."industryText1" ILIKE :contains)
                ) ranked
                ORDER BY relevance ASC, code ASC
                LIMIT 50
            """
            rows = self.executor.fetch_all(
                sql, {"prefix": f"{query}%", "contains": f"%{query}%"}
            )
        return [Industry(code=row.code, text=row.text) for row in rows]

    def get_event_types(self) -> List[str]:
        """Distinct non-empty event types."""
        sql = """
            SELECT DISTINCT event_type
            FROM public.events_public
            WHERE event_type IS NOT NULL AND event_type <> ''
            ORDER BY event_type ASC
            LIMIT 500
        """
        return [row.event_type for row in self.executor.fetch_all(sql)]

    def get_areas(self, query: Optional[str] = None) -> List[str]:
        """Most common cities, or cities/postal codes matching ``query``."""
        if not query:
            sql = """
                SELECT b."addressCity" AS city, COUNT(*) AS cnt
                FROM "Business" b
                WHERE b."addressCity" IS NOT NULL AND b."addressCity" <> ''
                GROUP BY b."addressCity"
                ORDER BY cnt DESC
                LIMIT 100
            """
            rows = self.executor.fetch_all(sql)
            return [row.city.strip() for row in rows if (row.city or "").strip()]

        sql = """
            SELECT DISTINCT b."addressCity" AS city, b."addressPostalCode" AS postal
            FROM "Business" b
            WHERE (b."addressCity" ILIKE :like OR b."addressPostalCode" ILIKE :like)
            LIMIT 100
        """
        items: List[str] = []
        for row in self.executor.fetch_all(sql, {"like": f"%{query}%"}):
            for value in (row.city, row.postal):
                value = (value or "").strip()
                if value and value not in items:
                    items.append(value)
            if len(items) >= 100:
                break
        return items[:100]

    def get_grand_total(self) -> int:
        """Unfiltered number of businesses."""
        return int(self.executor.fetch_scalar('SELECT COUNT(*) FROM "Business"') or 0)

    def get_export_batch(self, after_id: int, batch_size: int) -> List[BusinessExportRow]:
        """Next batch of eligible businesses with a website, keyset by id."""
        sql = f"""
            SELECT
              b.id,
              b."orgNumber" AS "orgNumber",
              b.name,
              b.website,
              b.employees,
              b."addressStreet",
              b."addressPostalCode",
              b."addressCity",
              b."industryCode1",
              b."industryText1"
            FROM "Business" b
            WHERE b.id > :after_id
              AND NULLIF(TRIM(b.website), '') IS NOT NULL
              AND {ELIGIBLE_SQL}
            ORDER BY b.id ASC
            LIMIT :batch_size
        """
        rows = self.executor.fetch_all(
            sql, {"after_id": after_id, "batch_size": batch_size}
        )
        return [BusinessExportRow(**dict(row._mapping)) for row in rows]
