"""Query executor: runs compiled SQL against the store.

Failures are not caught here; the service layer directly above decides what a
failed query means for its caller.
"""

import logging
import time
from typing import Any, List, Mapping, Optional, Union

from sqlalchemy import text
from sqlalchemy.engine import Engine, Row
from sqlalchemy.sql import Executable

logger = logging.getLogger(__name__)

EXPLAIN_PREFIX = "EXPLAIN (ANALYZE, BUFFERS, TIMING) "

Statement = Union[str, Executable]


def _statement(sql: Statement) -> Executable:
    return text(sql) if isinstance(sql, str) else sql


def _params(params: Optional[Mapping[str, Any]]) -> Optional[dict]:
    return dict(params) if params else None


class QueryExecutor:
    """Thin typed wrapper over ``Engine`` for SQL strings and Core statements."""

    def __init__(self, engine: Engine):
        """Initialize with database engine."""
        self.engine = engine

    def fetch_all(self, sql: Statement, params: Optional[Mapping[str, Any]] = None) -> List[Row]:
        """Run a read query and return all rows."""
        start = time.perf_counter()
        with self.engine.connect() as conn:
            rows = conn.execute(_statement(sql), _params(params)).fetchall()
        logger.debug(
            f"Query returned {len(rows)} rows in "
            f"{(time.perf_counter() - start) * 1000:.1f}ms"
        )
        return rows

    def fetch_one(self, sql: Statement, params: Optional[Mapping[str, Any]] = None) -> Optional[Row]:
        """Run a read query and return the first row, if any."""
        rows = self.fetch_all(sql, params)
        return rows[0] if rows else None

    def fetch_scalar(self, sql: Statement, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Run a read query and return the first column of the first row."""
        row = self.fetch_one(sql, params)
        return row[0] if row is not None else None

    def execute(self, sql: Statement, params: Optional[Mapping[str, Any]] = None) -> int:
        """Run a write statement in its own transaction; return the row count."""
        with self.engine.begin() as conn:
            result = conn.execute(_statement(sql), _params(params))
            return result.rowcount

    def execute_returning(
        self, sql: Statement, params: Optional[Mapping[str, Any]] = None
    ) -> Any:
        """Run a write statement with ``RETURNING`` and return the first value."""
        with self.engine.begin() as conn:
            return conn.execute(_statement(sql), _params(params)).scalar()

    def explain(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Return the store's query plan for ``sql`` as text."""
        rows = self.fetch_all(EXPLAIN_PREFIX + sql, params)
        return "\n".join(str(row[0]) for row in rows)
