"""Saved list persistence used by the bulk materializer."""

import logging
from typing import List, Optional, Sequence

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    func,
    insert,
    select,
)
from sqlalchemy.dialects import postgresql, sqlite

from ..models.saved_list import SavedList, SavedListCreate
from ..predicates import CompiledPredicates
from .executor import QueryExecutor

logger = logging.getLogger(__name__)


class SavedListOperations:
    """Saved list and membership row operations."""

    def __init__(self, executor: QueryExecutor):
        """Initialize with the query executor."""
        self.executor = executor
        # Declared rather than reflected so no connection is needed up front
        metadata = MetaData()
        self.lists_table = Table(
            "saved_lists",
            metadata,
            Column("id", Integer, primary_key=True),
            Column("user_id", String, nullable=False),
            Column("name", String, nullable=False),
            Column("filter_query", String),
            Column("created_at", DateTime, server_default=func.now()),
        )
        self.items_table = Table(
            "saved_list_items",
            metadata,
            Column("list_id", Integer, primary_key=True),
            Column("org_number", String, primary_key=True),
        )

    def create_list(self, saved_list: SavedListCreate) -> int:
        """Insert a new, empty list and return its id."""
        stmt = (
            insert(self.lists_table)
            .values(
                user_id=saved_list.owner_id,
                name=saved_list.name,
                filter_query=saved_list.filter_query,
            )
            .returning(self.lists_table.c.id)
        )
        list_id = self.executor.execute_returning(stmt)
        logger.info(f"Created saved list {list_id} for owner {saved_list.owner_id}")
        return int(list_id)

    def get_list(self, list_id: int) -> Optional[SavedList]:
        """Get a saved list by id."""
        table = self.lists_table
        stmt = select(
            table.c.id,
            table.c.user_id.label("owner_id"),
            table.c.name,
            table.c.filter_query,
            table.c.created_at,
        ).where(table.c.id == list_id)
        row = self.executor.fetch_one(stmt)
        return SavedList.model_validate(row) if row is not None else None

    def resolve_candidates(self, predicates: CompiledPredicates) -> List[str]:
        """Every org number matching ``predicates``, ordered, without LIMIT."""
        sql = (
            'SELECT DISTINCT TRIM(b."orgNumber") AS org_number '
            'FROM "Business" b '
            f"{predicates.where_clause()} "
            "ORDER BY org_number"
        )
        rows = self.executor.fetch_all(sql, predicates.bind_params())
        return [row.org_number for row in rows if row.org_number]

    def insert_items(self, list_id: int, org_numbers: Sequence[str]) -> int:
        """Add membership rows, ignoring pairs that already exist."""
        if not org_numbers:
            return 0
        dialect = sqlite if self.executor.engine.dialect.name == "sqlite" else postgresql
        stmt = (
            dialect.insert(self.items_table)
            .values([{"list_id": list_id, "org_number": org} for org in org_numbers])
            .on_conflict_do_nothing()
        )
        return self.executor.execute(stmt)

    def count_items(self, list_id: int) -> int:
        """Number of membership rows in a list."""
        stmt = (
            select(func.count())
            .select_from(self.items_table)
            .where(self.items_table.c.list_id == list_id)
        )
        return int(self.executor.fetch_scalar(stmt) or 0)
