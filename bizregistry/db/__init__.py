"""Database operations package."""

from typing import Optional

from sqlalchemy.engine import Engine

from .base import DatabaseManager
from .businesses import BusinessOperations
from .executor import QueryExecutor
from .saved_lists import SavedListOperations


class RegistryDatabase:
    """Unified database interface combining all operations."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[Engine] = None,
        pool_size: int = 5,
        max_overflow: int = 10,
    ):
        """Initialize database with all operation classes."""
        self.manager = DatabaseManager(
            database_url,
            engine=engine,
            pool_size=pool_size,
            max_overflow=max_overflow,
        )
        self.executor = QueryExecutor(self.manager.engine)
        self.businesses = BusinessOperations(self.executor)
        self.saved_lists = SavedListOperations(self.executor)

    def close(self) -> None:
        """Close database connection."""
        self.manager.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


__all__ = [
    "BusinessOperations",
    "DatabaseManager",
    "QueryExecutor",
    "RegistryDatabase",
    "SavedListOperations",
]
