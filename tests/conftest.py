"""Pytest configuration: an in-memory SQLite stand-in for the registry store."""

from typing import Any, Dict, Iterable

import pytest
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from bizregistry.cache import AggregateCache
from bizregistry.db import RegistryDatabase

SCHEMA = [
    """
    CREATE TABLE public.business_filter_matrix (
        id INTEGER PRIMARY KEY,
        org_number TEXT NOT NULL,
        name TEXT,
        industry_code1 TEXT,
        industry_text1 TEXT,
        sector_code TEXT,
        org_form_code TEXT,
        address_city TEXT,
        address_postal_code TEXT,
        revenue INTEGER,
        employees INTEGER,
        revenue_bucket TEXT,
        employee_bucket TEXT,
        vat_registered BOOLEAN,
        has_events BOOLEAN
    )
    """,
    """
    CREATE TABLE public.events_public (
        org_number TEXT NOT NULL,
        event_type TEXT
    )
    """,
    """
    CREATE TABLE "Business" (
        id INTEGER PRIMARY KEY,
        "orgNumber" TEXT NOT NULL,
        name TEXT,
        website TEXT,
        employees INTEGER,
        "orgFormCode" TEXT,
        "registeredInForetaksregisteret" BOOLEAN,
        "sectorCode" TEXT,
        "vatRegistered" BOOLEAN,
        "industryCode1" TEXT,
        "industryCode2" TEXT,
        "industryCode3" TEXT,
        "industryText1" TEXT,
        "industryText2" TEXT,
        "industryText3" TEXT,
        "addressStreet" TEXT,
        "addressPostalCode" TEXT,
        "addressCity" TEXT,
        "registeredAtBrreg" TEXT
    )
    """,
    """
    CREATE TABLE "FinancialReport" (
        id INTEGER PRIMARY KEY,
        "businessId" INTEGER NOT NULL,
        "fiscalYear" INTEGER,
        revenue INTEGER,
        profit INTEGER
    )
    """,
    """
    CREATE TABLE "BusinessWebMeta" (
        "businessId" INTEGER PRIMARY KEY,
        "webCmsShopify" BOOLEAN,
        "webEcomWoocommerce" BOOLEAN
    )
    """,
    """
    CREATE TABLE saved_lists (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        name TEXT NOT NULL,
        filter_query TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE saved_list_items (
        list_id INTEGER NOT NULL,
        org_number TEXT NOT NULL,
        PRIMARY KEY (list_id, org_number)
    )
    """,
]


def _insert(engine: Engine, table: str, rows: Iterable[Dict[str, Any]]) -> None:
    rows = list(rows)
    if not rows:
        return
    columns = list(rows[0].keys())
    column_sql = ", ".join(f'"{c}"' for c in columns)
    values_sql = ", ".join(f":{c}" for c in columns)
    with engine.begin() as conn:
        conn.execute(
            text(f"INSERT INTO {table} ({column_sql}) VALUES ({values_sql})"), rows
        )


@pytest.fixture
def engine() -> Engine:
    """In-memory SQLite engine with a ``public`` schema attached."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def attach_public(dbapi_connection, connection_record):
        dbapi_connection.execute("ATTACH DATABASE ':memory:' AS public")

    with engine.begin() as conn:
        for statement in SCHEMA:
            conn.execute(text(statement))
    yield engine
    engine.dispose()


@pytest.fixture
def registry_db(engine: Engine) -> RegistryDatabase:
    """Registry database over the SQLite engine."""
    return RegistryDatabase(engine=engine)


@pytest.fixture
def cache() -> AggregateCache:
    return AggregateCache()


@pytest.fixture
def insert_rows(engine: Engine):
    """Insert dict rows into a table: ``insert_rows("saved_lists", [...])``."""

    def insert(table: str, rows: Iterable[Dict[str, Any]]) -> None:
        _insert(engine, table, rows)

    return insert


@pytest.fixture
def matrix_rows():
    """Thirty businesses with tied and NULL revenues and employee counts."""
    rows = []
    for i in range(1, 31):
        rows.append(
            {
                "id": i,
                "org_number": f"9{i:08d}",
                "name": f"Company {i:02d}",
                "industry_code1": "62.010" if i % 2 else "47.110",
                "industry_text1": "Programmering" if i % 2 else "Butikkhandel",
                "sector_code": "2100",
                "org_form_code": "AS",
                "address_city": "OSLO" if i % 3 else "BERGEN",
                "address_postal_code": f"0{i:03d}",
                "revenue": None if i % 7 == 0 else (i % 5) * 1000,
                "employees": None if i % 4 == 0 else i % 3,
                "revenue_bucket": "1-10M" if i <= 24 else "10-100M",
                "employee_bucket": "1-9",
                "vat_registered": i % 2 == 0,
                "has_events": i % 5 == 0,
            }
        )
    return rows


@pytest.fixture
def seeded_matrix(insert_rows, matrix_rows):
    insert_rows("public.business_filter_matrix", matrix_rows)
    return matrix_rows
