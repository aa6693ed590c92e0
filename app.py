"""FastAPI application for the business registry query engine."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.businesses import router as businesses_router
from api.lists import router as lists_router
from api.reference import router as reference_router
from bizregistry.cache import AggregateCache, sweep_periodically
from bizregistry.config import Settings
from bizregistry.db import RegistryDatabase
from bizregistry.services import (
    AggregateService,
    BulkListMaterializer,
    InstantListService,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _connect(settings: Settings) -> Optional[RegistryDatabase]:
    if not settings.database_configured:
        logger.warning("DATABASE_URL is not set; serving empty results")
        return None
    try:
        return RegistryDatabase(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )
    except Exception as e:
        logger.error(f"Failed to initialize RegistryDatabase: {e}")
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app."""
    settings = Settings.from_env()
    logging.getLogger().setLevel(settings.log_level)

    db = _connect(settings)
    cache = AggregateCache()
    app.state.settings = settings
    app.state.db = db
    app.state.cache = cache
    app.state.instant_service = InstantListService(db, cache)
    app.state.aggregate_service = AggregateService(db, cache)
    app.state.materializer = (
        BulkListMaterializer(
            db,
            batch_size=settings.materialize_batch_size,
            batch_delay=settings.materialize_batch_delay_ms / 1000,
        )
        if db is not None
        else None
    )
    sweeper = asyncio.create_task(
        sweep_periodically(cache, settings.cache_sweep_interval_seconds)
    )
    logger.info("Registry services initialized")

    yield

    # Cleanup on shutdown
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    if db:
        db.close()
        logger.info("RegistryDatabase connection closed")


# Initialize FastAPI app
app = FastAPI(
    title="Business Registry API",
    description="Faceted search, counts and saved lists over the business registry",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=Settings.from_env().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"message": "Business Registry API is running!"}


app.include_router(businesses_router)
app.include_router(reference_router)
app.include_router(lists_router)
